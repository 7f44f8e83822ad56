"""Error taxonomy for file metadata loads.

A failed load surfaces as exactly one FileMetadataLoadError naming the
stage that failed. Storage clients raise StorageUnavailableError (an
OSError) and FileNotFoundError; loaders translate those at the stage
boundary with ``raise ... from`` so the storage error stays attached.
"""

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from filemeta.features.descriptors.models import LoadStats


class LoadStage(StrEnum):
    """Stage of a load that produced an error."""

    LISTING = "listing"
    TRANSACTIONAL_FILTERING = "transactional_filtering"
    LOCATION_VALIDATION = "location_validation"
    BLOCK_LOCATIONS = "block_locations"


class StorageUnavailableError(OSError):
    """Raised by storage clients for transient I/O failures.

    Retry policy belongs to the storage client; loaders never retry.
    """


class FileMetadataLoadError(Exception):
    """Raised when a load fails; no partial descriptor collection is returned."""

    def __init__(self, stage: LoadStage, message: str, path: str | None = None) -> None:
        super().__init__(f"[{stage}] {message}")
        self.stage = stage
        self.path = path


class LocationViolationError(FileMetadataLoadError):
    """Raised when a content file lies outside the table location it must live under."""

    def __init__(self, path: str, table_location: str) -> None:
        super().__init__(
            LoadStage.LOCATION_VALIDATION,
            f"File {path} is outside of the table location {table_location}",
            path=path,
        )
        self.table_location = table_location


class LoadCancelledError(FileMetadataLoadError):
    """Raised when a load observes its cancel event.

    ``stats`` holds the counters accumulated before cancellation.
    """

    def __init__(self, stage: LoadStage, stats: "LoadStats") -> None:
        super().__init__(stage, f"Load cancelled after {stats.total_files} files")
        self.stats = stats
