"""File descriptor models.

Descriptors are immutable. A refresh either hands back the exact instance it
was given (file unchanged) or builds a new one; callers never see a
descriptor being modified in place.
"""

import threading
from dataclasses import dataclass, field
from enum import StrEnum


class FileFormat(StrEnum):
    """Format hint attached to descriptors. Contents are never inspected."""

    TEXT = "TEXT"
    PARQUET = "PARQUET"
    ORC = "ORC"
    AVRO = "AVRO"
    HUDI_PARQUET = "HUDI_PARQUET"
    ICEBERG = "ICEBERG"


class ContentType(StrEnum):
    """Iceberg content file type."""

    DATA = "DATA"
    POSITION_DELETES = "POSITION_DELETES"
    EQUALITY_DELETES = "EQUALITY_DELETES"


@dataclass(frozen=True)
class FileBlock:
    """One block of a file and the hosts (HostIndex ids) holding replicas."""

    offset: int
    length: int
    host_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class RawFileStat:
    """A file as observed by a listing or a manifest, before reconciliation."""

    absolute_path: str
    relative_path: str
    size: int
    modification_time: int  # storage logical clock, not wall time


@dataclass(frozen=True)
class FileDescriptor:
    """Metadata for one physical file, identified by its relative path."""

    relative_path: str
    absolute_path: str
    size: int
    modification_time: int
    blocks: tuple[FileBlock, ...] = ()
    file_format: FileFormat | None = None

    @property
    def num_blocks(self) -> int:
        return len(self.blocks)

    def matches(self, observed: RawFileStat) -> bool:
        """Return True when observed describes this exact file version."""
        return (
            self.relative_path == observed.relative_path
            and self.modification_time == observed.modification_time
            and self.size == observed.size
        )


@dataclass(frozen=True, kw_only=True)
class IcebergFileDescriptor(FileDescriptor):
    """Descriptor for a snapshot-table content file.

    content_type, partition_id and sequence_number come from the manifest
    and are refreshed on every load, even when the file itself is reused.
    """

    content_type: ContentType = ContentType.DATA
    partition_id: int | None = None
    sequence_number: int | None = None


@dataclass
class LoadStats:
    """Counters for one load invocation.

    Updates go through the record_* methods, which are safe to call from
    the reconciliation worker threads.
    """

    loaded_files: int = 0
    skipped_files: int = 0
    files_superseded_by_acid_state: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def total_files(self) -> int:
        return self.loaded_files + self.skipped_files

    def record_loaded(self) -> None:
        with self._lock:
            self.loaded_files += 1

    def record_skipped(self) -> None:
        with self._lock:
            self.skipped_files += 1

    def record_superseded(self, count: int = 1) -> None:
        with self._lock:
            self.files_superseded_by_acid_state += count

    def snapshot(self) -> "LoadStats":
        """Return a copy detached from the worker threads."""
        with self._lock:
            return LoadStats(
                loaded_files=self.loaded_files,
                skipped_files=self.skipped_files,
                files_superseded_by_acid_state=self.files_superseded_by_acid_state,
            )


@dataclass(frozen=True)
class LoadResult:
    """Descriptors and stats produced by one load."""

    descriptors: list[FileDescriptor]
    stats: LoadStats

    def by_relative_path(self) -> dict[str, FileDescriptor]:
        return {fd.relative_path: fd for fd in self.descriptors}
