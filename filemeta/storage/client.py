"""Storage client interface consumed by the loaders.

The loaders only need three calls: list one directory level, stat one
file, and resolve block placement for one file. Implementations raise
FileNotFoundError for missing paths and StorageUnavailableError for
transient failures; timeouts and retries are their own business.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from filemeta.features.descriptors.host_index import NetworkAddress


@dataclass(frozen=True)
class FileStatus:
    """One entry returned by a directory listing."""

    name: str
    is_directory: bool
    size: int = 0
    modification_time: int = 0


@dataclass(frozen=True)
class BlockLocation:
    """Raw block placement as reported by storage, before host interning."""

    offset: int
    length: int
    hosts: tuple[NetworkAddress, ...] = ()


@runtime_checkable
class StorageClient(Protocol):
    def list_entries(self, path: str) -> list[FileStatus]:
        """List the direct children of a directory.

        Raises:
            FileNotFoundError: If path does not exist
            StorageUnavailableError: On transient storage failures
        """
        ...

    def get_file_status(self, path: str) -> FileStatus:
        """Stat a single file.

        Raises:
            FileNotFoundError: If path does not exist
            StorageUnavailableError: On transient storage failures
        """
        ...

    def resolve_block_locations(self, path: str, size: int) -> list[BlockLocation]:
        """Return block placement for a file of the given size, ordered by offset.

        Raises:
            FileNotFoundError: If path does not exist
            StorageUnavailableError: On transient storage failures
        """
        ...
