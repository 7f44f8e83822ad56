"""In-memory storage client.

Holds a flat map of absolute file paths to (size, mtime, blocks); directories
are implied by the paths. Useful for staging listings without touching real
storage and for exercising the loaders against HDFS-style block placement.

Usage:
    storage = InMemoryStorageClient()
    storage.add_file("hdfs://nn:8020/wh/t/year=2009/a.txt", size=100,
                     hosts=["dn1:9866", "dn2:9866"])
    storage.touch("hdfs://nn:8020/wh/t/year=2009/a.txt")
"""

import threading
from dataclasses import dataclass, field

from filemeta.common.errors import StorageUnavailableError
from filemeta.common.paths import normalize_location, relativize
from filemeta.features.descriptors.host_index import NetworkAddress
from filemeta.storage.client import BlockLocation, FileStatus


@dataclass
class _StoredFile:
    size: int
    modification_time: int
    blocks: list[BlockLocation] = field(default_factory=list)


class InMemoryStorageClient:
    """Dictionary-backed StorageClient with failure injection."""

    def __init__(self, block_size: int = 128 * 1024 * 1024) -> None:
        self._lock = threading.Lock()
        self._files: dict[str, _StoredFile] = {}
        self._directories: set[str] = set()
        self._unavailable: set[str] = set()
        self._clock = 1_000
        self.block_size = block_size
        self.block_location_calls = 0

    def _next_mtime(self) -> int:
        self._clock += 1
        return self._clock

    def add_file(
        self,
        path: str,
        size: int = 0,
        modification_time: int | None = None,
        hosts: list[str] | None = None,
    ) -> None:
        """Add or replace a file.

        Args:
            path: Absolute path or URI of the file
            size: File size in bytes
            modification_time: Explicit mtime; a fresh clock value if omitted
            hosts: "host:port" replicas attached to every block
        """
        replicas = tuple(NetworkAddress.parse(h) for h in hosts or [])
        blocks: list[BlockLocation] = []
        offset = 0
        while offset < size:
            length = min(self.block_size, size - offset)
            blocks.append(BlockLocation(offset=offset, length=length, hosts=replicas))
            offset += length
        with self._lock:
            mtime = self._next_mtime() if modification_time is None else modification_time
            self._files[normalize_location(path)] = _StoredFile(size, mtime, blocks)

    def add_directory(self, path: str) -> None:
        """Register an empty directory."""
        with self._lock:
            self._directories.add(normalize_location(path))

    def remove(self, path: str) -> None:
        """Remove a file, or every file under a directory."""
        target = normalize_location(path)
        with self._lock:
            self._files.pop(target, None)
            for stored in [p for p in self._files if relativize(target, p) is not None]:
                del self._files[stored]
            self._directories = {
                d for d in self._directories if d != target and relativize(target, d) is None
            }

    def touch(self, path: str, modification_time: int | None = None) -> int:
        """Bump a file's modification time and return the new value."""
        target = normalize_location(path)
        with self._lock:
            stored = self._files[target]
            stored.modification_time = (
                self._next_mtime() if modification_time is None else modification_time
            )
            return stored.modification_time

    def set_unavailable(self, path: str, unavailable: bool = True) -> None:
        """Make every call touching path (or anything under it) raise StorageUnavailableError."""
        target = normalize_location(path)
        with self._lock:
            if unavailable:
                self._unavailable.add(target)
            else:
                self._unavailable.discard(target)

    def _check_available(self, path: str) -> None:
        for broken in self._unavailable:
            if path == broken or relativize(broken, path) is not None:
                raise StorageUnavailableError(f"Storage unavailable for {path}")

    def list_entries(self, path: str) -> list[FileStatus]:
        target = normalize_location(path)
        with self._lock:
            self._check_available(target)
            entries: dict[str, FileStatus] = {}
            found = target in self._directories
            for stored_path, stored in self._files.items():
                relative = relativize(target, stored_path)
                if relative is None:
                    continue
                found = True
                name, sep, _ = relative.partition("/")
                if sep:
                    entries.setdefault(name, FileStatus(name=name, is_directory=True))
                else:
                    entries[name] = FileStatus(
                        name=name,
                        is_directory=False,
                        size=stored.size,
                        modification_time=stored.modification_time,
                    )
            for directory in self._directories:
                relative = relativize(target, directory)
                if relative is None:
                    continue
                found = True
                name = relative.split("/")[0]
                entries.setdefault(name, FileStatus(name=name, is_directory=True))
        if not found:
            raise FileNotFoundError(f"No such directory: {path}")
        return list(entries.values())

    def get_file_status(self, path: str) -> FileStatus:
        target = normalize_location(path)
        with self._lock:
            self._check_available(target)
            stored = self._files.get(target)
        if stored is None:
            raise FileNotFoundError(f"No such file: {path}")
        return FileStatus(
            name=target.rsplit("/", 1)[-1],
            is_directory=False,
            size=stored.size,
            modification_time=stored.modification_time,
        )

    def resolve_block_locations(self, path: str, size: int) -> list[BlockLocation]:
        target = normalize_location(path)
        with self._lock:
            self._check_available(target)
            self.block_location_calls += 1
            stored = self._files.get(target)
        if stored is None:
            raise FileNotFoundError(f"No such file: {path}")
        return list(stored.blocks)
