"""Storage client backed by pyarrow.fs.

Works for local paths and any URI pyarrow can open (hdfs://, s3://, gs://).
One filesystem instance is created per ``scheme://authority`` and reused.

pyarrow does not expose replica placement, so block locations are
synthesized: the file is split into fixed-size blocks with no hosts, which
is how object stores without locality are represented anyway.
"""

import threading

import pyarrow.fs as pafs
from loguru import logger

from filemeta.common.errors import StorageUnavailableError
from filemeta.common.paths import base_name, split_uri, storage_root
from filemeta.config.settings import FileLoaderSettings, settings
from filemeta.storage.client import BlockLocation, FileStatus

# Object stores address keys as "bucket/key" inside pyarrow
_BUCKET_SCHEMES = frozenset({"s3", "s3a", "s3n", "gs", "gcs"})


def _to_status(info: pafs.FileInfo) -> FileStatus:
    is_directory = info.type == pafs.FileType.Directory
    return FileStatus(
        name=info.base_name,
        is_directory=is_directory,
        size=0 if is_directory else int(info.size or 0),
        modification_time=int(info.mtime_ns or 0),
    )


class PyArrowStorageClient:
    """StorageClient implementation on top of pyarrow filesystems."""

    def __init__(
        self,
        filesystem: pafs.FileSystem | None = None,
        synthetic_block_size: int | None = None,
        loader_settings: FileLoaderSettings | None = None,
    ) -> None:
        """
        Args:
            filesystem: Use this filesystem for every path instead of resolving
                one from the URI (e.g. a LocalFileSystem or SubTreeFileSystem).
            synthetic_block_size: Block size used to split files into blocks.
                Defaults to FILEMETA_SYNTHETIC_BLOCK_SIZE.
            loader_settings: Settings to read the default block size from
                (defaults to the global settings).
        """
        if synthetic_block_size is None:
            synthetic_block_size = (loader_settings or settings.file_loader).synthetic_block_size
        if synthetic_block_size < 1:
            raise ValueError(f"synthetic_block_size must be positive, got {synthetic_block_size}")
        self._fixed_fs = filesystem
        self._block_size = synthetic_block_size
        self._lock = threading.Lock()
        self._filesystems: dict[str, pafs.FileSystem] = {}

    def _resolve(self, path: str) -> tuple[pafs.FileSystem, str]:
        scheme, authority, path_part = split_uri(path)
        if self._fixed_fs is not None:
            return self._fixed_fs, path_part
        if not scheme or scheme == "file":
            with self._lock:
                fs = self._filesystems.setdefault("file://", pafs.LocalFileSystem())
            return fs, path_part

        root = storage_root(path)
        fs_path = f"{authority}{path_part}" if scheme in _BUCKET_SCHEMES else path_part
        with self._lock:
            fs = self._filesystems.get(root)
        if fs is None:
            try:
                fs, _ = pafs.FileSystem.from_uri(path)
            except OSError as e:
                raise StorageUnavailableError(f"Cannot open filesystem for {root}: {e}") from e
            with self._lock:
                fs = self._filesystems.setdefault(root, fs)
            logger.debug(f"Opened pyarrow filesystem for {root}: {type(fs).__name__}")
        return fs, fs_path

    def list_entries(self, path: str) -> list[FileStatus]:
        fs, fs_path = self._resolve(path)
        selector = pafs.FileSelector(fs_path, allow_not_found=False, recursive=False)
        try:
            infos = fs.get_file_info(selector)
        except FileNotFoundError:
            raise
        except NotADirectoryError as e:
            raise FileNotFoundError(f"Not a directory: {path}") from e
        except OSError as e:
            raise StorageUnavailableError(f"Failed to list {path}: {e}") from e
        return [_to_status(info) for info in infos]

    def get_file_status(self, path: str) -> FileStatus:
        fs, fs_path = self._resolve(path)
        try:
            info = fs.get_file_info(fs_path)
        except OSError as e:
            raise StorageUnavailableError(f"Failed to stat {path}: {e}") from e
        if info.type == pafs.FileType.NotFound:
            raise FileNotFoundError(f"No such file: {path}")
        status = _to_status(info)
        if not status.name:
            return FileStatus(
                name=base_name(path),
                is_directory=status.is_directory,
                size=status.size,
                modification_time=status.modification_time,
            )
        return status

    def resolve_block_locations(self, path: str, size: int) -> list[BlockLocation]:
        # Confirm the file still exists so a vanished file fails the load
        self.get_file_status(path)
        blocks: list[BlockLocation] = []
        offset = 0
        while offset < size:
            length = min(self._block_size, size - offset)
            blocks.append(BlockLocation(offset=offset, length=length))
            offset += length
        return blocks
