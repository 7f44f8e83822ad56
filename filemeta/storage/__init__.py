"""Storage clients used to list files and resolve block locations."""

from filemeta.storage.arrow_fs import PyArrowStorageClient
from filemeta.storage.client import BlockLocation, FileStatus, StorageClient
from filemeta.storage.memory import InMemoryStorageClient

__all__ = [
    "BlockLocation",
    "FileStatus",
    "StorageClient",
    "PyArrowStorageClient",
    "InMemoryStorageClient",
]
