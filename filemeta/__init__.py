"""Incremental file metadata loading for table catalogs.

Builds and refreshes the set of file descriptors that make up a table,
reusing descriptors of files that did not change since the previous load.

Loaders:
- load_directory: plain, ACID and Hudi tables (directory walk)
- SnapshotFileMetadataLoader: Iceberg tables (manifest-resolved files)

All loaders share one HostIndex per catalog session and one diff rule:
same relative path, size and modification time means reuse.
"""

from filemeta.common.errors import (
    FileMetadataLoadError,
    LoadCancelledError,
    LoadStage,
    LocationViolationError,
    StorageUnavailableError,
)
from filemeta.features.descriptors.host_index import HostIndex, NetworkAddress
from filemeta.features.descriptors.models import (
    ContentType,
    FileBlock,
    FileDescriptor,
    FileFormat,
    IcebergFileDescriptor,
    LoadResult,
    LoadStats,
    RawFileStat,
)
from filemeta.features.file_loader.directory_loader import load_directory
from filemeta.features.file_loader.write_ids import ValidTxnList, ValidWriteIdList
from filemeta.features.iceberg.content_files import ContentFile, GroupedContentFiles
from filemeta.features.iceberg.partitions import PartitionSet
from filemeta.features.iceberg.snapshot_loader import (
    SnapshotFileMetadataLoader,
    SnapshotLoadResult,
)

__all__ = [
    # Errors
    "FileMetadataLoadError",
    "LoadCancelledError",
    "LoadStage",
    "LocationViolationError",
    "StorageUnavailableError",
    # Descriptors
    "HostIndex",
    "NetworkAddress",
    "ContentType",
    "FileBlock",
    "FileDescriptor",
    "FileFormat",
    "IcebergFileDescriptor",
    "LoadResult",
    "LoadStats",
    "RawFileStat",
    # Directory loading
    "load_directory",
    "ValidTxnList",
    "ValidWriteIdList",
    # Snapshot loading
    "ContentFile",
    "GroupedContentFiles",
    "PartitionSet",
    "SnapshotFileMetadataLoader",
    "SnapshotLoadResult",
]
