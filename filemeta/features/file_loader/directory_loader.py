"""Directory-walk loading for plain, ACID and Hudi tables.

Walks a table (or partition) location through the storage client and
reconciles every file found against the prior descriptors.

Expected directory structure (Hive-style partitioning):
    {root}/year=2009/month=1/090101.txt

Directories whose name starts with "." or "_" (.hive-staging_*, _tmp.*,
_temporary) are skipped without being listed.
"""

import threading
from collections.abc import Iterable

from loguru import logger

from filemeta.common.errors import FileMetadataLoadError, LoadStage
from filemeta.common.paths import is_hidden_name, join_path, normalize_location
from filemeta.config.settings import FileLoaderSettings
from filemeta.features.descriptors.host_index import HostIndex
from filemeta.features.descriptors.models import (
    FileDescriptor,
    FileFormat,
    LoadResult,
    RawFileStat,
)
from filemeta.features.file_loader.acid_state import AcidStateFilter
from filemeta.features.file_loader.hudi import HudiVersionFilter
from filemeta.features.file_loader.pipeline import FileMetadataLoader, PreFilter
from filemeta.features.file_loader.write_ids import ValidTxnList, ValidWriteIdList
from filemeta.storage.client import StorageClient


class DirectoryListingSource:
    """FileSource that lists files under a root, optionally recursively."""

    def __init__(self, storage: StorageClient, root_path: str, recursive: bool) -> None:
        self._storage = storage
        self._root = normalize_location(root_path)
        self._recursive = recursive

    def list_files(self) -> list[RawFileStat]:
        """List files under the root.

        Returns:
            Files with paths relative to the root, in no particular order.
            Returns empty list if the root doesn't exist.

        Raises:
            FileMetadataLoadError: If storage fails while listing
        """
        files: list[RawFileStat] = []
        # (absolute directory, relative prefix)
        stack: list[tuple[str, str]] = [(self._root, "")]
        while stack:
            directory, prefix = stack.pop()
            try:
                entries = self._storage.list_entries(directory)
            except FileNotFoundError:
                if not prefix:
                    logger.info(f"Table location does not exist, treating as empty: {self._root}")
                    return []
                # Removed between listing its parent and listing it
                logger.debug(f"Directory vanished during listing: {directory}")
                continue
            except OSError as e:
                logger.error(
                    "Failed to list table location",
                    extra={"directory": directory, "error": str(e)},
                )
                raise FileMetadataLoadError(
                    LoadStage.LISTING, f"Failed to list {directory}: {e}", path=directory
                ) from e

            for entry in entries:
                relative = f"{prefix}{entry.name}"
                if entry.is_directory:
                    if is_hidden_name(entry.name) or not self._recursive:
                        continue
                    stack.append((join_path(directory, entry.name), f"{relative}/"))
                    continue
                files.append(
                    RawFileStat(
                        absolute_path=join_path(self._root, relative),
                        relative_path=relative,
                        size=entry.size,
                        modification_time=entry.modification_time,
                    )
                )

        logger.debug(f"Found {len(files)} files in {self._root}")
        return files


def _parse_snapshots(
    valid_write_ids: ValidWriteIdList | str, valid_txns: ValidTxnList | str | None
) -> tuple[ValidWriteIdList, ValidTxnList | None]:
    try:
        if isinstance(valid_write_ids, str):
            valid_write_ids = ValidWriteIdList.from_string(valid_write_ids)
        if isinstance(valid_txns, str):
            valid_txns = ValidTxnList.from_string(valid_txns)
    except ValueError as e:
        logger.error("Invalid transactional snapshot", extra={"error": str(e)})
        raise FileMetadataLoadError(LoadStage.TRANSACTIONAL_FILTERING, str(e)) from e
    return valid_write_ids, valid_txns


def load_directory(
    root_path: str,
    recursive: bool,
    old_descriptors: Iterable[FileDescriptor],
    host_index: HostIndex,
    storage: StorageClient,
    *,
    file_format: FileFormat | None = None,
    valid_write_ids: ValidWriteIdList | str | None = None,
    valid_txns: ValidTxnList | str | None = None,
    loader_settings: FileLoaderSettings | None = None,
    max_workers: int | None = None,
    cancel_event: threading.Event | None = None,
) -> LoadResult:
    """Load descriptors for the files under root_path.

    The pre-filter is picked from the table kind: a write-id list makes the
    table transactional, a HUDI_PARQUET format keeps only the latest version
    of each file group.

    Args:
        root_path: Table or partition location
        recursive: Descend into (non-hidden) subdirectories
        old_descriptors: Descriptors from the previous load (may be empty)
        host_index: Session-wide host index
        storage: Storage client used for listing and block locations
        file_format: Format hint stored on new descriptors
        valid_write_ids: Write-id snapshot for transactional tables, parsed or
            in its metastore string form
        valid_txns: Transaction snapshot used for compaction visibility
        loader_settings: Overrides the global loader settings
        max_workers: Overrides the configured concurrency limit
        cancel_event: Cooperative cancellation flag

    Returns:
        LoadResult with the new descriptors and stats

    Raises:
        FileMetadataLoadError: If listing, write-id parsing or block resolution fails
    """
    prefilter: PreFilter | None = None
    if valid_write_ids is not None:
        prefilter = AcidStateFilter(*_parse_snapshots(valid_write_ids, valid_txns))
    elif file_format == FileFormat.HUDI_PARQUET:
        prefilter = HudiVersionFilter()

    loader = FileMetadataLoader(
        DirectoryListingSource(storage, root_path, recursive),
        old_descriptors,
        host_index,
        storage,
        prefilter=prefilter,
        file_format=file_format,
        loader_settings=loader_settings,
        max_workers=max_workers,
        cancel_event=cancel_event,
    )
    return loader.load()
