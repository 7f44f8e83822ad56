"""Descriptor loading for snapshot (Iceberg) tables.

The manifest reader has already decided which content files are live, so
nothing is listed: the manifest is the file source. Files that left the
manifest (rewritten by compaction, expired, deleted) simply do not appear
in the result.

Reuse follows the same rule as directory loads. Content files are
immutable, so when the manifest has no modification time and an old
descriptor with the same path and size exists, its modification time is
taken as observed and no storage call is made. Content type, partition and
sequence number are always taken from the current manifest.
"""

import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import cast

from loguru import logger

from filemeta.common.errors import FileMetadataLoadError, LoadStage, LocationViolationError
from filemeta.common.paths import normalize_location, relativize, split_uri
from filemeta.config.settings import FileLoaderSettings, settings
from filemeta.features.descriptors.host_index import HostIndex
from filemeta.features.descriptors.models import (
    ContentType,
    FileDescriptor,
    IcebergFileDescriptor,
    LoadStats,
    RawFileStat,
)
from filemeta.features.file_loader.diff_engine import DescriptorDiffEngine
from filemeta.features.file_loader.pipeline import reconcile_all
from filemeta.features.iceberg.content_files import ContentFile, GroupedContentFiles
from filemeta.features.iceberg.partitions import PartitionSet, build_partition_set
from filemeta.storage.client import StorageClient


@dataclass(frozen=True)
class SnapshotLoadResult:
    """Descriptors, partition set and stats produced by one snapshot load."""

    descriptors: list[IcebergFileDescriptor]
    partitions: PartitionSet
    stats: LoadStats


class ManifestSource:
    """FileSource that turns manifest content files into observed files."""

    def __init__(
        self,
        table_location: str,
        content_files: GroupedContentFiles,
        old_by_path: dict[str, FileDescriptor],
        storage: StorageClient,
        require_location_containment: bool,
    ) -> None:
        self._table_location = normalize_location(table_location)
        self._content_files = content_files
        self._old_by_path = old_by_path
        self._storage = storage
        self._require_containment = require_location_containment
        self.typed_files: dict[str, tuple[ContentType, ContentFile]] = {}

    def relative_path_for(self, path: str) -> str:
        """Path relative to the table location, or to the file's own storage root.

        Raises:
            LocationViolationError: If the file is outside the table location
                and containment is required
        """
        relative = relativize(self._table_location, path)
        if relative is not None:
            return relative
        if self._require_containment:
            logger.error(
                "Content file outside of table location",
                extra={"path": path, "table_location": self._table_location},
            )
            raise LocationViolationError(path, self._table_location)
        _, _, path_part = split_uri(path)
        return path_part.lstrip("/")

    def _modification_time(self, content_file: ContentFile, absolute_path: str) -> int:
        if content_file.modification_time is not None:
            return content_file.modification_time
        old = self._old_by_path.get(absolute_path)
        if old is not None and old.size == content_file.file_size_in_bytes:
            return old.modification_time
        try:
            return self._storage.get_file_status(absolute_path).modification_time
        except OSError as e:
            logger.error(
                "Failed to stat content file", extra={"path": absolute_path, "error": str(e)}
            )
            raise FileMetadataLoadError(
                LoadStage.LISTING, f"Failed to stat content file {absolute_path}: {e}", path=absolute_path
            ) from e

    def list_files(self) -> list[RawFileStat]:
        files: list[RawFileStat] = []
        for content_type, content_file in self._content_files.iter_typed():
            absolute_path = normalize_location(content_file.path)
            if absolute_path in self.typed_files:
                logger.warning(f"Content file listed twice in manifest: {absolute_path}")
                continue
            relative_path = self.relative_path_for(absolute_path)
            self.typed_files[absolute_path] = (content_type, content_file)
            files.append(
                RawFileStat(
                    absolute_path=absolute_path,
                    relative_path=relative_path,
                    size=content_file.file_size_in_bytes,
                    modification_time=self._modification_time(content_file, absolute_path),
                )
            )
        return files


class SnapshotFileMetadataLoader:
    """Loads descriptors for the live content files of one snapshot table."""

    def __init__(
        self,
        table_location: str,
        content_files: GroupedContentFiles,
        old_descriptors: Iterable[FileDescriptor],
        host_index: HostIndex,
        storage: StorageClient,
        *,
        old_partitions: PartitionSet | None = None,
        require_location_containment: bool | None = None,
        loader_settings: FileLoaderSettings | None = None,
        max_workers: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """
        Args:
            table_location: Declared root of the table
            content_files: Live files resolved by the manifest reader
            old_descriptors: Descriptors from the previous load (may be partial)
            host_index: Session-wide host index
            storage: Storage client for block locations and missing mtimes
            old_partitions: Partition set from the previous load
            require_location_containment: Fail on files outside table_location;
                defaults to the iceberg_datafiles_in_table_location_only setting
            loader_settings: Overrides the global loader settings
            max_workers: Overrides the configured concurrency limit
            cancel_event: Cooperative cancellation flag
        """
        self._settings = loader_settings or settings.file_loader
        self._table_location = table_location
        self._content_files = content_files
        self._old_descriptors = old_descriptors
        self._host_index = host_index
        self._storage = storage
        self._old_partitions = old_partitions
        if require_location_containment is None:
            require_location_containment = self._settings.iceberg_datafiles_in_table_location_only
        self._require_containment = require_location_containment
        self._max_workers = max_workers or self._settings.max_concurrency
        self._cancel_event = cancel_event

    def load(self) -> SnapshotLoadResult:
        """Run the load.

        Returns:
            SnapshotLoadResult with descriptors, partition set and stats

        Raises:
            LocationViolationError: If containment is required and a file is outside the table
            FileMetadataLoadError: If a storage call fails
        """
        started = time.perf_counter()
        stats = LoadStats()

        # Keyed by absolute path: files outside the table root share no common prefix.
        # FileDescriptor.matches() still compares relative_path before reuse.
        old_by_path = {fd.absolute_path: fd for fd in self._old_descriptors}
        source = ManifestSource(
            self._table_location,
            self._content_files,
            old_by_path,
            self._storage,
            self._require_containment,
        )
        files = source.list_files()
        partitions = build_partition_set(
            (content_file for _, content_file in source.typed_files.values()),
            self._old_partitions,
        )

        def overlay_manifest_fields(
            descriptor: FileDescriptor, observed: RawFileStat, skipped: bool
        ) -> FileDescriptor:
            content_type, content_file = source.typed_files[observed.absolute_path]
            return IcebergFileDescriptor(
                relative_path=descriptor.relative_path,
                absolute_path=descriptor.absolute_path,
                size=descriptor.size,
                modification_time=descriptor.modification_time,
                blocks=descriptor.blocks,
                file_format=content_file.file_format,
                content_type=content_type,
                partition_id=partitions.id_for(content_file.partition_key),
                sequence_number=content_file.sequence_number,
            )

        engine = DescriptorDiffEngine(
            self._storage, self._host_index, stats, self._settings
        )
        descriptors = reconcile_all(
            engine,
            files,
            lambda observed: old_by_path.get(observed.absolute_path),
            stats,
            max_workers=self._max_workers,
            cancel_event=self._cancel_event,
            finalize=overlay_manifest_fields,
        )

        result_stats = stats.snapshot()
        logger.debug(
            f"Loaded snapshot file metadata: {result_stats.loaded_files} loaded, "
            f"{result_stats.skipped_files} skipped, {len(partitions)} partitions",
            extra={
                "table_location": self._table_location,
                "partition_set_version": partitions.version,
                "duration_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return SnapshotLoadResult(
            descriptors=cast(list[IcebergFileDescriptor], descriptors),
            partitions=partitions,
            stats=result_stats,
        )
