"""Reuse-or-reload decision for one observed file.

Every loader variant funnels files through DescriptorDiffEngine.reconcile:
an old descriptor with the same relative path, size and modification time
is returned as-is (block locations are not resolved again); anything else
gets a freshly built descriptor.
"""

from loguru import logger

from filemeta.config.settings import FileLoaderSettings
from filemeta.features.descriptors.host_index import HostIndex
from filemeta.features.descriptors.models import (
    FileBlock,
    FileDescriptor,
    FileFormat,
    LoadStats,
    RawFileStat,
)
from filemeta.storage.client import StorageClient


class DescriptorDiffEngine:
    """Reconciles observed files against descriptors from a prior load."""

    def __init__(
        self,
        storage: StorageClient,
        host_index: HostIndex,
        stats: LoadStats,
        loader_settings: FileLoaderSettings,
        file_format: FileFormat | None = None,
    ) -> None:
        self._storage = storage
        self._host_index = host_index
        self._stats = stats
        self._settings = loader_settings
        self._file_format = file_format

    def reconcile(
        self, old: FileDescriptor | None, observed: RawFileStat
    ) -> tuple[FileDescriptor, bool]:
        """Return (descriptor, was_skipped) for one observed file.

        Args:
            old: Descriptor from the prior load with the same identity, if any
            observed: The file as currently seen in storage or the manifest

        Returns:
            The old descriptor and True when unchanged, else a new one and False

        Raises:
            FileNotFoundError, StorageUnavailableError: From block resolution
        """
        if old is not None and old.matches(observed):
            self._stats.record_skipped()
            return old, True

        descriptor = self.build(observed)
        self._stats.record_loaded()
        return descriptor, False

    def build(self, observed: RawFileStat) -> FileDescriptor:
        """Construct a new descriptor, resolving blocks when preloading is enabled."""
        blocks: tuple[FileBlock, ...] = ()
        if self._settings.preload_enabled_for(observed.absolute_path):
            blocks = self._resolve_blocks(observed)
        return FileDescriptor(
            relative_path=observed.relative_path,
            absolute_path=observed.absolute_path,
            size=observed.size,
            modification_time=observed.modification_time,
            blocks=blocks,
            file_format=self._file_format,
        )

    def _resolve_blocks(self, observed: RawFileStat) -> tuple[FileBlock, ...]:
        locations = self._storage.resolve_block_locations(observed.absolute_path, observed.size)
        blocks = tuple(
            FileBlock(
                offset=location.offset,
                length=location.length,
                host_ids=tuple(self._host_index.get_or_add(host) for host in location.hosts),
            )
            for location in locations
        )
        logger.trace(f"Resolved {len(blocks)} blocks for {observed.absolute_path}")
        return blocks
