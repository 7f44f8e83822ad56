"""Reconciliation pipeline shared by every loader.

A load is composed of three pluggable parts:

1. a FileSource that enumerates the current files (directory walk or
   manifest list),
2. an optional PreFilter that narrows the listing (ACID validity, latest
   Hudi version) before any file is diffed,
3. reconcile_all, which runs each surviving file through the
   DescriptorDiffEngine, optionally on a bounded thread pool.

Reconciliation of one file (diff, block resolution, finalize hook) runs as
a single task, so a cancelled or failed load never exposes a half-built
descriptor.
"""

import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Protocol

from loguru import logger

from filemeta.common.errors import FileMetadataLoadError, LoadCancelledError, LoadStage
from filemeta.config.settings import FileLoaderSettings, settings
from filemeta.features.descriptors.host_index import HostIndex
from filemeta.features.descriptors.models import (
    FileDescriptor,
    FileFormat,
    LoadResult,
    LoadStats,
    RawFileStat,
)
from filemeta.features.file_loader.diff_engine import DescriptorDiffEngine
from filemeta.storage.client import StorageClient

# (reconciled descriptor, observed file, was_skipped) -> final descriptor
FinalizeHook = Callable[[FileDescriptor, RawFileStat, bool], FileDescriptor]


class FileSource(Protocol):
    def list_files(self) -> list[RawFileStat]:
        """Return the files currently making up the table.

        Raises:
            FileMetadataLoadError: If enumeration fails
        """
        ...


class PreFilter(Protocol):
    def apply(self, files: list[RawFileStat], stats: LoadStats) -> list[RawFileStat]:
        """Drop files that must not be loaded, recording supersession in stats."""
        ...


def _raise_if_cancelled(
    cancel_event: threading.Event | None, stage: LoadStage, stats: LoadStats
) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise LoadCancelledError(stage, stats.snapshot())


def reconcile_all(
    engine: DescriptorDiffEngine,
    files: list[RawFileStat],
    old_lookup: Callable[[RawFileStat], FileDescriptor | None],
    stats: LoadStats,
    *,
    max_workers: int = 1,
    cancel_event: threading.Event | None = None,
    finalize: FinalizeHook | None = None,
) -> list[FileDescriptor]:
    """Reconcile every file and return the new descriptor collection.

    Args:
        engine: Diff engine bound to this load's stats
        files: Files that survived the pre-filter
        old_lookup: Finds the prior descriptor for a file (None if new)
        stats: The load's stats, used for cancellation reporting
        max_workers: Upper bound on concurrent reconciliations
        cancel_event: Checked before each file; when set the load stops
        finalize: Applied to each reconciled descriptor inside the same task

    Returns:
        Descriptors in the order of files

    Raises:
        LoadCancelledError: If cancel_event was set before all files finished
        FileMetadataLoadError: If block-location resolution fails for any file
    """

    def reconcile_one(observed: RawFileStat) -> FileDescriptor | None:
        if cancel_event is not None and cancel_event.is_set():
            return None
        try:
            descriptor, skipped = engine.reconcile(old_lookup(observed), observed)
        except OSError as e:
            logger.error(
                "Failed to load block locations",
                extra={"path": observed.absolute_path, "error": str(e)},
            )
            raise FileMetadataLoadError(
                LoadStage.BLOCK_LOCATIONS,
                f"Failed to load block locations for {observed.absolute_path}: {e}",
                path=observed.absolute_path,
            ) from e
        if finalize is not None:
            descriptor = finalize(descriptor, observed, skipped)
        return descriptor

    if max_workers <= 1 or len(files) <= 1:
        results = [reconcile_one(observed) for observed in files]
    else:
        results = _run_parallel(reconcile_one, files, max_workers)

    if any(descriptor is None for descriptor in results):
        raise LoadCancelledError(LoadStage.BLOCK_LOCATIONS, stats.snapshot())
    return [descriptor for descriptor in results if descriptor is not None]


def _run_parallel(
    task: Callable[[RawFileStat], FileDescriptor | None],
    files: Iterable[RawFileStat],
    max_workers: int,
) -> list[FileDescriptor | None]:
    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="filemeta")
    futures: list[Future] = []
    try:
        futures = [executor.submit(task, observed) for observed in files]
        return [future.result() for future in futures]
    except BaseException:
        for future in futures:
            future.cancel()
        raise
    finally:
        executor.shutdown(wait=True, cancel_futures=True)


class FileMetadataLoader:
    """Loads descriptors for one table or partition.

    The old descriptors are only read: the result is always a new list,
    though unchanged files keep their old descriptor instances.
    """

    def __init__(
        self,
        source: FileSource,
        old_descriptors: Iterable[FileDescriptor],
        host_index: HostIndex,
        storage: StorageClient,
        *,
        prefilter: PreFilter | None = None,
        file_format: FileFormat | None = None,
        loader_settings: FileLoaderSettings | None = None,
        max_workers: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._source = source
        self._old_descriptors = old_descriptors
        self._host_index = host_index
        self._storage = storage
        self._prefilter = prefilter
        self._file_format = file_format
        self._settings = loader_settings or settings.file_loader
        self._max_workers = max_workers or self._settings.max_concurrency
        self._cancel_event = cancel_event

    def load(self) -> LoadResult:
        """Run the load.

        Returns:
            LoadResult with the new descriptors and this load's stats

        Raises:
            FileMetadataLoadError: If any stage fails
        """
        started = time.perf_counter()
        stats = LoadStats()

        files = self._source.list_files()
        _raise_if_cancelled(self._cancel_event, LoadStage.LISTING, stats)

        if self._prefilter is not None:
            files = self._prefilter.apply(files, stats)

        # Built once per load; lookups are by relative path
        old_by_path = {fd.relative_path: fd for fd in self._old_descriptors}
        engine = DescriptorDiffEngine(
            self._storage, self._host_index, stats, self._settings, self._file_format
        )
        descriptors = reconcile_all(
            engine,
            files,
            lambda observed: old_by_path.get(observed.relative_path),
            stats,
            max_workers=self._max_workers,
            cancel_event=self._cancel_event,
        )

        result_stats = stats.snapshot()
        logger.debug(
            f"Loaded file metadata: {result_stats.loaded_files} loaded, "
            f"{result_stats.skipped_files} skipped, "
            f"{result_stats.files_superseded_by_acid_state} superseded",
            extra={
                "duration_ms": int((time.perf_counter() - started) * 1000),
                "file_format": self._file_format,
            },
        )
        return LoadResult(descriptors=descriptors, stats=result_stats)
