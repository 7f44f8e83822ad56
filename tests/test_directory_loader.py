"""Tests for directory-walk loading (plain tables)."""

import threading

import pytest

from filemeta.common.errors import FileMetadataLoadError, LoadCancelledError, LoadStage
from filemeta.features.descriptors.host_index import HostIndex
from filemeta.features.descriptors.models import FileFormat
from filemeta.features.file_loader.directory_loader import DirectoryListingSource, load_directory
from filemeta.storage.memory import InMemoryStorageClient


def _relative_paths(result) -> set[str]:
    return {fd.relative_path for fd in result.descriptors}


# ============================================================================
# Listing
# ============================================================================


@pytest.mark.unit
def test_listing_skips_hidden_directories(storage, alltypes_location):
    """Directories starting with '.' or '_' are never descended into."""
    storage.add_file(f"{alltypes_location}/.hive-staging_hive_2009/-ext-10000/a.txt", size=10)
    storage.add_file(f"{alltypes_location}/_tmp.year=2009/b.txt", size=10)
    storage.add_file(f"{alltypes_location}/year=2009/month=1/_temporary/0/c.txt", size=10)

    files = DirectoryListingSource(storage, alltypes_location, recursive=True).list_files()

    assert len(files) == 24
    assert all(f.relative_path.startswith("year=") and f.relative_path.count("/") == 2 for f in files)


@pytest.mark.unit
def test_listing_non_recursive_returns_top_level_files_only(storage, alltypes_location):
    storage.add_file(f"{alltypes_location}/top.txt", size=10)

    files = DirectoryListingSource(storage, alltypes_location, recursive=False).list_files()

    assert [f.relative_path for f in files] == ["top.txt"]
    assert files[0].absolute_path == f"{alltypes_location}/top.txt"


@pytest.mark.unit
@pytest.mark.parametrize("recursive", [True, False])
def test_missing_root_is_empty(storage, host_index, loader_settings, recursive):
    """A table location that does not exist loads as an empty table."""
    result = load_directory(
        "hdfs://localhost:20500/test-warehouse/does_not_exist",
        recursive,
        [],
        host_index,
        storage,
        loader_settings=loader_settings,
    )

    assert result.descriptors == []
    assert result.stats.loaded_files == 0
    assert result.stats.skipped_files == 0


# ============================================================================
# Incremental reload
# ============================================================================


@pytest.mark.unit
def test_initial_load_builds_every_file(storage, host_index, loader_settings, alltypes_location):
    result = load_directory(
        alltypes_location,
        True,
        [],
        host_index,
        storage,
        file_format=FileFormat.TEXT,
        loader_settings=loader_settings,
    )

    assert result.stats.loaded_files == 24
    assert result.stats.skipped_files == 0
    assert "year=2009/month=1/090101.txt" in _relative_paths(result)
    assert all(fd.num_blocks == 3 for fd in result.descriptors)
    assert all(fd.file_format == FileFormat.TEXT for fd in result.descriptors)
    # Three datanodes, interned once for the whole load
    assert len(host_index) == 3


@pytest.mark.unit
def test_reload_of_unchanged_table_reuses_everything(
    storage, host_index, loader_settings, alltypes_location
):
    first = load_directory(
        alltypes_location, True, [], host_index, storage, loader_settings=loader_settings
    )
    calls_after_first = storage.block_location_calls

    second = load_directory(
        alltypes_location, True, first.descriptors, host_index, storage, loader_settings=loader_settings
    )

    assert second.stats.loaded_files == 0
    assert second.stats.skipped_files == 24
    assert storage.block_location_calls == calls_after_first
    old = first.by_relative_path()
    for fd in second.descriptors:
        assert fd is old[fd.relative_path]


@pytest.mark.unit
def test_touched_file_is_reloaded(storage, host_index, loader_settings, alltypes_location):
    first = load_directory(
        alltypes_location, True, [], host_index, storage, loader_settings=loader_settings
    )
    touched = "year=2010/month=7/100701.txt"
    new_mtime = storage.touch(f"{alltypes_location}/{touched}")

    second = load_directory(
        alltypes_location, True, first.descriptors, host_index, storage, loader_settings=loader_settings
    )

    assert second.stats.loaded_files == 1
    assert second.stats.skipped_files == 23
    reloaded = second.by_relative_path()[touched]
    assert reloaded.modification_time == new_mtime
    assert reloaded is not first.by_relative_path()[touched]


@pytest.mark.unit
def test_removed_and_added_files(storage, host_index, loader_settings, alltypes_location):
    first = load_directory(
        alltypes_location, True, [], host_index, storage, loader_settings=loader_settings
    )
    storage.remove(f"{alltypes_location}/year=2009/month=3")
    storage.add_file(f"{alltypes_location}/year=2011/month=1/110101.txt", size=10)

    second = load_directory(
        alltypes_location, True, first.descriptors, host_index, storage, loader_settings=loader_settings
    )

    paths = _relative_paths(second)
    assert "year=2009/month=3/090301.txt" not in paths
    assert "year=2011/month=1/110101.txt" in paths
    assert second.stats.loaded_files == 1
    assert second.stats.skipped_files == 23
    # The previous collection is left untouched
    assert len(first.descriptors) == 24


@pytest.mark.unit
def test_partition_load_uses_partition_relative_paths(
    storage, host_index, loader_settings, alltypes_location
):
    result = load_directory(
        f"{alltypes_location}/year=2009/month=1/",
        False,
        [],
        host_index,
        storage,
        loader_settings=loader_settings,
    )

    assert _relative_paths(result) == {"090101.txt"}
    assert result.descriptors[0].absolute_path == f"{alltypes_location}/year=2009/month=1/090101.txt"


# ============================================================================
# Block-location preloading
# ============================================================================


@pytest.mark.unit
@pytest.mark.parametrize(
    "overrides,expect_blocks",
    [
        ({"hdfs://localhost:20500": False}, False),
        ({"hdfs": False}, False),
        ({"hdfs": False, "hdfs://localhost:20500": True}, True),
        ({"s3a": False}, True),
    ],
)
def test_preload_overrides(
    storage, host_index, make_loader_settings, alltypes_location, overrides, expect_blocks
):
    """Authority overrides beat scheme overrides, which beat the global default."""
    loader_settings = make_loader_settings(FILEMETA_PRELOAD_BLOCK_LOCATIONS_OVERRIDES=overrides)

    result = load_directory(
        alltypes_location, True, [], host_index, storage, loader_settings=loader_settings
    )

    assert result.stats.loaded_files == 24
    assert all(bool(fd.blocks) is expect_blocks for fd in result.descriptors)
    assert (storage.block_location_calls > 0) is expect_blocks


# ============================================================================
# Failures and cancellation
# ============================================================================


@pytest.mark.unit
def test_unavailable_storage_fails_listing(storage, host_index, loader_settings, alltypes_location):
    storage.set_unavailable(f"{alltypes_location}/year=2010")

    with pytest.raises(FileMetadataLoadError) as exc_info:
        load_directory(alltypes_location, True, [], host_index, storage, loader_settings=loader_settings)

    assert exc_info.value.stage == LoadStage.LISTING
    assert isinstance(exc_info.value.__cause__, OSError)


@pytest.mark.unit
def test_unavailable_file_fails_block_resolution(
    storage, host_index, loader_settings, alltypes_location
):
    broken = f"{alltypes_location}/year=2009/month=5/090501.txt"
    storage.set_unavailable(broken)

    with pytest.raises(FileMetadataLoadError) as exc_info:
        load_directory(alltypes_location, True, [], host_index, storage, loader_settings=loader_settings)

    assert exc_info.value.stage == LoadStage.BLOCK_LOCATIONS
    assert exc_info.value.path == broken


@pytest.mark.unit
def test_parallel_load_matches_serial_load(storage, loader_settings, alltypes_location):
    serial = load_directory(
        alltypes_location, True, [], HostIndex(), storage, loader_settings=loader_settings, max_workers=1
    )
    parallel_hosts = HostIndex()
    parallel = load_directory(
        alltypes_location,
        True,
        [],
        parallel_hosts,
        storage,
        loader_settings=loader_settings,
        max_workers=8,
    )

    assert _relative_paths(parallel) == _relative_paths(serial)
    assert parallel.stats.loaded_files == 24
    assert len(parallel_hosts) == 3


@pytest.mark.unit
def test_cancel_before_reconciliation(storage, host_index, loader_settings, alltypes_location):
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(LoadCancelledError) as exc_info:
        load_directory(
            alltypes_location,
            True,
            [],
            host_index,
            storage,
            loader_settings=loader_settings,
            cancel_event=cancel,
        )

    assert exc_info.value.stage == LoadStage.LISTING
    assert exc_info.value.stats.total_files == 0
    assert storage.block_location_calls == 0


class _CancellingStorage(InMemoryStorageClient):
    """Sets the cancel event once a number of files had their blocks resolved."""

    def __init__(self, cancel: threading.Event, after: int) -> None:
        super().__init__(block_size=1024)
        self._cancel = cancel
        self._after = after

    def resolve_block_locations(self, path, size):
        locations = super().resolve_block_locations(path, size)
        if self.block_location_calls >= self._after:
            self._cancel.set()
        return locations


@pytest.mark.unit
def test_cancel_during_reconciliation_reports_partial_stats(
    host_index, loader_settings, alltypes_location
):
    cancel = threading.Event()
    cancelling = _CancellingStorage(cancel, after=5)
    for i in range(10):
        cancelling.add_file(f"{alltypes_location}/f{i}.txt", size=100)

    with pytest.raises(LoadCancelledError) as exc_info:
        load_directory(
            alltypes_location,
            False,
            [],
            host_index,
            cancelling,
            loader_settings=loader_settings,
            max_workers=1,
            cancel_event=cancel,
        )

    assert exc_info.value.stage == LoadStage.BLOCK_LOCATIONS
    assert exc_info.value.stats.loaded_files == 5
