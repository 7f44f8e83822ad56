"""Latest-version selection for Hudi copy-on-write tables.

Each write rewrites a whole file group, leaving the previous version next
to the new one until the cleaner runs. File names carry the group and the
commit instant:

    {fileId}_{writeToken}_{instantTime}.parquet
    5f541af5-ca07-4329-ad8c-40fa9b353f35-0_2-103-391_20200210090618.parquet

Only the newest file of each (partition, fileId) group is part of the table.
"""

import re
from dataclasses import dataclass

from loguru import logger

from filemeta.common.paths import base_name, parent_dir
from filemeta.features.descriptors.models import LoadStats, RawFileStat

_HUDI_NAME_RE = re.compile(r"^(?P<file_id>[^_]+)_(?P<write_token>[^_]+)_(?P<instant>\d+)\.[^.]+$")


@dataclass(frozen=True)
class HudiFileName:
    file_id: str
    write_token: str
    instant_time: int


def parse_hudi_file_name(name: str) -> HudiFileName | None:
    match = _HUDI_NAME_RE.match(name)
    if match is None:
        return None
    return HudiFileName(
        file_id=match.group("file_id"),
        write_token=match.group("write_token"),
        instant_time=int(match.group("instant")),
    )


def select_latest(raw_files: list[RawFileStat]) -> list[RawFileStat]:
    """Keep the file with the latest commit instant per (partition, fileId).

    Files that do not follow the Hudi naming scheme (e.g. the per-partition
    .hoodie_partition_metadata marker) are not data files and are dropped.
    """
    latest: dict[tuple[str, str], tuple[int, RawFileStat]] = {}
    for raw in raw_files:
        parsed = parse_hudi_file_name(base_name(raw.relative_path))
        if parsed is None:
            logger.debug(f"Skipping non-Hudi file: {raw.relative_path}")
            continue
        key = (parent_dir(raw.relative_path), parsed.file_id)
        current = latest.get(key)
        if current is None or parsed.instant_time > current[0]:
            latest[key] = (parsed.instant_time, raw)
    return [raw for _, raw in latest.values()]


class HudiVersionFilter:
    """PreFilter applying select_latest. Older versions are not counted."""

    def apply(self, files: list[RawFileStat], stats: LoadStats) -> list[RawFileStat]:
        return select_latest(files)
