"""Partition set of a snapshot table.

Rebuilt from the manifest on every load. Ids of partitions that were
already known are carried over so descriptors keep pointing at the same
partition; new partitions get fresh ids, and the version moves forward
whenever the set of partitions changes.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from filemeta.features.iceberg.content_files import ContentFile

PartitionKey = tuple[int, tuple[tuple[str, Any], ...]]


@dataclass(frozen=True)
class IcebergPartition:
    partition_id: int
    spec_id: int
    values: tuple[tuple[str, Any], ...]

    @property
    def key(self) -> PartitionKey:
        return self.spec_id, self.values


@dataclass(frozen=True)
class PartitionSet:
    """Mapping partition id -> partition values, plus a version counter."""

    partitions: dict[int, IcebergPartition] = field(default_factory=dict)
    version: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_ids_by_key", {p.key: pid for pid, p in self.partitions.items()}
        )

    def id_for(self, key: PartitionKey) -> int | None:
        return self._ids_by_key.get(key)  # type: ignore[attr-defined]

    def keys(self) -> set[PartitionKey]:
        return set(self._ids_by_key)  # type: ignore[attr-defined]

    def __len__(self) -> int:
        return len(self.partitions)


def build_partition_set(
    content_files: Iterable[ContentFile], old_partitions: PartitionSet | None = None
) -> PartitionSet:
    """Compute the partition set for the given content files.

    Args:
        content_files: Every live content file of the snapshot
        old_partitions: Partition set returned by the previous load, if any

    Returns:
        New PartitionSet; ids are stable for partitions present in both
    """
    old = old_partitions or PartitionSet()
    next_id = max(old.partitions, default=-1) + 1
    partitions: dict[int, IcebergPartition] = {}
    seen: set[PartitionKey] = set()
    for content_file in content_files:
        key = content_file.partition_key
        if key in seen:
            continue
        seen.add(key)
        partition_id = old.id_for(key)
        if partition_id is None:
            partition_id = next_id
            next_id += 1
        spec_id, values = key
        partitions[partition_id] = IcebergPartition(partition_id, spec_id, values)

    if old_partitions is None:
        version = 1
    elif seen == old.keys():
        version = old.version
    else:
        version = old.version + 1
    return PartitionSet(partitions=partitions, version=version)
