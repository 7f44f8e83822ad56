"""Content files resolved by the manifest reader.

The manifest reader walks the snapshot's manifests and hands over the live
files already grouped by content type. Paths are absolute and final.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from filemeta.features.descriptors.models import ContentType, FileFormat


@dataclass(frozen=True)
class ContentFile:
    """One live data or delete file of a snapshot."""

    path: str
    file_size_in_bytes: int
    partition: Mapping[str, Any] = field(default_factory=dict)
    spec_id: int = 0
    sequence_number: int | None = None
    file_format: FileFormat = FileFormat.PARQUET
    # Manifests carry no mtime; set when the reader already knows it
    modification_time: int | None = None

    @property
    def partition_key(self) -> tuple[int, tuple[tuple[str, Any], ...]]:
        return self.spec_id, tuple(sorted(self.partition.items()))


@dataclass(frozen=True)
class GroupedContentFiles:
    """Live content files of a snapshot, grouped the way scans consume them."""

    data_files_without_deletes: list[ContentFile] = field(default_factory=list)
    data_files_with_deletes: list[ContentFile] = field(default_factory=list)
    position_delete_files: list[ContentFile] = field(default_factory=list)
    equality_delete_files: list[ContentFile] = field(default_factory=list)

    def iter_typed(self) -> Iterator[tuple[ContentType, ContentFile]]:
        """Yield (content type, file) for every file, data files first."""
        for content_file in self.data_files_without_deletes:
            yield ContentType.DATA, content_file
        for content_file in self.data_files_with_deletes:
            yield ContentType.DATA, content_file
        for content_file in self.position_delete_files:
            yield ContentType.POSITION_DELETES, content_file
        for content_file in self.equality_delete_files:
            yield ContentType.EQUALITY_DELETES, content_file

    def __len__(self) -> int:
        return (
            len(self.data_files_without_deletes)
            + len(self.data_files_with_deletes)
            + len(self.position_delete_files)
            + len(self.equality_delete_files)
        )
