"""Transactional (ACID) table file selection.

Every file of a transactional table lives in a top-level directory whose
name encodes the write ids it contains:

    base_0000007                   all rows up to write id 7
    base_0000007_v0000042          same, produced by a compaction in txn 42
    delta_0000003_0000003_0000     rows of write id 3, statement 0
    delta_0000001_0000005_v0000040 minor compaction of write ids 1..5
    delete_delta_0000004_0000004   deleted rows of write id 4

Files placed directly under the root are pre-ACID "original" files.

Selection runs in two passes. Visibility drops files whose directory is not
fully committed according to the write-id (and transaction) snapshot, or
whose name cannot be parsed; these are simply not part of the table.
Supersession then drops files made redundant by a compaction and counts
them in LoadStats.files_superseded_by_acid_state.
"""

import re
from collections import defaultdict
from dataclasses import dataclass
from enum import StrEnum

from loguru import logger

from filemeta.common.paths import base_name
from filemeta.features.descriptors.models import LoadStats, RawFileStat
from filemeta.features.file_loader.write_ids import ValidTxnList, ValidWriteIdList

_BASE_RE = re.compile(r"^base_(?P<high>\d+)(?:_v(?P<visibility>\d+))?$")
_DELTA_RE = re.compile(
    r"^(?P<kind>delete_delta|delta)_(?P<low>\d+)_(?P<high>\d+)"
    r"(?:_(?P<statement>\d+))?(?:_v(?P<visibility>\d+))?$"
)

# Bookkeeping files written by Hive inside ACID directories
ACID_METADATA_FILES = frozenset({"_orc_acid_version", "_metadata_acid"})


class AcidDirKind(StrEnum):
    BASE = "base"
    DELTA = "delta"
    DELETE_DELTA = "delete_delta"


@dataclass(frozen=True)
class AcidDirectory:
    """Write-id range parsed from one ACID directory name."""

    name: str
    kind: AcidDirKind
    min_write_id: int
    max_write_id: int
    statement_id: int | None = None
    visibility_txn_id: int | None = None

    @property
    def is_compacted(self) -> bool:
        """Bases and _v-tagged deltas are compaction output."""
        return self.kind == AcidDirKind.BASE or self.visibility_txn_id is not None

    def contains(self, other: "AcidDirectory") -> bool:
        return self.min_write_id <= other.min_write_id and other.max_write_id <= self.max_write_id

    def overlaps(self, other: "AcidDirectory") -> bool:
        return self.min_write_id <= other.max_write_id and other.min_write_id <= self.max_write_id


def parse_acid_directory(name: str) -> AcidDirectory | None:
    """Parse an ACID directory name; None if it does not follow the naming convention."""
    match = _BASE_RE.match(name)
    if match:
        visibility = match.group("visibility")
        return AcidDirectory(
            name=name,
            kind=AcidDirKind.BASE,
            min_write_id=0,
            max_write_id=int(match.group("high")),
            visibility_txn_id=int(visibility) if visibility else None,
        )
    match = _DELTA_RE.match(name)
    if match:
        low, high = int(match.group("low")), int(match.group("high"))
        if low > high:
            return None
        statement = match.group("statement")
        visibility = match.group("visibility")
        return AcidDirectory(
            name=name,
            kind=AcidDirKind(match.group("kind")),
            min_write_id=low,
            max_write_id=high,
            statement_id=int(statement) if statement else None,
            visibility_txn_id=int(visibility) if visibility else None,
        )
    return None


def _is_visible(
    directory: AcidDirectory, write_ids: ValidWriteIdList, valid_txns: ValidTxnList | None
) -> bool:
    if directory.visibility_txn_id is not None and valid_txns is not None:
        if not valid_txns.is_txn_valid(directory.visibility_txn_id):
            return False
    if directory.kind == AcidDirKind.BASE:
        # Compaction drops aborted rows, so only open write ids block a base
        return write_ids.is_range_valid(1, directory.max_write_id, allow_aborted=True)
    return write_ids.is_range_valid(
        directory.min_write_id, directory.max_write_id, allow_aborted=directory.is_compacted
    )


def _select_base(bases: list[AcidDirectory]) -> tuple[AcidDirectory | None, list[AcidDirectory]]:
    """Return (best base, obsolete bases)."""
    if not bases:
        return None, []
    ordered = sorted(
        bases, key=lambda d: (d.max_write_id, d.visibility_txn_id or -1), reverse=True
    )
    best = ordered[0]
    for other in ordered[1:]:
        if other.max_write_id == best.max_write_id:
            logger.warning(
                "Multiple bases cover the same write ids; using the latest compaction",
                extra={"kept": best.name, "dropped": other.name},
            )
    return best, ordered[1:]


def _select_deltas(deltas: list[AcidDirectory]) -> tuple[list[AcidDirectory], list[AcidDirectory]]:
    """Return (kept deltas, obsolete deltas) for one delta kind.

    Deltas are visited widest-first within each starting write id, so a
    compacted range is kept before the minor deltas it subsumes.
    """
    ordered = sorted(
        deltas,
        key=lambda d: (
            d.min_write_id,
            -d.max_write_id,
            not d.is_compacted,
            -(d.visibility_txn_id or -1),
            d.statement_id or 0,
        ),
    )
    kept: list[AcidDirectory] = []
    obsolete: list[AcidDirectory] = []
    for delta in ordered:
        covering = next((k for k in kept if k.contains(delta)), None)
        if covering is not None:
            same_range = (covering.min_write_id, covering.max_write_id) == (
                delta.min_write_id,
                delta.max_write_id,
            )
            if same_range and not covering.is_compacted and not delta.is_compacted:
                # Several statements of one transaction share a range
                kept.append(delta)
                continue
            if same_range and covering.is_compacted and delta.is_compacted:
                logger.warning(
                    "Duplicate compacted deltas for the same write ids; using the latest compaction",
                    extra={"kept": covering.name, "dropped": delta.name},
                )
            obsolete.append(delta)
            continue

        partial = [k for k in kept if k.overlaps(delta) and k.is_compacted and delta.is_compacted]
        if partial:
            # Should not happen with a correct compactor; prefer the larger upper bound
            logger.warning(
                "Overlapping compacted write-id ranges; preferring the larger upper bound",
                extra={"kept": delta.name, "dropped": [k.name for k in partial]},
            )
            for dropped in partial:
                kept.remove(dropped)
                obsolete.append(dropped)
        kept.append(delta)
    return kept, obsolete


def filter_acid_files(
    raw_files: list[RawFileStat],
    valid_write_ids: ValidWriteIdList,
    valid_txns: ValidTxnList | None = None,
) -> tuple[list[RawFileStat], int]:
    """Keep only the files a reader of the snapshot should see.

    Args:
        raw_files: Listing of the table or partition root (relative paths)
        valid_write_ids: Write-id snapshot for the table
        valid_txns: Transaction snapshot used to check compaction visibility

    Returns:
        (valid files, number of files superseded by compaction)
    """
    by_dir: dict[str, list[RawFileStat]] = defaultdict(list)
    originals: list[RawFileStat] = []
    for raw in raw_files:
        if base_name(raw.relative_path) in ACID_METADATA_FILES:
            continue
        top, sep, _ = raw.relative_path.partition("/")
        if not sep:
            originals.append(raw)
        else:
            by_dir[top].append(raw)

    visible: dict[str, AcidDirectory] = {}
    for name in by_dir:
        directory = parse_acid_directory(name)
        if directory is None:
            logger.warning(
                "Ignoring files in directory with malformed write-id encoding",
                extra={"directory": name, "files": len(by_dir[name])},
            )
            continue
        if _is_visible(directory, valid_write_ids, valid_txns):
            visible[name] = directory

    base, obsolete = _select_base([d for d in visible.values() if d.kind == AcidDirKind.BASE])
    superseded_files = 0
    if base is not None and originals:
        superseded_files += len(originals)
        originals = []

    kept_dirs: list[AcidDirectory] = [base] if base is not None else []
    for kind in (AcidDirKind.DELTA, AcidDirKind.DELETE_DELTA):
        deltas = [d for d in visible.values() if d.kind == kind]
        if base is not None:
            for delta in deltas:
                if delta.max_write_id <= base.max_write_id:
                    obsolete.append(delta)
                elif delta.min_write_id <= base.max_write_id:
                    logger.warning(
                        "Delta straddles the base write id; keeping it",
                        extra={"base": base.name, "delta": delta.name},
                    )
            deltas = [d for d in deltas if d.max_write_id > base.max_write_id]
        kept, dropped = _select_deltas(deltas)
        kept_dirs.extend(kept)
        obsolete.extend(dropped)

    superseded_files += sum(len(by_dir[d.name]) for d in obsolete)
    valid = originals + [raw for d in kept_dirs for raw in by_dir[d.name]]
    return valid, superseded_files


class AcidStateFilter:
    """PreFilter applying filter_acid_files and recording supersession."""

    def __init__(self, valid_write_ids: ValidWriteIdList, valid_txns: ValidTxnList | None = None):
        self._write_ids = valid_write_ids
        self._valid_txns = valid_txns

    def apply(self, files: list[RawFileStat], stats: LoadStats) -> list[RawFileStat]:
        valid, superseded = filter_acid_files(files, self._write_ids, self._valid_txns)
        stats.record_superseded(superseded)
        logger.debug(
            f"ACID state for {self._write_ids.table_name}: "
            f"{len(valid)} valid, {superseded} superseded, "
            f"{len(files) - len(valid) - superseded} not visible"
        )
        return valid
