"""Write-id and transaction validity snapshots for transactional tables.

Both are supplied by the transaction metadata service in its string form:

    write ids:    <table>:<highWatermark>:<minOpenWriteId>:<openIds>:<abortedIds>
    transactions: <highWatermark>:<minOpenTxn>:<openTxns>:<abortedTxns>

Id lists are comma-separated and may be empty. An empty transaction string
means every transaction is committed.
"""

from dataclasses import dataclass

NO_OPEN_ID = 2**63 - 1


def _parse_ids(field: str) -> frozenset[int]:
    field = field.strip()
    if not field:
        return frozenset()
    return frozenset(int(part) for part in field.split(","))


def _parse_int(field: str, what: str, source: str) -> int:
    try:
        return int(field)
    except ValueError as e:
        raise ValueError(f"Invalid {what} {field!r} in {source!r}") from e


def _has_id_in_range(ids: frozenset[int], low: int, high: int) -> bool:
    return any(low <= i <= high for i in ids)


@dataclass(frozen=True)
class ValidWriteIdList:
    """Committed write ids visible to a reader of one table."""

    table_name: str
    high_watermark: int
    min_open_write_id: int = NO_OPEN_ID
    open_write_ids: frozenset[int] = frozenset()
    aborted_write_ids: frozenset[int] = frozenset()

    @classmethod
    def from_string(cls, value: str) -> "ValidWriteIdList":
        """Parse the metastore string form.

        Raises:
            ValueError: If the string is malformed
        """
        # Table names may contain ':' only in the leading part
        parts = value.rsplit(":", 4)
        if len(parts) != 5:
            raise ValueError(f"Malformed write id list: {value!r}")
        table_name, hwm, min_open, open_ids, aborted_ids = parts
        try:
            return cls(
                table_name=table_name,
                high_watermark=_parse_int(hwm, "high watermark", value),
                min_open_write_id=_parse_int(min_open, "min open write id", value)
                if min_open.strip()
                else NO_OPEN_ID,
                open_write_ids=_parse_ids(open_ids),
                aborted_write_ids=_parse_ids(aborted_ids),
            )
        except ValueError as e:
            raise ValueError(f"Malformed write id list: {value!r}") from e

    def to_string(self) -> str:
        return ":".join(
            [
                self.table_name,
                str(self.high_watermark),
                str(self.min_open_write_id),
                ",".join(str(i) for i in sorted(self.open_write_ids)),
                ",".join(str(i) for i in sorted(self.aborted_write_ids)),
            ]
        )

    def is_write_id_valid(self, write_id: int) -> bool:
        return (
            write_id <= self.high_watermark
            and write_id not in self.open_write_ids
            and write_id not in self.aborted_write_ids
        )

    def is_range_valid(self, low: int, high: int, allow_aborted: bool = False) -> bool:
        """Return True when every write id in [low, high] is committed.

        Args:
            low: First write id of the range
            high: Last write id of the range
            allow_aborted: Accept aborted ids inside the range (compaction
                output has already dropped their rows)
        """
        if high > self.high_watermark:
            return False
        if _has_id_in_range(self.open_write_ids, low, high):
            return False
        if not allow_aborted and _has_id_in_range(self.aborted_write_ids, low, high):
            return False
        return True


@dataclass(frozen=True)
class ValidTxnList:
    """Committed transactions visible to a reader. high_watermark None means all."""

    high_watermark: int | None = None
    min_open_txn: int = NO_OPEN_ID
    open_txns: frozenset[int] = frozenset()
    aborted_txns: frozenset[int] = frozenset()

    @classmethod
    def from_string(cls, value: str) -> "ValidTxnList":
        """Parse the metastore string form ("" = everything committed).

        Raises:
            ValueError: If the string is malformed
        """
        if not value.strip():
            return cls()
        parts = value.split(":")
        if len(parts) != 4:
            raise ValueError(f"Malformed transaction list: {value!r}")
        hwm, min_open, open_txns, aborted_txns = parts
        return cls(
            high_watermark=_parse_int(hwm, "high watermark", value),
            min_open_txn=_parse_int(min_open, "min open txn", value)
            if min_open.strip()
            else NO_OPEN_ID,
            open_txns=_parse_ids(open_txns),
            aborted_txns=_parse_ids(aborted_txns),
        )

    def is_txn_valid(self, txn_id: int) -> bool:
        if self.high_watermark is None:
            return True
        return (
            txn_id <= self.high_watermark
            and txn_id not in self.open_txns
            and txn_id not in self.aborted_txns
        )
