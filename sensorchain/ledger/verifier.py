"""Chain verification.

Replays the whole log once, recomputing every link, and stops at the first
inconsistency so the result names the earliest point of compromise. The
computed tip is then checked against the trust anchor; that final check is
what catches a log that was replaced wholesale by an older snapshot or by a
forged but internally consistent chain.

Tamper outcomes are returned as values, never raised.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

from sensorchain.ledger.anchor import AnchorState
from sensorchain.ledger.errors import ParseError
from sensorchain.utils.chain import ZERO_HASH, commit
from sensorchain.utils.codec import HEADER, Record, decode, is_blank

# Position reported when the header line itself is missing or altered
HEADER_POSITION = 0


class TamperReason(str, Enum):
    MALFORMED_ROW = "malformed_row"
    LINK_BROKEN = "link_broken"
    HASH_MISMATCH = "hash_mismatch"
    ANCHOR_MISMATCH = "anchor_mismatch"


@dataclass(frozen=True)
class Verified:
    """Every link checks out and the tip matches the trust anchor"""

    length: int
    tip: str = ZERO_HASH
    status: str = field(default="verified", init=False)

    @property
    def valid(self) -> bool:
        return True


@dataclass(frozen=True)
class Tampered:
    """First inconsistency found, at 1-based record ``position``"""

    position: int
    reason: TamperReason
    detail: str = ""
    status: str = field(default="tampered", init=False)

    @property
    def valid(self) -> bool:
        return False


@dataclass(frozen=True)
class AnchorStale:
    """The log is intact but its last append never reached the trust anchor.

    Only reported when the pending-commit marker names exactly the computed
    tip and the last record links to the anchored hash; recoverable by
    re-committing the anchor.
    """

    length: int
    tip: str
    anchor: str
    status: str = field(default="anchor_stale", init=False)

    @property
    def valid(self) -> bool:
        return False


VerificationResult = Union[Verified, Tampered, AnchorStale]


@dataclass(frozen=True)
class ChainSnapshot:
    """Log lines and anchor state captured together under the ledger lock"""

    lines: Tuple[str, ...]
    anchor: AnchorState


def iter_rows(lines: Sequence[str]):
    """Yield ``(position, row)`` for every record line, skipping the header and blank lines.

    The first non-blank line is the header and is yielded as position 0.
    """
    position = HEADER_POSITION
    for line in lines:
        if is_blank(line):
            continue
        yield position, line
        position += 1


def verify_snapshot(snapshot: ChainSnapshot) -> VerificationResult:
    """Verify a captured log against its captured trust anchor"""
    expected = ZERO_HASH
    length = 0
    last: Optional[Record] = None
    has_header = False

    for position, row in iter_rows(snapshot.lines):
        if position == HEADER_POSITION:
            has_header = True
            if row.strip() != HEADER:
                return Tampered(HEADER_POSITION, TamperReason.MALFORMED_ROW, "missing or altered header")
            continue

        try:
            record = decode(row)
        except ParseError as exc:
            return Tampered(position, TamperReason.MALFORMED_ROW, str(exc))

        if record.prev_hash != expected:
            return Tampered(position, TamperReason.LINK_BROKEN, "prevHash does not match previous entryHash")

        if commit(record.prev_hash, record.timestamp, record.value) != record.entry_hash:
            return Tampered(position, TamperReason.HASH_MISMATCH, "entryHash does not match record contents")

        expected = record.entry_hash
        length = position
        last = record

    if not has_header:
        return Tampered(HEADER_POSITION, TamperReason.MALFORMED_ROW, "missing or altered header")

    anchor = snapshot.anchor
    if expected == anchor.value:
        return Verified(length=length, tip=expected)

    if (
        last is not None
        and anchor.pending == expected
        and last.prev_hash == anchor.value
    ):
        return AnchorStale(length=length, tip=expected, anchor=anchor.value)

    return Tampered(length + 1, TamperReason.ANCHOR_MISMATCH, "computed tip does not match trust anchor")


def count_records(lines: Sequence[str]) -> int:
    """Number of record lines (header and blank lines excluded)"""
    return sum(1 for position, _ in iter_rows(lines) if position != HEADER_POSITION)


def tail(lines: Sequence[str]) -> Tuple[int, Optional[Record]]:
    """``(record count, last record)``; the last record is None for an empty chain.

    Raises:
        ParseError: if the last row is malformed.
    """
    length, last_row = 0, None
    for position, row in iter_rows(lines):
        if position != HEADER_POSITION:
            length, last_row = position, row
    return length, decode(last_row) if last_row is not None else None
