"""Append engine and reset protocol.

``ChainLedger`` owns the sensor log and its trust anchor as one resource.
It is the only writer of both; every mutation runs under a single re-entrant
lock so appends and resets never interleave, and verification reads a
snapshot captured under the same lock.

Commit protocol for one append::

    1. anchor.pending := entry_hash         (anchor database)
    2. append row                           (log file)
    3. anchor := entry_hash, pending := NULL (anchor database, one transaction)

An interruption after 2 leaves the log one record ahead of the anchor with a
pending marker naming exactly that record: verify() reports AnchorStale and
recover() finishes step 3. An interruption after 1 leaves the log untouched;
the stale marker is overwritten by the next append.

An append is refused unless the log tip equals the anchor, so a removed or
replaced tail can never be covered by linking new records to it. The log
file is created only at first boot, which is decided by the anchor row and
never by the log file alone.
"""
import threading
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sensorchain.ledger.anchor import AnchorState, AnchorStore
from sensorchain.ledger.errors import ParseError, RecoveryError, StorageError, TipMismatchError
from sensorchain.ledger.store import LogStore
from sensorchain.ledger.verifier import (
    HEADER_POSITION,
    AnchorStale,
    ChainSnapshot,
    VerificationResult,
    count_records,
    iter_rows,
    tail,
    verify_snapshot,
)
from sensorchain.models.reset_event import ResetEvent
from sensorchain.utils.chain import ZERO_HASH, commit
from sensorchain.utils.codec import HEADER, Record, check_field, decode, encode
from sensorchain.utils.logger import logger


class ChainLedger:
    """Tamper-evident sensor log: append, verify, reset, current tip."""

    def __init__(self, store: LogStore, anchor: AnchorStore, session_factory: Callable[[], Session]):
        self.store = store
        self.anchor = anchor
        self.session_factory = session_factory
        self._lock = threading.RLock()
        # (stat key, record count, last record) of the log as last read
        self._tail_cache: Optional[Tuple[Optional[Tuple[int, int, int]], int, Optional[Record]]] = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> ChainSnapshot:
        """Capture log lines and anchor state together"""
        with self._lock:
            return ChainSnapshot(lines=tuple(self.store.read_lines()), anchor=self.anchor.state())

    def _tail(self) -> Tuple[Optional[Tuple[int, int, int]], int, Optional[Record]]:
        """``(stat key, record count, last record)``, re-read only when the file changed"""
        key = self.store.stat_key()
        cached = self._tail_cache
        if cached is not None and key is not None and cached[0] == key:
            return cached
        length, last = tail(self.store.read_lines())
        self._tail_cache = (key, length, last)
        return self._tail_cache

    def current_tip(self) -> str:
        """Entry hash of the last record in the log, ``ZERO_HASH`` when empty.

        Raises:
            ParseError: if the last row of the log is malformed.
        """
        with self._lock:
            _, _, last = self._tail()
        return last.entry_hash if last is not None else ZERO_HASH

    def tip_state(self) -> Tuple[str, AnchorState, int]:
        """``(tip, anchor state, length)`` read together, for diagnostics"""
        with self._lock:
            return self.current_tip(), self.anchor.state(), self.length()

    def records(self) -> List[Tuple[int, Record]]:
        """All decodable records with their 1-based positions (read-only inspection).

        Malformed rows keep their position but are left out; use verify() to
        find out why.
        """
        with self._lock:
            lines = self.store.read_lines()
        out = []
        for position, row in iter_rows(lines):
            if position == HEADER_POSITION:
                continue
            try:
                out.append((position, decode(row)))
            except ParseError:
                continue
        return out

    def length(self) -> int:
        with self._lock:
            return count_records(self.store.read_lines())

    def verify(self) -> VerificationResult:
        """Replay the log and check it against the trust anchor"""
        return verify_snapshot(self.snapshot())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def bootstrap(self) -> bool:
        """Create an empty chain on first boot. Returns True if one was created.

        First boot means the trust anchor has never been written. Once it has,
        a missing log is left missing so verify() reports it; an existing log
        is never touched, even an empty or damaged one.
        """
        with self._lock:
            if self.anchor.exists():
                if not self.store.exists():
                    logger.warning(
                        "Sensor log is missing but the trust anchor exists",
                        extra={"path": str(self.store.path), "anchor": self.anchor.get()},
                    )
                return False
            if self.store.exists():
                logger.warning(
                    "Sensor log exists without a trust anchor",
                    extra={"path": str(self.store.path)},
                )
                return False
            self.store.rewrite([HEADER])
            self.anchor.set(ZERO_HASH)
            self._tail_cache = None
        logger.info("Initialized empty sensor chain", extra={"path": str(self.store.path)})
        return True

    def append(self, timestamp: str, value: str) -> Record:
        """Commit one reading linked to the current tip.

        Raises:
            CodecError: if ``timestamp`` or ``value`` contains a comma or line break.
            ParseError: if the current last row is malformed (the chain is
                already broken and must be verified/reset first).
            TipMismatchError: if the log tip differs from the trust anchor.
            StorageError: if the log or the anchor could not be written.
        """
        return self.append_entry(timestamp, value)[1]

    def append_entry(self, timestamp: str, value: str) -> Tuple[int, Record]:
        """Like append(), also returning the 1-based position of the new record"""
        check_field("timestamp", timestamp)
        check_field("value", value)

        with self._lock:
            if not self.store.exists():
                raise TipMismatchError(f"sensor log {self.store.path} is missing; verify or reset the chain")

            key, length, last = self._tail()
            prev_hash = last.entry_hash if last is not None else ZERO_HASH
            state = self.anchor.state()
            if prev_hash != state.value:
                if state.pending == prev_hash:
                    raise TipMismatchError("last append was not committed to the trust anchor; run recover first")
                raise TipMismatchError("log tip does not match the trust anchor; verify or reset the chain")

            record = Record(
                timestamp=timestamp,
                value=value,
                prev_hash=prev_hash,
                entry_hash=commit(prev_hash, timestamp, value),
            )
            row = encode(record)

            self.anchor.begin(record.entry_hash)
            self._tail_cache = None
            self.store.append_line(row)
            self.anchor.set(record.entry_hash)

            new_key = self.store.stat_key()
            if (
                key is not None
                and new_key is not None
                and new_key[0] == key[0]
                and new_key[1] == key[1] + len((row + "\n").encode("utf-8"))
            ):
                self._tail_cache = (new_key, length + 1, record)
            position = length + 1

        logger.debug(
            "Appended sensor reading",
            extra={"value": value, "entry_hash": record.entry_hash},
        )
        return position, record

    def recover(self) -> VerificationResult:
        """Finish an interrupted append by committing the log tip to the anchor.

        Raises:
            RecoveryError: if the chain is not in the AnchorStale state.
        """
        with self._lock:
            result = verify_snapshot(self.snapshot())
            if not isinstance(result, AnchorStale):
                raise RecoveryError(f"trust anchor is not stale (status: {result.status})")
            self.anchor.set(result.tip)
            logger.warning(
                "Recovered stale trust anchor",
                extra={"tip": result.tip, "anchor": result.anchor, "length": result.length},
            )
            return verify_snapshot(self.snapshot())

    def reset(self, actor: str = "system", reason: Optional[str] = None) -> ResetEvent:
        """Discard the whole chain and start a new genesis.

        The reset is recorded in the anchor database before the log is
        wiped, so the audit trail survives even if the wipe is interrupted.
        """
        with self._lock:
            previous_length = count_records(self.store.read_lines())
            try:
                previous_tip = self.current_tip()
            except ParseError:
                previous_tip = ZERO_HASH
            previous_anchor = self.anchor.get()

            event = ResetEvent(
                actor=actor,
                reason=reason,
                previous_tip=previous_tip,
                previous_anchor=previous_anchor,
                previous_length=previous_length,
            )
            db = self.session_factory()
            try:
                db.add(event)
                db.commit()
                db.refresh(event)
                db.expunge(event)
            except SQLAlchemyError as exc:
                db.rollback()
                raise StorageError(f"cannot record reset event: {exc}") from exc
            finally:
                db.close()

            self.store.rewrite([HEADER])
            self.anchor.set(ZERO_HASH)
            self._tail_cache = None

        logger.warning(
            "Sensor chain reset",
            extra={
                "actor": actor,
                "reason": reason,
                "length": previous_length,
                "tip": previous_tip,
                "anchor": previous_anchor,
            },
        )
        return event

    def reset_events(self, limit: int = 100) -> List[ResetEvent]:
        db = self.session_factory()
        try:
            events = (
                db.query(ResetEvent)
                .order_by(ResetEvent.id.desc())
                .limit(limit)
                .all()
            )
            for event in events:
                db.expunge(event)
            return events
        except SQLAlchemyError as exc:
            raise StorageError(f"cannot read reset events: {exc}") from exc
        finally:
            db.close()


def build_ledger(log_path, session_factory: Callable[[], Session], fsync: bool = True) -> ChainLedger:
    """Wire a ledger from a log file path and an anchor database session factory"""
    return ChainLedger(
        store=LogStore(log_path, fsync=fsync),
        anchor=AnchorStore(session_factory),
        session_factory=session_factory,
    )
