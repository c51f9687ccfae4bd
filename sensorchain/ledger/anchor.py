"""Trust anchor store - one durable hash cell outside the sensor log"""
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sensorchain.ledger.errors import StorageError
from sensorchain.models.trust_anchor import TrustAnchor
from sensorchain.utils.chain import ZERO_HASH

ANCHOR_NAME = "tip"


@dataclass(frozen=True)
class AnchorState:
    """Snapshot of the anchor cell"""

    value: str
    pending: Optional[str] = None


class AnchorStore:
    """Durable single-value store for the last committed entry hash.

    No chain logic lives here. Every method runs in its own transaction, so a
    call that returns has been committed and is visible to later reads,
    including after a restart.
    """

    def __init__(self, session_factory: Callable[[], Session], name: str = ANCHOR_NAME):
        self.session_factory = session_factory
        self.name = name

    def _write(self, value: str, pending: Optional[str]) -> None:
        db = self.session_factory()
        try:
            row = db.get(TrustAnchor, self.name)
            if row is None:
                db.add(TrustAnchor(name=self.name, value=value, pending=pending))
            else:
                row.value = value
                row.pending = pending
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError(f"trust anchor write failed: {exc}") from exc
        finally:
            db.close()

    def state(self) -> AnchorState:
        db = self.session_factory()
        try:
            row = db.get(TrustAnchor, self.name)
        except SQLAlchemyError as exc:
            raise StorageError(f"trust anchor read failed: {exc}") from exc
        finally:
            db.close()
        if row is None:
            return AnchorState(value=ZERO_HASH)
        return AnchorState(value=row.value, pending=row.pending)

    def exists(self) -> bool:
        """True once the anchor has been written; first boot is decided by this, not by the log file"""
        db = self.session_factory()
        try:
            return db.get(TrustAnchor, self.name) is not None
        except SQLAlchemyError as exc:
            raise StorageError(f"trust anchor read failed: {exc}") from exc
        finally:
            db.close()

    def get(self) -> str:
        """Return the anchored hash, ``ZERO_HASH`` if never set"""
        return self.state().value

    def set(self, value: str) -> None:
        """Durably set the anchor and clear any pending marker"""
        self._write(value, None)

    def begin(self, pending: str) -> None:
        """Record that an append committing ``pending`` is about to be written"""
        self._write(self.get(), pending)

