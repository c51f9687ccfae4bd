"""API dependencies for authentication and ledger access.

Read-only chain inspection and verification are public. Anything that writes
(append, reset, recover, attacks) requires ``X-Admin-Key``.
"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from sensorchain.config import settings
from sensorchain.database import SessionLocal
from sensorchain.ledger.engine import ChainLedger, build_ledger
from sensorchain.middleware.monitoring import record_auth_failure
from sensorchain.sensor import SensorSource, SimulatedSensor


@lru_cache(maxsize=None)
def get_ledger() -> ChainLedger:
    """Process-wide ledger; the single writer of the log and its anchor"""
    return build_ledger(settings.LOG_PATH, SessionLocal, fsync=settings.FSYNC_ON_WRITE)


@lru_cache(maxsize=None)
def get_sensor() -> SensorSource:
    return SimulatedSensor(
        baseline=settings.SENSOR_BASELINE,
        jitter=settings.SENSOR_JITTER,
        minimum=settings.SENSOR_MIN,
        maximum=settings.SENSOR_MAX,
    )


def require_admin(x_admin_key: Optional[str] = Header(None)) -> str:
    """Require ``X-Admin-Key``. Returns the actor name recorded in audit entries."""
    if not x_admin_key:
        record_auth_failure("missing")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required. Provide X-Admin-Key header.",
        )
    if x_admin_key != settings.ADMIN_API_KEY:
        record_auth_failure("invalid")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin key",
        )
    return "admin"


def require_attacks_enabled(actor: str = Depends(require_admin)) -> str:
    """Gate for the demonstration attack endpoints; they 404 unless ATTACKS_ENABLED"""
    if not settings.ATTACKS_ENABLED:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    return actor
