"""Enhanced health check endpoints"""
import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from sensorchain import __version__
from sensorchain.api.deps import get_ledger
from sensorchain.database import get_db
from sensorchain.ledger.engine import ChainLedger
from sensorchain.ledger.errors import ParseError, StorageError
from sensorchain.ledger.verifier import count_records, tail

router = APIRouter(prefix="/health", tags=["health"])

# Track startup time
STARTUP_TIME = time.time()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("")
def health_check():
    """
    Basic health check endpoint

    Returns 200 if service is running
    """
    return {
        "status": "healthy",
        "service": "SensorChain",
        "version": __version__,
        "timestamp": _now()
    }


@router.get("/ready")
def readiness_check(db: Session = Depends(get_db), ledger: ChainLedger = Depends(get_ledger)):
    """
    Readiness check - verifies both storage media are available

    Checks:
    - Trust anchor database connectivity and latency
    - Sensor log readability

    Returns 200 if ready to serve traffic, 503 if not ready
    """
    checks: Dict[str, Any] = {
        "anchor_database": False,
        "anchor_database_latency_ms": None,
        "log_store": False,
    }
    problems = []

    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        checks["anchor_database"] = True
        checks["anchor_database_latency_ms"] = round((time.time() - start) * 1000, 2)
    except Exception as e:
        problems.append(f"Anchor database check failed: {str(e)}")

    try:
        ledger.store.read_lines()
        checks["log_store"] = True
    except StorageError as e:
        problems.append(f"Log store check failed: {str(e)}")

    if problems:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "checks": checks, "message": "; ".join(problems)},
        )

    return {
        "status": "ready",
        "checks": checks,
        "timestamp": _now()
    }


@router.get("/live")
def liveness_check():
    """
    Liveness check - verifies service is alive

    Returns 200 if process is alive
    Used by Kubernetes liveness probe
    """
    return {
        "status": "alive",
        "uptime_seconds": round(time.time() - STARTUP_TIME, 2),
        "timestamp": _now()
    }


@router.get("/stats")
def health_stats(ledger: ChainLedger = Depends(get_ledger)) -> Dict[str, Any]:
    """
    Chain statistics

    Returns:
    - Record count and log size
    - Whether the log tip matches the trust anchor (no full verification)
    """
    try:
        snapshot = ledger.snapshot()
    except StorageError as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "message": str(e), "timestamp": _now()},
        )

    try:
        length, last = tail(snapshot.lines)
    except ParseError:
        length, last = count_records(snapshot.lines), None
    tip = last.entry_hash if last is not None else None
    return {
        "status": "healthy",
        "chain": {
            "records": length,
            "tip": tip,
            "anchor": snapshot.anchor.value,
            "pending_commit": snapshot.anchor.pending is not None,
            "log_bytes": sum(len(line) + 1 for line in snapshot.lines),
        },
        "system": {
            "uptime_seconds": round(time.time() - STARTUP_TIME, 2),
        },
        "timestamp": _now()
    }
