"""Sensor chain endpoints"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse

from sensorchain.api.deps import get_ledger, get_sensor, require_admin
from sensorchain.ledger.engine import ChainLedger
from sensorchain.ledger.errors import CodecError, ParseError, RecoveryError, StorageError, TipMismatchError
from sensorchain.ledger.verifier import (
    AnchorStale,
    Tampered,
    VerificationResult,
    count_records,
    verify_snapshot,
)
from sensorchain.middleware.monitoring import record_append, record_reset, record_verification
from sensorchain.middleware.rate_limit import get_rate_limit, limiter
from sensorchain.schemas.chain import (
    ChainVerifyResponse,
    ReadingCreate,
    RecordResponse,
    ResetEventResponse,
    ResetRequest,
    TipResponse,
)
from sensorchain.sensor import SensorSource, format_timestamp
from sensorchain.utils.codec import Record
from sensorchain.utils.logger import logger
from sensorchain.utils.webhook import send_webhook

router = APIRouter(prefix="/chain", tags=["chain"])


def _record_response(position: int, record: Record) -> RecordResponse:
    return RecordResponse(position=position, **record.to_dict())


def _storage_unavailable(exc: StorageError) -> HTTPException:
    logger.error("Storage failure", extra={"error": str(exc)})
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


def report_verification(result: VerificationResult, length: int) -> None:
    """Metrics, log line and webhook for one verification outcome"""
    reason = result.reason.value if isinstance(result, Tampered) else None
    record_verification(result.status, length=length, reason=reason)

    if isinstance(result, Tampered):
        logger.warning(
            "Tampering detected",
            extra={"position": result.position, "reason": reason, "length": length},
        )
        send_webhook("chain.tamper_detected", {
            "position": result.position,
            "reason": reason,
            "detail": result.detail,
            "total_entries": length,
        })
    elif isinstance(result, AnchorStale):
        logger.warning("Trust anchor is stale", extra={"tip": result.tip, "anchor": result.anchor})


def _append(ledger: ChainLedger, timestamp: str, value: str) -> RecordResponse:
    try:
        position, record = ledger.append_entry(timestamp, value)
    except CodecError as exc:
        record_append("error")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except ParseError as exc:
        record_append("error")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Last record is malformed, verify the chain before appending: {exc}",
        )
    except TipMismatchError as exc:
        record_append("error")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except StorageError as exc:
        record_append("error")
        raise _storage_unavailable(exc)

    record_append("success")
    logger.info(
        "Sensor reading appended",
        extra={"value": record.value, "entry_hash": record.entry_hash},
    )
    return _record_response(position, record)


@router.post("", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
def append_reading(
    reading: ReadingCreate,
    ledger: ChainLedger = Depends(get_ledger),
    _: str = Depends(require_admin),
):
    """
    Append a sensor reading (Admin auth).

    The new record is linked to the current tip by its ``prev_hash`` and the
    trust anchor is advanced to its ``entry_hash``.
    """
    return _append(ledger, reading.timestamp or format_timestamp(), reading.value)


@router.post("/sample", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
def sample_reading(
    ledger: ChainLedger = Depends(get_ledger),
    sensor: SensorSource = Depends(get_sensor),
    _: str = Depends(require_admin),
):
    """Take one reading from the sensor and append it (Admin auth)"""
    reading = sensor.read()
    return _append(ledger, reading.timestamp, reading.value)


@router.get("", response_model=List[RecordResponse])
def list_records(
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    ledger: ChainLedger = Depends(get_ledger),
):
    """
    List records in chain order.

    Rows that do not decode are left out; GET /chain/verify reports where
    they are.
    """
    try:
        records = ledger.records()
    except StorageError as exc:
        raise _storage_unavailable(exc)
    return [_record_response(position, record) for position, record in records[offset:offset + limit]]


@router.get("/tip", response_model=TipResponse)
def get_tip(ledger: ChainLedger = Depends(get_ledger)):
    """Current tip of the log, the trust anchor, and whether they agree"""
    try:
        tip, anchor, length = ledger.tip_state()
    except StorageError as exc:
        raise _storage_unavailable(exc)
    except ParseError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Last record is malformed: {exc}",
        )
    return TipResponse(
        tip=tip,
        anchor=anchor.value,
        pending=anchor.pending,
        length=length,
        in_sync=tip == anchor.value,
    )


@router.get("/verify", response_model=ChainVerifyResponse)
@limiter.limit(get_rate_limit("verify"))
def verify_chain(request: Request, ledger: ChainLedger = Depends(get_ledger)):
    """
    Verify the sensor chain.

    Walks every record in order, checking that each ``prev_hash`` equals the
    previous ``entry_hash`` and that each ``entry_hash`` matches the record
    contents, then compares the computed tip with the trust anchor. Stops at
    the first inconsistency and reports its position.
    """
    try:
        snapshot = ledger.snapshot()
    except StorageError as exc:
        raise _storage_unavailable(exc)

    result = verify_snapshot(snapshot)
    length = count_records(snapshot.lines)
    report_verification(result, length)

    return ChainVerifyResponse.from_result(result, total_entries=length, anchor=snapshot.anchor.value)


@router.get("/export", response_class=PlainTextResponse)
@limiter.limit(get_rate_limit("export"))
def export_chain(request: Request, ledger: ChainLedger = Depends(get_ledger)):
    """The raw log file, for offline verification"""
    try:
        content = ledger.store.read_text()
    except StorageError as exc:
        raise _storage_unavailable(exc)
    return PlainTextResponse(content, media_type="text/csv")


@router.post("/reset", response_model=ResetEventResponse)
@limiter.limit(get_rate_limit("reset"))
def reset_chain(
    request: Request,
    body: Optional[ResetRequest] = None,
    ledger: ChainLedger = Depends(get_ledger),
    actor: str = Depends(require_admin),
):
    """
    Discard the whole chain and start a new genesis (Admin auth).

    The discarded tip and length are recorded in the reset audit trail
    (GET /chain/resets) and announced via webhook.
    """
    try:
        event = ledger.reset(actor=actor, reason=body.reason if body else None)
    except StorageError as exc:
        raise _storage_unavailable(exc)

    record_reset()
    send_webhook("chain.reset", {
        "actor": event.actor,
        "reason": event.reason,
        "previous_tip": event.previous_tip,
        "previous_length": event.previous_length,
    })
    return event


@router.post("/recover", response_model=ChainVerifyResponse)
def recover_anchor(
    ledger: ChainLedger = Depends(get_ledger),
    _: str = Depends(require_admin),
):
    """Re-commit the trust anchor after an interrupted append (Admin auth)"""
    try:
        result = ledger.recover()
        snapshot = ledger.snapshot()
    except RecoveryError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except StorageError as exc:
        raise _storage_unavailable(exc)

    return ChainVerifyResponse.from_result(
        result, total_entries=count_records(snapshot.lines), anchor=snapshot.anchor.value
    )


@router.get("/resets", response_model=List[ResetEventResponse])
def list_resets(
    limit: int = Query(100, ge=1, le=1000),
    ledger: ChainLedger = Depends(get_ledger),
    _: str = Depends(require_admin),
):
    """Reset audit trail, newest first (Admin auth)"""
    try:
        return ledger.reset_events(limit=limit)
    except StorageError as exc:
        raise _storage_unavailable(exc)


@router.get("/{position}", response_model=RecordResponse)
def get_record(position: int, ledger: ChainLedger = Depends(get_ledger)):
    """One record by its 1-based position"""
    try:
        records = dict(ledger.records())
    except StorageError as exc:
        raise _storage_unavailable(exc)
    if position not in records:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No record at position {position}")
    return _record_response(position, records[position])
