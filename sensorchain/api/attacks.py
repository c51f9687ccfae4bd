"""Demonstration attack endpoints.

Each endpoint tampers with the sensor log file directly (never through the
append path) so the detection paths of GET /chain/verify can be exercised.
All of them 404 unless ATTACKS_ENABLED is set, and require admin auth.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status

from sensorchain import attacks
from sensorchain.api.deps import get_ledger, require_attacks_enabled
from sensorchain.ledger.engine import ChainLedger
from sensorchain.middleware.rate_limit import get_rate_limit, limiter
from sensorchain.schemas.attack import (
    AppendAttack,
    AttackResponse,
    DeleteAttack,
    EditFieldAttack,
    OverwriteAttack,
    SubstituteAttack,
    SwapAttack,
)

router = APIRouter(
    prefix="/attacks",
    tags=["attacks"],
    dependencies=[Depends(require_attacks_enabled)],
)

ATTACK_LIMIT = get_rate_limit("attack")


def _bad_request(exc: attacks.AttackError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("/edit", response_model=AttackResponse)
@limiter.limit(ATTACK_LIMIT)
def edit_record(request: Request, body: EditFieldAttack, ledger: ChainLedger = Depends(get_ledger)):
    """Edit one field of one record in place without recomputing hashes"""
    try:
        line = attacks.edit_field(ledger.store.path, body.position, body.field, body.new_value)
    except attacks.AttackError as exc:
        raise _bad_request(exc)
    return AttackResponse(attack="edit", lines=[line])


@router.post("/substitute", response_model=AttackResponse)
@limiter.limit(ATTACK_LIMIT)
def substitute_record(request: Request, body: SubstituteAttack, ledger: ChainLedger = Depends(get_ledger)):
    """Replace one record with an arbitrary row"""
    try:
        line = attacks.substitute_record(ledger.store.path, body.position, body.row)
    except attacks.AttackError as exc:
        raise _bad_request(exc)
    return AttackResponse(attack="substitute", lines=[line])


@router.post("/append-unlinked", response_model=AttackResponse)
@limiter.limit(ATTACK_LIMIT)
def append_unlinked(request: Request, body: AppendAttack, ledger: ChainLedger = Depends(get_ledger)):
    """Append a row with random hashes that links to nothing"""
    line = attacks.append_unlinked(ledger.store.path, body.timestamp, body.value)
    return AttackResponse(attack="append-unlinked", lines=[line])


@router.post("/append-raw", response_model=AttackResponse)
@limiter.limit(ATTACK_LIMIT)
def append_without_hashes(request: Request, body: AppendAttack, ledger: ChainLedger = Depends(get_ledger)):
    """Append a ``timestamp,value`` row with no hash fields"""
    line = attacks.append_without_hashes(ledger.store.path, body.timestamp, body.value)
    return AttackResponse(attack="append-raw", lines=[line])


@router.post("/delete", response_model=AttackResponse)
@limiter.limit(ATTACK_LIMIT)
def delete_record(request: Request, body: DeleteAttack, ledger: ChainLedger = Depends(get_ledger)):
    """Remove one record"""
    try:
        line = attacks.delete_record(ledger.store.path, body.position)
    except attacks.AttackError as exc:
        raise _bad_request(exc)
    return AttackResponse(attack="delete", lines=[line])


@router.post("/swap", response_model=AttackResponse)
@limiter.limit(ATTACK_LIMIT)
def swap_records(request: Request, body: SwapAttack, ledger: ChainLedger = Depends(get_ledger)):
    """Exchange two records"""
    try:
        lines = attacks.swap_records(ledger.store.path, body.first, body.second)
    except attacks.AttackError as exc:
        raise _bad_request(exc)
    return AttackResponse(attack="swap", lines=list(lines))


@router.post("/overwrite", response_model=AttackResponse)
@limiter.limit(ATTACK_LIMIT)
def overwrite_store(request: Request, body: OverwriteAttack, ledger: ChainLedger = Depends(get_ledger)):
    """Replace the whole file, with raw text or with a forged self-consistent chain"""
    if body.content is not None:
        attacks.replace_with_text(ledger.store.path, body.content)
        return AttackResponse(attack="overwrite", lines=body.content.splitlines())

    lines = attacks.overwrite_store(
        ledger.store.path, [(reading.timestamp, reading.value) for reading in body.readings]
    )
    return AttackResponse(attack="overwrite", lines=lines)
