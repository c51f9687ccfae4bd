"""Sensor chain schemas"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from sensorchain.ledger.verifier import AnchorStale, Tampered, VerificationResult


def _no_delimiter(value: str) -> str:
    if "," in value or "\n" in value or "\r" in value:
        raise ValueError("must not contain a comma or line break")
    return value


class ReadingCreate(BaseModel):
    """Schema for appending a sensor reading"""

    value: str = Field(..., min_length=1, max_length=64, description="Sensor reading, e.g. \"20.5\"")
    timestamp: Optional[str] = Field(
        None,
        max_length=64,
        description="Reading time; defaults to the server clock (YYYY-MM-DD HH:MM:SS)",
    )

    @field_validator("value")
    @classmethod
    def check_value(cls, value: str) -> str:
        return _no_delimiter(value)

    @field_validator("timestamp")
    @classmethod
    def check_timestamp(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _no_delimiter(value)


class RecordResponse(BaseModel):
    """Schema for one committed record"""

    position: int
    timestamp: str
    value: str
    prev_hash: str
    entry_hash: str


class TipResponse(BaseModel):
    """Current tip of the log next to the trust anchor"""

    tip: str
    anchor: str
    pending: Optional[str] = None
    length: int
    in_sync: bool = Field(..., description="True if the log tip equals the trust anchor")


class ChainVerifyResponse(BaseModel):
    """Response from GET /chain/verify - reports chain integrity"""

    valid: bool = Field(..., description="True if every link checks out and the tip matches the anchor")
    status: Literal["verified", "tampered", "anchor_stale"]
    total_entries: int = Field(..., description="Number of records in the log")
    broken_at: Optional[int] = Field(
        None,
        description="1-based position of the first inconsistency (0 = header) - null unless tampered",
    )
    reason: Optional[str] = Field(None, description="malformed_row, link_broken, hash_mismatch or anchor_mismatch")
    detail: Optional[str] = None
    tip: Optional[str] = Field(None, description="Computed tip; null when tampered")
    anchor: str

    @classmethod
    def from_result(cls, result: VerificationResult, total_entries: int, anchor: str) -> "ChainVerifyResponse":
        if isinstance(result, Tampered):
            return cls(
                valid=False,
                status=result.status,
                total_entries=total_entries,
                broken_at=result.position,
                reason=result.reason.value,
                detail=result.detail,
                anchor=anchor,
            )
        if isinstance(result, AnchorStale):
            return cls(
                valid=False,
                status=result.status,
                total_entries=total_entries,
                detail="last append did not reach the trust anchor; POST /chain/recover",
                tip=result.tip,
                anchor=result.anchor,
            )
        return cls(
            valid=True,
            status=result.status,
            total_entries=total_entries,
            tip=result.tip,
            anchor=anchor,
        )


class ResetRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500, description="Why the chain is being discarded")


class ResetEventResponse(BaseModel):
    """Schema for one recorded reset"""

    id: int
    reset_at: datetime
    actor: str
    reason: Optional[str]
    previous_tip: str
    previous_anchor: str
    previous_length: int

    class Config:
        from_attributes = True
