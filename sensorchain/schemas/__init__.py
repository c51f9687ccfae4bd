"""Pydantic schemas for request/response validation"""
from sensorchain.schemas.attack import AttackResponse
from sensorchain.schemas.chain import (
    ChainVerifyResponse,
    ReadingCreate,
    RecordResponse,
    ResetEventResponse,
    ResetRequest,
    TipResponse,
)

__all__ = [
    "AttackResponse",
    "ChainVerifyResponse",
    "ReadingCreate",
    "RecordResponse",
    "ResetEventResponse",
    "ResetRequest",
    "TipResponse",
]
