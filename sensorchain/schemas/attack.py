"""Demonstration attack schemas"""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class EditFieldAttack(BaseModel):
    position: int = Field(..., ge=1)
    field: Literal["timestamp", "value", "prev_hash", "entry_hash"] = "value"
    new_value: str


class SubstituteAttack(BaseModel):
    position: int = Field(..., ge=1)
    row: str = Field(..., description="Arbitrary replacement line")


class AppendAttack(BaseModel):
    timestamp: str = "2000-01-01 00:00:00"
    value: str = "0.0"


class DeleteAttack(BaseModel):
    position: int = Field(..., ge=1)


class SwapAttack(BaseModel):
    first: int = Field(..., ge=1)
    second: int = Field(..., ge=1)


class ForgedReading(BaseModel):
    timestamp: str
    value: str


class OverwriteAttack(BaseModel):
    readings: List[ForgedReading] = Field(default_factory=list, description="Readings for the forged chain")
    content: Optional[str] = Field(None, description="Raw replacement text; takes precedence over readings")


class AttackResponse(BaseModel):
    attack: str
    lines: List[str] = Field(default_factory=list, description="Lines written by the attack")
