"""ResetEvent model"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from sensorchain.database import Base


class ResetEvent(Base):
    """ResetEvent model - audit trail of chain resets, kept outside the sensor log.

    The log cannot attest to its own erasure, so every reset is recorded here
    together with the tip and length it discarded.
    """

    __tablename__ = "reset_events"

    id = Column(Integer, primary_key=True, index=True)
    reset_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    actor = Column(String(255), nullable=False)
    reason = Column(Text, nullable=True)
    previous_tip = Column(String(64), nullable=False)
    previous_anchor = Column(String(64), nullable=False)
    previous_length = Column(Integer, nullable=False)
