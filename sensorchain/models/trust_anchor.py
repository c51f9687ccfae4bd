"""Trust anchor model"""
from datetime import datetime

from sqlalchemy import Column, DateTime, String

from sensorchain.database import Base


class TrustAnchor(Base):
    """TrustAnchor model - durable cell holding the last committed entry hash.

    ``pending`` is set to the entry hash of an append in flight before its row
    is written, and cleared in the same transaction that advances ``value``.
    """

    __tablename__ = "trust_anchors"

    name = Column(String(50), primary_key=True)
    value = Column(String(64), nullable=False)
    pending = Column(String(64), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
