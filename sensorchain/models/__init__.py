"""Database models"""
from sensorchain.models.reset_event import ResetEvent
from sensorchain.models.trust_anchor import TrustAnchor

__all__ = ["ResetEvent", "TrustAnchor"]
