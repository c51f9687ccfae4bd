"""Middleware modules for production-ready features"""
from sensorchain.middleware.monitoring import (
    MonitoringMiddleware,
    record_append,
    record_auth_failure,
    record_reset,
    record_verification,
)
from sensorchain.middleware.rate_limit import get_rate_limit, limiter

__all__ = [
    "MonitoringMiddleware",
    "record_append",
    "record_verification",
    "record_reset",
    "record_auth_failure",
    "limiter",
    "get_rate_limit"
]
