"""Rate limiting middleware for API protection"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from sensorchain.config import settings


def get_identifier(request: Request) -> str:
    """
    Get identifier for rate limiting

    Authenticated admin callers share one bucket; everyone else is limited
    per client address.
    """
    admin_key = request.headers.get("x-admin-key")
    if admin_key == settings.ADMIN_API_KEY:
        return "admin:authenticated"

    return get_remote_address(request)


# Create limiter instance
limiter = Limiter(
    key_func=get_identifier,
    default_limits=settings.RATE_LIMIT_DEFAULT,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


# Rate limit configurations for different endpoints
RATE_LIMITS = {
    # Writes to the chain
    "append": "600/minute",
    "reset": "10/hour",
    "attack": "60/hour",

    # Reads
    "read_chain": "300/minute",
    "verify": "60/minute",
    "export": "30/minute",

    # Public endpoints
    "health": "100/minute",
}


def get_rate_limit(endpoint: str) -> str:
    """Get rate limit for specific endpoint"""
    return RATE_LIMITS.get(endpoint, settings.RATE_LIMIT_DEFAULT[0])
