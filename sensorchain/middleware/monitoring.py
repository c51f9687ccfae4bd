"""Monitoring and observability middleware"""
import time
from typing import Callable, Optional
from fastapi import Request, Response
from prometheus_client import Counter, Histogram, Gauge
from starlette.middleware.base import BaseHTTPMiddleware
from sensorchain.utils.logger import logger


# ===== Prometheus Metrics =====

# Request metrics
http_requests_total = Counter(
    "sensorchain_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "sensorchain_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"]
)

# Chain metrics
chain_appends_total = Counter(
    "sensorchain_appends_total",
    "Total sensor readings appended",
    ["result"]  # success, error
)

chain_verifications_total = Counter(
    "sensorchain_verifications_total",
    "Total chain verifications",
    ["status"]  # verified, tampered, anchor_stale
)

chain_tamper_total = Counter(
    "sensorchain_tamper_detected_total",
    "Verifications that found tampering",
    ["reason"]
)

chain_resets_total = Counter(
    "sensorchain_resets_total",
    "Total chain resets"
)

# System metrics
chain_length_gauge = Gauge(
    "sensorchain_chain_length",
    "Number of records in the sensor chain at the last verification"
)

# Error metrics
http_errors_total = Counter(
    "sensorchain_http_errors_total",
    "Total HTTP errors",
    ["method", "endpoint", "status"]
)

authentication_failures_total = Counter(
    "sensorchain_authentication_failures_total",
    "Total authentication failures",
    ["type"]  # missing, invalid
)


def _endpoint_label(request: Request) -> str:
    """Route template (``/chain/{position}``) so record positions do not explode label cardinality"""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class MonitoringMiddleware(BaseHTTPMiddleware):
    """Middleware for request metrics, request IDs and slow-request logging"""

    slow_request_seconds = 1.0

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        method = request.method

        request_id = request.headers.get("x-request-id", f"req_{int(start_time * 1000)}")
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            endpoint = _endpoint_label(request)
            http_errors_total.labels(method=method, endpoint=endpoint, status=500).inc()
            logger.error(
                f"Request failed: {method} {endpoint}",
                extra={
                    "request_id": request_id,
                    "method": method,
                    "endpoint": endpoint,
                    "duration": duration,
                    "error": str(e)
                },
                exc_info=True
            )
            raise

        duration = time.time() - start_time
        endpoint = _endpoint_label(request)
        status = response.status_code

        http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
        if status >= 400:
            http_errors_total.labels(method=method, endpoint=endpoint, status=status).inc()

        if duration > self.slow_request_seconds:
            logger.warning(
                f"Slow request detected: {method} {endpoint}",
                extra={
                    "request_id": request_id,
                    "endpoint": endpoint,
                    "duration": duration,
                    "status": status
                }
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"
        return response


def record_append(result: str):
    """Record sensor reading append outcome"""
    chain_appends_total.labels(result=result).inc()


def record_verification(status: str, length: Optional[int] = None, reason: Optional[str] = None):
    """Record chain verification outcome"""
    chain_verifications_total.labels(status=status).inc()
    if reason:
        chain_tamper_total.labels(reason=reason).inc()
    if length is not None:
        chain_length_gauge.set(length)


def record_reset():
    """Record chain reset"""
    chain_resets_total.inc()
    chain_length_gauge.set(0)


def record_auth_failure(auth_type: str):
    """Record authentication failure"""
    authentication_failures_total.labels(type=auth_type).inc()
