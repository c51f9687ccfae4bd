"""FastAPI application entry point"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from sensorchain import __version__
from sensorchain.api import attacks, chain, health
from sensorchain.api.deps import get_ledger, get_sensor
from sensorchain.config import settings
from sensorchain.database import init_db
from sensorchain.middleware.rate_limit import limiter
from sensorchain.sensor import Sampler
from sensorchain.utils.logger import logger, setup_logging

# Setup logging
setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    init_db()
    ledger = get_ledger()
    created = ledger.bootstrap()
    logger.info("SensorChain starting up", extra={
        "path": settings.LOG_PATH,
        "length": ledger.length(),
        "action": "bootstrap" if created else "resume",
    })

    sampler = None
    if settings.sampling_enabled:
        sampler = Sampler(ledger, get_sensor(), settings.SAMPLE_INTERVAL_SECONDS)
        sampler.start()
    app.state.sampler = sampler

    yield

    # Shutdown
    if sampler is not None:
        sampler.stop()
    logger.info("SensorChain shutting down")


# Create FastAPI app
app = FastAPI(
    title="SensorChain",
    description="Tamper-evident hash-chain log for periodic sensor readings",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# ===== Middleware Setup =====

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Monitoring middleware
if settings.METRICS_ENABLED:
    from sensorchain.middleware.monitoring import MonitoringMiddleware
    app.add_middleware(MonitoringMiddleware)

    # Prometheus metrics
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/health", "/health/ready", "/health/live"],
        inprogress_name="sensorchain_requests_inprogress",
        inprogress_labels=True
    )
    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint=settings.METRICS_PATH, include_in_schema=False)

# Rate limiting
app.state.limiter = limiter
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Handle rate limit exceeded errors"""
    logger.warning(
        "Rate limit exceeded",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error": str(exc.detail)
        }
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please try again later.",
            "detail": str(exc.detail)
        }
    )

# ===== Route Setup =====

app.include_router(health.router)
app.include_router(chain.router)
app.include_router(attacks.router)


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "service": "SensorChain",
        "version": __version__,
        "status": "operational",
        "docs": "/docs",
        "health": "/health",
        "verify": "/chain/verify",
        "metrics": settings.METRICS_PATH if settings.METRICS_ENABLED else None
    }


# ===== Error Handlers =====

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for uncaught errors"""
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method
        },
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred."
        }
    )
