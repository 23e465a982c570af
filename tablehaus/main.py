"""
Tablehaus - FastAPI Backend Application
"""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from tablehaus import __version__
from tablehaus.api import availability, promotions, reference, reservations, tracking
from tablehaus.config import settings
from tablehaus.stores import invalidation


def configure_logging(level: str, fmt: str) -> None:
    """Configure structured logging on top of the stdlib root logger"""
    logging.basicConfig(format="%(message)s", level=level.upper())
    renderer = (
        structlog.dev.ConsoleRenderer()
        if fmt == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(settings.log_level, settings.log_format)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Tablehaus API", version=__version__)
    await invalidation.init_invalidation(
        settings.invalidation_backend,
        settings.redis_url,
        settings.invalidation_channel,
    )
    yield
    await invalidation.close_invalidation()
    logger.info("Shutting down Tablehaus API")


# Create FastAPI application
app = FastAPI(
    title="Tablehaus",
    description="Table reservations and pickup orders for a single restaurant",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoints
@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy", "service": "api", "version": __version__}


@app.get("/health/ready")
async def ready():
    """Readiness check with dependency verification"""
    from tablehaus.database import SessionLocal

    checks = {}

    # Check database
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"failed: {str(e)}"

    # Check the invalidation channel
    channel = invalidation.invalidation_channel
    if isinstance(channel, invalidation.RedisInvalidationChannel):
        try:
            await channel.client.ping()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"failed: {str(e)}"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
    }


# Include API routers
app.include_router(reference.router, prefix="/reference", tags=["Reference"])
app.include_router(availability.router, prefix="/availability", tags=["Availability"])
app.include_router(promotions.router, prefix="/promotions", tags=["Promotions"])
app.include_router(reservations.router, prefix="/reservations", tags=["Reservations"])
app.include_router(tracking.router, prefix="/tracking", tags=["Tracking"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tablehaus.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
