"""
AutoFleet Booking API - Main Application Entry Point

Booking core of a vehicle rental and sale marketplace:
- Conflict-free rental calendars under concurrent booking (vehicle row lock
  plus a PostgreSQL exclusion constraint)
- Table-driven booking state machine with paired vehicle-status updates
- Payment verification against the Paypack gateway
- Post-commit domain events feeding in-app notifications
- Redis caching of vehicle listings, structured logging, Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from autofleet.core.config import get_settings
from autofleet.core.exceptions import register_exception_handlers
from autofleet.core.logging import setup_logging, get_logger
from autofleet.core.metrics import metrics_endpoint
from autofleet.db.session import get_db
from autofleet.api.router import api_router
from autofleet.api.middleware import RequestLoggingMiddleware
from autofleet.services.cache_service import get_redis, close_redis, get_cache_stats
from autofleet.services.event_bus import get_event_bus

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    # Initialize Redis connection
    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    event_bus = get_event_bus()
    await event_bus.start()

    yield

    # Cleanup
    await event_bus.stop()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Vehicle rental and sale booking API with conflict-free reservations",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

# Routes
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """Health check endpoint for Docker and load balancers."""
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        get_logger(__name__).error("health_database_unreachable", error=str(e))
        database = "unreachable"

    cache_stats = await get_cache_stats()
    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
        "event_bus": "running" if get_event_bus().running else "stopped",
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
