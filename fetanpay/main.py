"""
FetanPay Billing - FastAPI Application
Subscription lifecycle API and daily billing jobs
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from fetanpay.config import get_settings
from fetanpay.core.exceptions import ConfigurationError
from fetanpay.core.logger import configure_logging
from fetanpay.core.security import require_operator
from fetanpay.database import get_session_factory, init_db
from fetanpay.services.billing_scheduler import BillingScheduler, default_jobs

from fetanpay.api.routes import health
from fetanpay.api.v1 import subscriptions

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


def start_billing_scheduler() -> BillingScheduler | None:
    """Start the daily billing jobs, or return None when they cannot run."""
    if not settings.scheduler_enabled:
        return None
    try:
        session_factory = get_session_factory()
    except ConfigurationError as e:
        logger.error("Billing scheduler not started: %s", e)
        return None

    scheduler = BillingScheduler(
        session_factory=session_factory,
        jobs=default_jobs(settings),
        tz_name=settings.billing_timezone,
        poll_seconds=settings.scheduler_poll_seconds,
    )
    scheduler.start()
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting FetanPay Billing API...")

    try:
        init_db()
        logger.info("Database initialized")
    except (SQLAlchemyError, ConfigurationError) as e:
        logger.error("Database initialization failed: %s", e)

    scheduler = start_billing_scheduler()
    app.state.billing_scheduler = scheduler

    logger.info("API running on %s environment", settings.app_env)
    yield
    if scheduler is not None:
        await scheduler.stop()
    logger.info("Shutting down FetanPay Billing API...")


app = FastAPI(
    title=settings.app_name,
    description="Subscription lifecycle API for FetanPay",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict:
    return {
        "name": settings.app_name,
        "environment": settings.app_env,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


app.include_router(health.router, prefix=settings.api_v1_prefix, tags=["Health"])
app.include_router(
    subscriptions.router,
    prefix=f"{settings.api_v1_prefix}/subscriptions",
    tags=["Subscriptions"],
    dependencies=[Depends(require_operator)],
)
