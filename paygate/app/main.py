"""
FastAPI Application Entry Point.

This is the main application file for the Payout Gateway Back-Office.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from paygate.app.core.config import settings
from paygate.app.api.v1.router import router as api_v1_router
from paygate.app.core.observability import ObservabilityMiddleware, configure_logging
from paygate.app.core.redis_client import ping_redis
from paygate.app.db.session import engine, Base
from paygate.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from paygate.app.models.user import User
from paygate.app.models.user_status import UserStatus
from paygate.app.models.user_ip import UserIP
from paygate.app.models.merchant_details import MerchantDetails
from paygate.app.models.financial_details import FinancialDetails
from paygate.app.models.charge_bracket import ChargeBracket
from paygate.app.models.platform_charge import PlatformCharge
from paygate.app.models.ledger_entry import LedgerEntry
from paygate.app.models.report_outbox import ReportOutbox
from paygate.app.models.audit_log import AuditLog
from paygate.app.models.dlq import DeadLetterQueue

logger = logging.getLogger("paygate")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging and creates database tables.
    2. Connects the document store and starts the report mirror, when enabled.
    3. Stops the mirror and closes the document store on shutdown.
    """
    configure_logging()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    mirror_task = None
    if settings.report_mirror_enabled:
        from paygate.app.db.mongo import init_document_store
        from paygate.app.services.report_mirror import get_report_mirror

        await init_document_store()
        publisher = get_report_mirror()
        mirror_task = asyncio.create_task(publisher.run_forever())

    logger.info("Application started", extra={"report_mirror": settings.report_mirror_enabled})
    yield

    if mirror_task is not None:
        from paygate.app.db.mongo import close_document_store

        mirror_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await mirror_task
        await close_document_store()

    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Back-office API for merchant payouts, charges and settlements",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and Redis reachability
    """
    redis_ok = await ping_redis()
    return {
        "status": "healthy" if redis_ok else "degraded",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if redis_ok else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to the Payout Gateway Back-Office API",
        "docs": "/docs",
        "health": "/health",
    }
