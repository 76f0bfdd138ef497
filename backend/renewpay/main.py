"""
RenewPay Backend - FastAPI Application

Subscription renewal billing through the PayU hosted checkout.
Builds signed payment forms and verifies and reconciles PayU callbacks.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from . import __version__
from .config import settings
from .exceptions import BillingError, ReconciliationConflict
from .db.init_db import initialize_database
from .services.scheduler import start_scheduler, shutdown_scheduler
from .api.sessions import router as sessions_router
from .api.subscriptions import router as subscriptions_router
from .api.payments import router as payments_router


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events:
    - Startup: Initialize database, start expiry sweeps
    - Shutdown: Stop the scheduler
    """
    # Startup
    logger.info("Starting RenewPay backend server...")
    logger.info(f"PayU test mode: {settings.payu_test_mode}")

    if not settings.payu_merchant_key or not settings.payu_merchant_salt:
        logger.warning("PayU merchant key or salt not configured; renewals will be refused")

    try:
        await initialize_database()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    try:
        start_scheduler(settings)
    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}")
        raise

    logger.info("Server startup complete")

    yield

    # Shutdown
    logger.info("Shutting down RenewPay backend server...")

    try:
        shutdown_scheduler(wait=True)
        logger.info("Scheduler shutdown complete")
    except Exception as e:
        logger.error(f"Error during scheduler shutdown: {e}")


# Initialize FastAPI application
app = FastAPI(
    title="RenewPay API",
    description="Subscription renewal billing via PayU",
    version=__version__,
    lifespan=lifespan,
)


# Configure CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers for billing errors
@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    """
    Handle billing errors with standardized response format.

    Status code comes from the exception class; the body is exc.to_dict().
    """
    if isinstance(exc, ReconciliationConflict) or exc.status_code >= 500:
        logger.error(f"Billing error: {exc.error_code} - {exc.message}", extra={"details": exc.details})
    else:
        logger.warning(f"Billing error: {exc.error_code} - {exc.message}", extra={"details": exc.details})

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unexpected errors.

    Logs full exception for debugging but returns generic message to client.
    """
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error_code": "internal_error",
            "message": f"An unexpected error occurred. Please contact support at {settings.support_email}",
            "details": {}
        }
    )


# Health check endpoint
@app.get("/api/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        Server status and version information
    """
    return {
        "status": "healthy",
        "version": __version__,
        "payu_test_mode": settings.payu_test_mode,
        "payu_configured": bool(settings.payu_merchant_key and settings.payu_merchant_salt),
    }


# Include API routers
app.include_router(sessions_router, prefix="/api/sessions", tags=["Sessions"])
app.include_router(subscriptions_router, prefix="/api/subscriptions", tags=["Subscriptions"])
app.include_router(payments_router, prefix="/api/payments", tags=["Payments"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "renewpay.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower()
    )
