"""
Careerlyst Billing - FastAPI Application

Main entry point for the backend API.
Provides endpoints for subscription sync, Bubble transfers, Stripe webhooks
and Wiza prospect lists.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from careerlyst.config.settings import settings
from careerlyst.infrastructure.exceptions import CareerlystError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info(f"Careerlyst Billing starting in {settings.environment} mode...")

    database_configured = bool(settings.database_url or settings.supabase_password)

    if database_configured:
        try:
            from careerlyst.infrastructure.db.database import init_db
            await init_db()
            logger.info("SQLModel database connection pool initialized")
        except Exception as e:
            logger.warning(f"SQLModel database initialization skipped: {e}")

    yield

    # Shutdown
    if database_configured:
        try:
            from careerlyst.infrastructure.db.database import close_db
            await close_db()
            logger.info("SQLModel database connection pool closed")
        except Exception as e:
            logger.warning(f"SQLModel database shutdown error: {e}")

    logger.info("Careerlyst Billing shutting down...")


app = FastAPI(
    title="Careerlyst Billing",
    description="Subscription reconciliation and prospecting API for Product Careerlyst",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS configuration from Settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(CareerlystError)
async def careerlyst_error_handler(request: Request, exc: CareerlystError):
    """Handle application errors; each class carries its own status code."""
    if exc.status_code >= 500:
        logger.error(
            f"{exc.__class__.__name__} on {request.method} {request.url.path}: "
            f"{exc.message} ({exc.original_error})"
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict()),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as ``{"error": ...}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Handle malformed request bodies."""
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({
            "error": "Invalid request",
            "type": "ValidationError",
            "details": {"errors": exc.errors()},
        }),
    )


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "careerlyst-billing"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Careerlyst Billing API",
        "version": "1.0.0",
        "docs": "/docs",
    }


# ============================================================================
# Import and register routers
# ============================================================================

from careerlyst.api.routes import subscriptions, transfers, webhooks, wiza  # noqa: E402

app.include_router(subscriptions.router, prefix="/api", tags=["Subscriptions"])
app.include_router(transfers.router, prefix="/api", tags=["Transfers"])
app.include_router(webhooks.router, prefix="/api", tags=["Webhooks"])
app.include_router(wiza.router, prefix="/api", tags=["Prospecting"])
