"""
Storefront Payment Service — FastAPI Application

Receives Midtrans payment notifications and reconciles them into a single
terminal order status, clearing the buyer's cart once per paid order.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from domain.errors import DomainError
from domain.responses import error_response
from routes import health, payments

# ── Logging ─────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: validate settings, create DB tables."""
    # Ensure data/ directory exists for SQLite
    os.makedirs("data", exist_ok=True)

    settings.validate_production_settings()

    from database import engine, init_db
    await init_db()
    logger.info("Database initialized")

    yield  # app runs here

    from services.reconciler import drain_background_tasks
    await drain_background_tasks()
    await engine.dispose()
    logger.info("Shutting down")


# ── App Factory ─────────────────────────────────────────────────────

app = FastAPI(
    title="Storefront Payment Service",
    description="Midtrans notification intake and order payment reconciliation",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routes ──────────────────────────────────────────────────────────

app.include_router(health.router)
app.include_router(payments.router)


# ── Exception Handlers ──────────────────────────────────────────────


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Catch-all for unhandled exceptions.

    Never return raw exception details to clients.
    The full traceback is logged server-side for debugging.
    """
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error_response("internal_server_error", "Internal server error"),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """
    Standardize HTTPException responses.

    Keeps the original HTTP status code, but wraps the payload. Domain
    errors also report whether the gateway should redeliver.
    """
    if isinstance(exc, DomainError):
        error_code = exc.__class__.__name__.replace("Error", "").lower()
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(
                error_code,
                exc.message,
                details=exc.details,
                retryable=exc.retryable,
            ),
        )

    # Regular HTTPException
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(
            "http_error",
            message,
            details=detail if not isinstance(detail, str) else None,
        ),
        headers=getattr(exc, "headers", None),
    )


# ── Entrypoint ──────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
