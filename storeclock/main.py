"""
StoreClock Backend - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storeclock.api.router import api_router
from storeclock.core.config import settings
from storeclock.core.errors import (
    http_exception_handler,
    validation_exception_handler,
    database_unavailable_handler,
    generic_exception_handler,
)
from storeclock.core.logging import setup_logging
from storeclock.db.session import create_sqlite_tables

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return "***"
    if parsed.scheme.startswith("sqlite"):
        return url
    if parsed.password:
        netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse(parsed._replace(netloc=netloc))
    return url


app = FastAPI(
    title="StoreClock Backend",
    description="QR check-in codes, time entries and labor summaries for store staff",
    version=settings.VERSION or "1.0.0"
)

allowed_origins = settings.get_allowed_origins_list()
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=allowed_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
# Starlette base class so routing 404/405 get the same envelope
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(OperationalError, database_unavailable_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so it can be verified against Alembic."""
    logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))
    logger.info(
        "Check-in codes: step=%ss digits=%s tolerance=%s windows, summaries in %s",
        settings.TOTP_STEP_SECONDS, settings.TOTP_DIGITS, settings.TOTP_TOLERANCE_WINDOWS, settings.TZ,
    )


@app.on_event("startup")
def create_local_tables() -> None:
    """SQLite only; other databases are managed with `alembic upgrade head`."""
    create_sqlite_tables()
