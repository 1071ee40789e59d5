"""
Version and metadata endpoint
"""
from fastapi import APIRouter
from storeclock.core.config import settings

router = APIRouter()


@router.get("/version")
async def get_version():
    """
    Get application version and metadata

    Returns:
        Service name, version, environment and the check-in code parameters clients rely on
    """
    return {
        "service": "storeclock-backend",
        "version": settings.VERSION or "1.0.0",
        "env": settings.APP_ENV,
        "totp_step_seconds": settings.TOTP_STEP_SECONDS,
        "qr_safety_margin_seconds": settings.QR_SAFETY_MARGIN_SECONDS,
    }
