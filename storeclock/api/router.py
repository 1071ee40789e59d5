"""
Main API router
"""
from fastapi import APIRouter

from storeclock.api.v1 import (
    health,
    version,
    auth,
    totp,
    time_entries,
    summary,
    labor_rules,
    members,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(totp.router, prefix="/stores", tags=["qr-checkin"])
api_router.include_router(time_entries.router, prefix="/stores", tags=["time-entries"])
api_router.include_router(summary.router, prefix="/stores", tags=["time-summary"])
api_router.include_router(labor_rules.router, prefix="/stores", tags=["labor-rules"])
api_router.include_router(members.router, prefix="/stores", tags=["members"])
