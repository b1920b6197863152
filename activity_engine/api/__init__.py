"""API routes for the Activity Engine."""

from fastapi import APIRouter

from .cron import router as cron_router
from .notifications import router as notifications_router
from .timeline import router as timeline_router

# Main API router
api_router = APIRouter()

api_router.include_router(timeline_router)
api_router.include_router(notifications_router)

# Scheduler trigger (bearer CRON_SECRET)
api_router.include_router(cron_router)

__all__ = ["api_router"]
