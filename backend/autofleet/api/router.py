"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from autofleet.api.routes import bookings, notifications, vehicles

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(vehicles.router)
api_router.include_router(bookings.router)
api_router.include_router(notifications.router)
