"""FindNearPG Risk Backend - API Routers"""
from .auth import router as auth_router
from .admin import router as admin_router
from .suspicious import router as suspicious_router
from .properties import router as properties_router
from .bookings import router as bookings_router
from .payments import router as payments_router

__all__ = [
    "auth_router",
    "admin_router",
    "suspicious_router",
    "properties_router",
    "bookings_router",
    "payments_router",
]
