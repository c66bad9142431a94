"""Air Safety Reporting - API Routers"""
from .admin import router as admin_router
from .auth import router as auth_router
from .comments import router as comments_router
from .notifications import router as notifications_router
from .reports import router as reports_router
from .scheduler import router as scheduler_router

__all__ = [
    "admin_router",
    "auth_router",
    "comments_router",
    "notifications_router",
    "reports_router",
    "scheduler_router",
]
