"""API Routers."""

from .system import router as system_router
from .monitors import router as monitors_router, ack_router
from .groups import router as groups_router
from .notifications import router as notifications_router

__all__ = [
    "system_router",
    "monitors_router",
    "ack_router",
    "groups_router",
    "notifications_router",
]
