"""API routers."""

from soilsense.routers.auth import router as auth_router
from soilsense.routers.chat import router as chat_router
from soilsense.routers.reports import router as reports_router

__all__ = ["auth_router", "chat_router", "reports_router"]
