"""FastAPI routers package."""

from .health import router as health_router
from .stop import router as stop_router
from .tour import router as tour_router

__all__ = [
    "health_router",
    "stop_router",
    "tour_router",
]
