"""Deals API routers."""

from .deals import router as deals_router
from .reps import router as reps_router
from .uploads import router as uploads_router

__all__ = ["deals_router", "reps_router", "uploads_router"]
