"""API Routers package."""

from simonkey.routers import health as health_router
from simonkey.routers import progress as progress_router
from simonkey.routers import rankings as rankings_router
from simonkey.routers import streaks as streaks_router

__all__ = ["health_router", "progress_router", "rankings_router", "streaks_router"]
