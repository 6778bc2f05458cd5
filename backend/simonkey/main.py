"""
Simonkey Progress API

FastAPI application exposing domain progress, points, streaks and rankings.

Lifespan:
    startup  -> setup_logging(), build the ProgressEngine, start the ranking
                refresh scheduler
    shutdown -> stop the scheduler, close the Redis pool

Run:
    uvicorn simonkey.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from simonkey.config import settings
from simonkey.db.redis import close_redis_pool
from simonkey.middleware.error_handling import setup_error_handling
from simonkey.models.base import ErrorDetail
from simonkey.routers import health_router, progress_router, rankings_router, streaks_router
from simonkey.services.progress.engine import ProgressEngine
from simonkey.services.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Reduce noise from SQLAlchemy and the scheduler (unless DEBUG)
    if not debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
        logging.getLogger("apscheduler").setLevel(logging.WARNING)


def create_app(engine: Optional[ProgressEngine] = None, enable_scheduler: Optional[bool] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        engine: Prebuilt engine (tests); built in the lifespan when None.
        enable_scheduler: Run the ranking refresh job (defaults to settings).
    """
    run_scheduler = (
        settings.RANKING_REFRESH_ENABLED if enable_scheduler is None else enable_scheduler
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.DEBUG)
        app.state.engine = engine or ProgressEngine.create()
        if run_scheduler:
            start_scheduler(app.state.engine)
        logger.info(f"{settings.APP_NAME} started")
        yield
        if run_scheduler:
            stop_scheduler()
        await close_redis_pool()
        logger.info(f"{settings.APP_NAME} stopped")

    app = FastAPI(
        title=settings.APP_NAME,
        lifespan=lifespan,
        responses={500: {"model": ErrorDetail}},
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_error_handling(app, debug=settings.DEBUG)

    app.include_router(health_router.router)
    app.include_router(progress_router.router)
    app.include_router(streaks_router.router)
    app.include_router(rankings_router.router)

    return app


app = create_app()
