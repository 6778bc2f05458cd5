"""
Progress Engine

Wires the stores and services together. One engine is built per process
(in the FastAPI lifespan or a script) and passed to its consumers.

Usage:
    from simonkey.services.progress.engine import ProgressEngine

    engine = ProgressEngine.create()
    points = await engine.points.calculate_notebook_points("notebook-1", "user-1")
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from simonkey.db.stores import (
    ActivityStore,
    ConceptStore,
    EnrollmentStore,
    GamePointsProvider,
    GamePointsStore,
    LearningStateStore,
    MateriaStore,
    NotebookStore,
    QuizStatsStore,
    StreakStore,
    StudySessionStore,
    UserProfileStore,
)
from simonkey.services.progress.domain_progress import DomainProgressService
from simonkey.services.progress.points import PointsCalculationService
from simonkey.services.progress.ranking import MateriaRankingService
from simonkey.services.progress.ranking_cache import RankingCache, create_ranking_cache
from simonkey.services.progress.streaks import Clock, StudyStreakService


@dataclass
class ProgressEngine:
    """Container for the progress services."""

    domain_progress: DomainProgressService
    streaks: StudyStreakService
    points: PointsCalculationService
    rankings: MateriaRankingService

    @classmethod
    def create(
        cls,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        cache: Optional[RankingCache] = None,
        clock: Optional[Clock] = None,
        game_points: Optional[GamePointsProvider] = None,
    ) -> "ProgressEngine":
        """
        Build an engine over the database.

        Args:
            session_maker: Session factory (defaults to the application factory).
            cache: Ranking cache (defaults to settings.RANKING_CACHE_BACKEND).
            clock: UTC clock for streak day boundaries.
            game_points: Game points provider (defaults to the game_points table).
        """
        profile_store = UserProfileStore(session_maker)
        notebook_store = NotebookStore(session_maker)

        domain_progress = DomainProgressService(
            ConceptStore(session_maker), LearningStateStore(session_maker)
        )
        streaks = StudyStreakService(
            StreakStore(session_maker),
            ActivityStore(session_maker),
            profile_store,
            clock=clock,
        )
        points = PointsCalculationService(
            StudySessionStore(session_maker),
            QuizStatsStore(session_maker),
            game_points or GamePointsStore(session_maker),
            streaks,
            domain_progress,
            notebook_store,
        )
        rankings = MateriaRankingService(
            points,
            EnrollmentStore(session_maker),
            profile_store,
            MateriaStore(session_maker),
            notebook_store,
            cache=cache if cache is not None else create_ranking_cache(),
        )
        return cls(
            domain_progress=domain_progress,
            streaks=streaks,
            points=points,
            rankings=rankings,
        )
