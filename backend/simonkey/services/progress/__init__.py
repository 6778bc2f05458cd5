"""Progress and scoring services: mastery, streaks, points and rankings."""

from simonkey.services.progress.cancellation import (
    CancellationToken,
    ComputationCancelled,
)
from simonkey.services.progress.classification import classify_learning_state
from simonkey.services.progress.domain_progress import DomainProgressService
from simonkey.services.progress.engine import ProgressEngine
from simonkey.services.progress.points import PointsCalculationService
from simonkey.services.progress.ranking import MateriaRankingService
from simonkey.services.progress.ranking_cache import (
    InMemoryRankingCache,
    RankingCache,
    RedisRankingCache,
    create_ranking_cache,
)
from simonkey.services.progress.streaks import StudyStreakService, calculate_streak_bonus

__all__ = [
    "CancellationToken",
    "ComputationCancelled",
    "DomainProgressService",
    "InMemoryRankingCache",
    "MateriaRankingService",
    "PointsCalculationService",
    "ProgressEngine",
    "RankingCache",
    "RedisRankingCache",
    "StudyStreakService",
    "calculate_streak_bonus",
    "classify_learning_state",
    "create_ranking_cache",
]
