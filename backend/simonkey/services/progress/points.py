"""
Points Calculation Service

Aggregates a learner's points in a notebook from five activity sources plus
the study streak bonus, and sums notebook scores into a materia score.

Point sources:
- Smart study: validated "smart" sessions weighted by intensity
  (warm_up 0.5, progress 1.0, rocket 2.0, anything else 0.5)
- Active study: validated "voice_recognition" sessions by session score
- Free study: 0.05 per "free" session
- Quiz: total_score from quiz stats, falling back to max_score
- Games: total game points for the notebook

Session sums are scaled by settings.SESSION_POINTS_SCALE and rounded half up.
The streak bonus is added to every notebook's score.

Usage:
    from simonkey.services.progress.points import PointsCalculationService

    points = await service.calculate_notebook_points("notebook-1", "user-1")
    print(points.score, points.status)
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Optional

from simonkey.config import settings
from simonkey.db.stores import (
    GamePointsProvider,
    NotebookStore,
    QuizStatsStore,
    StudySessionStore,
)
from simonkey.enums.progress import ComputationStatus, StudyIntensity, StudyMode
from simonkey.models.progress import (
    MateriaScore,
    NotebookPoints,
    round_half_up,
)
from simonkey.services.progress.cancellation import (
    CancellationToken,
    ComputationCancelled,
    raise_if_cancelled,
)
from simonkey.services.progress.domain_progress import DomainProgressService
from simonkey.services.progress.streaks import StudyStreakService

logger = logging.getLogger(__name__)


class PointsCalculationService:
    """
    Service for notebook points and materia scores.

    Public methods never raise for data or store errors; failures are
    reported through the result's status.
    """

    def __init__(
        self,
        session_store: StudySessionStore,
        quiz_stats_store: QuizStatsStore,
        game_points: GamePointsProvider,
        streak_service: StudyStreakService,
        domain_progress_service: DomainProgressService,
        notebook_store: NotebookStore,
        session_limit: Optional[int] = None,
        scale: Optional[int] = None,
    ):
        self.session_store = session_store
        self.quiz_stats_store = quiz_stats_store
        self.game_points = game_points
        self.streak_service = streak_service
        self.domain_progress_service = domain_progress_service
        self.notebook_store = notebook_store
        self.session_limit = session_limit or settings.SESSION_QUERY_LIMIT
        self.scale = scale or settings.SESSION_POINTS_SCALE

    # ===========================================
    # Per-source sums
    # ===========================================

    @staticmethod
    def intensity_weight(intensity: Optional[str]) -> float:
        """Weight of one smart study session; unknown intensities get the default."""
        try:
            return settings.INTENSITY_POINTS[StudyIntensity(intensity)]
        except (KeyError, ValueError):
            return settings.DEFAULT_INTENSITY_POINTS

    @staticmethod
    def smart_study_points(sessions: Iterable[Any]) -> float:
        """Sum of intensity weights of smart study sessions."""
        return sum(
            PointsCalculationService.intensity_weight(session.intensity) for session in sessions
        )

    @staticmethod
    def voice_study_points(sessions: Iterable[Any]) -> float:
        """Sum of session scores, falling back to the final session score."""
        return sum(
            session.session_score or session.final_session_score or 0
            for session in sessions
        )

    @staticmethod
    def free_study_points(sessions: Iterable[Any]) -> float:
        return len(list(sessions)) * settings.FREE_STUDY_POINTS_PER_SESSION

    @staticmethod
    def quiz_points(stats: Any) -> int:
        """total_score when recorded, else max_score, else 0."""
        if stats is None:
            return 0
        if stats.total_score is not None:
            return int(stats.total_score)
        return int(stats.max_score or 0)

    # ===========================================
    # Notebook points
    # ===========================================

    async def calculate_notebook_points(
        self,
        notebook_id: str,
        user_id: str,
        token: Optional[CancellationToken] = None,
    ) -> NotebookPoints:
        """
        Calculate a learner's points in one notebook.

        Args:
            notebook_id: Notebook to score.
            user_id: Learner.
            token: Optional cancellation token.

        Returns:
            NotebookPoints; all zeros tagged DEGRADED when a session or quiz
            read fails, PARTIAL when game points or the streak were defaulted.
        """
        raise_if_cancelled(token)

        try:
            (
                smart_sessions,
                voice_sessions,
                free_sessions,
                quiz_stats,
                game_points,
                streak_days,
                domain,
            ) = await asyncio.gather(
                self.session_store.list_sessions(
                    user_id,
                    notebook_id,
                    StudyMode.SMART.value,
                    validated_only=True,
                    limit=self.session_limit,
                ),
                self.session_store.list_sessions(
                    user_id,
                    notebook_id,
                    StudyMode.VOICE_RECOGNITION.value,
                    validated_only=True,
                    limit=self.session_limit,
                ),
                self.session_store.list_sessions(
                    user_id, notebook_id, StudyMode.FREE.value, limit=self.session_limit
                ),
                self.quiz_stats_store.get_quiz_stats(user_id, notebook_id),
                self._game_points(user_id, notebook_id),
                self._streak_days(user_id),
                self.domain_progress_service.compute_domain_progress(
                    notebook_id, user_id, token
                ),
            )
            raise_if_cancelled(token)

            degraded_sources = [
                source
                for source, value in (("games", game_points), ("streak", streak_days))
                if value is None
            ]
            if domain.status != ComputationStatus.COMPUTED:
                degraded_sources.append("domain_progress")

            points = NotebookPoints(
                notebook_id=notebook_id,
                puntos_repaso_inteligente=round_half_up(
                    self.smart_study_points(smart_sessions) * self.scale
                ),
                puntos_estudio_activo=round_half_up(
                    self.voice_study_points(voice_sessions) * self.scale
                ),
                puntos_estudio_libre=round_half_up(
                    self.free_study_points(free_sessions) * self.scale
                ),
                puntos_quiz=self.quiz_points(quiz_stats),
                puntos_juegos=game_points or 0,
                streak_bonus=self.streak_service.streak_bonus(streak_days or 0),
                porcentaje_dominio=domain.percentage,
                degraded_sources=degraded_sources,
                status=(
                    ComputationStatus.PARTIAL if degraded_sources else ComputationStatus.COMPUTED
                ),
            )
            points.score = (
                points.puntos_repaso_inteligente
                + points.puntos_estudio_activo
                + points.puntos_estudio_libre
                + points.puntos_quiz
                + points.puntos_juegos
                + points.streak_bonus
            )
            return points

        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(
                f"Points calculation failed for notebook {notebook_id}, user {user_id}: {e}"
            )
            return NotebookPoints(
                notebook_id=notebook_id,
                status=ComputationStatus.DEGRADED,
                error=str(e),
            )

    async def _game_points(self, user_id: str, notebook_id: str) -> Optional[int]:
        """Game points, None when the provider failed."""
        try:
            return int(await self.game_points.get_notebook_points(user_id, notebook_id) or 0)
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.warning(
                f"Game points unavailable for notebook {notebook_id}, user {user_id}: {e}"
            )
            return None

    async def _streak_days(self, user_id: str) -> Optional[int]:
        """Current streak, None when it could not be read."""
        streak = await self.streak_service.get_user_streak(user_id)
        if streak.status == ComputationStatus.DEGRADED:
            return None
        return streak.current_streak

    # ===========================================
    # Materia score
    # ===========================================

    async def calculate_materia_score(
        self,
        materia_id: str,
        user_id: str,
        token: Optional[CancellationToken] = None,
    ) -> MateriaScore:
        """
        Sum a learner's notebook scores across a materia.

        Returns:
            MateriaScore; 0 tagged DEGRADED when the notebook listing fails.
        """
        raise_if_cancelled(token)

        try:
            notebook_ids = await self.notebook_store.list_notebook_ids(materia_id)
            if not notebook_ids:
                return MateriaScore(materia_id=materia_id, user_id=user_id)

            results = await asyncio.gather(
                *[
                    self.calculate_notebook_points(notebook_id, user_id, token)
                    for notebook_id in notebook_ids
                ]
            )
            raise_if_cancelled(token)
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(
                f"Materia score failed for materia {materia_id}, user {user_id}: {e}"
            )
            return MateriaScore(
                materia_id=materia_id,
                user_id=user_id,
                status=ComputationStatus.DEGRADED,
                error=str(e),
            )

        return MateriaScore(
            materia_id=materia_id,
            user_id=user_id,
            score=sum(result.score for result in results),
            notebook_scores={result.notebook_id: result.score for result in results},
            status=ComputationStatus.worst([result.status for result in results]),
        )
