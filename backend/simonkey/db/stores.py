"""
Data Stores

Thin read/write access to the collections the progress engine consumes.
Every call opens its own AsyncSession from the session factory, so stores
can be awaited concurrently (asyncio.gather) without sharing a session.

Usage:
    from simonkey.db.stores import ConceptStore, LearningStateStore

    concepts = await ConceptStore().list_concepts("notebook-1")
    state = await LearningStateStore().get_learning_state("user-1", concepts[0].id)
"""

import logging
from datetime import date, datetime
from typing import Any, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from simonkey.db.base import async_session_maker
from simonkey.db.models import (
    Concept,
    Enrollment,
    GamePoints,
    GameSession,
    LearningState,
    Materia,
    MiniQuizResult,
    Notebook,
    QuizResult,
    QuizStats,
    StudySession,
    StudyStreak,
    UserProfile,
)
from simonkey.enums.progress import EnrollmentStatus

logger = logging.getLogger(__name__)


class BaseStore:
    """Common session handling for stores."""

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        """
        Initialize the store.

        Args:
            session_maker: Session factory (defaults to the application factory).
        """
        self.session_maker = session_maker or async_session_maker

    async def _scalars(self, query) -> list[Any]:
        async with self.session_maker() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def _scalar_one(self, query) -> Optional[Any]:
        async with self.session_maker() as db:
            result = await db.execute(query)
            return result.scalar_one_or_none()


# ===========================================
# Concepts & Learning State
# ===========================================


class ConceptStore(BaseStore):
    """Concepts of a notebook."""

    async def list_concepts(self, notebook_id: str) -> list[Concept]:
        """List a notebook's concepts in notebook order."""
        query = (
            select(Concept)
            .where(Concept.notebook_id == notebook_id)
            .order_by(Concept.position, Concept.created_at)
        )
        return await self._scalars(query)


class LearningStateStore(BaseStore):
    """Per user x concept spaced repetition state."""

    async def get_learning_state(
        self, user_id: str, concept_id: str
    ) -> Optional[LearningState]:
        """Point lookup keyed by (user_id, concept_id)."""
        query = select(LearningState).where(
            LearningState.user_id == user_id,
            LearningState.concept_id == concept_id,
        )
        return await self._scalar_one(query)


# ===========================================
# Scored Activity
# ===========================================


class StudySessionStore(BaseStore):
    """Study sessions used for points."""

    async def list_sessions(
        self,
        user_id: str,
        notebook_id: str,
        mode: str,
        validated_only: bool = False,
        limit: Optional[int] = None,
    ) -> list[StudySession]:
        """
        Scan sessions by (user_id, notebook_id, mode).

        Args:
            user_id: Learner identifier.
            notebook_id: Notebook identifier.
            mode: Study mode value (see StudyMode).
            validated_only: Only return sessions flagged validated.
            limit: Maximum number of sessions to return.

        Returns:
            Matching sessions, most recent first.
        """
        query = select(StudySession).where(
            StudySession.user_id == user_id,
            StudySession.notebook_id == notebook_id,
            StudySession.mode == mode,
        )
        if validated_only:
            query = query.where(StudySession.validated.is_(True))
        query = query.order_by(StudySession.start_time.desc())
        if limit:
            query = query.limit(limit)
        return await self._scalars(query)


class QuizStatsStore(BaseStore):
    """Quiz score singleton per user x notebook."""

    async def get_quiz_stats(self, user_id: str, notebook_id: str) -> Optional[QuizStats]:
        query = select(QuizStats).where(
            QuizStats.user_id == user_id,
            QuizStats.notebook_id == notebook_id,
        )
        return await self._scalar_one(query)


class GamePointsProvider(Protocol):
    """Source of minigame points for a notebook."""

    async def get_notebook_points(self, user_id: str, notebook_id: str) -> int:
        ...


class GamePointsStore(BaseStore):
    """Table-backed GamePointsProvider."""

    async def get_notebook_points(self, user_id: str, notebook_id: str) -> int:
        """Total game points for (user_id, notebook_id), 0 when none recorded."""
        query = select(GamePoints.total_points).where(
            GamePoints.user_id == user_id,
            GamePoints.notebook_id == notebook_id,
        )
        total = await self._scalar_one(query)
        return total or 0


# ===========================================
# Daily Activity (streak qualification)
# ===========================================


class ActivityStore(BaseStore):
    """
    Range scans over every activity source that counts as studying.

    All ranges are half-open: start <= timestamp < end.
    """

    async def list_study_sessions_between(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[StudySession]:
        query = select(StudySession).where(
            StudySession.user_id == user_id,
            StudySession.start_time >= start,
            StudySession.start_time < end,
        )
        return await self._scalars(query)

    async def list_quiz_results_between(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[QuizResult]:
        query = select(QuizResult).where(
            QuizResult.user_id == user_id,
            QuizResult.timestamp >= start,
            QuizResult.timestamp < end,
        )
        return await self._scalars(query)

    async def list_mini_quiz_results_between(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[MiniQuizResult]:
        query = select(MiniQuizResult).where(
            MiniQuizResult.user_id == user_id,
            MiniQuizResult.timestamp >= start,
            MiniQuizResult.timestamp < end,
        )
        return await self._scalars(query)

    async def list_game_sessions_between(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[GameSession]:
        query = select(GameSession).where(
            GameSession.user_id == user_id,
            GameSession.timestamp.isnot(None),
            GameSession.timestamp >= start,
            GameSession.timestamp < end,
        )
        return await self._scalars(query)


class StreakStore(BaseStore):
    """Streak singleton per user."""

    async def get_streak(self, user_id: str) -> Optional[StudyStreak]:
        return await self._scalar_one(
            select(StudyStreak).where(StudyStreak.user_id == user_id)
        )

    async def upsert_streak(
        self,
        user_id: str,
        current_streak: int,
        last_study_date: Optional[date] = None,
        study_history: Optional[list[str]] = None,
    ) -> None:
        """
        Upsert-with-merge of a streak record.

        Only current_streak is always written; last_study_date and
        study_history are left untouched when None. updated_at is assigned
        by the database server.
        """
        values: dict[str, Any] = {"current_streak": current_streak}
        if last_study_date is not None:
            values["last_study_date"] = last_study_date
        if study_history is not None:
            values["study_history"] = study_history

        stmt = insert(StudyStreak).values(
            user_id=user_id,
            current_streak=current_streak,
            last_study_date=last_study_date,
            study_history=study_history or [],
            updated_at=func.now(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[StudyStreak.user_id],
            set_={**values, "updated_at": func.now()},
        )

        async with self.session_maker() as db:
            await db.execute(stmt)
            await db.commit()


# ===========================================
# Subjects, Enrollment & Profiles
# ===========================================


class NotebookStore(BaseStore):
    """Notebooks grouped under materias."""

    async def list_notebook_ids(self, materia_id: str) -> list[str]:
        query = (
            select(Notebook.id)
            .where(Notebook.materia_id == materia_id)
            .order_by(Notebook.created_at)
        )
        return await self._scalars(query)

    async def get_notebook(self, notebook_id: str) -> Optional[Notebook]:
        return await self._scalar_one(select(Notebook).where(Notebook.id == notebook_id))


class MateriaStore(BaseStore):
    """Subjects and their owning teacher."""

    async def get_materia(self, materia_id: str) -> Optional[Materia]:
        return await self._scalar_one(select(Materia).where(Materia.id == materia_id))

    async def list_materias(self) -> list[Materia]:
        """All materias that have an owning teacher."""
        return await self._scalars(
            select(Materia).where(Materia.teacher_id.isnot(None)).order_by(Materia.id)
        )


class EnrollmentStore(BaseStore):
    """Student enrollments."""

    async def list_active_student_ids(self, materia_id: str, teacher_id: str) -> list[str]:
        """Distinct students with an active enrollment in (materia_id, teacher_id)."""
        query = (
            select(Enrollment.student_id)
            .where(
                Enrollment.materia_id == materia_id,
                Enrollment.teacher_id == teacher_id,
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
            )
            .distinct()
        )
        return await self._scalars(query)

    async def list_student_enrollments(self, student_id: str) -> list[tuple[str, str]]:
        """Distinct (materia_id, teacher_id) pairs the student is actively enrolled in."""
        query = (
            select(Enrollment.materia_id, Enrollment.teacher_id)
            .where(
                Enrollment.student_id == student_id,
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
            )
            .distinct()
            .order_by(Enrollment.materia_id, Enrollment.teacher_id)
        )
        async with self.session_maker() as db:
            result = await db.execute(query)
            return [(row.materia_id, row.teacher_id) for row in result.all()]


class UserProfileStore(BaseStore):
    """User profiles for display names and timezones."""

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return await self._scalar_one(select(UserProfile).where(UserProfile.id == user_id))
