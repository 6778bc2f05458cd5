"""
SQLAlchemy Database Models for the Progress Engine

Each table mirrors one collection of the learning platform. Identifiers are
opaque strings so records created by the web client keep their ids.

Tables:
- users: learner and teacher profiles (display name resolution, timezone)
- materias: subjects owned by a teacher
- notebooks: ordered concept collections, optionally grouped under a materia
- concepts: term/definition learning units
- learning_states: per user x concept spaced repetition bookkeeping
- study_sessions: smart, voice recognition and free study sessions
- quiz_results / mini_quiz_results: completed quiz attempts
- quiz_stats: per user x notebook quiz score singleton
- game_sessions / game_points: minigame activity and accumulated points
- study_streaks: per user streak singleton
- enrollments: student x teacher x materia relationships

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    There is a corresponding Pydantic file: simonkey/models/progress.py

    Data flows: Store → SQLAlchemy row → Service → Pydantic → API
"""

from datetime import date, datetime, timezone
from typing import Optional
import uuid


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    """Return a random string identifier."""
    return uuid.uuid4().hex


from sqlalchemy import (  # noqa: E402
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column  # noqa: E402

from simonkey.db.base import Base  # noqa: E402


# ===========================================
# People & Subjects
# ===========================================


class UserProfile(Base):
    """
    Learner or teacher profile.

    Attributes:
        id: Opaque user identifier from the auth provider.
        display_name: Preferred name shown in rankings.
        nombre: Legacy name field, used when display_name is empty.
        email: Contact address, last fallback for display.
        timezone: IANA timezone name used for calendar-day boundaries.
            Null falls back to settings.DEFAULT_TIMEZONE.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(200))
    nombre: Mapped[Optional[str]] = mapped_column(String(200))
    email: Mapped[Optional[str]] = mapped_column(String(320))
    timezone: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class Materia(Base):
    """
    Subject grouping several notebooks and enrolled students.

    Attributes:
        id: Subject identifier.
        name: Display name of the subject.
        teacher_id: Owner of the subject, used when no teacher is given
            explicitly for a ranking.
    """

    __tablename__ = "materias"

    id: Mapped[str] = mapped_column(String(128), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200))
    teacher_id: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class Enrollment(Base):
    """Active or past enrollment of a student in a teacher's materia."""

    __tablename__ = "enrollments"

    id: Mapped[str] = mapped_column(String(128), primary_key=True, default=_new_id)
    student_id: Mapped[str] = mapped_column(String(128), index=True)
    teacher_id: Mapped[str] = mapped_column(String(128), index=True)
    materia_id: Mapped[str] = mapped_column(ForeignKey("materias.id"), index=True)
    status: Mapped[str] = mapped_column(String(20), default="active")
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


# ===========================================
# Notebooks & Concepts
# ===========================================


class Notebook(Base):
    """Named, ordered collection of concepts."""

    __tablename__ = "notebooks"

    id: Mapped[str] = mapped_column(String(128), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(300))
    owner_id: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    materia_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("materias.id"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class Concept(Base):
    """
    Single term/definition learning unit.

    Concepts belong to exactly one notebook and are never shared.

    Attributes:
        position: Ordering inside the notebook.
    """

    __tablename__ = "concepts"

    id: Mapped[str] = mapped_column(String(128), primary_key=True, default=_new_id)
    notebook_id: Mapped[str] = mapped_column(ForeignKey("notebooks.id"), index=True)
    term: Mapped[str] = mapped_column(Text)
    definition: Mapped[str] = mapped_column(Text)
    position: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class LearningState(Base):
    """
    Spaced repetition bookkeeping for one user and one concept.

    Created lazily on first review and updated on every review event.

    Attributes:
        repetitions: Count of successful recalls.
        interval: Days until the next expected review.
        ease_factor: Recall difficulty multiplier.
        last_module: Study mode that last touched the concept.
        next_review: When the concept is next due.
    """

    __tablename__ = "learning_states"
    __table_args__ = (
        UniqueConstraint("user_id", "concept_id", name="uq_learning_state_user_concept"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    concept_id: Mapped[str] = mapped_column(String(128), index=True)
    notebook_id: Mapped[Optional[str]] = mapped_column(String(128))
    repetitions: Mapped[int] = mapped_column(Integer, default=0)
    interval: Mapped[float] = mapped_column(Float, default=1.0)
    ease_factor: Mapped[float] = mapped_column(Float, default=2.5)
    last_module: Mapped[Optional[str]] = mapped_column(String(50))
    next_review: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )


# ===========================================
# Activity
# ===========================================


class StudySession(Base):
    """
    One study activity in a notebook.

    Attributes:
        mode: smart, voice_recognition or free (see StudyMode).
        intensity: Smart mode intensity (warm_up, progress, rocket).
        session_score / final_session_score: Voice recognition scores.
        validated: Whether the session passed the end-of-session validation.
        duration_seconds: Active time; zero for abandoned sessions.
    """

    __tablename__ = "study_sessions"

    id: Mapped[str] = mapped_column(String(128), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    notebook_id: Mapped[str] = mapped_column(String(128), index=True)
    mode: Mapped[str] = mapped_column(String(30), index=True)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, index=True
    )
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    duration_seconds: Mapped[float] = mapped_column(Float, default=0.0)
    intensity: Mapped[Optional[str]] = mapped_column(String(20))
    session_score: Mapped[Optional[float]] = mapped_column(Float)
    final_session_score: Mapped[Optional[float]] = mapped_column(Float)
    validated: Mapped[bool] = mapped_column(Boolean, default=False)


class QuizResult(Base):
    """A completed notebook quiz."""

    __tablename__ = "quiz_results"

    id: Mapped[str] = mapped_column(String(128), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    notebook_id: Mapped[Optional[str]] = mapped_column(String(128))
    score: Mapped[float] = mapped_column(Float, default=0.0)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, index=True
    )


class MiniQuizResult(Base):
    """A completed mini quiz."""

    __tablename__ = "mini_quiz_results"

    id: Mapped[str] = mapped_column(String(128), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    notebook_id: Mapped[Optional[str]] = mapped_column(String(128))
    score: Mapped[float] = mapped_column(Float, default=0.0)
    passed: Mapped[bool] = mapped_column(Boolean, default=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, index=True
    )


class QuizStats(Base):
    """
    Quiz score singleton for one user and one notebook.

    Overwritten by each quiz. total_score is preferred; max_score is kept
    for records written before total_score existed.
    """

    __tablename__ = "quiz_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "notebook_id", name="uq_quiz_stats_user_notebook"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    notebook_id: Mapped[str] = mapped_column(String(128), index=True)
    max_score: Mapped[Optional[int]] = mapped_column(Integer)
    total_score: Mapped[Optional[int]] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )


class GameSession(Base):
    """A minigame session."""

    __tablename__ = "game_sessions"

    id: Mapped[str] = mapped_column(String(128), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    notebook_id: Mapped[Optional[str]] = mapped_column(String(128))
    game_type: Mapped[Optional[str]] = mapped_column(String(50))
    duration_seconds: Mapped[float] = mapped_column(Float, default=0.0)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    timestamp: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=_utc_now, index=True
    )


class GamePoints(Base):
    """Accumulated minigame points for one user and one notebook."""

    __tablename__ = "game_points"
    __table_args__ = (
        UniqueConstraint("user_id", "notebook_id", name="uq_game_points_user_notebook"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    notebook_id: Mapped[str] = mapped_column(String(128), index=True)
    total_points: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )


# ===========================================
# Streaks
# ===========================================


class StudyStreak(Base):
    """
    Study streak singleton for one user.

    Attributes:
        current_streak: Consecutive local calendar days with activity.
        last_study_date: Local calendar date of the last counted day.
        study_history: ISO dates of recent study days (last 30 days).
        updated_at: Server timestamp of the last write.
    """

    __tablename__ = "study_streaks"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_study_date: Mapped[Optional[date]] = mapped_column(Date)
    study_history: Mapped[list] = mapped_column(JSON, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )
