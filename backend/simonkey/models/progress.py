"""
Progress & Scoring API Models (Pydantic)

Result schemas for domain progress, notebook points, materia scores,
study streaks and rankings.

ARCHITECTURE NOTE:
    This file contains PYDANTIC models for service results and API responses.
    There is a corresponding SQLAlchemy file: simonkey/db/models.py

Every computed result carries a ComputationStatus so callers can tell a
genuine zero ("computed") from a default returned after a failure
("degraded") or a result where some sources were defaulted ("partial").
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from simonkey.enums.progress import ComputationStatus
from simonkey.models.base import StrictResponse


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer with halves going up.

    Python's round() uses banker's rounding (round(2.5) == 2); point and
    percentage values use the conventional rule instead.
    """
    return math.floor(value + 0.5)


# ===========================================
# Learning State
# ===========================================


class LearningSnapshot(BaseModel):
    """
    Spaced repetition values used for classification.

    has_data is False when the learner has no recorded state for the
    concept (or the lookup failed); such concepts are never started.
    """

    model_config = ConfigDict(frozen=True)

    repetitions: int = Field(0, ge=0)
    interval: float = Field(1.0, ge=0)
    ease_factor: float = Field(2.5, ge=0)
    has_data: bool = False

    @classmethod
    def empty(cls) -> LearningSnapshot:
        """Default state for a concept without learning data."""
        return cls()

    @classmethod
    def from_row(cls, row: Any) -> LearningSnapshot:
        """Build from a LearningState row, filling missing values with defaults."""
        if row is None:
            return cls.empty()
        return cls(
            repetitions=row.repetitions or 0,
            interval=row.interval if row.interval is not None else 1.0,
            ease_factor=row.ease_factor if row.ease_factor is not None else 2.5,
            has_data=True,
        )


# ===========================================
# Domain Progress
# ===========================================


class DomainProgress(StrictResponse):
    """
    Mastery breakdown of a notebook's concepts for one learner.

    Invariant: dominated + learning + not_started == total.
    """

    notebook_id: str
    total: int = 0
    dominated: int = 0
    learning: int = 0
    not_started: int = 0
    failed_reads: int = 0  # Learning-state reads that fell back to defaults
    status: ComputationStatus = ComputationStatus.COMPUTED
    error: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def percentage(self) -> int:
        """Dominated concepts as a rounded percentage of total."""
        if self.total <= 0:
            return 0
        return round_half_up(self.dominated / self.total * 100)


# ===========================================
# Points
# ===========================================


class NotebookPoints(StrictResponse):
    """
    Composite score of one learner in one notebook.

    score = puntos_repaso_inteligente + puntos_estudio_activo
            + puntos_estudio_libre + puntos_quiz + puntos_juegos + streak_bonus
    """

    notebook_id: str
    puntos_repaso_inteligente: int = 0  # Smart study
    puntos_estudio_activo: int = 0  # Voice recognition
    puntos_estudio_libre: int = 0  # Free study
    puntos_quiz: int = 0
    puntos_juegos: int = 0
    streak_bonus: int = 0
    score: int = 0
    porcentaje_dominio: int = 0
    status: ComputationStatus = ComputationStatus.COMPUTED
    degraded_sources: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class MateriaScore(StrictResponse):
    """Sum of notebook scores for one learner across a materia."""

    materia_id: str
    user_id: str
    score: int = 0
    notebook_scores: dict[str, int] = Field(default_factory=dict)
    status: ComputationStatus = ComputationStatus.COMPUTED
    error: Optional[str] = None


# ===========================================
# Streaks
# ===========================================


class StreakData(StrictResponse):
    """
    Study streak of one learner.

    Dates are local calendar dates in the learner's timezone.
    """

    user_id: str
    current_streak: int = 0  # Days
    last_study_date: Optional[date] = None
    study_history: list[date] = Field(default_factory=list)
    updated_at: Optional[datetime] = None
    status: ComputationStatus = ComputationStatus.COMPUTED


class StreakCheckResponse(StrictResponse):
    """Result of a streak check-and-update."""

    user_id: str
    current_streak: int
    streak_bonus: int


class WeekStudyDays(StrictResponse):
    """Which days of the current Monday-anchored week had study activity."""

    week_start: date
    monday: bool = False
    tuesday: bool = False
    wednesday: bool = False
    thursday: bool = False
    friday: bool = False
    saturday: bool = False
    sunday: bool = False
    status: ComputationStatus = ComputationStatus.COMPUTED


# ===========================================
# Rankings
# ===========================================


class RankingEntry(StrictResponse):
    """One student's row in a materia ranking."""

    position: int
    student_id: str
    name: str
    score: int
    is_current_user: bool = False


class MateriaRanking(StrictResponse):
    """Ordered ranking of a materia's enrolled students."""

    materia_id: str
    teacher_id: Optional[str] = None
    entries: list[RankingEntry] = Field(default_factory=list)
    cached: bool = False
    status: ComputationStatus = ComputationStatus.COMPUTED


class StudentRankingPosition(StrictResponse):
    """A student's place in a materia ranking."""

    materia_id: str
    student_id: str
    position: Optional[int] = None  # None when the student is not ranked
    total_students: int = 0
    percentile: int = 0


class NotebookRanking(StrictResponse):
    """Ordered ranking of a materia's enrolled students by notebook points."""

    notebook_id: str
    materia_id: Optional[str] = None
    teacher_id: Optional[str] = None
    entries: list[RankingEntry] = Field(default_factory=list)
    cached: bool = False
    status: ComputationStatus = ComputationStatus.COMPUTED


class RankingPlacement(StrictResponse):
    """Position of one student within a single ranking."""

    position: int
    total_students: int
    percentile: int


class StudentRankingSummary(StrictResponse):
    """
    A student's placement in every materia and notebook they study.

    Rankings that could not be computed are left out and mark the
    summary PARTIAL.
    """

    user_id: str
    materia_rankings: dict[str, RankingPlacement] = Field(default_factory=dict)
    notebook_rankings: dict[str, RankingPlacement] = Field(default_factory=dict)
    global_percentile: int = 0  # Mean of every percentile above
    status: ComputationStatus = ComputationStatus.COMPUTED
