"""Pydantic models for the application."""

from simonkey.models.progress import (
    DomainProgress,
    LearningSnapshot,
    MateriaRanking,
    MateriaScore,
    NotebookPoints,
    NotebookRanking,
    RankingEntry,
    RankingPlacement,
    StreakCheckResponse,
    StreakData,
    StudentRankingPosition,
    StudentRankingSummary,
    WeekStudyDays,
    round_half_up,
)

__all__ = [
    "DomainProgress",
    "LearningSnapshot",
    "MateriaRanking",
    "MateriaScore",
    "NotebookPoints",
    "NotebookRanking",
    "RankingEntry",
    "RankingPlacement",
    "StreakCheckResponse",
    "StreakData",
    "StudentRankingPosition",
    "StudentRankingSummary",
    "WeekStudyDays",
    "round_half_up",
]
