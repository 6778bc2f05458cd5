"""
Rankings API Router

Endpoints for materia and notebook rankings.

Endpoints:
- GET /api/rankings/materias/{materia_id} - Full ranking
- GET /api/rankings/materias/{materia_id}/top - Top N, always including the viewer
- GET /api/rankings/materias/{materia_id}/students/{student_id}/position - Position and percentile
- DELETE /api/rankings/materias/{materia_id}/cache - Drop cached rankings
- GET /api/rankings/notebooks/{notebook_id} - Ranking by notebook points
- GET /api/rankings/students/{user_id} - A student's placement in every materia and notebook
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from simonkey.dependencies import RequireAPIKey, get_engine
from simonkey.middleware.error_handling import handle_endpoint_errors
from simonkey.models.progress import (
    MateriaRanking,
    NotebookRanking,
    StudentRankingPosition,
    StudentRankingSummary,
)
from simonkey.services.progress.engine import ProgressEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/rankings", tags=["rankings"], dependencies=[RequireAPIKey])


@router.get("/materias/{materia_id}", response_model=MateriaRanking)
@handle_endpoint_errors("Get materia ranking")
async def get_materia_ranking(
    materia_id: str,
    current_user_id: str = Query(..., min_length=1),
    teacher_id: Optional[str] = Query(None),
    engine: ProgressEngine = Depends(get_engine),
) -> MateriaRanking:
    """Ranking of the materia's enrolled students plus the viewer."""
    return await engine.rankings.get_materia_ranking(materia_id, current_user_id, teacher_id)


@router.get("/materias/{materia_id}/top", response_model=MateriaRanking)
@handle_endpoint_errors("Get top ranking")
async def get_top_ranking(
    materia_id: str,
    current_user_id: str = Query(..., min_length=1),
    teacher_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, le=100),
    engine: ProgressEngine = Depends(get_engine),
) -> MateriaRanking:
    """
    Top of the ranking.

    If the viewer is not in the top, their entry takes the last slot.
    A limit below 1 is rejected with a validation_error body.
    """
    return await engine.rankings.get_top_ranking(
        materia_id, current_user_id, teacher_id, limit=limit
    )


@router.get(
    "/materias/{materia_id}/students/{student_id}/position",
    response_model=StudentRankingPosition,
)
@handle_endpoint_errors("Get student position")
async def get_student_position(
    materia_id: str,
    student_id: str,
    teacher_id: Optional[str] = Query(None),
    engine: ProgressEngine = Depends(get_engine),
) -> StudentRankingPosition:
    return await engine.rankings.get_student_position(materia_id, student_id, teacher_id)


@router.delete("/materias/{materia_id}/cache", status_code=status.HTTP_204_NO_CONTENT)
@handle_endpoint_errors("Invalidate ranking cache")
async def invalidate_ranking_cache(
    materia_id: str,
    engine: ProgressEngine = Depends(get_engine),
) -> None:
    """Drop every cached ranking of a materia so the next read recomputes it."""
    await engine.rankings.invalidate(materia_id)


@router.get("/notebooks/{notebook_id}", response_model=NotebookRanking)
@handle_endpoint_errors("Get notebook ranking")
async def get_notebook_ranking(
    notebook_id: str,
    current_user_id: str = Query(..., min_length=1),
    teacher_id: Optional[str] = Query(None),
    engine: ProgressEngine = Depends(get_engine),
) -> NotebookRanking:
    """Ranking of the notebook's materia students by notebook points (404 if unknown)."""
    return await engine.rankings.get_notebook_ranking(notebook_id, current_user_id, teacher_id)


@router.get("/students/{user_id}", response_model=StudentRankingSummary)
@handle_endpoint_errors("Get student rankings")
async def get_student_rankings(
    user_id: str,
    engine: ProgressEngine = Depends(get_engine),
) -> StudentRankingSummary:
    return await engine.rankings.get_student_rankings(user_id)
