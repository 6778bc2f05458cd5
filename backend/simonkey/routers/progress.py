"""
Progress API Router

Endpoints for per-notebook mastery and points and per-materia scores.

Endpoints:
- GET /api/progress/notebooks/{notebook_id}/domain - Mastery breakdown
- GET /api/progress/notebooks/{notebook_id}/points - Notebook points
- GET /api/progress/materias/{materia_id}/score - Materia score
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from simonkey.dependencies import RequireAPIKey, get_engine
from simonkey.middleware.error_handling import handle_endpoint_errors
from simonkey.models.progress import DomainProgress, MateriaScore, NotebookPoints
from simonkey.services.progress.engine import ProgressEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/progress", tags=["progress"], dependencies=[RequireAPIKey])


@router.get("/notebooks/{notebook_id}/domain", response_model=DomainProgress)
@handle_endpoint_errors("Get domain progress")
async def get_domain_progress(
    notebook_id: str,
    user_id: Optional[str] = Query(None, description="Learner (omit for an empty breakdown)"),
    engine: ProgressEngine = Depends(get_engine),
) -> DomainProgress:
    """Dominated, learning and not started concept counts for a notebook."""
    return await engine.domain_progress.compute_domain_progress(notebook_id, user_id)


@router.get("/notebooks/{notebook_id}/points", response_model=NotebookPoints)
@handle_endpoint_errors("Get notebook points")
async def get_notebook_points(
    notebook_id: str,
    user_id: str = Query(..., min_length=1),
    engine: ProgressEngine = Depends(get_engine),
) -> NotebookPoints:
    """
    Points breakdown of a learner in a notebook.

    A status of "degraded" means the values are defaults after a failure.
    """
    return await engine.points.calculate_notebook_points(notebook_id, user_id)


@router.get("/materias/{materia_id}/score", response_model=MateriaScore)
@handle_endpoint_errors("Get materia score")
async def get_materia_score(
    materia_id: str,
    user_id: str = Query(..., min_length=1),
    engine: ProgressEngine = Depends(get_engine),
) -> MateriaScore:
    """Sum of a learner's notebook scores across a materia."""
    return await engine.points.calculate_materia_score(materia_id, user_id)
