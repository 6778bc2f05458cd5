"""
Streaks API Router

Endpoints for the study streak of a user.

Endpoints:
- GET /api/streaks/{user_id} - Current streak (healed when broken)
- POST /api/streaks/{user_id}/check - Advance the streak if studied today
- GET /api/streaks/{user_id}/week - Study days of the current week
"""

import logging

from fastapi import APIRouter, Depends

from simonkey.dependencies import RequireAPIKey, get_engine
from simonkey.middleware.error_handling import handle_endpoint_errors
from simonkey.models.progress import StreakCheckResponse, StreakData, WeekStudyDays
from simonkey.services.progress.engine import ProgressEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/streaks", tags=["streaks"], dependencies=[RequireAPIKey])


@router.get("/{user_id}", response_model=StreakData)
@handle_endpoint_errors("Get streak")
async def get_streak(
    user_id: str,
    engine: ProgressEngine = Depends(get_engine),
) -> StreakData:
    return await engine.streaks.get_user_streak(user_id)


@router.post("/{user_id}/check", response_model=StreakCheckResponse)
@handle_endpoint_errors("Check streak")
async def check_streak(
    user_id: str,
    engine: ProgressEngine = Depends(get_engine),
) -> StreakCheckResponse:
    """
    Advance the streak if the user has studied today.

    Safe to call repeatedly; a day is counted at most once.
    """
    days = await engine.streaks.check_and_update(user_id)
    return StreakCheckResponse(
        user_id=user_id,
        current_streak=days,
        streak_bonus=engine.streaks.streak_bonus(days),
    )


@router.get("/{user_id}/week", response_model=WeekStudyDays)
@handle_endpoint_errors("Get week study days")
async def get_week_study_days(
    user_id: str,
    engine: ProgressEngine = Depends(get_engine),
) -> WeekStudyDays:
    return await engine.streaks.get_week_study_days(user_id)
