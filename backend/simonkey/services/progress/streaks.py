"""
Study Streak Tracking Service

Maintains the per-user study streak state machine and the weekly activity view.

Day boundaries are local calendar days in the learner's timezone
(users.timezone, falling back to settings.DEFAULT_TIMEZONE, then UTC), never
rolling 24 hour windows. last_study_date and study_history hold local dates.

Transitions (check_and_update):
- no activity today: keep the (healed) streak, no write
- already counted today: unchanged, no write
- last studied yesterday: streak + 1
- otherwise: streak restarts at 1

A stored streak whose last study date is more than one day old is healed to
0 when read.

Usage:
    from simonkey.services.progress.streaks import StudyStreakService

    service = StudyStreakService(StreakStore(), ActivityStore(), UserProfileStore())
    days = await service.check_and_update("user-1")
    bonus = service.streak_bonus(days)
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from simonkey.config import settings
from simonkey.db.stores import ActivityStore, StreakStore, UserProfileStore
from simonkey.enums.progress import ComputationStatus, Weekday
from simonkey.models.progress import StreakData, WeekStudyDays
from simonkey.services.progress.cancellation import ComputationCancelled

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

WEEKDAYS = list(Weekday)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def calculate_streak_bonus(days: int, bonus_per_day: Optional[int] = None) -> int:
    """
    Calculate the points bonus for a streak.

    Args:
        days: Current streak length in days.
        bonus_per_day: Points per streak day (defaults to settings).

    Returns:
        days * bonus_per_day, uncapped.
    """
    per_day = settings.STREAK_BONUS_PER_DAY if bonus_per_day is None else bonus_per_day
    return max(days, 0) * per_day


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """Resolve an IANA timezone name, None when empty or unknown."""
    if not name:
        return None
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r}")
        return None


def parse_history(raw: Any) -> list[date]:
    """Parse a stored study history (ISO strings or dates) into sorted dates."""
    days: set[date] = set()
    for item in raw or []:
        if isinstance(item, datetime):
            days.add(item.date())
        elif isinstance(item, date):
            days.add(item)
        else:
            try:
                days.add(date.fromisoformat(str(item)[:10]))
            except ValueError:
                logger.warning(f"Skipping malformed study history entry {item!r}")
    return sorted(days)


def _local_date(value: datetime, tz: tzinfo) -> date:
    """Local calendar date of a timestamp; naive timestamps are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz).date()


class StudyStreakService:
    """
    Service for study streaks and weekly study activity.

    The streak record is the only record this package writes.
    """

    def __init__(
        self,
        streak_store: StreakStore,
        activity_store: ActivityStore,
        profile_store: UserProfileStore,
        clock: Optional[Clock] = None,
        bonus_per_day: Optional[int] = None,
        history_days: Optional[int] = None,
        default_timezone: Optional[str] = None,
    ):
        """
        Initialize the streak service.

        Args:
            streak_store: Streak record persistence.
            activity_store: Range scans over activity sources.
            profile_store: User profiles (for timezones).
            clock: Returns the current UTC-aware time (injectable for tests).
            bonus_per_day: Points per streak day.
            history_days: Days of study history to keep.
            default_timezone: Timezone used when a user has none.
        """
        self.streak_store = streak_store
        self.activity_store = activity_store
        self.profile_store = profile_store
        self.clock = clock or _utc_now
        self.bonus_per_day = (
            settings.STREAK_BONUS_PER_DAY if bonus_per_day is None else bonus_per_day
        )
        self.history_days = history_days or settings.STREAK_HISTORY_DAYS
        self.default_timezone = resolve_timezone(
            default_timezone or settings.DEFAULT_TIMEZONE
        ) or timezone.utc

    # ===========================================
    # Public API
    # ===========================================

    def streak_bonus(self, days: int) -> int:
        return calculate_streak_bonus(days, self.bonus_per_day)

    async def get_user_streak(self, user_id: str) -> StreakData:
        """
        Read a user's streak, healing a broken streak to 0.

        Returns:
            StreakData; an empty record tagged DEGRADED on store failure.
        """
        try:
            tz = await self._user_timezone(user_id)
            return await self._read_and_heal(user_id, self._today(tz))
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(f"Failed to read streak for user {user_id}: {e}")
            return StreakData(user_id=user_id, status=ComputationStatus.DEGRADED)

    async def has_studied_today(self, user_id: str) -> bool:
        """Whether the user has any qualifying activity on their local today."""
        try:
            tz = await self._user_timezone(user_id)
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(f"Failed to resolve timezone for user {user_id}: {e}")
            return False
        return await self._studied_on(user_id, self._today(tz), tz)

    async def check_and_update(self, user_id: str) -> int:
        """
        Advance the streak if the user studied today.

        Idempotent within a local day.

        Returns:
            The current streak after the update; 0 on error.
        """
        try:
            tz = await self._user_timezone(user_id)
            today = self._today(tz)
            streak = await self._read_and_heal(user_id, today)

            if not await self._studied_on(user_id, today, tz):
                return streak.current_streak

            if streak.last_study_date == today:
                return streak.current_streak

            if streak.last_study_date == today - timedelta(days=1):
                new_streak = streak.current_streak + 1
            else:
                new_streak = 1

            history = self._merge_history(streak.study_history, today)
            await self.streak_store.upsert_streak(
                user_id,
                new_streak,
                last_study_date=today,
                study_history=[day.isoformat() for day in history],
            )
            logger.info(f"Streak for user {user_id} is now {new_streak} day(s)")
            return new_streak
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(f"Failed to update streak for user {user_id}: {e}")
            return 0

    async def get_week_study_days(self, user_id: str) -> WeekStudyDays:
        """
        Study activity for each day of the current Monday-anchored week.

        Returns:
            WeekStudyDays; all days False and tagged DEGRADED on error.
        """
        tz = self.default_timezone
        try:
            tz = await self._user_timezone(user_id)
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.warning(f"Failed to resolve timezone for user {user_id}: {e}")

        today = self._today(tz)
        week_start = today - timedelta(days=today.weekday())

        try:
            start, _ = self._day_bounds(week_start, tz)
            _, end = self._day_bounds(week_start + timedelta(days=6), tz)
            sessions, quizzes, mini_quizzes, games = await asyncio.gather(
                self.activity_store.list_study_sessions_between(user_id, start, end),
                self.activity_store.list_quiz_results_between(user_id, start, end),
                self.activity_store.list_mini_quiz_results_between(user_id, start, end),
                self.activity_store.list_game_sessions_between(user_id, start, end),
            )
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(f"Failed to load week activity for user {user_id}: {e}")
            return WeekStudyDays(week_start=week_start, status=ComputationStatus.DEGRADED)

        active_days: set[date] = set()
        for session in sessions:
            if (session.duration_seconds or 0) > 0:
                active_days.add(_local_date(session.start_time, tz))
        for result in [*quizzes, *mini_quizzes]:
            active_days.add(_local_date(result.timestamp, tz))
        for game in games:
            if (game.duration_seconds or 0) > 0:
                active_days.add(_local_date(game.timestamp, tz))

        flags = {
            weekday.value: (week_start + timedelta(days=offset)) in active_days
            for offset, weekday in enumerate(WEEKDAYS)
        }
        return WeekStudyDays(week_start=week_start, **flags)

    # ===========================================
    # Helpers
    # ===========================================

    async def _read_and_heal(self, user_id: str, today: date) -> StreakData:
        record = await self.streak_store.get_streak(user_id)
        if record is None:
            return StreakData(user_id=user_id)

        streak = StreakData(
            user_id=user_id,
            current_streak=record.current_streak or 0,
            last_study_date=record.last_study_date,
            study_history=parse_history(record.study_history),
            updated_at=record.updated_at,
        )

        if (
            streak.last_study_date is not None
            and streak.current_streak > 0
            and (today - streak.last_study_date).days > 1
        ):
            logger.info(
                f"Streak for user {user_id} broken since {streak.last_study_date}, resetting"
            )
            streak.current_streak = 0
            try:
                await self.streak_store.upsert_streak(user_id, 0)
            except Exception as e:
                logger.warning(f"Failed to persist streak reset for user {user_id}: {e}")
                streak.status = ComputationStatus.PARTIAL

        return streak

    async def _studied_on(self, user_id: str, day: date, tz: tzinfo) -> bool:
        """Check activity sources in order, stopping at the first hit."""
        start, end = self._day_bounds(day, tz)
        try:
            sessions = await self.activity_store.list_study_sessions_between(
                user_id, start, end
            )
            if any((s.duration_seconds or 0) > 0 for s in sessions):
                return True

            if await self.activity_store.list_quiz_results_between(user_id, start, end):
                return True

            if await self.activity_store.list_mini_quiz_results_between(user_id, start, end):
                return True

            games = await self.activity_store.list_game_sessions_between(user_id, start, end)
            return any((g.duration_seconds or 0) > 0 or g.completed for g in games)
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(f"Failed to check activity for user {user_id} on {day}: {e}")
            return False

    async def _user_timezone(self, user_id: str) -> tzinfo:
        profile = await self.profile_store.get_profile(user_id)
        if profile is not None:
            tz = resolve_timezone(profile.timezone)
            if tz is not None:
                return tz
        return self.default_timezone

    def _today(self, tz: tzinfo) -> date:
        return _local_date(self.clock(), tz)

    @staticmethod
    def _day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
        """UTC bounds of a local day: [midnight, next midnight)."""
        start = datetime.combine(day, time.min, tzinfo=tz)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    def _merge_history(self, history: list[date], today: date) -> list[date]:
        """Add today, dedupe, sort and drop days outside the history window."""
        cutoff = today - timedelta(days=self.history_days)
        return sorted(day for day in {*history, today} if day > cutoff)
