"""
Ranking Service

Ranks the students enrolled in a materia by their materia score, or by
their points in one of the materia's notebooks, and summarizes where a
student stands across everything they study.

Ranking:
1. Teacher = explicit teacher_id, else the materia's owning teacher
2. Students = active enrollments for (materia, teacher), plus the viewer
3. Per student, name and score are fetched concurrently
4. Order: score desc, name (case-insensitive) asc, student id asc

Rankings are cached for settings.RANKING_CACHE_TTL_SECONDS. The cached
snapshot holds only enrolled students; the viewer is flagged (and inserted
when missing) on every read.

Usage:
    from simonkey.services.progress.ranking import MateriaRankingService

    ranking = await service.get_materia_ranking("materia-1", "user-1")
    top = await service.get_top_ranking("materia-1", "user-1", limit=5)
    notebook = await service.get_notebook_ranking("notebook-1", "user-1")
    summary = await service.get_student_rankings("user-1")
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any, Optional

from simonkey.config import settings
from simonkey.db.stores import EnrollmentStore, MateriaStore, NotebookStore, UserProfileStore
from simonkey.enums.progress import ComputationStatus
from simonkey.middleware.error_handling import NotFoundError, ValidationError
from simonkey.models.progress import (
    MateriaRanking,
    NotebookRanking,
    RankingEntry,
    RankingPlacement,
    StudentRankingPosition,
    StudentRankingSummary,
    round_half_up,
)
from simonkey.services.progress.cancellation import (
    CancellationToken,
    ComputationCancelled,
    raise_if_cancelled,
)
from simonkey.services.progress.points import PointsCalculationService
from simonkey.services.progress.ranking_cache import (
    InMemoryRankingCache,
    RankingCache,
    ranking_cache_key,
)

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_NAME = "Usuario"

# (student_id, token) -> MateriaScore or NotebookPoints
Scorer = Callable[[str, Optional[CancellationToken]], Awaitable[Any]]


def display_name(profile) -> str:
    """display_name, then nombre, then email, then a generic name."""
    if profile is None:
        return DEFAULT_DISPLAY_NAME
    return profile.display_name or profile.nombre or profile.email or DEFAULT_DISPLAY_NAME


def rank_entries(entries: list[RankingEntry]) -> list[RankingEntry]:
    """Order entries and assign 1-based positions."""
    ordered = sorted(
        entries,
        key=lambda entry: (-entry.score, entry.name.casefold(), entry.student_id),
    )
    return [
        entry.model_copy(update={"position": position})
        for position, entry in enumerate(ordered, start=1)
    ]


def flag_current_user(
    entries: list[RankingEntry], current_user_id: Optional[str]
) -> list[RankingEntry]:
    return [
        entry.model_copy(
            update={"is_current_user": bool(current_user_id) and entry.student_id == current_user_id}
        )
        for entry in entries
    ]


def percentile(position: int, total: int) -> int:
    """round((total - position + 1) / total * 100), 0 for an empty ranking."""
    if total <= 0:
        return 0
    return round_half_up((total - position + 1) / total * 100)


def placement(entries: list[RankingEntry], student_id: str) -> Optional[RankingPlacement]:
    entry = next((e for e in entries if e.student_id == student_id), None)
    if entry is None:
        return None
    total = len(entries)
    return RankingPlacement(
        position=entry.position,
        total_students=total,
        percentile=percentile(entry.position, total),
    )


class MateriaRankingService:
    """
    Service for materia and notebook rankings.

    Public methods never raise for data or store errors; cancellation
    propagates, and unknown notebooks or users raise NotFoundError.
    """

    def __init__(
        self,
        points_service: PointsCalculationService,
        enrollment_store: EnrollmentStore,
        profile_store: UserProfileStore,
        materia_store: MateriaStore,
        notebook_store: NotebookStore,
        cache: Optional[RankingCache] = None,
        top_size: Optional[int] = None,
    ):
        self.points_service = points_service
        self.enrollment_store = enrollment_store
        self.profile_store = profile_store
        self.materia_store = materia_store
        self.notebook_store = notebook_store
        self.cache = cache if cache is not None else InMemoryRankingCache()
        self.top_size = top_size or settings.RANKING_TOP_SIZE

    # ===========================================
    # Materia rankings
    # ===========================================

    async def get_materia_ranking(
        self,
        materia_id: str,
        current_user_id: Optional[str],
        teacher_id: Optional[str] = None,
        token: Optional[CancellationToken] = None,
        force_refresh: bool = False,
    ) -> MateriaRanking:
        """
        Build (or read from cache) the ranking of a materia.

        Args:
            materia_id: Materia to rank.
            current_user_id: Viewer; always present in the result exactly once.
            teacher_id: Teacher whose enrollments count (defaults to the owner).
            token: Optional cancellation token.
            force_refresh: Skip the cache read.

        Returns:
            MateriaRanking; on failure a DEGRADED ranking holding only the
            viewer with score 0.
        """
        raise_if_cancelled(token)

        try:
            entries, resolved_teacher, cached, status = await self._rank(
                ranking_cache_key(materia_id, teacher_id),
                f"materia {materia_id}",
                materia_id,
                teacher_id,
                current_user_id,
                partial(self.points_service.calculate_materia_score, materia_id),
                token,
                force_refresh,
            )
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(f"Ranking failed for materia {materia_id}: {e}")
            return MateriaRanking(
                materia_id=materia_id,
                teacher_id=teacher_id,
                entries=self._viewer_only(current_user_id),
                status=ComputationStatus.DEGRADED,
            )

        return MateriaRanking(
            materia_id=materia_id,
            teacher_id=resolved_teacher,
            entries=entries,
            cached=cached,
            status=status,
        )

    async def get_top_ranking(
        self,
        materia_id: str,
        current_user_id: Optional[str],
        teacher_id: Optional[str] = None,
        limit: Optional[int] = None,
        token: Optional[CancellationToken] = None,
    ) -> MateriaRanking:
        """
        First `limit` entries of a ranking, always including the viewer.

        When the viewer is outside the top, their entry replaces the last
        slot (or is appended when fewer than `limit` entries exist).

        Raises:
            ValidationError: limit is smaller than 1.
        """
        if limit is None:
            limit = self.top_size
        if limit < 1:
            raise ValidationError(
                f"Ranking limit must be at least 1, got {limit}",
                details={"limit": limit},
            )
        ranking = await self.get_materia_ranking(materia_id, current_user_id, teacher_id, token)

        top = ranking.entries[:limit]
        if not any(entry.is_current_user for entry in top):
            viewer = next((e for e in ranking.entries if e.is_current_user), None)
            if viewer is not None:
                if len(top) < limit:
                    top.append(viewer)
                else:
                    top[-1] = viewer

        return ranking.model_copy(update={"entries": top})

    async def get_student_position(
        self,
        materia_id: str,
        student_id: str,
        teacher_id: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> StudentRankingPosition:
        """
        A student's position and percentile within a materia ranking.

        percentile = round((total - position + 1) / total * 100)
        """
        ranking = await self.get_materia_ranking(materia_id, student_id, teacher_id, token)
        found = placement(ranking.entries, student_id)

        if found is None:
            return StudentRankingPosition(
                materia_id=materia_id,
                student_id=student_id,
                total_students=len(ranking.entries),
            )

        return StudentRankingPosition(
            materia_id=materia_id,
            student_id=student_id,
            position=found.position,
            total_students=found.total_students,
            percentile=found.percentile,
        )

    # ===========================================
    # Notebook rankings
    # ===========================================

    async def get_notebook_ranking(
        self,
        notebook_id: str,
        current_user_id: Optional[str],
        teacher_id: Optional[str] = None,
        token: Optional[CancellationToken] = None,
        force_refresh: bool = False,
    ) -> NotebookRanking:
        """
        Rank the students of a notebook's materia by their notebook points.

        Students are the same as for the materia ranking; a notebook outside
        any materia ranks only the viewer.

        Raises:
            NotFoundError: The notebook does not exist.
        """
        raise_if_cancelled(token)

        try:
            notebook = await self.notebook_store.get_notebook(notebook_id)
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(f"Failed to load notebook {notebook_id} for ranking: {e}")
            return NotebookRanking(
                notebook_id=notebook_id,
                teacher_id=teacher_id,
                entries=self._viewer_only(current_user_id),
                status=ComputationStatus.DEGRADED,
            )

        if notebook is None:
            raise NotFoundError(
                f"Notebook {notebook_id} not found", details={"notebook_id": notebook_id}
            )

        return await self._notebook_ranking(
            notebook_id, notebook.materia_id, teacher_id, current_user_id, token, force_refresh
        )

    async def _notebook_ranking(
        self,
        notebook_id: str,
        materia_id: Optional[str],
        teacher_id: Optional[str],
        current_user_id: Optional[str],
        token: Optional[CancellationToken],
        force_refresh: bool = False,
    ) -> NotebookRanking:
        try:
            entries, resolved_teacher, cached, status = await self._rank(
                ranking_cache_key(materia_id or "-", teacher_id, notebook_id=notebook_id),
                f"notebook {notebook_id}",
                materia_id,
                teacher_id,
                current_user_id,
                partial(self.points_service.calculate_notebook_points, notebook_id),
                token,
                force_refresh,
            )
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(f"Ranking failed for notebook {notebook_id}: {e}")
            return NotebookRanking(
                notebook_id=notebook_id,
                materia_id=materia_id,
                teacher_id=teacher_id,
                entries=self._viewer_only(current_user_id),
                status=ComputationStatus.DEGRADED,
            )

        return NotebookRanking(
            notebook_id=notebook_id,
            materia_id=materia_id,
            teacher_id=resolved_teacher,
            entries=entries,
            cached=cached,
            status=status,
        )

    # ===========================================
    # Student summary
    # ===========================================

    async def get_student_rankings(
        self,
        user_id: str,
        token: Optional[CancellationToken] = None,
    ) -> StudentRankingSummary:
        """
        Position, total and percentile of a student in each active materia
        and in each notebook of those materias.

        global_percentile is the rounded mean of all percentiles (0 when
        there are none). Rankings that come back DEGRADED are left out and
        the summary is PARTIAL.

        Raises:
            NotFoundError: The user does not exist.
        """
        raise_if_cancelled(token)

        try:
            profile, enrollments = await asyncio.gather(
                self.profile_store.get_profile(user_id),
                self.enrollment_store.list_student_enrollments(user_id),
            )
        except (ComputationCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            logger.error(f"Failed to load enrollments for user {user_id}: {e}")
            return StudentRankingSummary(user_id=user_id, status=ComputationStatus.DEGRADED)

        if profile is None:
            raise NotFoundError(f"User {user_id} not found", details={"user_id": user_id})

        summary = StudentRankingSummary(user_id=user_id)
        statuses: list[ComputationStatus] = []

        for materia_id, teacher_id in enrollments:
            if materia_id in summary.materia_rankings:
                continue

            ranking = await self.get_materia_ranking(materia_id, user_id, teacher_id, token)
            statuses.append(self._record(summary.materia_rankings, materia_id, ranking, user_id))

            try:
                notebook_ids = await self.notebook_store.list_notebook_ids(materia_id)
            except (ComputationCancelled, asyncio.CancelledError):
                raise
            except Exception as e:
                logger.warning(f"Failed to list notebooks of materia {materia_id}: {e}")
                statuses.append(ComputationStatus.PARTIAL)
                continue

            rankings = await asyncio.gather(
                *[
                    self._notebook_ranking(notebook_id, materia_id, teacher_id, user_id, token)
                    for notebook_id in notebook_ids
                ]
            )
            for ranking in rankings:
                statuses.append(
                    self._record(summary.notebook_rankings, ranking.notebook_id, ranking, user_id)
                )

        percentiles = [
            p.percentile
            for p in [*summary.materia_rankings.values(), *summary.notebook_rankings.values()]
        ]
        if percentiles:
            summary.global_percentile = round_half_up(sum(percentiles) / len(percentiles))
        summary.status = ComputationStatus.worst(statuses)

        logger.info(
            f"Rankings for user {user_id}: {len(summary.materia_rankings)} materias, "
            f"{len(summary.notebook_rankings)} notebooks, "
            f"global percentile {summary.global_percentile}"
        )
        return summary

    @staticmethod
    def _record(
        placements: dict[str, RankingPlacement],
        key: str,
        ranking: MateriaRanking | NotebookRanking,
        user_id: str,
    ) -> ComputationStatus:
        """Store the user's placement unless the ranking is DEGRADED."""
        if ranking.status == ComputationStatus.DEGRADED:
            logger.warning(f"Skipping degraded ranking {key} in summary for user {user_id}")
            return ComputationStatus.PARTIAL
        found = placement(ranking.entries, user_id)
        if found is not None:
            placements[key] = found
        return ranking.status

    # ===========================================
    # Maintenance
    # ===========================================

    async def invalidate(self, materia_id: str) -> None:
        """Drop every cached ranking of a materia, its notebooks included."""
        try:
            await self.cache.invalidate_materia(materia_id)
            logger.info(f"Invalidated cached rankings for materia {materia_id}")
        except Exception as e:
            logger.warning(f"Failed to invalidate rankings for materia {materia_id}: {e}")

    async def refresh_all_rankings(self) -> int:
        """
        Recompute and re-cache the ranking of every materia with a teacher.

        Returns:
            Number of materias whose ranking was recomputed successfully.
        """
        try:
            materias = await self.materia_store.list_materias()
        except Exception as e:
            logger.error(f"Failed to list materias for ranking refresh: {e}")
            return 0

        refreshed = 0
        for materia in materias:
            ranking = await self.get_materia_ranking(materia.id, None, force_refresh=True)
            if ranking.status == ComputationStatus.DEGRADED:
                logger.warning(f"Ranking refresh degraded for materia {materia.id}")
            else:
                refreshed += 1

        logger.info(f"Refreshed rankings for {refreshed}/{len(materias)} materias")
        return refreshed

    # ===========================================
    # Helpers
    # ===========================================

    async def _rank(
        self,
        key: str,
        scope: str,
        materia_id: Optional[str],
        teacher_id: Optional[str],
        current_user_id: Optional[str],
        scorer: Scorer,
        token: Optional[CancellationToken],
        force_refresh: bool,
    ) -> tuple[list[RankingEntry], Optional[str], bool, ComputationStatus]:
        """
        Ranked and flagged entries, the resolved teacher, whether the
        snapshot came from the cache, and the ranking status.

        Store errors propagate to the caller.
        """
        resolved_teacher = await self._resolve_teacher(materia_id, teacher_id)

        if not force_refresh:
            snapshot = await self._cache_get(key)
            if snapshot is not None:
                entries, ok = await self._with_viewer(
                    snapshot, scope, scorer, current_user_id, token
                )
                status = ComputationStatus.COMPUTED if ok else ComputationStatus.PARTIAL
                return flag_current_user(entries, current_user_id), resolved_teacher, True, status

        student_ids: list[str] = []
        if resolved_teacher and materia_id:
            student_ids = await self.enrollment_store.list_active_student_ids(
                materia_id, resolved_teacher
            )
        raise_if_cancelled(token)

        candidate_ids = list(dict.fromkeys(student_ids))
        if current_user_id and current_user_id not in candidate_ids:
            candidate_ids.append(current_user_id)

        rows = await asyncio.gather(
            *[
                self._student_entry(scope, scorer, student_id, token)
                for student_id in candidate_ids
            ]
        )
        raise_if_cancelled(token)

        entries = [entry for entry, _ in rows]
        status = (
            ComputationStatus.COMPUTED
            if all(ok for _, ok in rows)
            else ComputationStatus.PARTIAL
        )

        if status == ComputationStatus.COMPUTED:
            enrolled = set(student_ids)
            await self._cache_set(
                key, rank_entries([e for e in entries if e.student_id in enrolled])
            )

        ranked = flag_current_user(rank_entries(entries), current_user_id)
        return ranked, resolved_teacher, False, status

    async def _resolve_teacher(
        self, materia_id: Optional[str], teacher_id: Optional[str]
    ) -> Optional[str]:
        if teacher_id:
            return teacher_id
        if not materia_id:
            return None
        materia = await self.materia_store.get_materia(materia_id)
        return materia.teacher_id if materia is not None else None

    async def _student_entry(
        self,
        scope: str,
        scorer: Scorer,
        student_id: str,
        token: Optional[CancellationToken],
    ) -> tuple[RankingEntry, bool]:
        """Unranked entry for one student, and whether its score was computed."""
        name, score = await asyncio.gather(
            self._display_name(student_id),
            scorer(student_id, token),
        )
        ok = score.status == ComputationStatus.COMPUTED
        if not ok:
            logger.warning(f"Score for student {student_id} in {scope} is {score.status.value}")
        entry = RankingEntry(position=0, student_id=student_id, name=name, score=score.score)
        return entry, ok

    async def _display_name(self, student_id: str) -> str:
        try:
            return display_name(await self.profile_store.get_profile(student_id))
        except Exception as e:
            logger.warning(f"Failed to load profile for user {student_id}: {e}")
            return DEFAULT_DISPLAY_NAME

    async def _with_viewer(
        self,
        snapshot: list[RankingEntry],
        scope: str,
        scorer: Scorer,
        current_user_id: Optional[str],
        token: Optional[CancellationToken],
    ) -> tuple[list[RankingEntry], bool]:
        """Insert the viewer into a cached snapshot when absent."""
        if not current_user_id or any(e.student_id == current_user_id for e in snapshot):
            return snapshot, True
        viewer, ok = await self._student_entry(scope, scorer, current_user_id, token)
        return rank_entries([*snapshot, viewer]), ok

    async def _cache_get(self, key: str) -> Optional[list[RankingEntry]]:
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Ranking cache read failed for {key}: {e}")
            return None

    async def _cache_set(self, key: str, entries: list[RankingEntry]) -> None:
        try:
            await self.cache.set(key, entries)
        except Exception as e:
            logger.warning(f"Ranking cache write failed for {key}: {e}")

    @staticmethod
    def _viewer_only(current_user_id: Optional[str]) -> list[RankingEntry]:
        """Entries of a degraded ranking: the viewer alone with score 0."""
        if not current_user_id:
            return []
        return [
            RankingEntry(
                position=1,
                student_id=current_user_id,
                name=DEFAULT_DISPLAY_NAME,
                score=0,
                is_current_user=True,
            )
        ]
