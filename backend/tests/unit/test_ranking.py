"""
Unit Tests for the Ranking Service and Ranking Cache

These tests verify:
- Ordering (score, then name, then id) and 1-based positions
- Teacher resolution and student set construction
- The viewer appears exactly once and is flagged
- Cache hits, viewer insertion on hit, TTL expiry and invalidation
- Top-N viewer replacement and student percentiles
- Degraded and partial rankings
- Notebook rankings and the per-student summary
- NotFoundError for unknown notebooks or users, ValidationError for bad limits
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from simonkey.enums.progress import ComputationStatus
from simonkey.middleware.error_handling import NotFoundError, ValidationError
from simonkey.models.progress import MateriaScore, NotebookPoints, RankingEntry
from simonkey.services.progress.cancellation import CancellationToken, ComputationCancelled
from simonkey.services.progress.ranking import (
    MateriaRankingService,
    display_name,
    percentile,
    rank_entries,
)
from simonkey.services.progress.ranking_cache import (
    InMemoryRankingCache,
    create_ranking_cache,
    ranking_cache_key,
    RedisRankingCache,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def scores() -> dict:
    return {"s1": 100, "s2": 300, "s3": 100}


@pytest.fixture
def names() -> dict:
    return {"s1": "beto", "s2": "Carla", "s3": "Ana", "viewer": "Vera"}


@pytest.fixture
def notebook_scores() -> dict:
    return {"s1": 50, "s2": 10, "s3": 70}


@pytest.fixture
def points_service(scores, notebook_scores) -> MagicMock:
    service = MagicMock()

    async def calculate_materia_score(materia_id, user_id, token=None):
        return MateriaScore(materia_id=materia_id, user_id=user_id, score=scores.get(user_id, 0))

    async def calculate_notebook_points(notebook_id, user_id, token=None):
        return NotebookPoints(notebook_id=notebook_id, score=notebook_scores.get(user_id, 0))

    service.calculate_materia_score = AsyncMock(side_effect=calculate_materia_score)
    service.calculate_notebook_points = AsyncMock(side_effect=calculate_notebook_points)
    return service


@pytest.fixture
def enrollment_store() -> MagicMock:
    store = MagicMock()
    store.list_active_student_ids = AsyncMock(return_value=["s1", "s2", "s3"])
    store.list_student_enrollments = AsyncMock(return_value=[("mat-1", "t-1")])
    return store


@pytest.fixture
def profile_store(names) -> MagicMock:
    store = MagicMock()

    async def get_profile(user_id):
        if user_id not in names:
            return None
        return SimpleNamespace(display_name=names[user_id], nombre=None, email=None)

    store.get_profile = AsyncMock(side_effect=get_profile)
    return store


@pytest.fixture
def materia_store() -> MagicMock:
    store = MagicMock()
    store.get_materia = AsyncMock(return_value=SimpleNamespace(id="mat-1", teacher_id="t-1"))
    store.list_materias = AsyncMock(return_value=[])
    return store


@pytest.fixture
def notebook_store() -> MagicMock:
    store = MagicMock()
    store.get_notebook = AsyncMock(return_value=SimpleNamespace(id="nb-1", materia_id="mat-1"))
    store.list_notebook_ids = AsyncMock(return_value=["nb-1"])
    return store


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> InMemoryRankingCache:
    return InMemoryRankingCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def service(
    points_service, enrollment_store, profile_store, materia_store, notebook_store, cache
) -> MateriaRankingService:
    return MateriaRankingService(
        points_service,
        enrollment_store,
        profile_store,
        materia_store,
        notebook_store,
        cache=cache,
        top_size=5,
    )


def ids(ranking) -> list[str]:
    return [entry.student_id for entry in ranking.entries]


class TestOrdering:
    """Test suite for ranking order."""

    def test_rank_entries_breaks_ties_by_name_then_id(self) -> None:
        entries = [
            RankingEntry(position=0, student_id="b", name="Zoe", score=10),
            RankingEntry(position=0, student_id="c", name="ana", score=10),
            RankingEntry(position=0, student_id="a", name="Ana", score=10),
            RankingEntry(position=0, student_id="d", name="Max", score=50),
        ]

        ranked = rank_entries(entries)

        assert [e.student_id for e in ranked] == ["d", "a", "c", "b"]
        assert [e.position for e in ranked] == [1, 2, 3, 4]

    def test_display_name_fallbacks(self) -> None:
        assert display_name(SimpleNamespace(display_name="D", nombre="N", email="e")) == "D"
        assert display_name(SimpleNamespace(display_name="", nombre="N", email="e")) == "N"
        assert display_name(SimpleNamespace(display_name=None, nombre=None, email="e")) == "e"
        assert display_name(None) == "Usuario"


class TestGetMateriaRanking:
    """Test suite for get_materia_ranking."""

    @pytest.mark.asyncio
    async def test_orders_students(self, service) -> None:
        ranking = await service.get_materia_ranking("mat-1", "s1")

        assert ids(ranking) == ["s2", "s3", "s1"]
        assert [e.position for e in ranking.entries] == [1, 2, 3]
        assert [e.is_current_user for e in ranking.entries] == [False, False, True]
        assert ranking.teacher_id == "t-1"
        assert ranking.status == ComputationStatus.COMPUTED
        assert ranking.cached is False

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, service, enrollment_store) -> None:
        token = CancellationToken()
        token.cancel("viewer left")

        with pytest.raises(ComputationCancelled):
            await service.get_materia_ranking("mat-1", "s1", token=token)
        enrollment_store.list_active_student_ids.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancellation_is_not_degraded(self, service, points_service) -> None:
        points_service.calculate_materia_score.side_effect = ComputationCancelled()

        with pytest.raises(ComputationCancelled):
            await service.get_materia_ranking("mat-1", "s1")

    @pytest.mark.asyncio
    async def test_resolves_teacher_from_materia(self, service, enrollment_store) -> None:
        await service.get_materia_ranking("mat-1", "s1")

        enrollment_store.list_active_student_ids.assert_awaited_once_with("mat-1", "t-1")

    @pytest.mark.asyncio
    async def test_explicit_teacher(self, service, enrollment_store, materia_store) -> None:
        await service.get_materia_ranking("mat-1", "s1", teacher_id="t-9")

        enrollment_store.list_active_student_ids.assert_awaited_once_with("mat-1", "t-9")
        materia_store.get_materia.assert_not_called()

    @pytest.mark.asyncio
    async def test_viewer_added_once(self, service, enrollment_store) -> None:
        enrollment_store.list_active_student_ids.return_value = ["s1", "s1", "s2"]

        ranking = await service.get_materia_ranking("mat-1", "viewer")

        assert sorted(ids(ranking)) == ["s1", "s2", "viewer"]
        viewer = [e for e in ranking.entries if e.is_current_user]
        assert len(viewer) == 1
        assert viewer[0].name == "Vera"
        assert viewer[0].score == 0

    @pytest.mark.asyncio
    async def test_no_teacher_ranks_only_viewer(
        self, service, materia_store, enrollment_store
    ) -> None:
        materia_store.get_materia.return_value = None

        ranking = await service.get_materia_ranking("mat-1", "viewer")

        assert ids(ranking) == ["viewer"]
        enrollment_store.list_active_student_ids.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_student_score_counts_zero(self, service, points_service, scores) -> None:
        async def calculate_materia_score(materia_id, user_id, token=None):
            if user_id == "s2":
                return MateriaScore(
                    materia_id=materia_id, user_id=user_id, status=ComputationStatus.DEGRADED
                )
            return MateriaScore(materia_id=materia_id, user_id=user_id, score=scores[user_id])

        points_service.calculate_materia_score.side_effect = calculate_materia_score

        ranking = await service.get_materia_ranking("mat-1", "s1")

        assert ids(ranking) == ["s3", "s1", "s2"]
        assert ranking.status == ComputationStatus.PARTIAL

    @pytest.mark.asyncio
    async def test_partial_rankings_are_not_cached(
        self, service, points_service, enrollment_store
    ) -> None:
        points_service.calculate_materia_score.side_effect = (
            lambda materia_id, user_id, token=None: MateriaScore(
                materia_id=materia_id, user_id=user_id, status=ComputationStatus.PARTIAL
            )
        )

        await service.get_materia_ranking("mat-1", "s1")
        await service.get_materia_ranking("mat-1", "s1")

        assert enrollment_store.list_active_student_ids.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_is_degraded_with_viewer(self, service, enrollment_store) -> None:
        enrollment_store.list_active_student_ids.side_effect = ConnectionError("down")

        ranking = await service.get_materia_ranking("mat-1", "viewer")

        assert ranking.status == ComputationStatus.DEGRADED
        assert len(ranking.entries) == 1
        assert ranking.entries[0].student_id == "viewer"
        assert ranking.entries[0].score == 0
        assert ranking.entries[0].is_current_user is True


class TestRankingCache:
    """Test suite for cached rankings."""

    @pytest.mark.asyncio
    async def test_second_read_is_cached(self, service, enrollment_store) -> None:
        await service.get_materia_ranking("mat-1", "s1")
        ranking = await service.get_materia_ranking("mat-1", "s2")

        assert ranking.cached is True
        assert enrollment_store.list_active_student_ids.await_count == 1
        assert [e.is_current_user for e in ranking.entries] == [True, False, False]

    @pytest.mark.asyncio
    async def test_snapshot_excludes_unenrolled_viewer(self, service) -> None:
        await service.get_materia_ranking("mat-1", "viewer")
        ranking = await service.get_materia_ranking("mat-1", "s1")

        assert ranking.cached is True
        assert ids(ranking) == ["s2", "s3", "s1"]

    @pytest.mark.asyncio
    async def test_cache_hit_inserts_missing_viewer(self, service, scores) -> None:
        await service.get_materia_ranking("mat-1", "s1")
        scores["viewer"] = 200

        ranking = await service.get_materia_ranking("mat-1", "viewer")

        assert ranking.cached is True
        assert ids(ranking) == ["s2", "viewer", "s3", "s1"]
        assert ranking.entries[1].position == 2
        assert ranking.entries[1].is_current_user is True

    @pytest.mark.asyncio
    async def test_cache_hit_reports_resolved_teacher(self, service) -> None:
        await service.get_materia_ranking("mat-1", "s1")

        ranking = await service.get_materia_ranking("mat-1", "s2")

        assert ranking.cached is True
        assert ranking.teacher_id == "t-1"

    @pytest.mark.asyncio
    async def test_cache_hit_with_failed_viewer_is_partial(
        self, service, points_service, scores
    ) -> None:
        await service.get_materia_ranking("mat-1", "s1")

        async def calculate_materia_score(materia_id, user_id, token=None):
            if user_id == "viewer":
                return MateriaScore(
                    materia_id=materia_id, user_id=user_id, status=ComputationStatus.DEGRADED
                )
            return MateriaScore(materia_id=materia_id, user_id=user_id, score=scores[user_id])

        points_service.calculate_materia_score.side_effect = calculate_materia_score

        ranking = await service.get_materia_ranking("mat-1", "viewer")

        assert ranking.cached is True
        assert ranking.status == ComputationStatus.PARTIAL
        assert ids(ranking)[-1] == "viewer"

    @pytest.mark.asyncio
    async def test_ttl_expiry(self, service, enrollment_store, clock) -> None:
        await service.get_materia_ranking("mat-1", "s1")
        clock.now += 301

        ranking = await service.get_materia_ranking("mat-1", "s1")

        assert ranking.cached is False
        assert enrollment_store.list_active_student_ids.await_count == 2

    @pytest.mark.asyncio
    async def test_force_refresh(self, service, enrollment_store) -> None:
        await service.get_materia_ranking("mat-1", "s1")
        await service.get_materia_ranking("mat-1", "s1", force_refresh=True)

        assert enrollment_store.list_active_student_ids.await_count == 2

    @pytest.mark.asyncio
    async def test_invalidate(self, service, cache, enrollment_store) -> None:
        await service.get_materia_ranking("mat-1", "s1")
        await service.get_materia_ranking("mat-1", "s1", teacher_id="t-1")

        await service.invalidate("mat-1")

        assert await cache.get(ranking_cache_key("mat-1")) is None
        assert await cache.get(ranking_cache_key("mat-1", "t-1")) is None

    @pytest.mark.asyncio
    async def test_cache_keys(self) -> None:
        assert ranking_cache_key("mat-1") == "mat-1:auto"
        assert ranking_cache_key("mat-1", "t-1") == "mat-1:t-1"
        assert ranking_cache_key("mat-1", notebook_id="nb-1") == "mat-1:auto:notebook:nb-1"

    @pytest.mark.asyncio
    async def test_invalidate_drops_notebook_rankings(self, service, cache) -> None:
        key = ranking_cache_key("mat-1", notebook_id="nb-1")
        await service.get_notebook_ranking("nb-1", "s1")
        assert await cache.get(key) is not None

        await service.invalidate("mat-1")

        assert await cache.get(key) is None

    @pytest.mark.asyncio
    async def test_in_memory_cache_prunes_expired_keys_on_write(self, cache, clock) -> None:
        entry = RankingEntry(position=1, student_id="s1", name="A", score=1)
        await cache.set("mat-1:auto", [entry])
        clock.now += 301

        await cache.set("mat-2:auto", [entry])

        assert list(cache._entries) == ["mat-2:auto"]

    @pytest.mark.asyncio
    async def test_in_memory_cache_keeps_live_keys_on_write(self, cache, clock) -> None:
        entry = RankingEntry(position=1, student_id="s1", name="A", score=1)
        await cache.set("mat-1:auto", [entry])
        clock.now += 100

        await cache.set("mat-2:auto", [entry])

        assert sorted(cache._entries) == ["mat-1:auto", "mat-2:auto"]

    @pytest.mark.asyncio
    async def test_in_memory_cache_returns_copies(self, cache) -> None:
        entry = RankingEntry(position=1, student_id="s1", name="A", score=1)
        await cache.set("k", [entry])

        cached = await cache.get("k")
        cached[0].is_current_user = True

        assert (await cache.get("k"))[0].is_current_user is False

    def test_create_ranking_cache(self) -> None:
        assert isinstance(create_ranking_cache("memory"), InMemoryRankingCache)
        assert isinstance(create_ranking_cache("redis"), RedisRankingCache)
        assert isinstance(create_ranking_cache("unknown"), InMemoryRankingCache)


class TestTopRanking:
    """Test suite for get_top_ranking."""

    @pytest.mark.asyncio
    async def test_viewer_replaces_last_slot(self, service, enrollment_store, scores) -> None:
        students = [f"p{i}" for i in range(6)]
        enrollment_store.list_active_student_ids.return_value = students
        scores.update({student: 1000 - i for i, student in enumerate(students)})

        top = await service.get_top_ranking("mat-1", "viewer")

        assert ids(top) == ["p0", "p1", "p2", "p3", "viewer"]
        assert top.entries[-1].position == 7
        assert top.entries[-1].is_current_user is True

    @pytest.mark.asyncio
    async def test_viewer_inside_top_is_unchanged(self, service) -> None:
        top = await service.get_top_ranking("mat-1", "s2", limit=2)

        assert ids(top) == ["s2", "s3"]

    @pytest.mark.asyncio
    async def test_custom_limit(self, service) -> None:
        top = await service.get_top_ranking("mat-1", "s1", limit=2)

        assert ids(top) == ["s2", "s1"]

    @pytest.mark.asyncio
    async def test_limit_below_one_is_rejected(self, service, enrollment_store) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await service.get_top_ranking("mat-1", "s1", limit=0)

        assert exc_info.value.status_code == 422
        assert exc_info.value.details == {"limit": 0}
        enrollment_store.list_active_student_ids.assert_not_called()


class TestStudentPosition:
    """Test suite for get_student_position."""

    @pytest.mark.asyncio
    async def test_percentile(self, service, enrollment_store, scores) -> None:
        enrollment_store.list_active_student_ids.return_value = ["s1", "s2", "s3", "s4"]
        scores["s4"] = 50

        position = await service.get_student_position("mat-1", "s3")

        # s2 (300), s3 "Ana" (100), s1 "beto" (100), s4 (50)
        assert position.position == 2
        assert position.total_students == 4
        assert position.percentile == 75

    @pytest.mark.asyncio
    async def test_top_student(self, service) -> None:
        position = await service.get_student_position("mat-1", "s2")

        assert position.position == 1
        assert position.percentile == 100

    def test_percentile_helper(self) -> None:
        assert percentile(1, 3) == 100
        assert percentile(2, 3) == 67
        assert percentile(3, 3) == 33
        assert percentile(1, 0) == 0


class TestRefreshAllRankings:
    """Test suite for refresh_all_rankings."""

    @pytest.mark.asyncio
    async def test_refreshes_every_materia(self, service, materia_store, cache) -> None:
        materia_store.list_materias.return_value = [
            SimpleNamespace(id="mat-1", teacher_id="t-1"),
            SimpleNamespace(id="mat-2", teacher_id="t-1"),
        ]

        assert await service.refresh_all_rankings() == 2
        assert await cache.get(ranking_cache_key("mat-1")) is not None
        assert await cache.get(ranking_cache_key("mat-2")) is not None

    @pytest.mark.asyncio
    async def test_listing_failure(self, service, materia_store) -> None:
        materia_store.list_materias.side_effect = ConnectionError("down")

        assert await service.refresh_all_rankings() == 0


class TestNotebookRanking:
    """Test suite for get_notebook_ranking."""

    @pytest.mark.asyncio
    async def test_orders_by_notebook_points(self, service, points_service) -> None:
        ranking = await service.get_notebook_ranking("nb-1", "s1")

        assert ids(ranking) == ["s3", "s1", "s2"]
        assert [e.score for e in ranking.entries] == [70, 50, 10]
        assert ranking.entries[1].is_current_user is True
        assert ranking.materia_id == "mat-1"
        assert ranking.teacher_id == "t-1"
        assert ranking.status == ComputationStatus.COMPUTED
        points_service.calculate_materia_score.assert_not_called()

    @pytest.mark.asyncio
    async def test_uses_materia_enrollments(self, service, enrollment_store) -> None:
        await service.get_notebook_ranking("nb-1", "viewer", teacher_id="t-9")

        enrollment_store.list_active_student_ids.assert_awaited_once_with("mat-1", "t-9")

    @pytest.mark.asyncio
    async def test_unknown_notebook(self, service, notebook_store) -> None:
        notebook_store.get_notebook.return_value = None

        with pytest.raises(NotFoundError) as exc_info:
            await service.get_notebook_ranking("nb-404", "s1")

        assert exc_info.value.status_code == 404
        assert exc_info.value.details == {"notebook_id": "nb-404"}

    @pytest.mark.asyncio
    async def test_notebook_without_materia_ranks_only_viewer(
        self, service, notebook_store, enrollment_store, materia_store
    ) -> None:
        notebook_store.get_notebook.return_value = SimpleNamespace(id="nb-2", materia_id=None)

        ranking = await service.get_notebook_ranking("nb-2", "s1")

        assert ids(ranking) == ["s1"]
        enrollment_store.list_active_student_ids.assert_not_called()
        materia_store.get_materia.assert_not_called()

    @pytest.mark.asyncio
    async def test_lookup_failure_is_degraded(self, service, notebook_store) -> None:
        notebook_store.get_notebook.side_effect = ConnectionError("down")

        ranking = await service.get_notebook_ranking("nb-1", "viewer")

        assert ranking.status == ComputationStatus.DEGRADED
        assert ids(ranking) == ["viewer"]

    @pytest.mark.asyncio
    async def test_second_read_is_cached(self, service, enrollment_store) -> None:
        await service.get_notebook_ranking("nb-1", "s1")
        ranking = await service.get_notebook_ranking("nb-1", "s2")

        assert ranking.cached is True
        assert enrollment_store.list_active_student_ids.await_count == 1
        assert [e.is_current_user for e in ranking.entries] == [False, False, True]


class TestStudentRankings:
    """Test suite for get_student_rankings."""

    @pytest.mark.asyncio
    async def test_summary(self, service) -> None:
        summary = await service.get_student_rankings("s1")

        # Materia: s2 (300), s3 "Ana" (100), s1 "beto" (100)
        assert summary.materia_rankings["mat-1"].position == 3
        assert summary.materia_rankings["mat-1"].total_students == 3
        assert summary.materia_rankings["mat-1"].percentile == 33
        # Notebook: s3 (70), s1 (50), s2 (10)
        assert summary.notebook_rankings["nb-1"].position == 2
        assert summary.notebook_rankings["nb-1"].percentile == 67
        assert summary.global_percentile == 50
        assert summary.status == ComputationStatus.COMPUTED

    @pytest.mark.asyncio
    async def test_no_enrollments(self, service, enrollment_store) -> None:
        enrollment_store.list_student_enrollments.return_value = []

        summary = await service.get_student_rankings("s1")

        assert summary.materia_rankings == {}
        assert summary.notebook_rankings == {}
        assert summary.global_percentile == 0
        assert summary.status == ComputationStatus.COMPUTED

    @pytest.mark.asyncio
    async def test_unknown_user(self, service) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await service.get_student_rankings("ghost")

        assert exc_info.value.details == {"user_id": "ghost"}

    @pytest.mark.asyncio
    async def test_notebook_listing_failure_is_partial(self, service, notebook_store) -> None:
        notebook_store.list_notebook_ids.side_effect = ConnectionError("down")

        summary = await service.get_student_rankings("s1")

        assert list(summary.materia_rankings) == ["mat-1"]
        assert summary.notebook_rankings == {}
        assert summary.global_percentile == 33
        assert summary.status == ComputationStatus.PARTIAL

    @pytest.mark.asyncio
    async def test_degraded_rankings_are_left_out(self, service, enrollment_store) -> None:
        enrollment_store.list_active_student_ids.side_effect = ConnectionError("down")

        summary = await service.get_student_rankings("s1")

        assert summary.materia_rankings == {}
        assert summary.notebook_rankings == {}
        assert summary.global_percentile == 0
        assert summary.status == ComputationStatus.PARTIAL

    @pytest.mark.asyncio
    async def test_enrollment_read_failure_is_degraded(self, service, enrollment_store) -> None:
        enrollment_store.list_student_enrollments.side_effect = ConnectionError("down")

        summary = await service.get_student_rankings("s1")

        assert summary.status == ComputationStatus.DEGRADED
        assert summary.global_percentile == 0

    @pytest.mark.asyncio
    async def test_cancelled(self, service, enrollment_store) -> None:
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ComputationCancelled):
            await service.get_student_rankings("s1", token)
        enrollment_store.list_student_enrollments.assert_not_called()
