"""
Unit Tests for Concept Mastery Classification

Tests classify_learning_state against each rule and its boundaries.
"""

import pytest

from simonkey.enums.progress import MasteryLevel
from simonkey.models.progress import LearningSnapshot
from simonkey.services.progress.classification import classify_learning_state


def snapshot(repetitions=0, interval=1.0, ease_factor=2.5, has_data=True) -> LearningSnapshot:
    return LearningSnapshot(
        repetitions=repetitions,
        interval=interval,
        ease_factor=ease_factor,
        has_data=has_data,
    )


class TestDominated:
    """Test suite for the dominated rules."""

    def test_two_repetitions(self) -> None:
        assert classify_learning_state(snapshot(repetitions=2, interval=3)) == MasteryLevel.DOMINATED

    def test_interval_of_a_week(self) -> None:
        assert classify_learning_state(snapshot(interval=7)) == MasteryLevel.DOMINATED

    def test_one_repetition_with_high_ease(self) -> None:
        state = snapshot(repetitions=1, ease_factor=2.61)
        assert classify_learning_state(state) == MasteryLevel.DOMINATED

    def test_ease_threshold_is_strict(self) -> None:
        """An ease factor of exactly 2.6 does not dominate."""
        state = snapshot(repetitions=1, ease_factor=2.6)
        assert classify_learning_state(state) == MasteryLevel.LEARNING

    def test_high_ease_without_repetitions_is_not_dominated(self) -> None:
        state = snapshot(repetitions=0, interval=0.5, ease_factor=3.0)
        assert classify_learning_state(state) == MasteryLevel.LEARNING


class TestLearning:
    """Test suite for the learning rules."""

    def test_first_interval(self) -> None:
        assert classify_learning_state(snapshot(interval=0.5)) == MasteryLevel.LEARNING

    def test_six_hour_boundary(self) -> None:
        assert classify_learning_state(snapshot(interval=0.25)) == MasteryLevel.LEARNING

    def test_interval_above_one_day(self) -> None:
        assert classify_learning_state(snapshot(interval=1.5)) == MasteryLevel.LEARNING

    def test_default_interval_with_data_is_learning(self) -> None:
        """A recorded state at the default interval falls in the 0.25 branch."""
        assert classify_learning_state(snapshot()) == MasteryLevel.LEARNING


class TestNotStarted:
    """Test suite for the not started fallback."""

    def test_no_data(self) -> None:
        state = LearningSnapshot.empty()
        assert state.interval == 1.0
        assert classify_learning_state(state) == MasteryLevel.NOT_STARTED

    def test_no_data_ignores_values(self) -> None:
        state = snapshot(repetitions=5, interval=30, has_data=False)
        assert classify_learning_state(state) == MasteryLevel.NOT_STARTED

    def test_tiny_interval(self) -> None:
        assert classify_learning_state(snapshot(interval=0.1)) == MasteryLevel.NOT_STARTED


@pytest.mark.parametrize(
    "repetitions,interval,ease_factor",
    [(r, i, e) for r in (0, 1, 2, 5) for i in (0, 0.1, 0.25, 1, 2, 7) for e in (1.3, 2.5, 2.7)],
)
def test_every_state_gets_exactly_one_level(repetitions, interval, ease_factor) -> None:
    level = classify_learning_state(snapshot(repetitions, interval, ease_factor))
    assert level in set(MasteryLevel)


def test_snapshot_from_missing_row_has_no_data() -> None:
    assert LearningSnapshot.from_row(None).has_data is False
