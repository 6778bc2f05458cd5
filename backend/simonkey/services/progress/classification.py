"""
Concept Mastery Classification

Maps spaced repetition bookkeeping to a mastery level. Rules are checked in
order, so the three levels partition every non-negative input:

- DOMINATED:  repetitions >= 2, or interval >= 7 days,
              or (repetitions >= 1 and ease factor > 2.6)
- LEARNING:   repetitions >= 1, or interval > 1 day,
              or (repetitions == 0 and interval >= 0.25 days)
- NOT_STARTED: anything else, and every concept without learning data
"""

from simonkey.enums.progress import MasteryLevel
from simonkey.models.progress import LearningSnapshot

DOMINATED_MIN_REPETITIONS = 2
DOMINATED_MIN_INTERVAL_DAYS = 7.0
DOMINATED_MIN_EASE_FACTOR = 2.6  # Strictly greater than
LEARNING_MIN_INTERVAL_DAYS = 1.0  # Strictly greater than
FIRST_INTERVAL_DAYS = 0.25  # 6 hours, first step after an initial review


def is_dominated(state: LearningSnapshot) -> bool:
    return (
        state.repetitions >= DOMINATED_MIN_REPETITIONS
        or state.interval >= DOMINATED_MIN_INTERVAL_DAYS
        or (state.repetitions >= 1 and state.ease_factor > DOMINATED_MIN_EASE_FACTOR)
    )


def is_learning(state: LearningSnapshot) -> bool:
    """Learning predicate, only meaningful for states that are not dominated."""
    return (
        state.repetitions >= 1
        or state.interval > LEARNING_MIN_INTERVAL_DAYS
        or (state.repetitions == 0 and state.interval >= FIRST_INTERVAL_DAYS)
    )


def classify_learning_state(state: LearningSnapshot) -> MasteryLevel:
    """
    Classify a learner's state for one concept.

    Args:
        state: Spaced repetition values; has_data=False means no record.

    Returns:
        Exactly one MasteryLevel.
    """
    if not state.has_data:
        return MasteryLevel.NOT_STARTED
    if is_dominated(state):
        return MasteryLevel.DOMINATED
    if is_learning(state):
        return MasteryLevel.LEARNING
    return MasteryLevel.NOT_STARTED
