"""
Progress and Scoring Enums

Defines enums for study modes, session intensities, concept mastery levels
and the status tag attached to every computed result.
"""

from enum import Enum


class StudyMode(str, Enum):
    """
    Study modes recorded on study session rows.

    Each mode contributes to a different point bucket:
    - SMART: intelligent review, scored by session intensity
    - VOICE_RECOGNITION: active study, scored by the recorded session score
    - FREE: free study, scored per session
    """

    SMART = "smart"
    VOICE_RECOGNITION = "voice_recognition"
    FREE = "free"


class StudyIntensity(str, Enum):
    """Intensity chosen for a smart study session."""

    WARM_UP = "warm_up"
    PROGRESS = "progress"
    ROCKET = "rocket"


class MasteryLevel(str, Enum):
    """
    Mastery classification of a concept for one learner.

    Derived from the spaced repetition bookkeeping, checked in order:
    DOMINATED first, then LEARNING, otherwise NOT_STARTED.
    """

    DOMINATED = "dominated"
    LEARNING = "learning"
    NOT_STARTED = "not_started"


class ComputationStatus(str, Enum):
    """
    How a derived result was obtained.

    - COMPUTED: every source was read successfully
    - PARTIAL: some sources failed and were replaced with defaults
    - DEGRADED: the computation failed and a default result was returned
    """

    COMPUTED = "computed"
    PARTIAL = "partial"
    DEGRADED = "degraded"

    @classmethod
    def worst(cls, statuses: "list[ComputationStatus]") -> "ComputationStatus":
        """Return the most severe status in the list (COMPUTED when empty)."""
        order = [cls.COMPUTED, cls.PARTIAL, cls.DEGRADED]
        worst = cls.COMPUTED
        for status in statuses:
            if order.index(status) > order.index(worst):
                worst = status
        return worst


class EnrollmentStatus(str, Enum):
    """Lifecycle of a student enrollment in a materia."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class Weekday(str, Enum):
    """Weekdays in Monday-anchored order."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"
