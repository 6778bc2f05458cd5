"""
Centralized enum definitions for the application.

Usage:
    from simonkey.enums import StudyMode, MasteryLevel

    # Or import from the module directly
    from simonkey.enums.progress import ComputationStatus
"""

from simonkey.enums.progress import (
    ComputationStatus,
    EnrollmentStatus,
    MasteryLevel,
    StudyIntensity,
    StudyMode,
    Weekday,
)

__all__ = [
    "ComputationStatus",
    "EnrollmentStatus",
    "MasteryLevel",
    "StudyIntensity",
    "StudyMode",
    "Weekday",
]
