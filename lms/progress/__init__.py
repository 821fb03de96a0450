"""Progress tracking: progress rows, their change history, sessions and streaks."""

from lms.progress.models import LearningStreak, ProgressHistory, ProgressType, UserProgress


__all__ = [
    "LearningStreak",
    "ProgressHistory",
    "ProgressType",
    "UserProgress",
]
