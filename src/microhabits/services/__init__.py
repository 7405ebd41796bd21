"""Service module exports."""

from . import clock, habits, reconciler, streaks, users

__all__ = [
    "clock",
    "habits",
    "reconciler",
    "streaks",
    "users",
]
