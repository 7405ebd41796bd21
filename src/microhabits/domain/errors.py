"""Errors raised by the habit engine."""

from __future__ import annotations


class HabitError(Exception):
    """Base class for recoverable habit engine failures."""


class HabitNotFoundError(HabitError, LookupError):
    """The habit does not exist or is not owned by the caller."""

    def __init__(self, habit_id: int, user_id: int):
        super().__init__(f"Habit {habit_id} not found for user {user_id}")
        self.habit_id = habit_id
        self.user_id = user_id


class HabitLimitReachedError(HabitError):
    """A free-tier user tried to add a habit beyond the allowed count."""

    def __init__(self, limit: int):
        super().__init__(f"Free plan limited to {limit} habits. Upgrade to Pro for unlimited habits.")
        self.limit = limit


class PersistenceError(HabitError):
    """The storage layer failed to read or write."""


class HabitConflictError(PersistenceError):
    """A conditional write found the habit changed since it was read."""

    def __init__(self, habit_id: int):
        super().__init__(f"Habit {habit_id} was modified concurrently; reload and retry")
        self.habit_id = habit_id


__all__ = [
    "HabitConflictError",
    "HabitError",
    "HabitLimitReachedError",
    "HabitNotFoundError",
    "PersistenceError",
]
