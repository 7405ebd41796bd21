"""Habit repository protocol."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Protocol

from ...models.habit import Habit


class HabitRepository(Protocol):
    """Repository for managing habit entities.

    Every call is scoped by ``user_id`` so no user can read or mutate another
    user's habits.
    """

    def get_by_id(self, habit_id: int, *, user_id: int) -> Optional[Habit]:
        """Retrieve a habit by ID."""
        ...

    def list_all(self, *, user_id: int) -> list[Habit]:
        """List the owner's habits in creation order."""
        ...

    def count(self, *, user_id: int) -> int:
        """Count the owner's live habits."""
        ...

    def create(self, habit: Habit, *, user_id: int) -> Habit:
        """Create a new habit."""
        ...

    def update(
        self,
        habit_id: int,
        fields: Mapping[str, Any],
        *,
        user_id: int,
        expected_completed: Optional[bool] = None,
    ) -> Habit:
        """Apply a partial update, optionally conditional on the current flag."""
        ...

    def delete(self, habit_id: int, *, user_id: int) -> None:
        """Delete a habit by ID."""
        ...

    def clear_stale_completions(self, *, user_id: int, before: datetime) -> list[int]:
        """Clear ``completed`` on habits last completed before ``before``."""
        ...
