"""Habit engine operations exposed to the presentation layer."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..domain.errors import HabitLimitReachedError, HabitNotFoundError, PersistenceError
from ..domain.repositories import HabitRepository, UserRepository
from ..logging_config import get_logger
from ..models.habit import EMOJI_MAX_LENGTH, NAME_MAX_LENGTH, Habit
from . import reconciler
from .clock import Clock, SystemClock
from .streaks import DEFAULT_HABIT_LIMIT, can_create_habit, evaluate_toggle

logger = get_logger("services.habits")


def clean_name(name: str) -> str:
    """Trim a habit name and reject blank or over-long values."""

    name = (name or "").strip()
    if not name:
        raise ValueError("Habit name cannot be empty")
    if len(name) > NAME_MAX_LENGTH:
        raise ValueError(f"Habit name must be at most {NAME_MAX_LENGTH} characters")
    return name


def clean_emoji(emoji: Optional[str]) -> Optional[str]:
    emoji = (emoji or "").strip()
    if not emoji:
        return None
    if len(emoji) > EMOJI_MAX_LENGTH:
        raise ValueError(f"Emoji must be at most {EMOJI_MAX_LENGTH} characters")
    return emoji


@contextmanager
def _storage(action: str, **context) -> Iterator[None]:
    """Translate storage faults into PersistenceError; nothing is retried."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(f"Failed to {action}: {exc}", exc_info=True, extra=context)
        raise PersistenceError(f"Could not {action}") from exc


class HabitService:
    """Composes the streak rules with a habit repository.

    The service never mutates a Habit handed to it; callers only see new state
    once the repository has confirmed the write.
    """

    def __init__(
        self,
        habit_repo: HabitRepository,
        user_repo: UserRepository,
        *,
        clock: Optional[Clock] = None,
        habit_limit: int = DEFAULT_HABIT_LIMIT,
    ):
        self.habit_repo = habit_repo
        self.user_repo = user_repo
        self.clock = clock or SystemClock()
        self.habit_limit = habit_limit

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock.now()

    def list_habits(self, *, user_id: int) -> list[Habit]:
        with _storage("list habits", user_id=user_id):
            return self.habit_repo.list_all(user_id=user_id)

    def get_habit(self, habit_id: int, *, user_id: int) -> Habit:
        with _storage("load habit", user_id=user_id, habit_id=habit_id):
            habit = self.habit_repo.get_by_id(habit_id, user_id=user_id)
        if habit is None:
            raise HabitNotFoundError(habit_id, user_id)
        return habit

    def can_add_habit(self, *, user_id: int) -> bool:
        """Return True when the owner may create another habit right now."""
        with _storage("check habit limit", user_id=user_id):
            user = self.user_repo.get_by_id(user_id)
            if user is None:
                raise ValueError("User not found")
            count = self.habit_repo.count(user_id=user_id)
        return can_create_habit(count, user.is_pro, self.habit_limit)

    def add_habit(
        self,
        name: str,
        emoji: Optional[str] = None,
        *,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> Habit:
        """Create a habit, refusing free users who already hold the limit.

        Raises:
            ValueError: blank name or unknown user.
            HabitLimitReachedError: free-tier cap reached; nothing is written.
        """
        name = clean_name(name)
        emoji = clean_emoji(emoji)

        if not self.can_add_habit(user_id=user_id):
            logger.warning(
                f"Refused new habit for user {user_id}: free plan limit of {self.habit_limit} reached",
                extra={"user_id": user_id},
            )
            raise HabitLimitReachedError(self.habit_limit)

        instant = self._now(now)
        habit = Habit(
            user_id=user_id,
            name=name,
            emoji=emoji,
            created_at=instant,
            updated_at=instant,
        )
        with _storage("add habit", user_id=user_id):
            created = self.habit_repo.create(habit, user_id=user_id)
        logger.info(f"Added habit {created.id}: {created.name}", extra={"user_id": user_id})
        return created

    def toggle_habit(
        self,
        habit_id: int,
        *,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> Habit:
        """Mark a habit done or undo today's check-in.

        The write is conditional on the ``completed`` value that was read, so a
        concurrent change to the same habit surfaces as HabitConflictError
        instead of being overwritten.
        """
        instant = self._now(now)
        current = self.get_habit(habit_id, user_id=user_id)
        nxt = evaluate_toggle(current, instant)

        fields = nxt.as_fields()
        fields["updated_at"] = instant
        with _storage("update habit", user_id=user_id, habit_id=habit_id):
            updated = self.habit_repo.update(
                habit_id,
                fields,
                user_id=user_id,
                expected_completed=current.completed,
            )

        logger.info(
            f"Habit {habit_id} {'completed' if updated.completed else 'unmarked'}, "
            f"streak {updated.streak}",
            extra={"user_id": user_id, "habit_id": habit_id},
        )
        return updated

    def rename_habit(
        self,
        habit_id: int,
        name: str,
        emoji: Optional[str] = None,
        *,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> Habit:
        """Change a habit's label; completion and streak are unaffected."""
        fields = {
            "name": clean_name(name),
            "emoji": clean_emoji(emoji),
            "updated_at": self._now(now),
        }
        with _storage("rename habit", user_id=user_id, habit_id=habit_id):
            return self.habit_repo.update(habit_id, fields, user_id=user_id)

    def delete_habit(self, habit_id: int, *, user_id: int) -> None:
        with _storage("delete habit", user_id=user_id, habit_id=habit_id):
            self.habit_repo.delete(habit_id, user_id=user_id)
        logger.info(f"Deleted habit {habit_id}", extra={"user_id": user_id})

    def reconcile(self, *, user_id: int, now: Optional[datetime] = None) -> list[int]:
        """Reset completion flags left over from previous local days."""
        with _storage("reconcile habits", user_id=user_id):
            return reconciler.reconcile(self.habit_repo, user_id=user_id, now=self._now(now))


__all__ = ["HabitService", "clean_emoji", "clean_name"]
