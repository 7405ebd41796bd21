"""Streak evaluation: pure functions, no DB access.

All day boundaries are local calendar days in the zone of the ``now`` passed in,
so the caller decides which zone counts as "local".
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Optional, Protocol

from .clock import as_aware, host_zone

DEFAULT_HABIT_LIMIT = 3


class HabitLike(Protocol):
    completed: bool
    streak: int
    last_completed_at: Optional[datetime]


@dataclass(frozen=True)
class HabitState:
    """The engine-owned slice of a habit."""

    completed: bool = False
    streak: int = 0
    last_completed_at: Optional[datetime] = None

    @classmethod
    def of(cls, habit: HabitLike) -> "HabitState":
        return cls(
            completed=bool(habit.completed),
            streak=int(habit.streak or 0),
            last_completed_at=habit.last_completed_at,
        )

    def as_fields(self) -> dict[str, Any]:
        """Return the state as a partial update for the repository."""
        return {
            "completed": self.completed,
            "streak": self.streak,
            "last_completed_at": self.last_completed_at,
        }


def local_zone(now: datetime) -> tzinfo:
    """Return the zone whose midnight bounds the day containing ``now``.

    ``datetime.astimezone()`` yields a bare UTC offset. When that offset is the
    host's own at ``now``, the host's zone is used instead so midnight lands in
    the right place on daylight-saving transition days.
    """

    now = as_aware(now)
    zone = now.tzinfo or host_zone()
    if isinstance(zone, timezone):
        host = host_zone()
        if now.astimezone(host).utcoffset() == now.utcoffset():
            return host
    return zone


def local_date(instant: datetime, zone: tzinfo) -> date:
    """Calendar date of ``instant`` as seen from ``zone``."""

    return as_aware(instant).astimezone(zone).date()


def start_of_local_day(now: datetime) -> datetime:
    """Local midnight at the start of the day containing ``now``."""

    zone = local_zone(now)
    return datetime.combine(local_date(now, zone), time.min, tzinfo=zone)


def is_stale(habit: HabitLike, now: datetime) -> bool:
    """True when the habit is flagged done but not for today's local date."""

    if not habit.completed:
        return False
    if habit.last_completed_at is None:
        return True
    zone = local_zone(now)
    return local_date(habit.last_completed_at, zone) < local_date(now, zone)


def clear_if_stale(habit: HabitLike, now: datetime) -> HabitState:
    """Apply the midnight reset to a single habit without touching the streak."""

    state = HabitState.of(habit)
    if is_stale(habit, now):
        return replace(state, completed=False)
    return state


def evaluate_toggle(habit: HabitLike, now: datetime) -> HabitState:
    """Compute the state that results from the user tapping the habit at ``now``.

    Marking done:
      * never completed, or last completed two or more days ago -> streak 1
      * last completed yesterday -> streak + 1
      * last completed today (re-check after an un-check) -> streak kept

    Un-marking clears ``completed`` only. The streak is not decremented and the
    day of the undone check-in is remembered in ``last_completed_at``.
    """

    now = as_aware(now)
    state = clear_if_stale(habit, now)

    if state.completed:
        return replace(state, completed=False)

    zone = local_zone(now)
    today = local_date(now, zone)
    last_date = (
        local_date(state.last_completed_at, zone)
        if state.last_completed_at is not None
        else None
    )

    if last_date is None:
        streak = 1
    elif last_date >= today:
        streak = max(state.streak, 1)
    elif last_date == today - timedelta(days=1):
        streak = state.streak + 1
    else:
        streak = 1

    return HabitState(completed=True, streak=streak, last_completed_at=now)


def can_create_habit(
    owner_habit_count: int,
    is_subscribed: bool,
    limit: int = DEFAULT_HABIT_LIMIT,
) -> bool:
    """Free users may hold at most ``limit`` habits; subscribers are unlimited."""

    return is_subscribed or owner_habit_count < limit


__all__ = [
    "DEFAULT_HABIT_LIMIT",
    "HabitState",
    "can_create_habit",
    "clear_if_stale",
    "evaluate_toggle",
    "is_stale",
    "local_date",
    "local_zone",
    "start_of_local_day",
]
