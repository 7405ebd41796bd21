"""Tests for the pure streak evaluation rules.

Covers:
- First completion, continuation from yesterday, and reset after a gap
- Un-marking within the same day
- Local-midnight (not UTC) day boundaries
- Stale completion flags left over from an earlier day
- The free-plan creation cap
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from microhabits.services.streaks import (
    HabitState,
    can_create_habit,
    clear_if_stale,
    evaluate_toggle,
    is_stale,
    start_of_local_day,
)

EST = timezone(timedelta(hours=-5), name="EST")


def at(*args) -> datetime:
    return datetime(*args, tzinfo=EST)


class TestMarkingDone:
    """Toggling a habit that is not completed."""

    def test_first_completion_starts_streak_at_one(self):
        now = at(2024, 1, 10, 9, 0)
        result = evaluate_toggle(HabitState(), now)

        assert result == HabitState(completed=True, streak=1, last_completed_at=now)

    def test_completion_day_after_previous_increments(self):
        habit = HabitState(completed=False, streak=4, last_completed_at=at(2024, 1, 9, 21, 0))
        result = evaluate_toggle(habit, at(2024, 1, 10, 7, 0))

        assert result.completed is True
        assert result.streak == 5

    def test_gap_of_two_days_restarts_streak(self):
        habit = HabitState(completed=False, streak=9, last_completed_at=at(2024, 1, 8, 12, 0))
        result = evaluate_toggle(habit, at(2024, 1, 10, 12, 0))

        assert result.streak == 1

    def test_long_gap_restarts_streak(self):
        habit = HabitState(completed=False, streak=30, last_completed_at=at(2023, 6, 1, 12, 0))
        assert evaluate_toggle(habit, at(2024, 1, 10, 12, 0)).streak == 1

    def test_last_completed_at_is_set_to_now(self):
        now = at(2024, 1, 10, 18, 45)
        habit = HabitState(completed=False, streak=2, last_completed_at=at(2024, 1, 9, 8, 0))

        assert evaluate_toggle(habit, now).last_completed_at == now

    def test_naive_last_completion_is_read_in_host_zone(self):
        last = datetime(2024, 1, 9, 12, 0)
        now = datetime(2024, 1, 10, 12, 0).astimezone()
        habit = HabitState(completed=False, streak=1, last_completed_at=last)

        assert evaluate_toggle(habit, now).streak == 2


class TestUnmarking:
    """Toggling a habit that is completed today."""

    def test_unmark_keeps_streak(self):
        habit = HabitState(completed=True, streak=6, last_completed_at=at(2024, 1, 10, 8, 0))
        result = evaluate_toggle(habit, at(2024, 1, 10, 8, 5))

        assert result.completed is False
        assert result.streak == 6

    def test_unmark_remembers_the_undone_day(self):
        done_at = at(2024, 1, 10, 8, 0)
        habit = HabitState(completed=True, streak=6, last_completed_at=done_at)

        assert evaluate_toggle(habit, at(2024, 1, 10, 8, 5)).last_completed_at == done_at

    def test_same_day_correction_is_neutral(self):
        before = HabitState(completed=False, streak=3, last_completed_at=at(2024, 1, 9, 20, 0))

        first = evaluate_toggle(before, at(2024, 1, 10, 9, 0))
        undone = evaluate_toggle(first, at(2024, 1, 10, 9, 1))
        again = evaluate_toggle(undone, at(2024, 1, 10, 9, 2))

        assert first.streak == 4
        assert undone.streak == 4
        assert again.completed is True
        assert again.streak == first.streak

    def test_repeated_corrections_never_inflate_streak(self):
        state = HabitState()
        now = at(2024, 1, 10, 9, 0)
        for minute in range(10):
            state = evaluate_toggle(state, now + timedelta(minutes=minute))

        assert state.streak == 1

    def test_unmarked_day_still_counts_toward_next_day(self):
        """Un-marking never decrements, so the next day's check-in continues the run."""
        state = evaluate_toggle(HabitState(streak=2, last_completed_at=at(2024, 1, 9, 9, 0)), at(2024, 1, 10, 9, 0))
        state = evaluate_toggle(state, at(2024, 1, 10, 9, 1))

        assert evaluate_toggle(state, at(2024, 1, 11, 9, 0)).streak == 4


class TestLocalDayBoundaries:
    """Day arithmetic follows local midnight in the zone of ``now``."""

    def test_late_evening_completion_counts_as_previous_local_day(self):
        # 23:30 EST on the 10th is already the 11th in UTC.
        habit = HabitState(completed=False, streak=1, last_completed_at=at(2024, 1, 10, 23, 30))
        result = evaluate_toggle(habit, at(2024, 1, 11, 8, 0))

        assert result.streak == 2

    def test_utc_stored_instant_is_converted_before_comparing(self):
        last = datetime(2024, 1, 11, 4, 30, tzinfo=timezone.utc)  # 23:30 EST on the 10th
        habit = HabitState(completed=False, streak=1, last_completed_at=last)

        assert evaluate_toggle(habit, at(2024, 1, 11, 8, 0)).streak == 2

    def test_start_of_local_day(self):
        midnight = start_of_local_day(at(2024, 1, 13, 0, 5))

        assert midnight == at(2024, 1, 13, 0, 0)
        assert midnight.utcoffset() == timedelta(hours=-5)


class TestStaleCompletion:
    """A completed flag from an earlier day behaves as already reset."""

    def test_is_stale_for_yesterday(self):
        habit = HabitState(completed=True, streak=1, last_completed_at=at(2024, 1, 9, 23, 59))
        assert is_stale(habit, at(2024, 1, 10, 0, 0)) is True

    def test_not_stale_for_today(self):
        habit = HabitState(completed=True, streak=1, last_completed_at=at(2024, 1, 10, 0, 0))
        assert is_stale(habit, at(2024, 1, 10, 23, 59)) is False

    def test_uncompleted_habit_is_never_stale(self):
        habit = HabitState(completed=False, streak=2, last_completed_at=at(2024, 1, 1, 9, 0))
        assert is_stale(habit, at(2024, 1, 10, 9, 0)) is False

    def test_completed_without_timestamp_is_stale(self):
        assert is_stale(HabitState(completed=True, streak=1), at(2024, 1, 10, 9, 0)) is True

    def test_clear_if_stale_preserves_history(self):
        last = at(2024, 1, 9, 9, 0)
        habit = HabitState(completed=True, streak=7, last_completed_at=last)

        assert clear_if_stale(habit, at(2024, 1, 10, 9, 0)) == HabitState(False, 7, last)

    def test_toggle_on_stale_habit_marks_done(self):
        habit = HabitState(completed=True, streak=1, last_completed_at=at(2024, 1, 10, 9, 0))
        result = evaluate_toggle(habit, at(2024, 1, 11, 8, 0))

        assert result.completed is True
        assert result.streak == 2


def test_end_to_end_sequence():
    """Walk the documented example through the pure functions."""
    state = HabitState()

    state = evaluate_toggle(state, at(2024, 1, 10, 9, 0))
    assert (state.completed, state.streak) == (True, 1)
    assert state.last_completed_at == at(2024, 1, 10, 9, 0)

    state = evaluate_toggle(state, at(2024, 1, 11, 8, 0))
    assert (state.completed, state.streak) == (True, 2)
    assert state.last_completed_at == at(2024, 1, 11, 8, 0)

    state = clear_if_stale(state, at(2024, 1, 13, 0, 5))
    assert (state.completed, state.streak) == (False, 2)

    state = evaluate_toggle(state, at(2024, 1, 13, 10, 0))
    assert (state.completed, state.streak) == (True, 1)


def test_evaluate_toggle_does_not_mutate_input():
    class Row:
        completed = False
        streak = 3
        last_completed_at = at(2024, 1, 9, 9, 0)

    row = Row()
    evaluate_toggle(row, at(2024, 1, 10, 9, 0))

    assert row.completed is False
    assert row.streak == 3


@pytest.mark.parametrize(
    "count,is_pro,expected",
    [
        (0, False, True),
        (2, False, True),
        (3, False, False),
        (7, False, False),
        (3, True, True),
        (50, True, True),
    ],
)
def test_can_create_habit(count, is_pro, expected):
    assert can_create_habit(count, is_pro) is expected


def test_can_create_habit_custom_limit():
    assert can_create_habit(4, False, limit=5) is True
    assert can_create_habit(5, False, limit=5) is False


class TestDaylightSaving:
    """Local days follow the zone's rules across DST changes, not a fixed offset."""

    PDT = timezone(timedelta(hours=-7))

    def test_offset_from_astimezone_uses_host_rules(self, host_in_los_angeles):
        # What datetime.astimezone() hands back on the morning clocks sprang forward.
        now = datetime(2024, 3, 10, 9, 0, tzinfo=self.PDT)
        last = datetime(2024, 3, 9, 23, 30, tzinfo=host_in_los_angeles)

        assert evaluate_toggle(HabitState(False, 1, last), now).streak == 2
        assert is_stale(HabitState(True, 1, last), now) is True

    def test_midnight_on_spring_forward_day(self, host_in_los_angeles):
        midnight = start_of_local_day(datetime(2024, 3, 10, 9, 0, tzinfo=self.PDT))

        assert midnight == datetime(2024, 3, 10, 0, 0, tzinfo=host_in_los_angeles)
        assert midnight.utcoffset() == timedelta(hours=-8)

    def test_naive_now_uses_host_rules(self, host_in_los_angeles):
        last = datetime(2024, 3, 9, 23, 30, tzinfo=host_in_los_angeles)

        assert evaluate_toggle(HabitState(False, 4, last), datetime(2024, 3, 10, 9, 0)).streak == 5

    def test_zoneinfo_now_across_fall_back(self):
        zone = ZoneInfo("America/New_York")
        last = datetime(2024, 11, 2, 23, 30, tzinfo=zone)
        now = datetime(2024, 11, 3, 23, 30, tzinfo=zone)

        assert evaluate_toggle(HabitState(False, 3, last), now).streak == 4
        assert is_stale(HabitState(True, 3, last), now) is True
        # Clocks fall back at 02:00, so midnight itself is still daylight time.
        assert start_of_local_day(now).utcoffset() == timedelta(hours=-4)

    def test_foreign_fixed_offset_is_kept(self, host_in_los_angeles):
        midnight = start_of_local_day(at(2024, 1, 13, 0, 5))

        assert midnight == at(2024, 1, 13, 0, 0)
        assert midnight.utcoffset() == timedelta(hours=-5)
