"""Midnight reset of completion flags."""

from __future__ import annotations

from datetime import datetime

from ..domain.repositories import HabitRepository
from ..logging_config import get_logger
from .streaks import start_of_local_day

logger = get_logger("services.reconciler")


def reconcile(repo: HabitRepository, *, user_id: int, now: datetime) -> list[int]:
    """Clear ``completed`` on the owner's habits last completed before today.

    Streaks and completion timestamps are preserved; the next toggle reads them
    to decide whether the streak continues. Running it again with the same or a
    later ``now`` changes nothing, so missed ticks never need catching up.

    Returns:
        IDs of the habits that were reset.
    """
    midnight = start_of_local_day(now)
    cleared = repo.clear_stale_completions(user_id=user_id, before=midnight)
    if cleared:
        logger.info(
            f"Reset {len(cleared)} habit(s) completed before {midnight.isoformat()}",
            extra={"user_id": user_id, "habit_ids": cleared},
        )
    else:
        logger.debug(f"No stale completions for user {user_id}")
    return cleared


__all__ = ["reconcile"]
