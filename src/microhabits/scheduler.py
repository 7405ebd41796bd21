"""Background reconciliation of completion flags while a session is active."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Iterator, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler as APScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .logging_config import get_logger
from .services.clock import Clock, SystemClock

if TYPE_CHECKING:
    from .config import BaseConfig
    from .services.habits import HabitService

logger = get_logger("scheduler")


class ReconciliationHandle:
    """Cancellation handle for one user's periodic reconciliation.

    Ticks and cancellation share a lock: once ``cancel`` returns, no tick is
    running and none will touch the session again.
    """

    def __init__(self, user_id: int, job_id: str, run: Callable[[], list[int]]):
        self.user_id = user_id
        self.job_id = job_id
        self._run = run
        self._lock = threading.RLock()
        self._active = True
        self.runs = 0
        self.last_cleared: list[int] = []
        self.last_error: Optional[BaseException] = None

    @property
    def active(self) -> bool:
        return self._active

    def tick(self) -> Optional[list[int]]:
        """Run one reconciliation pass; failures are logged, never raised."""
        with self._lock:
            if not self._active:
                return None
            try:
                cleared = self._run()
            except Exception as exc:
                self.last_error = exc
                logger.error(
                    f"Reconciliation failed for user {self.user_id}: {exc}",
                    exc_info=True,
                    extra={"user_id": self.user_id},
                )
                return None
            self.runs += 1
            self.last_error = None
            self.last_cleared = cleared
            return cleared

    def cancel(self) -> None:
        with self._lock:
            self._active = False


class HabitScheduler:
    """Owns the APScheduler instance and one interval job per active user."""

    def __init__(
        self,
        service: HabitService,
        *,
        clock: Optional[Clock] = None,
        interval_seconds: int = 60,
        scheduler: Optional[APScheduler] = None,
    ):
        """Initialize the scheduler.

        Args:
            service: Habit service whose ``reconcile`` each tick calls
            clock: Source of "now" for every tick
            interval_seconds: Period between ticks
            scheduler: Pre-built APScheduler instance (created lazily when omitted)
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.service = service
        self.clock = clock or SystemClock()
        self.interval_seconds = interval_seconds
        self.scheduler = scheduler
        self._handles: dict[int, ReconciliationHandle] = {}
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def start(self) -> APScheduler:
        """Start the background scheduler and return it."""
        if self.scheduler is None:
            self.scheduler = APScheduler()
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Background scheduler started")
        return self.scheduler

    def start_reconciliation(self, user_id: int) -> ReconciliationHandle:
        """Reconcile now, then every ``interval_seconds`` until stopped."""
        scheduler = self.start()

        with self._lock:
            existing = self._handles.get(user_id)
            if existing is not None and existing.active:
                logger.warning(f"Reconciliation already running for user {user_id}")
                return existing

            handle = ReconciliationHandle(
                user_id=user_id,
                job_id=f"reconcile-user-{user_id}",
                run=lambda: self.service.reconcile(user_id=user_id, now=self.clock.now()),
            )
            self._handles[user_id] = handle

        try:
            # Eager pass covers any midnights crossed while the app was closed.
            handle.tick()

            scheduler.add_job(
                func=handle.tick,
                trigger=IntervalTrigger(seconds=self.interval_seconds),
                id=handle.job_id,
                name=f"Midnight reconciliation for user {user_id}",
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )
        except Exception:
            logger.error(
                f"Could not schedule reconciliation for user {user_id}",
                exc_info=True,
                extra={"user_id": user_id},
            )
            handle.cancel()
            with self._lock:
                if self._handles.get(user_id) is handle:
                    del self._handles[user_id]
            raise

        logger.info(
            f"Scheduled reconciliation every {self.interval_seconds}s for user {user_id}",
            extra={"user_id": user_id},
        )
        return handle

    def stop_reconciliation(self, handle: ReconciliationHandle) -> None:
        """Cancel a session's ticks; safe to call more than once."""
        handle.cancel()
        with self._lock:
            if self._handles.get(handle.user_id) is handle:
                del self._handles[handle.user_id]
        if self.scheduler is not None:
            try:
                self.scheduler.remove_job(handle.job_id)
            except JobLookupError:
                pass
        logger.info(f"Stopped reconciliation for user {handle.user_id}")

    @contextmanager
    def session(self, user_id: int) -> Iterator[ReconciliationHandle]:
        """Keep reconciliation running for the body of a ``with`` block."""
        handle = self.start_reconciliation(user_id)
        try:
            yield handle
        finally:
            self.stop_reconciliation(handle)

    def active_handles(self) -> list[ReconciliationHandle]:
        with self._lock:
            return list(self._handles.values())

    def shutdown(self, wait: bool = True) -> None:
        """Stop every session, then the background scheduler."""
        for handle in self.active_handles():
            self.stop_reconciliation(handle)
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Background scheduler stopped")
        self.scheduler = None


def create_scheduler(
    service: HabitService,
    config: BaseConfig,
    *,
    clock: Optional[Clock] = None,
    auto_start: bool = False,
) -> HabitScheduler:
    """Create and optionally start a habit scheduler.

    Args:
        service: Habit service used by the reconciliation job
        config: Application configuration (interval)
        clock: Time source; defaults to the service's clock
        auto_start: Whether to start the APScheduler thread immediately

    Returns:
        HabitScheduler instance
    """
    scheduler = HabitScheduler(
        service,
        clock=clock or service.clock,
        interval_seconds=config.RECONCILE_INTERVAL_SECONDS,
    )
    if auto_start:
        scheduler.start()
    return scheduler
