"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session

from .config import BaseConfig
from .domain.errors import PersistenceError
from .infra.database import bootstrap_database
from .infra.repositories import SQLModelHabitRepository, SQLModelUserRepository
from .logging_config import get_logger
from .models.user import User
from .scheduler import HabitScheduler, create_scheduler
from .services import users
from .services.clock import Clock, SystemClock
from .services.habits import HabitService

logger = get_logger("context")


@dataclass
class AppContext:
    """Centralized application context with services and state."""

    config: BaseConfig
    engine: Engine
    session_factory: Callable[[], Session]
    clock: Clock

    habit_repo: SQLModelHabitRepository
    user_repo: SQLModelUserRepository

    habit_service: HabitService
    scheduler: HabitScheduler

    current_user: Optional[User] = None

    def require_user_id(self) -> int:
        """Return the current user id or raise if not set."""

        if self.current_user is None or self.current_user.id is None:
            raise RuntimeError("No active user profile")
        return self.current_user.id

    def refresh_user(self) -> User:
        """Reload the current user (e.g. after an upgrade)."""

        user = self.user_repo.get_by_id(self.require_user_id())
        if user is None:
            raise RuntimeError("Active user profile no longer exists")
        self.current_user = user
        return user

    def close(self) -> None:
        """Stop background reconciliation before releasing the database."""

        self.scheduler.shutdown()
        self.engine.dispose()


def create_app_context(
    config: Optional[BaseConfig] = None,
    *,
    clock: Optional[Clock] = None,
    username: Optional[str] = None,
) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()
    if clock is None:
        clock = SystemClock.from_config(config)

    engine, session_factory = bootstrap_database(config)

    habit_repo = SQLModelHabitRepository(session_factory)
    user_repo = SQLModelUserRepository(session_factory)

    habit_service = HabitService(
        habit_repo,
        user_repo,
        clock=clock,
        habit_limit=config.FREE_HABIT_LIMIT,
    )
    scheduler = create_scheduler(habit_service, config, clock=clock)

    current_user = users.ensure_user(username or config.DEFAULT_USERNAME, user_repo)

    # Clear check-ins from earlier days before anything reads the habits.
    try:
        habit_service.reconcile(user_id=current_user.id)
    except PersistenceError:
        logger.warning(
            f"Startup reconciliation failed for user {current_user.id}; continuing",
            extra={"user_id": current_user.id},
        )

    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        clock=clock,
        habit_repo=habit_repo,
        user_repo=user_repo,
        habit_service=habit_service,
        scheduler=scheduler,
        current_user=current_user,
    )
