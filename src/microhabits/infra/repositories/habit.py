"""SQLModel implementation of Habit repository."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from sqlalchemy import and_, func, or_, update
from sqlmodel import Session, select

from ...domain.errors import HabitConflictError, HabitNotFoundError
from ...models.habit import Habit
from ...models.types import utcnow

# Columns a partial update may touch; id, owner and created_at are immutable.
UPDATABLE_FIELDS = frozenset(
    {"name", "emoji", "completed", "streak", "last_completed_at", "updated_at"}
)


class SQLModelHabitRepository:
    """SQLModel-based habit repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, habit_id: int, *, user_id: int) -> Optional[Habit]:
        """Retrieve a habit by ID."""
        with self.session_factory() as session:
            obj = session.exec(
                select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_all(self, *, user_id: int) -> list[Habit]:
        """List the owner's habits in creation order."""
        with self.session_factory() as session:
            statement = (
                select(Habit)
                .where(Habit.user_id == user_id)
                .order_by(Habit.created_at, Habit.id)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def count(self, *, user_id: int) -> int:
        """Count the owner's live habits."""
        with self.session_factory() as session:
            return session.exec(
                select(func.count(Habit.id)).where(Habit.user_id == user_id)  # type: ignore
            ).one()

    def create(self, habit: Habit, *, user_id: int) -> Habit:
        """Create a new habit."""
        with self.session_factory() as session:
            habit.user_id = user_id
            session.add(habit)
            session.commit()
            session.refresh(habit)
            session.expunge(habit)
            return habit

    def update(
        self,
        habit_id: int,
        fields: Mapping[str, Any],
        *,
        user_id: int,
        expected_completed: Optional[bool] = None,
    ) -> Habit:
        """Apply a partial update as one conditional UPDATE statement.

        When ``expected_completed`` is given the row is only written if its
        ``completed`` flag still holds that value, so a read-evaluate-write on
        one habit cannot interleave with another on the same habit.
        """
        values = dict(fields)
        unknown = set(values) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update habit fields: {', '.join(sorted(unknown))}")
        values.setdefault("updated_at", utcnow())

        owned = and_(Habit.id == habit_id, Habit.user_id == user_id)
        with self.session_factory() as session:
            statement = update(Habit).where(owned)
            if expected_completed is not None:
                statement = statement.where(Habit.completed == expected_completed)
            result = session.exec(  # type: ignore[call-overload]
                statement.values(**values).execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                session.rollback()
                if session.exec(select(Habit.id).where(owned)).first() is None:
                    raise HabitNotFoundError(habit_id, user_id)
                raise HabitConflictError(habit_id)
            session.commit()

            obj = session.exec(select(Habit).where(owned)).one()
            session.expunge(obj)
            return obj

    def delete(self, habit_id: int, *, user_id: int) -> None:
        """Delete a habit by ID."""
        with self.session_factory() as session:
            habit = session.exec(
                select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
            ).first()
            if habit is None:
                raise HabitNotFoundError(habit_id, user_id)
            session.delete(habit)
            session.commit()

    def clear_stale_completions(self, *, user_id: int, before: datetime) -> list[int]:
        """Clear ``completed`` on habits last completed before ``before``.

        Streak and ``last_completed_at`` are left untouched. The predicate is
        repeated in the UPDATE so a habit re-completed in the meantime is skipped.
        """
        stale = and_(
            Habit.user_id == user_id,
            Habit.completed == True,  # noqa: E712
            or_(
                Habit.last_completed_at.is_(None),  # type: ignore[union-attr]
                Habit.last_completed_at < before,  # type: ignore[operator]
            ),
        )
        with self.session_factory() as session:
            ids = list(session.exec(select(Habit.id).where(stale).order_by(Habit.id)).all())  # type: ignore
            if not ids:
                return []
            session.exec(  # type: ignore[call-overload]
                update(Habit)
                .where(Habit.id.in_(ids), stale)  # type: ignore[union-attr]
                .values(completed=False, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return ids
