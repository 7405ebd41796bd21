"""SQLModel implementation of User repository."""

from __future__ import annotations

from typing import Callable, Optional

from sqlmodel import Session, select

from ...models.user import User


class SQLModelUserRepository:
    """SQLModel-based user repository."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with self.session_factory() as session:
            user = session.get(User, user_id)
            if user:
                session.expunge(user)
            return user

    def get_by_username(self, username: str) -> Optional[User]:
        with self.session_factory() as session:
            user = session.exec(select(User).where(User.username == username.strip())).first()
            if user:
                session.expunge(user)
            return user

    def create(self, user: User) -> User:
        with self.session_factory() as session:
            user.username = user.username.strip()
            session.add(user)
            session.commit()
            session.refresh(user)
            session.expunge(user)
            return user

    def set_pro(self, user_id: int, is_pro: bool) -> User:
        with self.session_factory() as session:
            user = session.get(User, user_id)
            if user is None:
                raise ValueError("User not found")
            user.is_pro = is_pro
            session.add(user)
            session.commit()
            session.refresh(user)
            session.expunge(user)
            return user


__all__ = ["SQLModelUserRepository"]
