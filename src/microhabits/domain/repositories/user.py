"""User repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.user import User


class UserRepository(Protocol):
    """Repository for local user profiles."""

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Retrieve a user by ID."""
        ...

    def get_by_username(self, username: str) -> Optional[User]:
        """Retrieve a user by username."""
        ...

    def create(self, user: User) -> User:
        """Create a new user."""
        ...

    def set_pro(self, user_id: int, is_pro: bool) -> User:
        """Update the subscription flag."""
        ...
