"""Local profile management and the Pro upgrade toggle."""

from __future__ import annotations

from typing import Optional

from ..domain.repositories import UserRepository
from ..logging_config import get_logger
from ..models.user import User

logger = get_logger("services.users")


def ensure_user(
    username: str,
    user_repo: UserRepository,
    *,
    full_name: Optional[str] = None,
) -> User:
    """Create or return the profile with the given username."""

    username = (username or "").strip()
    if not username:
        raise ValueError("Username cannot be empty")
    existing = user_repo.get_by_username(username)
    if existing:
        return existing
    user = user_repo.create(User(username=username, full_name=full_name))
    logger.info(f"Created profile {username!r}", extra={"user_id": user.id})
    return user


def upgrade_to_pro(user_id: int, user_repo: UserRepository) -> User:
    """Lift the free-plan habit limit for a user."""

    user = user_repo.set_pro(user_id, True)
    logger.info(f"User {user_id} upgraded to Pro")
    return user


def downgrade(user_id: int, user_repo: UserRepository) -> User:
    """Return a user to the free plan; existing habits above the limit are kept."""

    user = user_repo.set_pro(user_id, False)
    logger.info(f"User {user_id} returned to the free plan")
    return user


__all__ = ["downgrade", "ensure_user", "upgrade_to_pro"]
