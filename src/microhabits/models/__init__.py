"""SQLModel table exports."""

from .habit import Habit
from .user import User

__all__ = [
    "Habit",
    "User",
]
