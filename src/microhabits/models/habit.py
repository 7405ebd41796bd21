"""Habit tracking data structures."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy import Column
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

from .types import UTCDateTime, utcnow

if TYPE_CHECKING:  # pragma: no cover
    from .user import User

NAME_MAX_LENGTH = 80
EMOJI_MAX_LENGTH = 16


class Habit(SQLModel, table=True):
    """A user-defined habit checked off at most once per local day."""

    __tablename__: ClassVar[str] = "habit"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    name: str = Field(nullable=False, max_length=NAME_MAX_LENGTH)
    emoji: Optional[str] = Field(default=None, max_length=EMOJI_MAX_LENGTH)
    completed: bool = Field(default=False, nullable=False, index=True)
    streak: int = Field(default=0, nullable=False, ge=0)
    last_completed_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(UTCDateTime(), nullable=True),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UTCDateTime(), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UTCDateTime(), nullable=False),
    )

    user: "User" = Relationship(sa_relationship=relationship("User", back_populates="habits"))

    def __repr__(self) -> str:
        return (
            f"Habit(id={self.id!r}, name={self.name!r}, completed={self.completed!r}, "
            f"streak={self.streak!r})"
        )
