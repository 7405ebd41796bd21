"""User profile model carrying the subscription flag."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlalchemy import Column
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

from .types import UTCDateTime, utcnow


class User(SQLModel, table=True):
    """Local profile owning a collection of habits."""

    __tablename__: ClassVar[str] = "user"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(nullable=False, unique=True, index=True, max_length=64)
    full_name: Optional[str] = Field(default=None, max_length=120)
    is_pro: bool = Field(default=False, nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UTCDateTime(), nullable=False),
    )

    habits = Relationship(
        back_populates="user",
        sa_relationship=relationship("Habit", back_populates="user"),
    )
