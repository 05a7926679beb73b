"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Two tables.
- users: one row per identity, email unique (the constraint, not a lookup,
  is what rejects duplicates)
- refresh_generations: the identity's current refresh generation

generation_id is an autoincrement key that is never reused, even after the
row holding the highest id is deleted. SQLite only guarantees that with
AUTOINCREMENT, hence sqlite_autoincrement. The unique constraint on user_id
makes "at most one generation per user" a storage-level fact: rotation must
delete the old row before inserting the new one.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class User(Base):
    """A registered identity, keyed by email."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=new_uuid
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class RefreshGeneration(Base):
    """The current refresh generation of one user.

    Learn: Replaced wholesale on every refresh (delete + insert inside one
    transaction). A refresh token is honoured only if its generation_id
    matches the row stored here.
    """

    __tablename__ = "refresh_generations"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_refresh_generations_user"),
        {"sqlite_autoincrement": True},
    )

    generation_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
