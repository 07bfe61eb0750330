"""SQLAlchemy ORM models for the bookmark store."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class User(Base):
    """An authenticated person, keyed by the auth provider's user id."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(200), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Bookmark(Base):
    """A listing saved by a user. One row per (user, content id)."""

    __tablename__ = "bookmarks"
    __table_args__ = (UniqueConstraint("user_id", "content_id", name="unique_user_bookmark"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content_id = Column(String(50), nullable=False, index=True)
    # Set in Python so ordering has sub-second resolution on every backend
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
