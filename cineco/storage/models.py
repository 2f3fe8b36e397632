"""SQLAlchemy ORM models for CineCo."""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from cineco.storage.db import Base


class User(Base):
    """User profile and activity tracking."""

    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    display_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class Decision(Base):
    """One classified item in one bucket.

    Documents are keyed ``{user_id}_{category}_{item_id}`` within a bucket,
    so each (user, category, item) has at most one record per bucket.
    """

    __tablename__ = "decisions"

    bucket: Mapped[str] = mapped_column(String, primary_key=True)
    doc_id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    item_id: Mapped[int] = mapped_column(Integer, nullable=False)

    # Display metadata captured at decision time
    title: Mapped[str] = mapped_column(String, nullable=False, default="")
    year: Mapped[str] = mapped_column(String, nullable=False, default="N/A")
    poster_path: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    genre_ids_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "bucket IN ('watched', 'watchlisted', 'skipped')",
            name="ck_decisions_bucket",
        ),
        CheckConstraint("category IN ('movie', 'series')", name="ck_decisions_category"),
        Index("ix_decisions_user_category_bucket", "user_id", "category", "bucket"),
    )
