"""SQLAlchemy ORM models for cinerank."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cinerank.storage.db import Base


class KeyValueEntry(Base):
    """Opaque string values (JSON documents) keyed by namespaced keys."""

    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class ApiCallCount(Base):
    """Completion calls made per UTC day and media kind."""

    __tablename__ = "api_call_counts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    day: Mapped[str] = mapped_column(String, nullable=False)
    media_kind: Mapped[str] = mapped_column(String, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("day", "media_kind", name="uq_api_call_counts_day_kind"),
        CheckConstraint("media_kind IN ('movie', 'tv')", name="ck_api_call_counts_kind"),
        Index("ix_api_call_counts_day", "day"),
    )
