"""
Game Platform Backend: Game Catalog Model
===========================================

What:  ORM model for the `games` table.
Why:   The catalog service owns game metadata; the review service pushes
       rating aggregates into `average_rating` / `reviews_count` so catalog
       listings can sort by rating without a join.

Indexes:
    - slug (unique): lookup by URL-friendly name
    - (status, created_at): the default "newest published games" listing
    - developer_id: developer dashboards
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from gameplatform.database import Base, utcnow

GAME_STATUSES = ("draft", "published", "archived")


class Game(Base):
    __tablename__ = "games"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(220), nullable=False, unique=True, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    short_description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # ── Ownership ─────────────────────────────────────────────────────────
    developer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    developer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    publisher_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    publisher_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # ── Commerce ──────────────────────────────────────────────────────────
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # ── Classification ────────────────────────────────────────────────────
    genres: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    platforms: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    release_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Values: draft, published, archived
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    # ── Aggregates ────────────────────────────────────────────────────────
    average_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    reviews_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    views_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_games_status_created_at", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Game(id={self.id}, slug='{self.slug}', status='{self.status}')>"
