"""
Game Platform Backend: Studio Profile Model
=============================================

What:  Developer / publisher company profile and its verification state.
Why:   Only verified studios may publish games under their name.

Verification States:
    submitted → auto_checking → approved | rejected | manual_review
    manual_review → approved | rejected   (admin decision)
    rejected → submitted                  (resubmission)
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from gameplatform.database import Base, utcnow

STUDIO_KINDS = ("developer", "publisher")
VERIFICATION_STATUSES = ("submitted", "auto_checking", "approved", "rejected", "manual_review")


class StudioProfile(Base):
    __tablename__ = "studio_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    company_name: Mapped[str] = mapped_column(String(200), nullable=False)
    website: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False)
    tax_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    documents: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    verification_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="submitted", index=True
    )
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # Per-signal scores of the last automatic check
    check_results: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    reviewer_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    review_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("user_id", "kind", name="uq_studio_profiles_user_kind"),
    )

    def __repr__(self) -> str:
        return (
            f"<StudioProfile(id={self.id}, kind='{self.kind}', "
            f"status='{self.verification_status}')>"
        )
