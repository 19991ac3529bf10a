"""
Game Platform Backend: Studio Verification Service
====================================================

What:  Developer/publisher verification workflow.
Why:   Only verified studios may publish games; most submissions can be
       decided automatically, the rest go to an admin.
How:   submit() stores the profile as SUBMITTED, moves it to AUTO_CHECKING,
       scores the evidence and lands it in APPROVED, REJECTED or
       MANUAL_REVIEW in the same transaction.

State Machine:
    (none | rejected) ──submit──▶ submitted ──▶ auto_checking
    auto_checking ──confidence >= approve──▶ approved
    auto_checking ──confidence <  reject───▶ rejected
    auto_checking ──otherwise──────────────▶ manual_review
    manual_review ──decide(approve)────────▶ approved | rejected

Confidence Signals (sum, capped at 1.0):
    company name present                      0.15
    website over HTTPS (HTTP only: 0.10)      0.20
    contact e-mail domain matches website     0.20
    tax id in a plausible format              0.20
    country given                             0.05
    documents (one: 0.10, two or more: 0.20)  0.20
"""

import logging
import re
import uuid
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gameplatform.config import settings
from gameplatform.database import utcnow
from gameplatform.exceptions import ConflictError, NotFoundError
from gameplatform.models.studio import StudioProfile
from gameplatform.models.user import User
from gameplatform.schemas.studio import StudioProfileResponse, StudioSubmitRequest
from gameplatform.services.notification_service import notification_service

logger = logging.getLogger(__name__)

TAX_ID_PATTERN = re.compile(r"^[A-Z0-9-]{5,20}$")
RESUBMITTABLE = ("rejected",)


def _host(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    host = urlparse(url if "://" in url else f"https://{url}").hostname
    if host and host.startswith("www."):
        host = host[4:]
    return host


def evaluate_submission(data: StudioSubmitRequest) -> Tuple[float, Dict[str, float]]:
    """
    Deterministic confidence score for the submitted evidence.

    Returns:
        (confidence in [0, 1], per-signal scores)
    """
    scores: Dict[str, float] = {}
    scores["company_name"] = 0.15 if data.company_name.strip() else 0.0

    website = (data.website or "").strip().lower()
    if website.startswith("https://"):
        scores["website"] = 0.2
    elif website.startswith("http://"):
        scores["website"] = 0.1
    else:
        scores["website"] = 0.0

    host = _host(website)
    email_domain = str(data.contact_email).rsplit("@", 1)[-1].lower()
    domain_match = bool(host) and (email_domain == host or email_domain.endswith("." + host))
    scores["email_domain"] = 0.2 if domain_match else 0.0

    tax_id = (data.tax_id or "").strip().upper()
    scores["tax_id"] = 0.2 if TAX_ID_PATTERN.match(tax_id) else 0.0
    scores["country"] = 0.05 if data.country else 0.0

    documents = [d for d in data.documents if d.strip()]
    scores["documents"] = 0.2 if len(documents) >= 2 else 0.1 if documents else 0.0

    confidence = round(min(1.0, sum(scores.values())), 4)
    return confidence, scores


def outcome_for(confidence: float) -> str:
    if confidence >= settings.verification_approve_threshold:
        return "approved"
    if confidence < settings.verification_reject_threshold:
        return "rejected"
    return "manual_review"


class VerificationService:

    async def submit(
        self, db: AsyncSession, user: User, data: StudioSubmitRequest
    ) -> StudioProfileResponse:
        result = await db.execute(
            select(StudioProfile).where(
                StudioProfile.user_id == user.id, StudioProfile.kind == data.kind
            )
        )
        profile = result.scalars().first()
        if profile is not None and profile.verification_status not in RESUBMITTABLE:
            raise ConflictError(
                f"A {data.kind} profile is already {profile.verification_status.replace('_', ' ')}",
                context={"status": profile.verification_status},
            )

        fields = data.model_dump(exclude={"kind"})
        fields["contact_email"] = str(data.contact_email).lower()
        if profile is None:
            profile = StudioProfile(user_id=user.id, kind=data.kind, **fields)
            db.add(profile)
        else:
            for field, value in fields.items():
                setattr(profile, field, value)
            profile.reviewer_id = None
            profile.review_notes = None
            profile.decided_at = None
        profile.verification_status = "submitted"
        profile.submitted_at = utcnow()
        await db.flush()

        profile.verification_status = "auto_checking"
        confidence, scores = evaluate_submission(data)
        profile.confidence = confidence
        profile.check_results = scores
        status = outcome_for(confidence)
        logger.info(
            "Automatic check for %s profile %s: confidence=%.2f → %s",
            profile.kind,
            profile.id,
            confidence,
            status,
        )

        if status == "manual_review":
            profile.verification_status = status
            await db.flush()
            await self._notify(db, profile, "Your verification is under review",
                               "An administrator will review your submission shortly.")
        else:
            await self._finish(db, profile, user, approved=status == "approved")
        return StudioProfileResponse.model_validate(profile)

    async def decide(
        self,
        db: AsyncSession,
        admin: User,
        profile_id: uuid.UUID,
        approve: bool,
        notes: Optional[str] = None,
    ) -> StudioProfileResponse:
        profile = await db.get(StudioProfile, profile_id)
        if profile is None:
            raise NotFoundError(resource="studio profile", resource_id=str(profile_id))
        if profile.verification_status != "manual_review":
            raise ConflictError(
                "Only profiles in manual review can be decided",
                context={"status": profile.verification_status},
            )
        owner = await db.get(User, profile.user_id)
        profile.reviewer_id = admin.id
        profile.review_notes = notes
        await self._finish(db, profile, owner, approved=approve)
        logger.info("Admin %s %s profile %s", admin.id, "approved" if approve else "rejected", profile.id)
        return StudioProfileResponse.model_validate(profile)

    async def _finish(
        self, db: AsyncSession, profile: StudioProfile, owner: Optional[User], approved: bool
    ) -> None:
        profile.verification_status = "approved" if approved else "rejected"
        profile.decided_at = utcnow()
        # Admins and already-upgraded accounts keep their role
        if approved and owner is not None and owner.role == "user":
            owner.role = profile.kind
        await db.flush()

        if approved:
            await self._notify(
                db, profile, "Verification approved",
                f"{profile.company_name} is now a verified {profile.kind}.",
            )
        else:
            reason = f" Notes: {profile.review_notes}" if profile.review_notes else ""
            await self._notify(
                db, profile, "Verification rejected",
                f"We could not verify {profile.company_name}. You can update the details and resubmit.{reason}",
            )

    async def _notify(self, db: AsyncSession, profile: StudioProfile, title: str, message: str) -> None:
        await notification_service.create_notification(
            db,
            user_id=profile.user_id,
            type="verification",
            title=title,
            message=message,
            data={
                "profile_id": str(profile.id),
                "kind": profile.kind,
                "status": profile.verification_status,
            },
        )

    # ── Queries ───────────────────────────────────────────────────────────

    async def get_my_profiles(self, db: AsyncSession, user_id: uuid.UUID) -> List[StudioProfileResponse]:
        result = await db.execute(
            select(StudioProfile)
            .where(StudioProfile.user_id == user_id)
            .order_by(StudioProfile.kind)
        )
        return [StudioProfileResponse.model_validate(p) for p in result.scalars().all()]

    async def list_pending(self, db: AsyncSession, limit: int = 50, offset: int = 0) -> List[StudioProfileResponse]:
        result = await db.execute(
            select(StudioProfile)
            .where(StudioProfile.verification_status == "manual_review")
            .order_by(StudioProfile.submitted_at.asc())
            .limit(limit)
            .offset(offset)
        )
        return [StudioProfileResponse.model_validate(p) for p in result.scalars().all()]

    async def get_profile(self, db: AsyncSession, profile_id: uuid.UUID) -> StudioProfileResponse:
        profile = await db.get(StudioProfile, profile_id)
        if profile is None:
            raise NotFoundError(resource="studio profile", resource_id=str(profile_id))
        return StudioProfileResponse.model_validate(profile)

    async def get_approved_profile(
        self, db: AsyncSession, user_id: uuid.UUID, kind: str
    ) -> Optional[StudioProfile]:
        result = await db.execute(
            select(StudioProfile).where(
                StudioProfile.user_id == user_id,
                StudioProfile.kind == kind,
                StudioProfile.verification_status == "approved",
            )
        )
        return result.scalars().first()


# ── Singleton Instance ────────────────────────────────────────────────────
verification_service = VerificationService()
