"""
Game Platform Backend: Studio Verification Schemas
====================================================
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

StudioKind = Literal["developer", "publisher"]


class StudioSubmitRequest(BaseModel):
    """
    Evidence submitted for verification.

    Every optional field that is filled in raises the automatic-check
    confidence; see verification_service.evaluate_submission.
    """
    kind: StudioKind
    company_name: str = Field(min_length=2, max_length=200)
    website: Optional[str] = Field(default=None, max_length=500)
    contact_email: EmailStr
    tax_id: Optional[str] = Field(default=None, max_length=64)
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)
    description: Optional[str] = Field(default=None, max_length=5000)
    documents: List[str] = Field(
        default_factory=list,
        max_length=20,
        description="URLs of supporting documents (registration certificate, ...)",
    )

    @field_validator("country")
    @classmethod
    def upper_country(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class VerificationDecisionRequest(BaseModel):
    approve: bool
    notes: Optional[str] = Field(default=None, max_length=2000)


class StudioProfileResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    kind: str
    company_name: str
    website: Optional[str] = None
    contact_email: str
    tax_id: Optional[str] = None
    country: Optional[str] = None
    description: Optional[str] = None
    documents: List[str] = Field(default_factory=list)
    verification_status: str
    confidence: Optional[float] = None
    check_results: dict = Field(default_factory=dict)
    review_notes: Optional[str] = None
    submitted_at: datetime
    decided_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
