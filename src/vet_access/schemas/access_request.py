"""
Access request Pydantic schemas for validation and serialization.

This module contains the payload schemas for requesting access and deciding
a request, plus the response schemas returned by the service facade.
"""

import enum
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models.access_request import AccessRequestStatus
from ..utils.validation import require_text, sanitize_optional_text
from .access_grant import AccessGrantResponse

MAX_REASON_LENGTH = 1000
MAX_REJECTION_REASON_LENGTH = 500
MAX_GRANT_DURATION_DAYS = 3650


class DecisionAction(str, enum.Enum):
    """Owner or staff decision on a pending request."""

    APPROVE = "approve"
    REJECT = "reject"


class AccessRequestCreate(BaseModel):
    """Schema for a clinic's request for access to a pet."""

    model_config = ConfigDict(str_strip_whitespace=True)

    pet_id: UUID = Field(..., description="UUID of the pet")
    clinic_id: UUID = Field(..., description="UUID of the requesting clinic")
    requesting_actor_id: Optional[UUID] = Field(
        None, description="Veterinarian or staff member submitting the request"
    )
    reason: str = Field(..., description="Why the clinic needs access")

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        """Reason must contain text."""
        return require_text(v, "Reason", MAX_REASON_LENGTH)


class AccessDecision(BaseModel):
    """Schema for an owner's decision on an access request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    action: DecisionAction = Field(..., description="approve or reject")
    rejection_reason: Optional[str] = Field(
        None, description="Required when rejecting"
    )
    access_duration_days: Optional[int] = Field(
        None,
        description="Lifetime of the resulting grant in days",
        ge=1,
        le=MAX_GRANT_DURATION_DAYS,
    )

    @field_validator("rejection_reason")
    @classmethod
    def validate_rejection_reason(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_optional_text(v)

    @model_validator(mode="after")
    def validate_action_fields(self) -> "AccessDecision":
        """Rejections need a reason; fields for the other action are dropped."""
        if self.action == DecisionAction.REJECT:
            if not self.rejection_reason:
                raise ValueError("A rejection reason is required when rejecting")
            if len(self.rejection_reason) > MAX_REJECTION_REASON_LENGTH:
                raise ValueError(
                    f"Rejection reason is too long (maximum {MAX_REJECTION_REASON_LENGTH} characters)"
                )
            self.access_duration_days = None
        else:
            self.rejection_reason = None
        return self


class AccessRequestResponse(BaseModel):
    """Schema for access request responses."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    pet_id: UUID
    clinic_id: UUID
    requesting_actor_id: Optional[UUID] = None
    reason: str
    status: AccessRequestStatus
    created_at: datetime
    decided_at: Optional[datetime] = None
    expires_at: datetime
    rejection_reason: Optional[str] = None


class PendingAccessRequestView(AccessRequestResponse):
    """Pending request as shown to the pet owner, with display data."""

    pet_name: str
    clinic_name: str
    requesting_actor_name: Optional[str] = None


class AccessDecisionResponse(BaseModel):
    """Outcome of a decision: the decided request and, on approval, its grant."""

    request: AccessRequestResponse
    grant: Optional[AccessGrantResponse] = None
