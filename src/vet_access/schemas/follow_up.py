"""
Follow-up request Pydantic schemas for validation and serialization.

This module contains the payload schemas for scheduling, deciding and
rescheduling follow-ups, and the response schemas for clinic listings.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models.follow_up import FollowUpStatus, FollowUpType
from ..utils.validation import require_text, sanitize_optional_text
from .access_request import MAX_REJECTION_REASON_LENGTH, DecisionAction

MAX_REASON_LENGTH = 1000
MAX_NOTES_LENGTH = 2000


def _require_aware(v: datetime) -> datetime:
    if v.tzinfo is None:
        raise ValueError("Scheduled date must be timezone-aware")
    return v


class FollowUpCreate(BaseModel):
    """Schema for scheduling a new follow-up."""

    model_config = ConfigDict(str_strip_whitespace=True)

    pet_id: UUID = Field(..., description="UUID of the pet")
    clinic_id: UUID = Field(..., description="UUID of the clinic")
    veterinarian_id: Optional[UUID] = Field(
        None, description="Veterinarian proposing the visit"
    )
    follow_up_type: FollowUpType = Field(..., description="Kind of follow-up")
    scheduled_date: datetime = Field(..., description="Proposed visit date and time")
    reason: str = Field(..., description="Why the follow-up is needed")
    notes: Optional[str] = Field(None, description="Additional notes for the owner")

    @field_validator("scheduled_date")
    @classmethod
    def validate_scheduled_date(cls, v: datetime) -> datetime:
        return _require_aware(v)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        return require_text(v, "Reason", MAX_REASON_LENGTH)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        v = sanitize_optional_text(v)
        if v is not None and len(v) > MAX_NOTES_LENGTH:
            raise ValueError(
                f"Notes are too long (maximum {MAX_NOTES_LENGTH} characters)"
            )
        return v


class FollowUpDecision(BaseModel):
    """Schema for approving or rejecting a follow-up."""

    model_config = ConfigDict(str_strip_whitespace=True)

    action: DecisionAction
    rejection_reason: Optional[str] = None

    @field_validator("rejection_reason")
    @classmethod
    def validate_rejection_reason(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_optional_text(v)

    @model_validator(mode="after")
    def validate_action_fields(self) -> "FollowUpDecision":
        if self.action == DecisionAction.REJECT:
            if not self.rejection_reason:
                raise ValueError("A rejection reason is required when rejecting")
            if len(self.rejection_reason) > MAX_REJECTION_REASON_LENGTH:
                raise ValueError(
                    f"Rejection reason is too long (maximum {MAX_REJECTION_REASON_LENGTH} characters)"
                )
        else:
            self.rejection_reason = None
        return self


class FollowUpReschedule(BaseModel):
    """Schema for moving a follow-up to a new date."""

    scheduled_date: datetime

    @field_validator("scheduled_date")
    @classmethod
    def validate_scheduled_date(cls, v: datetime) -> datetime:
        return _require_aware(v)


class FollowUpResponse(BaseModel):
    """Schema for follow-up responses."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    pet_id: UUID
    clinic_id: UUID
    veterinarian_id: Optional[UUID] = None
    follow_up_type: FollowUpType
    scheduled_date: datetime
    reason: str
    notes: Optional[str] = None
    status: FollowUpStatus
    created_at: datetime
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


class ClinicFollowUpView(FollowUpResponse):
    """Follow-up as listed to clinic staff."""

    pet_name: str
    owner_name: str
    is_today: bool


class FollowUpStats(BaseModel):
    """Follow-up counters for a clinic dashboard."""

    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    today: int = 0
