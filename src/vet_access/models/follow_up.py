"""
FollowUpRequest model for the vet-access package.

A follow-up is a future clinic visit proposed for a pet. It may only be
created while the clinic holds live access, is decided once by the pet owner
or clinic staff, and can be rescheduled until it is rejected.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from ..utils.datetime_utils import is_same_utc_day
from .base import BaseModel, value_enum


class FollowUpStatus(enum.Enum):
    """Enumeration of follow-up request statuses."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class FollowUpType(enum.Enum):
    """Enumeration of follow-up visit types."""

    POST_SURGERY = "post_surgery"
    MEDICATION = "medication"
    CHRONIC_CONDITION = "chronic_condition"
    RECOVERY = "recovery"
    CHECKUP = "checkup"


RESCHEDULABLE_STATUSES = (FollowUpStatus.PENDING, FollowUpStatus.APPROVED)


class FollowUpRequest(BaseModel):
    """Follow-up visit proposed by a clinic for a pet it has access to."""

    __tablename__ = "follow_up_requests"

    def __init__(self, **kwargs):
        """Initialize FollowUpRequest with default values."""
        if "status" not in kwargs:
            kwargs["status"] = FollowUpStatus.PENDING
        super().__init__(**kwargs)

    pet_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pets.id", ondelete="CASCADE"),
        nullable=False,
        comment="UUID of the pet to be seen",
    )

    clinic_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
        comment="UUID of the clinic proposing the visit",
    )

    veterinarian_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Veterinarian who proposed the visit",
    )

    follow_up_type: Mapped[FollowUpType] = mapped_column(
        value_enum(FollowUpType, "followuptype"),
        nullable=False,
        comment="Kind of follow-up visit",
    )

    scheduled_date: Mapped[datetime] = mapped_column(
        nullable=False,
        comment="Proposed date and time of the visit",
    )

    reason: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Why the follow-up is needed",
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Additional notes for the owner",
    )

    status: Mapped[FollowUpStatus] = mapped_column(
        value_enum(FollowUpStatus, "followupstatus"),
        nullable=False,
        default=FollowUpStatus.PENDING,
        comment="Current status of the follow-up",
    )

    approved_at: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        comment="When the follow-up was approved",
    )

    rejected_at: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        comment="When the follow-up was rejected",
    )

    rejection_reason: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Reason given when the follow-up was rejected",
    )

    __table_args__ = (
        CheckConstraint(
            "status != 'approved' OR approved_at IS NOT NULL",
            name="ck_follow_up_requests_approved_at_when_approved",
        ),
        CheckConstraint(
            "status != 'rejected' OR rejected_at IS NOT NULL",
            name="ck_follow_up_requests_rejected_at_when_rejected",
        ),
        # At most one pending follow-up per pet/clinic pair
        Index(
            "uq_follow_up_requests_pending_pair",
            "pet_id",
            "clinic_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_follow_up_requests_pet_clinic", "pet_id", "clinic_id"),
        Index("idx_follow_up_requests_clinic_scheduled", "clinic_id", "scheduled_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<FollowUpRequest(id={self.id}, pet_id={self.pet_id}, "
            f"scheduled_date='{self.scheduled_date}', status='{self.status.value}')>"
        )

    @property
    def is_pending(self) -> bool:
        return self.status == FollowUpStatus.PENDING

    @property
    def can_be_rescheduled(self) -> bool:
        return self.status in RESCHEDULABLE_STATUSES

    def is_today(self, now: datetime) -> bool:
        """Check if the visit falls on the same UTC day as ``now``."""
        return is_same_utc_day(self.scheduled_date, now)
