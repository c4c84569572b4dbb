"""
AccessRequest model for the vet-access package.

An access request is a clinic's ask to read and write one pet's medical
record. It is created pending and leaves that state exactly once: approved or
rejected by the pet owner, or expired when the decision deadline passes.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, and_, text
from sqlalchemy.orm import Mapped, mapped_column

from ..utils.datetime_utils import is_past
from .base import BaseModel, value_enum


class AccessRequestStatus(enum.Enum):
    """Enumeration of access request statuses."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


TERMINAL_REQUEST_STATUSES = frozenset(
    {
        AccessRequestStatus.APPROVED,
        AccessRequestStatus.REJECTED,
        AccessRequestStatus.EXPIRED,
    }
)


class AccessRequest(BaseModel):
    """
    Clinic request for access to a pet's record.

    Status changes are applied by the registry and decision engine through
    conditional updates; nothing else assigns ``status``.
    """

    __tablename__ = "access_requests"

    def __init__(self, **kwargs):
        """Initialize AccessRequest with default values."""
        if "status" not in kwargs:
            kwargs["status"] = AccessRequestStatus.PENDING
        super().__init__(**kwargs)

    pet_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pets.id", ondelete="CASCADE"),
        nullable=False,
        comment="UUID of the pet whose record is requested",
    )

    clinic_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
        comment="UUID of the requesting clinic",
    )

    requesting_actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Veterinarian or staff member who submitted the request",
    )

    reason: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Why the clinic needs access",
    )

    status: Mapped[AccessRequestStatus] = mapped_column(
        value_enum(AccessRequestStatus, "accessrequeststatus"),
        nullable=False,
        default=AccessRequestStatus.PENDING,
        comment="Current status of the request",
    )

    decided_at: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        comment="When the request was approved, rejected or expired",
    )

    expires_at: Mapped[datetime] = mapped_column(
        nullable=False,
        comment="Deadline for the owner's decision",
    )

    rejection_reason: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Reason given when the request was rejected",
    )

    __table_args__ = (
        CheckConstraint(
            "expires_at > created_at",
            name="ck_access_requests_expires_after_created",
        ),
        CheckConstraint(
            "status = 'rejected' OR rejection_reason IS NULL",
            name="ck_access_requests_rejection_reason_only_when_rejected",
        ),
        CheckConstraint(
            "status = 'pending' OR decided_at IS NOT NULL",
            name="ck_access_requests_decided_at_when_terminal",
        ),
        # At most one pending request per pet/clinic pair
        Index(
            "uq_access_requests_pending_pair",
            "pet_id",
            "clinic_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_access_requests_pet_clinic", "pet_id", "clinic_id"),
        Index("idx_access_requests_clinic_status", "clinic_id", "status"),
        Index("idx_access_requests_status_expires", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AccessRequest(id={self.id}, pet_id={self.pet_id}, "
            f"clinic_id={self.clinic_id}, status='{self.status.value}')>"
        )

    @property
    def is_pending(self) -> bool:
        return self.status == AccessRequestStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_REQUEST_STATUSES

    def is_overdue(self, now: datetime) -> bool:
        """Check if the request is pending past its decision deadline."""
        return self.is_pending and is_past(self.expires_at, now)

    def can_be_decided(self, now: datetime) -> bool:
        """Check if the owner may still approve or reject this request."""
        return self.is_pending and not is_past(self.expires_at, now)

    @classmethod
    def decidable_filter(cls, now: datetime):
        """
        Filter matching requests that are still pending and not overdue.

        Used as the WHERE clause of the decision update, so it doubles as the
        concurrency gate for competing decisions.
        """
        return and_(cls.status == AccessRequestStatus.PENDING, cls.expires_at > now)

    @classmethod
    def overdue_filter(cls, now: datetime):
        """Filter matching pending requests whose deadline has passed."""
        return and_(cls.status == AccessRequestStatus.PENDING, cls.expires_at <= now)
