"""
AccessGrant model for the vet-access package.

A grant is the materialized permission created when an owner approves an
access request. Grants are never deleted: revocation and expiry change their
status, and a later approval inserts a new row.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, and_, or_, text
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column

from ..utils.datetime_utils import is_past
from .base import BaseModel, value_enum


class GrantStatus(enum.Enum):
    """Enumeration of access grant statuses."""

    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class AccessGrant(BaseModel):
    """
    Time-boxed permission for a clinic to access a pet's record.

    "Has access" is computed from ``status`` and ``expires_at`` against the
    current time on every read; no derived flag is stored.
    """

    __tablename__ = "access_grants"

    def __init__(self, **kwargs):
        """Initialize AccessGrant with default values."""
        if "status" not in kwargs:
            kwargs["status"] = GrantStatus.ACTIVE
        super().__init__(**kwargs)

    pet_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pets.id", ondelete="CASCADE"),
        nullable=False,
        comment="UUID of the pet the grant covers",
    )

    clinic_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
        comment="UUID of the clinic holding the grant",
    )

    source_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("access_requests.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
        comment="Approved access request that produced this grant",
    )

    granted_by_actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Owner who approved the grant",
    )

    granted_at: Mapped[datetime] = mapped_column(
        nullable=False,
        comment="When the grant became effective",
    )

    expires_at: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        comment="When the grant lapses; NULL means no fixed expiry",
    )

    status: Mapped[GrantStatus] = mapped_column(
        value_enum(GrantStatus, "grantstatus"),
        nullable=False,
        default=GrantStatus.ACTIVE,
        comment="Current status of the grant",
    )

    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        comment="When the owner revoked the grant",
    )

    revoked_by_actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Owner who revoked the grant",
    )

    expired_at: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        comment="When the grant was marked expired",
    )

    __table_args__ = (
        CheckConstraint(
            "expires_at IS NULL OR expires_at > granted_at",
            name="ck_access_grants_expires_after_granted",
        ),
        CheckConstraint(
            "status != 'revoked' OR revoked_at IS NOT NULL",
            name="ck_access_grants_revoked_at_when_revoked",
        ),
        # At most one active grant per pet/clinic pair
        Index(
            "uq_access_grants_active_pair",
            "pet_id",
            "clinic_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("idx_access_grants_pair_granted", "pet_id", "clinic_id", "granted_at"),
        Index("idx_access_grants_status_expires", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AccessGrant(id={self.id}, pet_id={self.pet_id}, "
            f"clinic_id={self.clinic_id}, status='{self.status.value}')>"
        )

    @hybrid_property
    def is_active(self) -> bool:
        """Whether the grant is in the active state (expiry not considered)."""
        return self.status == GrantStatus.ACTIVE

    @is_active.inplace.expression
    @classmethod
    def _is_active_expression(cls):
        return cls.status == GrantStatus.ACTIVE

    def has_access(self, now: datetime) -> bool:
        """
        Evaluate the access predicate at ``now``.

        True only when the grant is active and either has no expiry or expires
        strictly after ``now``.
        """
        return self.status == GrantStatus.ACTIVE and not is_past(self.expires_at, now)

    def is_lapsed(self, now: datetime) -> bool:
        """Check if the grant is still marked active although its expiry passed."""
        return self.status == GrantStatus.ACTIVE and is_past(self.expires_at, now)

    @classmethod
    def live_filter(cls, now: datetime):
        """SQL form of :meth:`has_access`."""
        return and_(
            cls.status == GrantStatus.ACTIVE,
            or_(cls.expires_at.is_(None), cls.expires_at > now),
        )

    @classmethod
    def lapsed_filter(cls, now: datetime):
        """SQL form of :meth:`is_lapsed`."""
        return and_(
            cls.status == GrantStatus.ACTIVE,
            cls.expires_at.is_not(None),
            cls.expires_at <= now,
        )
