"""
User model for the vet-access package.

Users are directory records owned by the surrounding application. The
access-consent engine only reads them: to resolve the owner of a pet, clinic
membership of staff, and display names.
"""

import enum
import uuid
from typing import Optional

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, value_enum


class UserRole(enum.Enum):
    """Enumeration of user roles relevant to access consent."""

    PET_OWNER = "pet_owner"
    VETERINARIAN = "veterinarian"
    VET_TECH = "vet_tech"
    CLINIC_ADMIN = "clinic_admin"


class User(BaseModel):
    """Directory user: pet owner or clinic staff member."""

    __tablename__ = "users"

    def __init__(self, **kwargs):
        """Initialize User with default values."""
        if "role" not in kwargs:
            kwargs["role"] = UserRole.PET_OWNER
        super().__init__(**kwargs)

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        comment="User's email address",
    )

    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="User's first name",
    )

    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="User's last name",
    )

    role: Mapped[UserRole] = mapped_column(
        value_enum(UserRole, "userrole"),
        nullable=False,
        default=UserRole.PET_OWNER,
        comment="User's role in the platform",
    )

    clinic_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("clinics.id", ondelete="SET NULL"),
        nullable=True,
        comment="Clinic the staff member works at; NULL for pet owners",
    )

    __table_args__ = (Index("idx_users_clinic", "clinic_id"),)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"

    @property
    def full_name(self) -> str:
        """Get user's full name."""
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_clinic_staff(self) -> bool:
        return self.role != UserRole.PET_OWNER and self.clinic_id is not None
