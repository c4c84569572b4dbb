"""
Clinic model for the vet-access package.

Clinics are directory records; the access-consent engine reads their
existence and display name and never writes them.
"""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel


class Clinic(BaseModel):
    """Veterinary clinic that may request access to pet records."""

    __tablename__ = "clinics"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Clinic display name",
    )

    phone_number: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Main clinic phone number",
    )

    def __repr__(self) -> str:
        return f"<Clinic(id={self.id}, name='{self.name}')>"
