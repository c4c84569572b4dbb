"""
Pet model for the vet-access package.

Pets are directory records. Each pet has exactly one owner, the only actor
allowed to grant, deny or revoke clinic access to its record. Deleting a pet
cascades to every access request, grant and follow-up that references it.
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel


class Pet(BaseModel):
    """Pet whose medical record is protected by owner consent."""

    __tablename__ = "pets"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="UUID of the pet owner",
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Pet's name",
    )

    species: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Species, free text",
    )

    def __repr__(self) -> str:
        return f"<Pet(id={self.id}, name='{self.name}', owner_id={self.owner_id})>"
