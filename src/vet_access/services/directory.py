"""
Directory collaborator: read-only lookups of pets, clinics and staff.

The access-consent engine never creates or deletes directory records. It only
asks whether a pet or clinic exists, who owns a pet, and whether an actor
works at a clinic. ``SqlDirectory`` answers from the ``users``, ``clinics``
and ``pets`` tables; applications with their own directory service implement
``DirectoryCollaborator`` instead.
"""

import uuid
from typing import Optional, Protocol, runtime_checkable

from sqlalchemy import select

from ..database.session import SessionManager
from ..models import Clinic, Pet, User


@runtime_checkable
class DirectoryCollaborator(Protocol):
    """Read-only view of the pet, clinic and actor directory."""

    async def pet_exists(self, pet_id: uuid.UUID) -> bool: ...

    async def owner_of(self, pet_id: uuid.UUID) -> Optional[uuid.UUID]: ...

    async def clinic_exists(self, clinic_id: uuid.UUID) -> bool: ...

    async def is_clinic_member(
        self, clinic_id: uuid.UUID, actor_id: uuid.UUID
    ) -> bool: ...


class SqlDirectory:
    """Directory backed by the package's own directory tables."""

    def __init__(self, session_manager: SessionManager):
        self.session_manager = session_manager

    async def pet_exists(self, pet_id: uuid.UUID) -> bool:
        return await self.owner_of(pet_id) is not None

    async def owner_of(self, pet_id: uuid.UUID) -> Optional[uuid.UUID]:
        async with self.session_manager.get_session() as session:
            return await session.scalar(select(Pet.owner_id).where(Pet.id == pet_id))

    async def clinic_exists(self, clinic_id: uuid.UUID) -> bool:
        async with self.session_manager.get_session() as session:
            found = await session.scalar(select(Clinic.id).where(Clinic.id == clinic_id))
        return found is not None

    async def is_clinic_member(
        self, clinic_id: uuid.UUID, actor_id: uuid.UUID
    ) -> bool:
        async with self.session_manager.get_session() as session:
            found = await session.scalar(
                select(User.id).where(User.id == actor_id, User.clinic_id == clinic_id)
            )
        return found is not None

