"""
Access grant Pydantic schemas for serialization.

Grants are never created from client payloads, so this module only holds
response schemas.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models.access_grant import GrantStatus


class AccessGrantResponse(BaseModel):
    """Schema for access grant responses."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    pet_id: UUID
    clinic_id: UUID
    source_request_id: Optional[UUID] = None
    granted_by_actor_id: Optional[UUID] = None
    granted_at: datetime
    expires_at: Optional[datetime] = None
    status: GrantStatus
    is_active: bool
    revoked_at: Optional[datetime] = None
    revoked_by_actor_id: Optional[UUID] = None
    expired_at: Optional[datetime] = None


class ActiveGrantView(AccessGrantResponse):
    """Live grant as listed to the pet owner."""

    clinic_name: str


class AccessCheckResponse(BaseModel):
    """Answer to "may this clinic access this pet right now"."""

    has_access: bool
    grant: Optional[AccessGrantResponse] = None


class RevocationResponse(BaseModel):
    """Outcome of a revocation and its cascade."""

    grant: AccessGrantResponse
    rejected_follow_up_ids: List[UUID] = Field(default_factory=list)
    rejected_request_ids: List[UUID] = Field(default_factory=list)
