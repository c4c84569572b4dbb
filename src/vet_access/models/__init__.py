"""
Database models for the vet-access package.

This module contains the SQLAlchemy models for the access-consent engine and
the minimal directory tables (users, clinics, pets) it reads.
"""

from .access_grant import AccessGrant, GrantStatus
from .access_request import (
    TERMINAL_REQUEST_STATUSES,
    AccessRequest,
    AccessRequestStatus,
)

# Base model will be imported by all other models
from .base import Base, BaseModel, value_enum
from .clinic import Clinic
from .follow_up import (
    RESCHEDULABLE_STATUSES,
    FollowUpRequest,
    FollowUpStatus,
    FollowUpType,
)
from .pet import Pet

# Directory models
from .user import User, UserRole

__all__ = [
    "Base",
    "BaseModel",
    "value_enum",
    "User",
    "UserRole",
    "Clinic",
    "Pet",
    "AccessRequest",
    "AccessRequestStatus",
    "TERMINAL_REQUEST_STATUSES",
    "AccessGrant",
    "GrantStatus",
    "FollowUpRequest",
    "FollowUpStatus",
    "FollowUpType",
    "RESCHEDULABLE_STATUSES",
]
