"""
Domain exceptions for the clinic access-consent engine.

Every exception here is a recoverable, user-facing outcome: the caller is
expected to render a specific message from ``error_code`` and ``details``.
Identifiers are stored in ``details`` as strings so the payload stays JSON
serializable.
"""

import uuid
from typing import Any, Dict, Iterable, Optional

from .core_exceptions import VetAccessException


def _ids(**ids: Optional[uuid.UUID]) -> Dict[str, Any]:
    return {name: str(value) for name, value in ids.items() if value is not None}


class AccessDomainException(VetAccessException):
    """Base exception for violations of an access-consent business rule."""

    default_message = "Access rule violated"
    default_code = "ACCESS_RULE_VIOLATION"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or self.default_message,
            error_code=self.default_code,
            details=details,
        )


class NotFoundException(VetAccessException):
    """Base exception for references to records that do not exist."""

    resource = "record"

    def __init__(self, resource_id: uuid.UUID, message: Optional[str] = None):
        """
        Initialize not-found exception.

        Args:
            resource_id: Identifier that could not be resolved
            message: Optional override of the default message
        """
        super().__init__(
            message=message or f"{self.resource.replace('_', ' ').capitalize()} not found",
            error_code=f"{self.resource.upper()}_NOT_FOUND",
            details={f"{self.resource}_id": str(resource_id)},
        )
        self.resource_id = resource_id


class RequestNotFoundException(NotFoundException):
    """Raised when an access request id is unknown."""

    resource = "request"


class FollowUpNotFoundException(NotFoundException):
    """Raised when a follow-up request id is unknown."""

    resource = "follow_up"


class PetNotFoundException(NotFoundException):
    """Raised when the directory has no pet with the given id."""

    resource = "pet"


class ClinicNotFoundException(NotFoundException):
    """Raised when the directory has no clinic with the given id."""

    resource = "clinic"


class DuplicatePendingRequestException(AccessDomainException):
    """Raised when the clinic already has a pending request for the pet."""

    default_message = "A pending access request already exists for this pet"
    default_code = "DUPLICATE_PENDING_REQUEST"

    def __init__(self, pet_id: uuid.UUID, clinic_id: uuid.UUID):
        super().__init__(details=_ids(pet_id=pet_id, clinic_id=clinic_id))
        self.pet_id = pet_id
        self.clinic_id = clinic_id


class AlreadyGrantedException(AccessDomainException):
    """Raised when the clinic already holds an active grant for the pet."""

    default_message = "The clinic already has access to this pet"
    default_code = "ALREADY_GRANTED"

    def __init__(
        self,
        pet_id: uuid.UUID,
        clinic_id: uuid.UUID,
        grant_id: Optional[uuid.UUID] = None,
    ):
        super().__init__(
            details=_ids(pet_id=pet_id, clinic_id=clinic_id, grant_id=grant_id)
        )
        self.pet_id = pet_id
        self.clinic_id = clinic_id


class AlreadyDecidedException(AccessDomainException):
    """Raised when a decision targets a request that is no longer pending."""

    default_message = "This request has already been decided"
    default_code = "ALREADY_DECIDED"

    def __init__(self, record_id: uuid.UUID, current_status: Optional[str] = None):
        details = _ids(record_id=record_id)
        if current_status:
            details["current_status"] = current_status
        super().__init__(details=details)
        self.record_id = record_id
        self.current_status = current_status


class NotRequestOwnerException(AccessDomainException):
    """Raised when someone other than the pet owner decides a request."""

    default_message = "Only the pet owner can decide this access request"
    default_code = "NOT_REQUEST_OWNER"

    def __init__(self, request_id: uuid.UUID, actor_id: uuid.UUID):
        super().__init__(details=_ids(request_id=request_id, actor_id=actor_id))


class NotPetOwnerException(AccessDomainException):
    """Raised when someone other than the pet owner revokes access."""

    default_message = "Only the pet owner can revoke clinic access"
    default_code = "NOT_PET_OWNER"

    def __init__(self, pet_id: uuid.UUID, actor_id: uuid.UUID):
        super().__init__(details=_ids(pet_id=pet_id, actor_id=actor_id))


class AccessDeniedException(AccessDomainException):
    """Raised when a grant-guarded action runs without an active grant."""

    default_message = "The clinic does not have access to this pet"
    default_code = "ACCESS_DENIED"

    def __init__(self, pet_id: uuid.UUID, clinic_id: uuid.UUID):
        super().__init__(details=_ids(pet_id=pet_id, clinic_id=clinic_id))
        self.pet_id = pet_id
        self.clinic_id = clinic_id


class NoActiveGrantException(AccessDomainException):
    """Raised when revoking a pair that has no active grant."""

    default_message = "There is no active access grant to revoke"
    default_code = "NO_ACTIVE_GRANT"

    def __init__(self, pet_id: uuid.UUID, clinic_id: uuid.UUID):
        super().__init__(details=_ids(pet_id=pet_id, clinic_id=clinic_id))


class DuplicatePendingFollowUpException(AccessDomainException):
    """Raised when a pending follow-up already exists for the pair."""

    default_message = "A pending follow-up already exists for this pet"
    default_code = "DUPLICATE_PENDING_FOLLOW_UP"

    def __init__(self, pet_id: uuid.UUID, clinic_id: uuid.UUID):
        super().__init__(details=_ids(pet_id=pet_id, clinic_id=clinic_id))


class NotFollowUpParticipantException(AccessDomainException):
    """Raised when the actor is neither the pet owner nor clinic staff."""

    default_message = "Only the pet owner or clinic staff can change this follow-up"
    default_code = "NOT_FOLLOW_UP_PARTICIPANT"

    def __init__(self, follow_up_id: uuid.UUID, actor_id: uuid.UUID):
        super().__init__(details=_ids(follow_up_id=follow_up_id, actor_id=actor_id))


class FollowUpNotReschedulableException(AccessDomainException):
    """Raised when rescheduling a follow-up that is already terminal."""

    default_message = "Only pending or approved follow-ups can be rescheduled"
    default_code = "FOLLOW_UP_NOT_RESCHEDULABLE"

    def __init__(
        self,
        follow_up_id: uuid.UUID,
        current_status: str,
        allowed: Iterable[str] = ("pending", "approved"),
    ):
        details = _ids(follow_up_id=follow_up_id)
        details["current_status"] = current_status
        details["allowed_statuses"] = list(allowed)
        super().__init__(details=details)
