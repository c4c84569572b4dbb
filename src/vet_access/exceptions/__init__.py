"""
Custom exceptions for the vet-access package.

This module defines the exception hierarchy used throughout the clinic
access-consent engine: domain-rule violations, not-found errors, validation
errors and infrastructure failures.
"""

from .access_exceptions import (
    AccessDeniedException,
    AccessDomainException,
    AlreadyDecidedException,
    AlreadyGrantedException,
    ClinicNotFoundException,
    DuplicatePendingFollowUpException,
    DuplicatePendingRequestException,
    FollowUpNotFoundException,
    FollowUpNotReschedulableException,
    NoActiveGrantException,
    NotFollowUpParticipantException,
    NotFoundException,
    NotPetOwnerException,
    NotRequestOwnerException,
    PetNotFoundException,
    RequestNotFoundException,
)
from .core_exceptions import (
    ConfigurationException,
    ConnectionException,
    DatabaseException,
    MigrationException,
    SchemaValidationException,
    TransactionException,
    ValidationException,
    VetAccessException,
    format_validation_errors,
)

__all__ = [
    # Base and infrastructure exceptions
    "VetAccessException",
    "DatabaseException",
    "ConnectionException",
    "TransactionException",
    "MigrationException",
    "ValidationException",
    "SchemaValidationException",
    "ConfigurationException",
    # Domain exceptions
    "AccessDomainException",
    "DuplicatePendingRequestException",
    "AlreadyGrantedException",
    "AlreadyDecidedException",
    "NotRequestOwnerException",
    "NotPetOwnerException",
    "AccessDeniedException",
    "NoActiveGrantException",
    "DuplicatePendingFollowUpException",
    "NotFollowUpParticipantException",
    "FollowUpNotReschedulableException",
    # Not-found exceptions
    "NotFoundException",
    "RequestNotFoundException",
    "FollowUpNotFoundException",
    "PetNotFoundException",
    "ClinicNotFoundException",
    # Utility functions
    "format_validation_errors",
]
