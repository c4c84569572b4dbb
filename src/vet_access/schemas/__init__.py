"""
Pydantic schemas for validation and serialization.

This module contains the payload schemas accepted by the access-consent
service and the response schemas it returns.
"""

from .access_grant import (
    AccessCheckResponse,
    AccessGrantResponse,
    ActiveGrantView,
    RevocationResponse,
)
from .access_request import (
    AccessDecision,
    AccessDecisionResponse,
    AccessRequestCreate,
    AccessRequestResponse,
    DecisionAction,
    PendingAccessRequestView,
)
from .follow_up import (
    ClinicFollowUpView,
    FollowUpCreate,
    FollowUpDecision,
    FollowUpReschedule,
    FollowUpResponse,
    FollowUpStats,
)

__all__ = [
    # Access request schemas
    "DecisionAction",
    "AccessRequestCreate",
    "AccessDecision",
    "AccessRequestResponse",
    "PendingAccessRequestView",
    "AccessDecisionResponse",
    # Access grant schemas
    "AccessGrantResponse",
    "ActiveGrantView",
    "AccessCheckResponse",
    "RevocationResponse",
    # Follow-up schemas
    "FollowUpCreate",
    "FollowUpDecision",
    "FollowUpReschedule",
    "FollowUpResponse",
    "ClinicFollowUpView",
    "FollowUpStats",
]
