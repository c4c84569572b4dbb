"""
Access-consent services.

This module contains the components of the consent engine and the
``ConsentService`` facade that wires them together.
"""

from .base import ServiceContext, event_payload, is_unique_violation, parse_payload
from .decisions import ConsentDecisionEngine, DecisionResult
from .directory import DirectoryCollaborator, SqlDirectory
from .follow_ups import FollowUpScheduler
from .grants import AccessGrantStore
from .notifications import (
    CompositeNotifier,
    EventType,
    LoggingNotifier,
    NotificationCollaborator,
    NotificationDispatcher,
    NotificationEvent,
    WebhookNotifier,
    build_notifier,
)
from .registry import AccessRequestRegistry
from .revocation import REVOKED_BY_OWNER_REASON, RevocationManager, RevocationResult
from .service import ConsentService
from .sweeper import ExpirySweeper, SweepStats

__all__ = [
    # Facade
    "ConsentService",
    "ServiceContext",
    # Components
    "AccessRequestRegistry",
    "ConsentDecisionEngine",
    "DecisionResult",
    "AccessGrantStore",
    "RevocationManager",
    "RevocationResult",
    "REVOKED_BY_OWNER_REASON",
    "FollowUpScheduler",
    "ExpirySweeper",
    "SweepStats",
    # Collaborators
    "DirectoryCollaborator",
    "SqlDirectory",
    "NotificationCollaborator",
    "NotificationEvent",
    "NotificationDispatcher",
    "EventType",
    "LoggingNotifier",
    "WebhookNotifier",
    "CompositeNotifier",
    "build_notifier",
    # Helpers
    "parse_payload",
    "is_unique_violation",
    "event_payload",
]
