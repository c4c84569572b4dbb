"""
ConsentService: the public entry point of the access-consent engine.

The facade wires the registry, decision engine, grant store, revocation
manager, follow-up scheduler and expiry sweep around one ``ServiceContext``
and returns Pydantic response schemas rather than ORM rows.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncEngine

from ..database.connection import close_engine, create_engine
from ..database.session import SessionManager
from ..exceptions import ConfigurationException
from ..models import AccessRequestStatus, FollowUpStatus, FollowUpType
from ..schemas import (
    AccessCheckResponse,
    AccessDecisionResponse,
    AccessGrantResponse,
    AccessRequestResponse,
    ActiveGrantView,
    ClinicFollowUpView,
    DecisionAction,
    FollowUpResponse,
    FollowUpStats,
    PendingAccessRequestView,
    RevocationResponse,
)
from ..utils.config import AccessSettings, LoggingConfigurator
from ..utils.datetime_utils import Clock, get_current_utc
from .base import ServiceContext
from .decisions import ConsentDecisionEngine
from .directory import DirectoryCollaborator, SqlDirectory
from .follow_ups import FollowUpScheduler
from .grants import AccessGrantStore
from .notifications import NotificationCollaborator, NotificationDispatcher, build_notifier
from .registry import AccessRequestRegistry
from .revocation import RevocationManager
from .sweeper import ExpirySweeper, SweepStats

logger = logging.getLogger(__name__)


class ConsentService:
    """Clinic access-consent and grant engine."""

    def __init__(self, context: ServiceContext, engine: Optional[AsyncEngine] = None):
        self.context = context
        self._engine = engine
        self.grants = AccessGrantStore(context)
        self.registry = AccessRequestRegistry(context, self.grants)
        self.decisions = ConsentDecisionEngine(context, self.grants)
        self.revocations = RevocationManager(context, self.grants)
        self.follow_ups = FollowUpScheduler(context, self.grants)
        self.sweeper = ExpirySweeper(self.registry, self.grants, context.settings)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[AccessSettings] = None,
        directory: Optional[DirectoryCollaborator] = None,
        notifier: Optional[NotificationCollaborator] = None,
        clock: Clock = get_current_utc,
    ) -> "ConsentService":
        """
        Build a service with its own engine from settings.

        Args:
            settings: Engine settings; read from the environment when omitted
            directory: Pet/clinic directory; defaults to the SQL directory tables
            notifier: Notification transport; defaults to one built from settings
            clock: Source of the current time

        Raises:
            ConfigurationException: If no database URL is configured
        """
        settings = settings or AccessSettings.from_env()
        if not settings.database_url:
            raise ConfigurationException(
                "A database URL is required", config_key="database_url"
            )

        LoggingConfigurator.set_package_level(settings.log_level)
        engine = create_engine(settings.database_url)
        session_manager = SessionManager(engine)
        context = ServiceContext(
            session_manager=session_manager,
            directory=directory or SqlDirectory(session_manager),
            dispatcher=NotificationDispatcher(notifier or build_notifier(settings)),
            settings=settings,
            clock=clock,
        )
        logger.info("Consent service configured")
        return cls(context, engine=engine)

    async def start(self) -> None:
        """Start the background expiry sweep."""
        await self.sweeper.start()

    async def close(self) -> None:
        """Stop the sweep, flush notifications and dispose an owned engine."""
        await self.sweeper.stop()
        await self.context.dispatcher.drain(
            timeout=self.context.settings.notification_timeout_seconds
        )
        if self._engine is not None:
            await close_engine(self._engine)
            self._engine = None

    # Access requests

    async def request_access(
        self,
        pet_id: uuid.UUID,
        clinic_id: uuid.UUID,
        reason: str,
        requesting_actor_id: Optional[uuid.UUID] = None,
    ) -> AccessRequestResponse:
        request = await self.registry.create(
            pet_id, clinic_id, reason, requesting_actor_id=requesting_actor_id
        )
        return AccessRequestResponse.model_validate(request)

    async def list_pending_requests(
        self, owner_id: uuid.UUID
    ) -> List[PendingAccessRequestView]:
        return await self.registry.list_pending_for_owner(owner_id)

    async def list_clinic_requests(
        self,
        clinic_id: uuid.UUID,
        pet_id: Optional[uuid.UUID] = None,
        status: Optional[Union[AccessRequestStatus, str]] = None,
    ) -> List[AccessRequestResponse]:
        requests = await self.registry.list_for_clinic(
            clinic_id, pet_id=pet_id, status=status
        )
        return [AccessRequestResponse.model_validate(r) for r in requests]

    async def decide_request(
        self,
        request_id: uuid.UUID,
        deciding_owner_id: uuid.UUID,
        action: Union[DecisionAction, str],
        rejection_reason: Optional[str] = None,
        access_duration_days: Optional[int] = None,
    ) -> AccessDecisionResponse:
        result = await self.decisions.decide(
            request_id,
            deciding_owner_id,
            action,
            rejection_reason=rejection_reason,
            access_duration_days=access_duration_days,
        )
        return AccessDecisionResponse(
            request=AccessRequestResponse.model_validate(result.request),
            grant=(
                AccessGrantResponse.model_validate(result.grant)
                if result.grant is not None
                else None
            ),
        )

    # Grants

    async def has_access(self, pet_id: uuid.UUID, clinic_id: uuid.UUID) -> bool:
        """Whether the clinic may access the pet's record right now."""
        return await self.grants.has_active_access(pet_id, clinic_id)

    async def check_access(
        self, pet_id: uuid.UUID, clinic_id: uuid.UUID
    ) -> AccessCheckResponse:
        """The access answer together with the grant that provides it."""
        grant = await self.grants.get_active_grant(pet_id, clinic_id)
        return AccessCheckResponse(
            has_access=grant is not None,
            grant=AccessGrantResponse.model_validate(grant) if grant else None,
        )

    async def list_active_grants(self, pet_id: uuid.UUID) -> List[ActiveGrantView]:
        rows = await self.grants.list_active_grants(pet_id)
        return [
            ActiveGrantView(
                **AccessGrantResponse.model_validate(grant).model_dump(),
                clinic_name=clinic_name,
            )
            for grant, clinic_name in rows
        ]

    async def revoke_access(
        self,
        pet_id: uuid.UUID,
        clinic_id: uuid.UUID,
        revoking_owner_id: uuid.UUID,
    ) -> RevocationResponse:
        result = await self.revocations.revoke(pet_id, clinic_id, revoking_owner_id)
        return RevocationResponse(
            grant=AccessGrantResponse.model_validate(result.grant),
            rejected_follow_up_ids=[f.id for f in result.rejected_follow_ups],
            rejected_request_ids=result.rejected_request_ids,
        )

    # Follow-ups

    async def schedule_follow_up(
        self,
        pet_id: uuid.UUID,
        clinic_id: uuid.UUID,
        follow_up_type: Union[FollowUpType, str],
        scheduled_date: datetime,
        reason: str,
        veterinarian_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> FollowUpResponse:
        follow_up = await self.follow_ups.create(
            pet_id,
            clinic_id,
            follow_up_type,
            scheduled_date,
            reason,
            veterinarian_id=veterinarian_id,
            notes=notes,
        )
        return FollowUpResponse.model_validate(follow_up)

    async def decide_follow_up(
        self,
        follow_up_id: uuid.UUID,
        deciding_actor_id: uuid.UUID,
        action: Union[DecisionAction, str],
        rejection_reason: Optional[str] = None,
    ) -> FollowUpResponse:
        follow_up = await self.follow_ups.decide(
            follow_up_id, deciding_actor_id, action, rejection_reason=rejection_reason
        )
        return FollowUpResponse.model_validate(follow_up)

    async def reschedule_follow_up(
        self, follow_up_id: uuid.UUID, new_date: datetime
    ) -> FollowUpResponse:
        follow_up = await self.follow_ups.reschedule(follow_up_id, new_date)
        return FollowUpResponse.model_validate(follow_up)

    async def delete_follow_up(
        self, follow_up_id: uuid.UUID, actor_id: uuid.UUID
    ) -> None:
        await self.follow_ups.delete(follow_up_id, actor_id)

    async def list_clinic_follow_ups(
        self,
        clinic_id: uuid.UUID,
        status: Optional[Union[FollowUpStatus, str]] = None,
    ) -> List[ClinicFollowUpView]:
        return await self.follow_ups.list_for_clinic(clinic_id, status=status)

    async def follow_up_stats(self, clinic_id: uuid.UUID) -> FollowUpStats:
        return await self.follow_ups.stats(clinic_id)

    # Maintenance

    async def expire_overdue(self) -> SweepStats:
        """Expire overdue requests and lapsed grants once."""
        return await self.sweeper.run_once()
