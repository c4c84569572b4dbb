"""
ConsentDecisionEngine: the pet owner's approve or reject decision.

The status transition is a single conditional UPDATE matching only rows that
are still pending and inside their decision deadline. When two decisions race,
exactly one UPDATE matches; the other sees zero rows and raises
``AlreadyDecidedException``. Approval materializes the grant in the same
transaction.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from sqlalchemy import update

from ..exceptions import (
    AlreadyDecidedException,
    NotRequestOwnerException,
    RequestNotFoundException,
    ValidationException,
)
from ..models import AccessGrant, AccessRequest, AccessRequestStatus
from ..schemas import AccessDecision, DecisionAction
from .base import ServiceContext, event_payload, parse_payload
from .grants import AccessGrantStore
from .notifications import EventType, NotificationEvent

logger = logging.getLogger(__name__)


@dataclass
class DecisionResult:
    """The decided request and, for approvals, the grant it produced."""

    request: AccessRequest
    grant: Optional[AccessGrant] = None

    @property
    def approved(self) -> bool:
        return self.request.status == AccessRequestStatus.APPROVED


class ConsentDecisionEngine:
    """Applies owner decisions to pending access requests."""

    def __init__(self, context: ServiceContext, grants: AccessGrantStore):
        self.context = context
        self.grants = grants

    async def decide(
        self,
        request_id: uuid.UUID,
        deciding_owner_id: uuid.UUID,
        action: Union[DecisionAction, str],
        rejection_reason: Optional[str] = None,
        access_duration_days: Optional[int] = None,
    ) -> DecisionResult:
        """
        Approve or reject a pending access request.

        Args:
            request_id: Request to decide
            deciding_owner_id: Actor making the decision; must own the pet
            action: ``approve`` or ``reject``
            rejection_reason: Required when rejecting
            access_duration_days: Grant lifetime for approvals

        Returns:
            DecisionResult with the request and, on approval, the new grant

        Raises:
            SchemaValidationException: If the decision payload is invalid
            ValidationException: If the duration exceeds the configured maximum
            RequestNotFoundException: If the request does not exist
            NotRequestOwnerException: If the actor does not own the pet
            AlreadyDecidedException: If the request is no longer pending or its
                deadline has passed
        """
        decision = parse_payload(
            AccessDecision,
            action=action,
            rejection_reason=rejection_reason,
            access_duration_days=access_duration_days,
        )
        max_days = self.context.settings.max_grant_duration_days
        if (
            decision.access_duration_days is not None
            and decision.access_duration_days > max_days
        ):
            raise ValidationException(
                f"Access duration cannot exceed {max_days} days",
                field="access_duration_days",
                value=decision.access_duration_days,
            )

        async with self.context.reading() as session:
            request = await session.get(AccessRequest, request_id)
        if request is None:
            raise RequestNotFoundException(request_id)

        owner_id = await self.context.directory.owner_of(request.pet_id)
        if owner_id is None or owner_id != deciding_owner_id:
            raise NotRequestOwnerException(request_id, deciding_owner_id)

        approve = decision.action == DecisionAction.APPROVE
        async with self.context.session_manager.unit_of_work("decide_request") as session:
            now = self.context.now()
            values: Dict[str, Any] = {"decided_at": now, "updated_at": now}
            if approve:
                values["status"] = AccessRequestStatus.APPROVED
            else:
                values["status"] = AccessRequestStatus.REJECTED
                values["rejection_reason"] = decision.rejection_reason

            result = await session.execute(
                update(AccessRequest)
                .where(AccessRequest.id == request_id, AccessRequest.decidable_filter(now))
                .values(**values),
                execution_options={"synchronize_session": False},
            )

            request = await session.get(
                AccessRequest, request_id, populate_existing=True
            )
            if request is None:
                raise RequestNotFoundException(request_id)
            if result.rowcount != 1:
                current = (
                    AccessRequestStatus.EXPIRED.value
                    if request.is_overdue(now)
                    else request.status.value
                )
                raise AlreadyDecidedException(request_id, current)

            grant = None
            if approve:
                grant = await self.grants.materialize(
                    session,
                    request,
                    duration_days=decision.access_duration_days,
                    granted_by=deciding_owner_id,
                    now=now,
                )

        logger.info(f"Access request {request_id} {request.status.value} by owner")
        self._notify(request, grant)
        return DecisionResult(request=request, grant=grant)

    def _notify(self, request: AccessRequest, grant: Optional[AccessGrant]) -> None:
        recipient = request.requesting_actor_id or request.clinic_id
        if grant is not None:
            event = NotificationEvent(
                recipient_id=recipient,
                event_type=EventType.ACCESS_REQUEST_APPROVED,
                payload=event_payload(
                    request_id=request.id,
                    pet_id=request.pet_id,
                    clinic_id=request.clinic_id,
                    grant_id=grant.id,
                    expires_at=grant.expires_at,
                ),
            )
        else:
            event = NotificationEvent(
                recipient_id=recipient,
                event_type=EventType.ACCESS_REQUEST_REJECTED,
                payload=event_payload(
                    request_id=request.id,
                    pet_id=request.pet_id,
                    clinic_id=request.clinic_id,
                    rejection_reason=request.rejection_reason,
                ),
            )
        self.context.dispatcher.dispatch([event])
