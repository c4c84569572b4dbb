"""
FollowUpScheduler: follow-up visits guarded by the access predicate.

Creating, approving and rescheduling a follow-up all require the clinic to hold
live access to the pet, evaluated inside the same unit of work as the write.
The grant row is locked before the write and read again after it, so an owner
revocation either waits for the write or makes it roll back. Status transitions are conditional updates so that racing decisions resolve to
exactly one winner.
"""

import logging
import uuid
from datetime import datetime, time
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import (
    AccessDeniedException,
    AlreadyDecidedException,
    DuplicatePendingFollowUpException,
    FollowUpNotFoundException,
    FollowUpNotReschedulableException,
    NotFollowUpParticipantException,
    PetNotFoundException,
    ValidationException,
)
from ..models import (
    RESCHEDULABLE_STATUSES,
    FollowUpRequest,
    FollowUpStatus,
    FollowUpType,
    Pet,
    User,
)
from ..schemas import (
    ClinicFollowUpView,
    DecisionAction,
    FollowUpCreate,
    FollowUpDecision,
    FollowUpReschedule,
    FollowUpResponse,
    FollowUpStats,
)
from ..utils.datetime_utils import UTC, add_days, ensure_utc, utc_date
from .base import ServiceContext, event_payload, is_unique_violation, parse_payload
from .grants import AccessGrantStore
from .notifications import EventType, NotificationEvent

logger = logging.getLogger(__name__)


class FollowUpScheduler:
    """Owns follow-up request rows."""

    def __init__(self, context: ServiceContext, grants: AccessGrantStore):
        self.context = context
        self.grants = grants

    def _require_future(self, scheduled_date: datetime) -> datetime:
        scheduled_date = ensure_utc(scheduled_date)
        if scheduled_date <= self.context.now():
            raise ValidationException(
                "Scheduled date must be in the future",
                field="scheduled_date",
                value=scheduled_date.isoformat(),
            )
        return scheduled_date

    async def _require_live_grant(
        self, session: AsyncSession, pet_id: uuid.UUID, clinic_id: uuid.UUID
    ) -> None:
        if await self.grants.lock_active_grant(session, pet_id, clinic_id) is None:
            raise AccessDeniedException(pet_id, clinic_id)

    async def _load(self, follow_up_id: uuid.UUID) -> FollowUpRequest:
        async with self.context.reading() as session:
            follow_up = await session.get(FollowUpRequest, follow_up_id)
        if follow_up is None:
            raise FollowUpNotFoundException(follow_up_id)
        return follow_up

    async def _participant_role(
        self, follow_up: FollowUpRequest, actor_id: uuid.UUID
    ) -> Tuple[bool, Optional[uuid.UUID]]:
        """Return whether the actor is the owner, and the owner's id."""
        owner_id = await self.context.directory.owner_of(follow_up.pet_id)
        if owner_id is not None and owner_id == actor_id:
            return True, owner_id
        if await self.context.directory.is_clinic_member(follow_up.clinic_id, actor_id):
            return False, owner_id
        raise NotFollowUpParticipantException(follow_up.id, actor_id)

    async def create(
        self,
        pet_id: uuid.UUID,
        clinic_id: uuid.UUID,
        follow_up_type: Union[FollowUpType, str],
        scheduled_date: datetime,
        reason: str,
        veterinarian_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> FollowUpRequest:
        """
        Propose a follow-up visit for a pet the clinic has access to.

        Raises:
            SchemaValidationException: If the payload is invalid
            ValidationException: If the scheduled date is not in the future
            PetNotFoundException: If the pet does not exist
            AccessDeniedException: If the clinic holds no live grant
            DuplicatePendingFollowUpException: If a follow-up is already pending
        """
        payload = parse_payload(
            FollowUpCreate,
            pet_id=pet_id,
            clinic_id=clinic_id,
            veterinarian_id=veterinarian_id,
            follow_up_type=follow_up_type,
            scheduled_date=scheduled_date,
            reason=reason,
            notes=notes,
        )
        scheduled = self._require_future(payload.scheduled_date)

        owner_id = await self.context.directory.owner_of(payload.pet_id)
        if owner_id is None:
            raise PetNotFoundException(payload.pet_id)

        async with self.context.session_manager.unit_of_work("schedule_follow_up") as session:
            await self._require_live_grant(session, payload.pet_id, payload.clinic_id)

            now = self.context.now()
            follow_up = FollowUpRequest(
                pet_id=payload.pet_id,
                clinic_id=payload.clinic_id,
                veterinarian_id=payload.veterinarian_id,
                follow_up_type=payload.follow_up_type,
                scheduled_date=scheduled,
                reason=payload.reason,
                notes=payload.notes,
                status=FollowUpStatus.PENDING,
                created_at=now,
            )
            session.add(follow_up)
            try:
                await session.flush()
            except IntegrityError as e:
                if is_unique_violation(
                    e, FollowUpRequest.__table__, "uq_follow_up_requests_pending_pair"
                ):
                    raise DuplicatePendingFollowUpException(
                        payload.pet_id, payload.clinic_id
                    )
                raise
            # Re-read under the write lock: sees a revocation committed since the check.
            await self._require_live_grant(session, payload.pet_id, payload.clinic_id)

        logger.info(
            f"Clinic {follow_up.clinic_id} scheduled follow-up {follow_up.id} "
            f"for pet {follow_up.pet_id}"
        )
        self.context.dispatcher.dispatch(
            [
                NotificationEvent(
                    recipient_id=owner_id,
                    event_type=EventType.FOLLOW_UP_SCHEDULED,
                    payload=event_payload(
                        follow_up_id=follow_up.id,
                        pet_id=follow_up.pet_id,
                        clinic_id=follow_up.clinic_id,
                        follow_up_type=follow_up.follow_up_type,
                        scheduled_date=follow_up.scheduled_date,
                    ),
                )
            ]
        )
        return follow_up

    async def decide(
        self,
        follow_up_id: uuid.UUID,
        deciding_actor_id: uuid.UUID,
        action: Union[DecisionAction, str],
        rejection_reason: Optional[str] = None,
    ) -> FollowUpRequest:
        """
        Approve or reject a pending follow-up.

        The pet owner or any member of the clinic may decide. Approval needs
        live access; rejection does not, so an owner can always turn a visit
        down.

        Raises:
            SchemaValidationException: If rejecting without a reason
            FollowUpNotFoundException: If the follow-up does not exist
            NotFollowUpParticipantException: If the actor may not decide
            AccessDeniedException: If approving without live access
            AlreadyDecidedException: If the follow-up is no longer pending
        """
        decision = parse_payload(
            FollowUpDecision, action=action, rejection_reason=rejection_reason
        )
        follow_up = await self._load(follow_up_id)
        decided_by_owner, owner_id = await self._participant_role(
            follow_up, deciding_actor_id
        )

        approve = decision.action == DecisionAction.APPROVE
        async with self.context.session_manager.unit_of_work("decide_follow_up") as session:
            if approve:
                await self._require_live_grant(
                    session, follow_up.pet_id, follow_up.clinic_id
                )

            now = self.context.now()
            values: Dict[str, Any] = {"updated_at": now}
            if approve:
                values.update(status=FollowUpStatus.APPROVED, approved_at=now)
            else:
                values.update(
                    status=FollowUpStatus.REJECTED,
                    rejected_at=now,
                    rejection_reason=decision.rejection_reason,
                )
            result = await session.execute(
                update(FollowUpRequest)
                .where(
                    FollowUpRequest.id == follow_up_id,
                    FollowUpRequest.status == FollowUpStatus.PENDING,
                )
                .values(**values),
                execution_options={"synchronize_session": False},
            )
            if approve and result.rowcount == 1:
                await self._require_live_grant(
                    session, follow_up.pet_id, follow_up.clinic_id
                )

            follow_up = await session.get(
                FollowUpRequest, follow_up_id, populate_existing=True
            )
            if follow_up is None:
                raise FollowUpNotFoundException(follow_up_id)
            if result.rowcount != 1:
                raise AlreadyDecidedException(follow_up_id, follow_up.status.value)

        logger.info(f"Follow-up {follow_up_id} {follow_up.status.value}")

        if decided_by_owner or owner_id is None:
            recipient = follow_up.veterinarian_id or follow_up.clinic_id
        else:
            recipient = owner_id
        self.context.dispatcher.dispatch(
            [
                NotificationEvent(
                    recipient_id=recipient,
                    event_type=(
                        EventType.FOLLOW_UP_APPROVED
                        if approve
                        else EventType.FOLLOW_UP_REJECTED
                    ),
                    payload=event_payload(
                        follow_up_id=follow_up.id,
                        pet_id=follow_up.pet_id,
                        clinic_id=follow_up.clinic_id,
                        scheduled_date=follow_up.scheduled_date,
                        rejection_reason=follow_up.rejection_reason,
                    ),
                )
            ]
        )
        return follow_up

    async def reschedule(
        self, follow_up_id: uuid.UUID, new_date: datetime
    ) -> FollowUpRequest:
        """
        Move a pending or approved follow-up to a new date.

        The status is kept as it is.

        Raises:
            SchemaValidationException: If the date is not timezone-aware
            ValidationException: If the date is not in the future
            FollowUpNotFoundException: If the follow-up does not exist
            AccessDeniedException: If the clinic holds no live grant
            FollowUpNotReschedulableException: If the follow-up was rejected
        """
        payload = parse_payload(FollowUpReschedule, scheduled_date=new_date)
        scheduled = self._require_future(payload.scheduled_date)
        follow_up = await self._load(follow_up_id)
        owner_id = await self.context.directory.owner_of(follow_up.pet_id)

        async with self.context.session_manager.unit_of_work("reschedule_follow_up") as session:
            await self._require_live_grant(session, follow_up.pet_id, follow_up.clinic_id)

            result = await session.execute(
                update(FollowUpRequest)
                .where(
                    FollowUpRequest.id == follow_up_id,
                    FollowUpRequest.status.in_(RESCHEDULABLE_STATUSES),
                )
                .values(scheduled_date=scheduled, updated_at=self.context.now()),
                execution_options={"synchronize_session": False},
            )
            if result.rowcount == 1:
                await self._require_live_grant(
                    session, follow_up.pet_id, follow_up.clinic_id
                )

            follow_up = await session.get(
                FollowUpRequest, follow_up_id, populate_existing=True
            )
            if follow_up is None:
                raise FollowUpNotFoundException(follow_up_id)
            if result.rowcount != 1:
                raise FollowUpNotReschedulableException(
                    follow_up_id,
                    follow_up.status.value,
                    allowed=[s.value for s in RESCHEDULABLE_STATUSES],
                )

        logger.info(
            f"Follow-up {follow_up_id} rescheduled to {scheduled.isoformat()}"
        )
        if owner_id is not None:
            self.context.dispatcher.dispatch(
                [
                    NotificationEvent(
                        recipient_id=owner_id,
                        event_type=EventType.FOLLOW_UP_RESCHEDULED,
                        payload=event_payload(
                            follow_up_id=follow_up.id,
                            pet_id=follow_up.pet_id,
                            clinic_id=follow_up.clinic_id,
                            scheduled_date=follow_up.scheduled_date,
                            status=follow_up.status,
                        ),
                    )
                ]
            )
        return follow_up

    async def delete(self, follow_up_id: uuid.UUID, actor_id: uuid.UUID) -> None:
        """
        Permanently remove a follow-up.

        Raises:
            FollowUpNotFoundException: If the follow-up does not exist
            NotFollowUpParticipantException: If the actor may not delete it
        """
        follow_up = await self._load(follow_up_id)
        await self._participant_role(follow_up, actor_id)

        async with self.context.session_manager.unit_of_work("delete_follow_up") as session:
            result = await session.execute(
                delete(FollowUpRequest).where(FollowUpRequest.id == follow_up_id),
                execution_options={"synchronize_session": False},
            )
            if result.rowcount != 1:
                raise FollowUpNotFoundException(follow_up_id)

        logger.info(f"Follow-up {follow_up_id} deleted by {actor_id}")

    async def list_for_clinic(
        self,
        clinic_id: uuid.UUID,
        status: Optional[Union[FollowUpStatus, str]] = None,
    ) -> List[ClinicFollowUpView]:
        """The clinic's follow-ups in visit order, with pet and owner names."""
        now = self.context.now()
        stmt = (
            select(FollowUpRequest, Pet.name, User)
            .join(Pet, Pet.id == FollowUpRequest.pet_id)
            .join(User, User.id == Pet.owner_id)
            .where(FollowUpRequest.clinic_id == clinic_id)
        )
        if status is not None:
            stmt = stmt.where(FollowUpRequest.status == FollowUpStatus(status))

        async with self.context.reading() as session:
            rows = await session.execute(stmt.order_by(FollowUpRequest.scheduled_date))
            return [
                ClinicFollowUpView(
                    **FollowUpResponse.model_validate(follow_up).model_dump(),
                    pet_name=pet_name,
                    owner_name=owner.full_name,
                    is_today=follow_up.is_today(now),
                )
                for follow_up, pet_name, owner in rows
            ]

    async def stats(self, clinic_id: uuid.UUID) -> FollowUpStats:
        """Counts by status, plus pending visits scheduled for today (UTC)."""
        day_start = datetime.combine(utc_date(self.context.now()), time.min, tzinfo=UTC)
        day_end = add_days(day_start, 1)

        async with self.context.reading() as session:
            rows = await session.execute(
                select(FollowUpRequest.status, func.count(FollowUpRequest.id))
                .where(FollowUpRequest.clinic_id == clinic_id)
                .group_by(FollowUpRequest.status)
            )
            counts = {status: count for status, count in rows}
            today = await session.scalar(
                select(func.count(FollowUpRequest.id)).where(
                    FollowUpRequest.clinic_id == clinic_id,
                    FollowUpRequest.status == FollowUpStatus.PENDING,
                    FollowUpRequest.scheduled_date >= day_start,
                    FollowUpRequest.scheduled_date < day_end,
                )
            )

        return FollowUpStats(
            total=sum(counts.values()),
            pending=counts.get(FollowUpStatus.PENDING, 0),
            approved=counts.get(FollowUpStatus.APPROVED, 0),
            rejected=counts.get(FollowUpStatus.REJECTED, 0),
            today=today or 0,
        )
