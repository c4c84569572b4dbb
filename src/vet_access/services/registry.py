"""
AccessRequestRegistry: the lifecycle of clinic access requests.

A request is created pending with a decision deadline. The "one pending
request per pet and clinic" rule is enforced by the partial unique index on
``access_requests``; a violation surfaces as ``DuplicatePendingRequestException``.
Overdue requests are expired lazily when a new request for the same pair is
made, and in bulk by ``expire_overdue``.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from ..exceptions import (
    AlreadyGrantedException,
    ClinicNotFoundException,
    DuplicatePendingRequestException,
    PetNotFoundException,
)
from ..models import AccessRequest, AccessRequestStatus, Clinic, Pet, User
from ..schemas import AccessRequestCreate, AccessRequestResponse, PendingAccessRequestView
from ..utils.datetime_utils import add_days
from .base import ServiceContext, event_payload, is_unique_violation, parse_payload
from .grants import AccessGrantStore
from .notifications import EventType, NotificationEvent

logger = logging.getLogger(__name__)


class AccessRequestRegistry:
    """Owns access request rows from creation until expiry."""

    def __init__(self, context: ServiceContext, grants: AccessGrantStore):
        self.context = context
        self.grants = grants

    async def create(
        self,
        pet_id: uuid.UUID,
        clinic_id: uuid.UUID,
        reason: str,
        requesting_actor_id: Optional[uuid.UUID] = None,
    ) -> AccessRequest:
        """
        Submit a clinic's request for access to a pet.

        Args:
            pet_id: Pet whose record is requested
            clinic_id: Requesting clinic
            reason: Why access is needed; must not be blank
            requesting_actor_id: Staff member submitting the request

        Returns:
            The new pending request

        Raises:
            SchemaValidationException: If the payload is invalid
            PetNotFoundException: If the pet does not exist
            ClinicNotFoundException: If the clinic does not exist
            AlreadyGrantedException: If the clinic already has live access
            DuplicatePendingRequestException: If a request is already pending
        """
        payload = parse_payload(
            AccessRequestCreate,
            pet_id=pet_id,
            clinic_id=clinic_id,
            reason=reason,
            requesting_actor_id=requesting_actor_id,
        )

        directory = self.context.directory
        if not await directory.pet_exists(payload.pet_id):
            raise PetNotFoundException(payload.pet_id)
        if not await directory.clinic_exists(payload.clinic_id):
            raise ClinicNotFoundException(payload.clinic_id)
        owner_id = await directory.owner_of(payload.pet_id)

        async with self.context.session_manager.unit_of_work("request_access") as session:
            now = self.context.now()
            await self._expire_overdue(
                session, now, pet_id=payload.pet_id, clinic_id=payload.clinic_id
            )

            grant = await self.grants.get_active_grant(
                payload.pet_id, payload.clinic_id, session=session
            )
            if grant is not None:
                raise AlreadyGrantedException(
                    payload.pet_id, payload.clinic_id, grant_id=grant.id
                )

            request = AccessRequest(
                pet_id=payload.pet_id,
                clinic_id=payload.clinic_id,
                requesting_actor_id=payload.requesting_actor_id,
                reason=payload.reason,
                status=AccessRequestStatus.PENDING,
                created_at=now,
                expires_at=add_days(now, self.context.settings.request_ttl_days),
            )
            session.add(request)
            try:
                await session.flush()
            except IntegrityError as e:
                if is_unique_violation(
                    e, AccessRequest.__table__, "uq_access_requests_pending_pair"
                ):
                    raise DuplicatePendingRequestException(
                        payload.pet_id, payload.clinic_id
                    )
                raise

        logger.info(
            f"Clinic {request.clinic_id} requested access to pet {request.pet_id} "
            f"(request {request.id})"
        )
        if owner_id is not None:
            self.context.dispatcher.dispatch(
                [
                    NotificationEvent(
                        recipient_id=owner_id,
                        event_type=EventType.ACCESS_REQUEST_CREATED,
                        payload=event_payload(
                            request_id=request.id,
                            pet_id=request.pet_id,
                            clinic_id=request.clinic_id,
                            reason=request.reason,
                            expires_at=request.expires_at,
                        ),
                    )
                ]
            )
        return request

    async def list_pending_for_owner(
        self, owner_id: uuid.UUID
    ) -> List[PendingAccessRequestView]:
        """Pending, decidable requests for the owner's pets, newest first."""
        now = self.context.now()
        requester = aliased(User)
        async with self.context.reading() as session:
            rows = await session.execute(
                select(AccessRequest, Pet.name, Clinic.name, requester)
                .join(Pet, Pet.id == AccessRequest.pet_id)
                .join(Clinic, Clinic.id == AccessRequest.clinic_id)
                .outerjoin(requester, requester.id == AccessRequest.requesting_actor_id)
                .where(Pet.owner_id == owner_id, AccessRequest.decidable_filter(now))
                .order_by(AccessRequest.created_at.desc())
            )
            return [
                PendingAccessRequestView(
                    **AccessRequestResponse.model_validate(request).model_dump(),
                    pet_name=pet_name,
                    clinic_name=clinic_name,
                    requesting_actor_name=actor.full_name if actor else None,
                )
                for request, pet_name, clinic_name, actor in rows
            ]

    async def list_for_clinic(
        self,
        clinic_id: uuid.UUID,
        pet_id: Optional[uuid.UUID] = None,
        status: Optional[Union[AccessRequestStatus, str]] = None,
    ) -> List[AccessRequest]:
        """The clinic's own requests, newest first."""
        stmt = select(AccessRequest).where(AccessRequest.clinic_id == clinic_id)
        if pet_id is not None:
            stmt = stmt.where(AccessRequest.pet_id == pet_id)
        if status is not None:
            stmt = stmt.where(AccessRequest.status == AccessRequestStatus(status))
        async with self.context.reading() as session:
            result = await session.scalars(stmt.order_by(AccessRequest.created_at.desc()))
            return list(result)

    async def expire_overdue(self, session: Optional[AsyncSession] = None) -> int:
        """
        Expire every pending request whose decision deadline has passed.

        The update only matches rows still pending, so a request decided
        concurrently is never overwritten. Idempotent.

        Returns:
            Number of requests expired
        """
        now = self.context.now()
        async with self.context.writing("expire_overdue_requests", session) as db:
            count = await self._expire_overdue(db, now)
        if count:
            logger.info(f"Expired {count} overdue access request(s)")
        return count

    async def _expire_overdue(
        self,
        session: AsyncSession,
        now: datetime,
        pet_id: Optional[uuid.UUID] = None,
        clinic_id: Optional[uuid.UUID] = None,
    ) -> int:
        stmt = update(AccessRequest).where(AccessRequest.overdue_filter(now))
        if pet_id is not None:
            stmt = stmt.where(AccessRequest.pet_id == pet_id)
        if clinic_id is not None:
            stmt = stmt.where(AccessRequest.clinic_id == clinic_id)
        result = await session.execute(
            stmt.values(
                status=AccessRequestStatus.EXPIRED, decided_at=now, updated_at=now
            ),
            execution_options={"synchronize_session": False},
        )
        return result.rowcount
