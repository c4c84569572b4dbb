"""
RevocationManager: owner-initiated termination of a grant.

Revocation and its cascade are one unit of work: the grant is revoked, every
pending follow-up for the same pet and clinic is rejected, and any pending
access request for the pair is rejected too. Either all of it commits or none
of it does.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List

from sqlalchemy import select, update

from ..exceptions import NoActiveGrantException, NotPetOwnerException, PetNotFoundException
from ..models import (
    AccessGrant,
    AccessRequest,
    AccessRequestStatus,
    FollowUpRequest,
    FollowUpStatus,
    GrantStatus,
)
from .base import ServiceContext, event_payload
from .grants import AccessGrantStore
from .notifications import EventType, NotificationEvent

logger = logging.getLogger(__name__)

REVOKED_BY_OWNER_REASON = "access revoked by owner"


@dataclass
class RevocationResult:
    """The revoked grant and the records rejected with it."""

    grant: AccessGrant
    rejected_follow_ups: List[FollowUpRequest] = field(default_factory=list)
    rejected_request_ids: List[uuid.UUID] = field(default_factory=list)


class RevocationManager:
    """Revokes grants and resolves the state that depended on them."""

    def __init__(self, context: ServiceContext, grants: AccessGrantStore):
        self.context = context
        self.grants = grants

    async def revoke(
        self,
        pet_id: uuid.UUID,
        clinic_id: uuid.UUID,
        revoking_owner_id: uuid.UUID,
    ) -> RevocationResult:
        """
        Revoke the clinic's access to the pet.

        Raises:
            PetNotFoundException: If the pet does not exist
            NotPetOwnerException: If the actor does not own the pet
            NoActiveGrantException: If the clinic has no live grant
        """
        directory = self.context.directory
        if not await directory.pet_exists(pet_id):
            raise PetNotFoundException(pet_id)
        if await directory.owner_of(pet_id) != revoking_owner_id:
            raise NotPetOwnerException(pet_id, revoking_owner_id)

        async with self.context.session_manager.unit_of_work("revoke_access") as session:
            now = self.context.now()
            grant = await self.grants.get_active_grant(pet_id, clinic_id, session=session)
            if grant is None:
                raise NoActiveGrantException(pet_id, clinic_id)

            revoked = await session.execute(
                update(AccessGrant)
                .where(AccessGrant.id == grant.id, AccessGrant.status == GrantStatus.ACTIVE)
                .values(
                    status=GrantStatus.REVOKED,
                    revoked_at=now,
                    revoked_by_actor_id=revoking_owner_id,
                    updated_at=now,
                ),
                execution_options={"synchronize_session": False},
            )
            if revoked.rowcount != 1:
                raise NoActiveGrantException(pet_id, clinic_id)

            pending_follow_ups = (
                FollowUpRequest.pet_id == pet_id,
                FollowUpRequest.clinic_id == clinic_id,
                FollowUpRequest.status == FollowUpStatus.PENDING,
            )
            follow_up_ids = list(
                await session.scalars(select(FollowUpRequest.id).where(*pending_follow_ups))
            )
            if follow_up_ids:
                await session.execute(
                    update(FollowUpRequest)
                    .where(FollowUpRequest.id.in_(follow_up_ids), *pending_follow_ups)
                    .values(
                        status=FollowUpStatus.REJECTED,
                        rejected_at=now,
                        rejection_reason=REVOKED_BY_OWNER_REASON,
                        updated_at=now,
                    ),
                    execution_options={"synchronize_session": False},
                )

            request_ids = list(
                await session.scalars(
                    select(AccessRequest.id).where(
                        AccessRequest.pet_id == pet_id,
                        AccessRequest.clinic_id == clinic_id,
                        AccessRequest.status == AccessRequestStatus.PENDING,
                    )
                )
            )
            if request_ids:
                await session.execute(
                    update(AccessRequest)
                    .where(
                        AccessRequest.id.in_(request_ids),
                        AccessRequest.status == AccessRequestStatus.PENDING,
                    )
                    .values(
                        status=AccessRequestStatus.REJECTED,
                        decided_at=now,
                        rejection_reason=REVOKED_BY_OWNER_REASON,
                        updated_at=now,
                    ),
                    execution_options={"synchronize_session": False},
                )

            grant = await session.get(AccessGrant, grant.id, populate_existing=True)
            rejected_follow_ups = []
            if follow_up_ids:
                rejected_follow_ups = list(
                    await session.scalars(
                        select(FollowUpRequest)
                        .where(FollowUpRequest.id.in_(follow_up_ids))
                        .execution_options(populate_existing=True)
                    )
                )

        logger.info(
            f"Owner revoked clinic {clinic_id} access to pet {pet_id}; "
            f"rejected {len(rejected_follow_ups)} follow-up(s) and "
            f"{len(request_ids)} pending request(s)"
        )
        self._notify(grant, rejected_follow_ups)
        return RevocationResult(
            grant=grant,
            rejected_follow_ups=rejected_follow_ups,
            rejected_request_ids=request_ids,
        )

    def _notify(
        self, grant: AccessGrant, rejected_follow_ups: List[FollowUpRequest]
    ) -> None:
        events = [
            NotificationEvent(
                recipient_id=grant.clinic_id,
                event_type=EventType.ACCESS_REVOKED,
                payload=event_payload(
                    grant_id=grant.id,
                    pet_id=grant.pet_id,
                    clinic_id=grant.clinic_id,
                    revoked_at=grant.revoked_at,
                ),
            )
        ]
        for follow_up in rejected_follow_ups:
            events.append(
                NotificationEvent(
                    recipient_id=follow_up.veterinarian_id or follow_up.clinic_id,
                    event_type=EventType.FOLLOW_UP_REJECTED,
                    payload=event_payload(
                        follow_up_id=follow_up.id,
                        pet_id=follow_up.pet_id,
                        clinic_id=follow_up.clinic_id,
                        rejection_reason=follow_up.rejection_reason,
                    ),
                )
            )
        self.context.dispatcher.dispatch(events)
