"""
AccessGrantStore: materialized grants and the live access predicate.

``has_active_access`` is the single answer to "may this clinic touch this
pet's record right now". It evaluates the most recent grant for the pair
against the injected clock on every call, so an expired grant stops granting
access at its expiry instant whether or not the sweep has run yet.

Writes that depend on the answer go through ``lock_active_grant`` instead,
which evaluates the same predicate in SQL and holds the grant row until the
writer commits.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import AccessDomainException, AlreadyGrantedException
from ..models import (
    AccessGrant,
    AccessRequest,
    AccessRequestStatus,
    Clinic,
    GrantStatus,
)
from ..utils.datetime_utils import add_days
from .base import ServiceContext, is_unique_violation

logger = logging.getLogger(__name__)


class AccessGrantStore:
    """Owns access grant rows."""

    def __init__(self, context: ServiceContext):
        self.context = context

    async def materialize(
        self,
        session: AsyncSession,
        approved_request: AccessRequest,
        duration_days: Optional[int] = None,
        granted_by: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> AccessGrant:
        """
        Create the grant for a just-approved request.

        Runs inside the caller's unit of work so that the approval and the
        grant commit together.

        Args:
            session: Session of the deciding transaction
            approved_request: Request already transitioned to approved
            duration_days: Grant lifetime; defaults to the configured duration
            granted_by: Owner who approved
            now: Decision time

        Returns:
            The new active grant

        Raises:
            AccessDomainException: If the request is not approved
            AlreadyGrantedException: If the request already produced a grant or
                the pair already holds an active grant
        """
        now = now or self.context.now()
        duration_days = duration_days or self.context.settings.grant_duration_days

        if approved_request.status != AccessRequestStatus.APPROVED:
            raise AccessDomainException(
                "Only approved requests can be turned into grants",
                details={
                    "request_id": str(approved_request.id),
                    "current_status": approved_request.status.value,
                },
            )

        existing = await session.scalar(
            select(AccessGrant.id).where(
                AccessGrant.source_request_id == approved_request.id
            )
        )
        if existing is not None:
            raise AlreadyGrantedException(
                approved_request.pet_id, approved_request.clinic_id, grant_id=existing
            )

        await self._expire_lapsed(
            session,
            now,
            pet_id=approved_request.pet_id,
            clinic_id=approved_request.clinic_id,
        )

        grant = AccessGrant(
            pet_id=approved_request.pet_id,
            clinic_id=approved_request.clinic_id,
            source_request_id=approved_request.id,
            granted_by_actor_id=granted_by,
            granted_at=now,
            expires_at=add_days(now, duration_days),
            status=GrantStatus.ACTIVE,
            created_at=now,
        )
        session.add(grant)
        try:
            await session.flush()
        except IntegrityError as e:
            if is_unique_violation(
                e, AccessGrant.__table__, "uq_access_grants_active_pair"
            ):
                raise AlreadyGrantedException(
                    approved_request.pet_id, approved_request.clinic_id
                )
            raise

        logger.info(
            f"Granted clinic {grant.clinic_id} access to pet {grant.pet_id} "
            f"until {grant.expires_at.isoformat()}"
        )
        return grant

    async def latest_grant(
        self,
        pet_id: uuid.UUID,
        clinic_id: uuid.UUID,
        session: Optional[AsyncSession] = None,
    ) -> Optional[AccessGrant]:
        """
        Current grant row for the pair, whatever its status.

        The active row wins when there is one (at most one can exist), otherwise
        the most recently granted row is returned.
        """
        async with self.context.reading(session) as db:
            return await db.scalar(
                select(AccessGrant)
                .where(AccessGrant.pet_id == pet_id, AccessGrant.clinic_id == clinic_id)
                .order_by(
                    case((AccessGrant.status == GrantStatus.ACTIVE, 0), else_=1),
                    AccessGrant.granted_at.desc(),
                    AccessGrant.created_at.desc(),
                )
                .limit(1)
                .execution_options(populate_existing=True)
            )

    async def get_active_grant(
        self,
        pet_id: uuid.UUID,
        clinic_id: uuid.UUID,
        session: Optional[AsyncSession] = None,
    ) -> Optional[AccessGrant]:
        """The pair's grant if it currently gives access, else None."""
        grant = await self.latest_grant(pet_id, clinic_id, session=session)
        if grant is not None and grant.has_access(self.context.now()):
            return grant
        return None

    async def has_active_access(
        self,
        pet_id: uuid.UUID,
        clinic_id: uuid.UUID,
        session: Optional[AsyncSession] = None,
    ) -> bool:
        """
        Evaluate the access predicate for the pair.

        Pass ``session`` to evaluate inside an ongoing unit of work.
        """
        grant = await self.get_active_grant(pet_id, clinic_id, session=session)
        return grant is not None

    async def lock_active_grant(
        self,
        session: AsyncSession,
        pet_id: uuid.UUID,
        clinic_id: uuid.UUID,
    ) -> Optional[AccessGrant]:
        """
        Row-lock the pair's live grant for the rest of the caller's transaction.

        A revocation of the same grant waits for the caller to commit, so its
        cascade sees whatever the caller wrote. SQLite has no row locks and
        renders no ``FOR UPDATE``; callers that write under the grant call this
        again after their write, when the transaction holds the database write
        lock, to see a revocation that committed in between.

        Returns:
            The live grant, or None when the clinic holds no access
        """
        return await session.scalar(
            select(AccessGrant)
            .where(
                AccessGrant.pet_id == pet_id,
                AccessGrant.clinic_id == clinic_id,
                AccessGrant.live_filter(self.context.now()),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    async def list_active_grants(
        self, pet_id: uuid.UUID
    ) -> List[Tuple[AccessGrant, str]]:
        """Live grants for the pet with the holding clinic's name."""
        now = self.context.now()
        async with self.context.reading() as db:
            rows = await db.execute(
                select(AccessGrant, Clinic.name)
                .join(Clinic, Clinic.id == AccessGrant.clinic_id)
                .where(AccessGrant.pet_id == pet_id, AccessGrant.live_filter(now))
                .order_by(AccessGrant.granted_at.desc())
            )
            return [(grant, clinic_name) for grant, clinic_name in rows]

    async def expire_lapsed(self, session: Optional[AsyncSession] = None) -> int:
        """
        Mark active grants whose expiry has passed as expired.

        Idempotent; grants revoked concurrently are left alone.

        Returns:
            Number of grants transitioned
        """
        now = self.context.now()
        async with self.context.writing("expire_lapsed_grants", session) as db:
            count = await self._expire_lapsed(db, now)
        if count:
            logger.info(f"Expired {count} lapsed access grant(s)")
        return count

    async def _expire_lapsed(
        self,
        session: AsyncSession,
        now: datetime,
        pet_id: Optional[uuid.UUID] = None,
        clinic_id: Optional[uuid.UUID] = None,
    ) -> int:
        stmt = update(AccessGrant).where(AccessGrant.lapsed_filter(now))
        if pet_id is not None:
            stmt = stmt.where(AccessGrant.pet_id == pet_id)
        if clinic_id is not None:
            stmt = stmt.where(AccessGrant.clinic_id == clinic_id)
        result = await session.execute(
            stmt.values(status=GrantStatus.EXPIRED, expired_at=now, updated_at=now),
            execution_options={"synchronize_session": False},
        )
        return result.rowcount
