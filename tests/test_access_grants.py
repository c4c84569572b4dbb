"""
Tests for the access predicate and grant bookkeeping.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from vet_access.exceptions import AccessDomainException, AlreadyGrantedException
from vet_access.models import AccessGrant, AccessRequest, AccessRequestStatus, GrantStatus

from .conftest import grant_access


class TestHasAccess:
    """Test cases for the live access predicate."""

    async def test_false_without_any_grant(self, service, pet, clinic):
        assert await service.has_access(pet.id, clinic.id) is False

        check = await service.check_access(pet.id, clinic.id)
        assert check.has_access is False
        assert check.grant is None

    async def test_false_while_request_pending(self, service, pet, clinic):
        await service.request_access(pet.id, clinic.id, "Checkup")

        assert await service.has_access(pet.id, clinic.id) is False

    async def test_check_access_returns_grant(self, service, pet, clinic, owner):
        decision = await grant_access(service, pet, clinic, owner)

        check = await service.check_access(pet.id, clinic.id)

        assert check.has_access is True
        assert check.grant.id == decision.grant.id

    async def test_grant_is_per_clinic(self, service, pet, clinic, other_clinic, owner):
        await grant_access(service, pet, clinic, owner)

        assert await service.has_access(pet.id, other_clinic.id) is False

    async def test_access_ends_at_expiry_instant_without_sweep(
        self, service, async_session, pet, clinic, owner, clock
    ):
        decision = await grant_access(service, pet, clinic, owner, duration_days=30)

        clock.advance(days=30, microseconds=-1)
        assert await service.has_access(pet.id, clinic.id) is True

        clock.advance(microseconds=1)
        assert await service.has_access(pet.id, clinic.id) is False

        # The stored row still says active until something expires it
        row = await async_session.get(AccessGrant, decision.grant.id)
        assert row.status == GrantStatus.ACTIVE


class TestListActiveGrants:
    """Test cases for the owner's grant listing."""

    async def test_lists_live_grants_with_clinic_names(
        self, service, pet, clinic, other_clinic, owner, clock
    ):
        await grant_access(service, pet, clinic, owner, duration_days=5)
        clock.advance(hours=1)
        await grant_access(service, pet, other_clinic, owner)

        grants = await service.list_active_grants(pet.id)

        assert [g.clinic_name for g in grants] == [
            "Hilltop Veterinary",
            "Riverside Animal Clinic",
        ]
        assert all(g.is_active for g in grants)

    async def test_excludes_expired_and_revoked(
        self, service, pet, clinic, other_clinic, owner, clock
    ):
        await grant_access(service, pet, clinic, owner, duration_days=5)
        await grant_access(service, pet, other_clinic, owner)
        await service.revoke_access(pet.id, other_clinic.id, owner.id)
        clock.advance(days=5)

        assert await service.list_active_grants(pet.id) == []


class TestExpireLapsed:
    """Test cases for the grant expiry sweep."""

    async def test_marks_lapsed_grants_expired(
        self, service, async_session, pet, clinic, other_clinic, owner, clock
    ):
        short = await grant_access(service, pet, clinic, owner, duration_days=1)
        long = await grant_access(service, pet, other_clinic, owner, duration_days=10)
        clock.advance(days=2)

        assert await service.grants.expire_lapsed() == 1
        assert await service.grants.expire_lapsed() == 0

        short_row = await async_session.get(AccessGrant, short.grant.id)
        long_row = await async_session.get(AccessGrant, long.grant.id)
        assert short_row.status == GrantStatus.EXPIRED
        assert short_row.expired_at == clock()
        assert long_row.status == GrantStatus.ACTIVE

    async def test_renewal_after_expiry_creates_new_grant(
        self, service, async_session, pet, clinic, owner, clock
    ):
        first = await grant_access(service, pet, clinic, owner, duration_days=1)
        clock.advance(days=1)

        second = await grant_access(service, pet, clinic, owner)

        assert second.grant.id != first.grant.id
        assert await service.has_access(pet.id, clinic.id) is True
        first_row = await async_session.get(AccessGrant, first.grant.id)
        assert first_row.status == GrantStatus.EXPIRED

        check = await service.check_access(pet.id, clinic.id)
        assert check.grant.id == second.grant.id


class TestMaterialize:
    """Test cases for the grant store's own guards."""

    async def test_rejects_request_that_is_not_approved(
        self, service, session_manager, pet, clinic
    ):
        pending = await service.request_access(pet.id, clinic.id, "Checkup")

        with pytest.raises(AccessDomainException):
            async with session_manager.unit_of_work("test") as session:
                request = await session.get(AccessRequest, pending.id)
                await service.grants.materialize(session, request)

    async def test_one_grant_per_request(
        self, service, session_manager, pet, clinic, owner
    ):
        decision = await grant_access(service, pet, clinic, owner)

        with pytest.raises(AlreadyGrantedException):
            async with session_manager.unit_of_work("test") as session:
                request = await session.get(AccessRequest, decision.request.id)
                assert request.status == AccessRequestStatus.APPROVED
                await service.grants.materialize(session, request)

        async with session_manager.get_session() as session:
            grants = (await session.scalars(select(AccessGrant))).all()
        assert len(grants) == 1

    async def test_default_duration_comes_from_settings(
        self, service, settings, pet, clinic, owner, clock
    ):
        settings.grant_duration_days = 90

        decision = await grant_access(service, pet, clinic, owner)

        assert decision.grant.expires_at - decision.grant.granted_at == timedelta(days=90)
