"""
Tests for the access-consent models and their table constraints.
"""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from vet_access.models import (
    AccessGrant,
    AccessRequest,
    AccessRequestStatus,
    FollowUpRequest,
    FollowUpStatus,
    FollowUpType,
    GrantStatus,
    User,
    UserRole,
)
from vet_access.services import is_unique_violation

from .conftest import START_TIME, UserFactory


def make_request(pet, clinic, **kwargs) -> AccessRequest:
    defaults = {
        "pet_id": pet.id,
        "clinic_id": clinic.id,
        "reason": "Vaccination history",
        "created_at": START_TIME,
        "expires_at": START_TIME + timedelta(days=7),
    }
    defaults.update(kwargs)
    return AccessRequest(**defaults)


def make_grant(pet, clinic, **kwargs) -> AccessGrant:
    defaults = {
        "pet_id": pet.id,
        "clinic_id": clinic.id,
        "granted_at": START_TIME,
        "expires_at": START_TIME + timedelta(days=30),
    }
    defaults.update(kwargs)
    return AccessGrant(**defaults)


class TestAccessRequestModel:
    """Test cases for AccessRequest."""

    def test_defaults_to_pending(self):
        request = AccessRequest(pet_id=uuid.uuid4(), clinic_id=uuid.uuid4(), reason="x")

        assert request.status == AccessRequestStatus.PENDING
        assert request.is_pending
        assert not request.is_terminal

    def test_deadline_predicates(self):
        request = AccessRequest(
            pet_id=uuid.uuid4(),
            clinic_id=uuid.uuid4(),
            reason="x",
            expires_at=START_TIME + timedelta(days=7),
        )
        deadline = START_TIME + timedelta(days=7)

        assert request.can_be_decided(START_TIME)
        assert not request.is_overdue(START_TIME)
        assert request.is_overdue(deadline)
        assert not request.can_be_decided(deadline)

    def test_terminal_request_is_never_overdue(self):
        request = AccessRequest(
            pet_id=uuid.uuid4(),
            clinic_id=uuid.uuid4(),
            reason="x",
            status=AccessRequestStatus.REJECTED,
            expires_at=START_TIME,
        )

        assert request.is_terminal
        assert not request.is_overdue(START_TIME + timedelta(days=30))

    async def test_one_pending_request_per_pair(self, session_manager, pet, clinic):
        async with session_manager.get_transaction() as session:
            session.add(make_request(pet, clinic))

        with pytest.raises(IntegrityError, match="access_requests"):
            async with session_manager.get_transaction() as session:
                session.add(make_request(pet, clinic))

    async def test_decided_requests_do_not_block(self, session_manager, pet, clinic):
        async with session_manager.get_transaction() as session:
            session.add(
                make_request(
                    pet,
                    clinic,
                    status=AccessRequestStatus.REJECTED,
                    decided_at=START_TIME,
                    rejection_reason="Not now",
                )
            )
            session.add(make_request(pet, clinic))

    async def test_rejection_reason_requires_rejected_status(
        self, session_manager, pet, clinic
    ):
        with pytest.raises(IntegrityError):
            async with session_manager.get_transaction() as session:
                session.add(make_request(pet, clinic, rejection_reason="Not now"))

    async def test_timestamps_round_trip_as_utc(self, session_manager, pet, clinic):
        async with session_manager.get_transaction() as session:
            request = make_request(pet, clinic)
            session.add(request)

        async with session_manager.get_session() as session:
            loaded = await session.get(AccessRequest, request.id)

        assert loaded.expires_at == START_TIME + timedelta(days=7)
        assert loaded.expires_at.utcoffset() == timedelta(0)


class TestAccessGrantModel:
    """Test cases for AccessGrant."""

    def test_has_access_boundaries(self):
        grant = AccessGrant(
            pet_id=uuid.uuid4(),
            clinic_id=uuid.uuid4(),
            granted_at=START_TIME,
            expires_at=START_TIME + timedelta(days=1),
        )
        expiry = START_TIME + timedelta(days=1)

        assert grant.is_active
        assert grant.has_access(START_TIME)
        assert grant.has_access(expiry - timedelta(microseconds=1))
        assert not grant.has_access(expiry)
        assert grant.is_lapsed(expiry)

    def test_open_ended_grant_never_lapses(self):
        grant = AccessGrant(
            pet_id=uuid.uuid4(), clinic_id=uuid.uuid4(), granted_at=START_TIME
        )

        assert grant.has_access(START_TIME + timedelta(days=10000))
        assert not grant.is_lapsed(START_TIME + timedelta(days=10000))

    def test_revoked_grant_has_no_access(self):
        grant = AccessGrant(
            pet_id=uuid.uuid4(),
            clinic_id=uuid.uuid4(),
            granted_at=START_TIME,
            status=GrantStatus.REVOKED,
        )

        assert not grant.is_active
        assert not grant.has_access(START_TIME)

    async def test_one_active_grant_per_pair(self, session_manager, pet, clinic):
        async with session_manager.get_transaction() as session:
            session.add(make_grant(pet, clinic))

        with pytest.raises(IntegrityError, match="access_grants"):
            async with session_manager.get_transaction() as session:
                session.add(make_grant(pet, clinic))

    async def test_history_rows_allowed(self, session_manager, pet, clinic):
        async with session_manager.get_transaction() as session:
            session.add(
                make_grant(
                    pet, clinic, status=GrantStatus.REVOKED, revoked_at=START_TIME
                )
            )
            session.add(make_grant(pet, clinic, status=GrantStatus.EXPIRED))
            session.add(make_grant(pet, clinic))

    async def test_revoked_requires_timestamp(self, session_manager, pet, clinic):
        with pytest.raises(IntegrityError):
            async with session_manager.get_transaction() as session:
                session.add(make_grant(pet, clinic, status=GrantStatus.REVOKED))


class TestFollowUpRequestModel:
    """Test cases for FollowUpRequest."""

    def test_defaults_and_predicates(self):
        follow_up = FollowUpRequest(
            pet_id=uuid.uuid4(),
            clinic_id=uuid.uuid4(),
            follow_up_type=FollowUpType.CHECKUP,
            scheduled_date=START_TIME + timedelta(hours=3),
            reason="Annual checkup",
        )

        assert follow_up.status == FollowUpStatus.PENDING
        assert follow_up.is_pending
        assert follow_up.can_be_rescheduled
        assert follow_up.is_today(START_TIME)
        assert not follow_up.is_today(START_TIME + timedelta(days=1))

    def test_rejected_cannot_be_rescheduled(self):
        follow_up = FollowUpRequest(
            pet_id=uuid.uuid4(),
            clinic_id=uuid.uuid4(),
            follow_up_type=FollowUpType.MEDICATION,
            scheduled_date=START_TIME,
            reason="Dosage review",
            status=FollowUpStatus.REJECTED,
        )

        assert not follow_up.can_be_rescheduled


class TestDirectoryModels:
    """Test cases for the directory tables."""

    def test_user_defaults(self):
        user = User(email="owner@example.com", first_name="Jane", last_name="Doe")

        assert user.role == UserRole.PET_OWNER
        assert user.full_name == "Jane Doe"
        assert not user.is_clinic_staff

    def test_staff_membership(self):
        user = User(
            email="vet@example.com",
            first_name="Alex",
            last_name="Reyes",
            role=UserRole.VETERINARIAN,
            clinic_id=uuid.uuid4(),
        )

        assert user.is_clinic_staff

    async def test_to_dict(self, owner):
        data = owner.to_dict()

        assert data["id"] == str(owner.id)
        assert data["role"] == "pet_owner"
        assert data["email"] == "jane@example.com"

    async def test_deleting_pet_cascades(self, session_manager, pet, clinic):
        async with session_manager.get_transaction() as session:
            request = make_request(pet, clinic)
            session.add(request)

        async with session_manager.get_transaction() as session:
            await session.delete(await session.get(type(pet), pet.id))

        async with session_manager.get_session() as session:
            assert await session.get(AccessRequest, request.id) is None


class TestUniqueViolationMatching:
    """Test cases for attributing unique violations to the pair indexes."""

    async def test_pending_pair_violation_matches_its_index(
        self, session_manager, pet, clinic
    ):
        async with session_manager.get_transaction() as session:
            session.add(make_request(pet, clinic))

        with pytest.raises(IntegrityError) as exc_info:
            async with session_manager.get_transaction() as session:
                session.add(make_request(pet, clinic))

        assert is_unique_violation(
            exc_info.value, AccessRequest.__table__, "uq_access_requests_pending_pair"
        )

    async def test_other_unique_column_does_not_match(self, session_manager, owner):
        with pytest.raises(IntegrityError) as exc_info:
            async with session_manager.get_transaction() as session:
                session.add(UserFactory.build(email=owner.email))

        assert not is_unique_violation(
            exc_info.value, AccessRequest.__table__, "uq_access_requests_pending_pair"
        )

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("UNIQUE constraint failed: access_grants.pet_id, access_grants.clinic_id", True),
            ("UNIQUE constraint failed: access_grants.source_request_id", False),
            ("UNIQUE constraint failed: users.email", False),
            (
                'duplicate key value violates unique constraint "uq_access_grants_active_pair"',
                True,
            ),
            ("NOT NULL constraint failed: access_grants.pet_id", False),
        ],
    )
    def test_grant_pair_messages(self, message, expected):
        error = IntegrityError("INSERT INTO access_grants", {}, Exception(message))

        assert (
            is_unique_violation(error, AccessGrant.__table__, "uq_access_grants_active_pair")
            is expected
        )
