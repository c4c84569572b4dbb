"""
Tests for the request, decision and follow-up schemas.
"""

import uuid
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from vet_access.exceptions import SchemaValidationException
from vet_access.models import AccessRequest, AccessRequestStatus, FollowUpType
from vet_access.schemas import (
    AccessDecision,
    AccessRequestCreate,
    AccessRequestResponse,
    DecisionAction,
    FollowUpCreate,
    FollowUpDecision,
    FollowUpReschedule,
)
from vet_access.services import parse_payload

from .conftest import START_TIME


class TestAccessRequestCreate:
    """Test cases for AccessRequestCreate."""

    def test_reason_is_sanitized(self):
        payload = AccessRequestCreate(
            pet_id=uuid.uuid4(),
            clinic_id=uuid.uuid4(),
            reason="  Follow-up   on\tsurgery  ",
        )

        assert payload.reason == "Follow-up on surgery"
        assert payload.requesting_actor_id is None

    @pytest.mark.parametrize("reason", ["", "   ", "x" * 1001])
    def test_invalid_reason(self, reason):
        with pytest.raises(ValidationError):
            AccessRequestCreate(pet_id=uuid.uuid4(), clinic_id=uuid.uuid4(), reason=reason)


class TestAccessDecision:
    """Test cases for AccessDecision."""

    def test_approve_drops_rejection_reason(self):
        decision = AccessDecision(
            action="approve", rejection_reason="ignored", access_duration_days=30
        )

        assert decision.action == DecisionAction.APPROVE
        assert decision.rejection_reason is None
        assert decision.access_duration_days == 30

    def test_reject_requires_reason(self):
        with pytest.raises(ValidationError, match="rejection reason is required"):
            AccessDecision(action="reject", rejection_reason="   ")

    def test_reject_drops_duration(self):
        decision = AccessDecision(
            action="reject", rejection_reason="Not needed", access_duration_days=30
        )

        assert decision.access_duration_days is None

    @pytest.mark.parametrize("days", [0, -1, 3651])
    def test_duration_bounds(self, days):
        with pytest.raises(ValidationError):
            AccessDecision(action="approve", access_duration_days=days)

    def test_unknown_action(self):
        with pytest.raises(ValidationError):
            AccessDecision(action="maybe")


class TestFollowUpSchemas:
    """Test cases for the follow-up payload schemas."""

    def test_create(self):
        payload = FollowUpCreate(
            pet_id=uuid.uuid4(),
            clinic_id=uuid.uuid4(),
            follow_up_type="post_surgery",
            scheduled_date=START_TIME + timedelta(days=3),
            reason="Suture removal",
            notes="   ",
        )

        assert payload.follow_up_type == FollowUpType.POST_SURGERY
        assert payload.notes is None

    def test_naive_date_rejected(self):
        with pytest.raises(ValidationError, match="timezone-aware"):
            FollowUpReschedule(scheduled_date=datetime(2026, 3, 5, 9, 0))

    def test_notes_length(self):
        with pytest.raises(ValidationError, match="Notes are too long"):
            FollowUpCreate(
                pet_id=uuid.uuid4(),
                clinic_id=uuid.uuid4(),
                follow_up_type="checkup",
                scheduled_date=START_TIME,
                reason="Checkup",
                notes="n" * 2001,
            )

    def test_decision(self):
        assert FollowUpDecision(action="approve").rejection_reason is None
        with pytest.raises(ValidationError):
            FollowUpDecision(action="reject")


class TestResponses:
    """Test cases for the response schemas."""

    def test_request_response_from_model(self):
        request = AccessRequest(
            id=uuid.uuid4(),
            pet_id=uuid.uuid4(),
            clinic_id=uuid.uuid4(),
            reason="Vaccination history",
            created_at=START_TIME,
            expires_at=START_TIME + timedelta(days=7),
        )

        response = AccessRequestResponse.model_validate(request)

        assert response.status == AccessRequestStatus.PENDING.value
        assert response.decided_at is None
        assert response.model_dump()["status"] == "pending"


class TestParsePayload:
    """Test cases for schema errors raised as package exceptions."""

    def test_wraps_validation_errors(self):
        with pytest.raises(SchemaValidationException) as exc_info:
            parse_payload(AccessDecision, action="reject", rejection_reason=None)

        exc = exc_info.value
        assert exc.details["schema_name"] == "AccessDecision"
        assert "root" in exc.details["validation_errors"]

    def test_returns_parsed_schema(self):
        decision = parse_payload(AccessDecision, action="approve")

        assert decision.action == DecisionAction.APPROVE
