"""
Pytest configuration and fixtures for vet-access tests.

This module provides a per-test SQLite database, a controllable clock, a
recording notifier, factory classes for the directory tables, and a wired
``ConsentService``.
"""

import uuid
from datetime import datetime, timedelta
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from vet_access.database.connection import create_engine
from vet_access.database.session import SessionManager
from vet_access.models import Base, Clinic, Pet, User, UserRole
from vet_access.services import (
    ConsentService,
    NotificationDispatcher,
    ServiceContext,
    SqlDirectory,
)
from vet_access.utils.config import AccessSettings
from vet_access.utils.datetime_utils import UTC

START_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FrozenClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, start: datetime = START_TIME):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: Any) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, moment: datetime) -> None:
        self.current = moment


class RecordingNotifier:
    """Notifier that keeps every delivered event in memory."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events: List[Dict[str, Any]] = []

    async def notify(
        self, recipient_id: uuid.UUID, event_type: str, payload: Dict[str, Any]
    ) -> None:
        if self.fail:
            raise RuntimeError("notification transport down")
        self.events.append(
            {"recipient_id": recipient_id, "event_type": event_type, "payload": payload}
        )

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["event_type"] == event_type]


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a SQLite file database with the full schema.

    A file rather than ``:memory:`` keeps tables visible to every connection
    the NullPool opens.
    """
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'vet_access_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_manager(test_engine: AsyncEngine) -> SessionManager:
    """Create a session manager for testing."""
    return SessionManager(test_engine)


@pytest_asyncio.fixture
async def async_session(
    session_manager: SessionManager,
) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting rows directly."""
    async with session_manager.get_session() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def settings() -> AccessSettings:
    return AccessSettings(sweep_interval_seconds=0.05)


@pytest_asyncio.fixture
async def context(
    session_manager: SessionManager,
    notifier: RecordingNotifier,
    settings: AccessSettings,
    clock: FrozenClock,
) -> AsyncGenerator[ServiceContext, None]:
    context = ServiceContext(
        session_manager=session_manager,
        directory=SqlDirectory(session_manager),
        dispatcher=NotificationDispatcher(notifier),
        settings=settings,
        clock=clock,
    )
    yield context
    await context.dispatcher.drain(timeout=5)


@pytest_asyncio.fixture
async def service(context: ServiceContext) -> AsyncGenerator[ConsentService, None]:
    service = ConsentService(context)
    yield service
    await service.close()


async def settle(service: ConsentService) -> None:
    """Wait until every notification dispatched so far has been delivered."""
    await service.context.dispatcher.drain(timeout=5)


# Factory classes for the directory tables
class ClinicFactory:
    """Factory for creating test Clinic instances."""

    @staticmethod
    def build(**kwargs) -> Clinic:
        defaults = {"name": "Riverside Animal Clinic", "phone_number": "+15550100"}
        defaults.update(kwargs)
        return Clinic(**defaults)

    @staticmethod
    async def create(session_manager: SessionManager, **kwargs) -> Clinic:
        clinic = ClinicFactory.build(**kwargs)
        async with session_manager.get_transaction() as session:
            session.add(clinic)
        return clinic


class UserFactory:
    """Factory for creating test User instances."""

    @staticmethod
    def build(**kwargs) -> User:
        defaults = {
            "email": f"test_{uuid.uuid4().hex[:8]}@example.com",
            "first_name": "Test",
            "last_name": "User",
            "role": UserRole.PET_OWNER,
        }
        defaults.update(kwargs)
        return User(**defaults)

    @staticmethod
    async def create(session_manager: SessionManager, **kwargs) -> User:
        user = UserFactory.build(**kwargs)
        async with session_manager.get_transaction() as session:
            session.add(user)
        return user

    @staticmethod
    async def create_veterinarian(
        session_manager: SessionManager, clinic_id: uuid.UUID, **kwargs
    ) -> User:
        defaults = {
            "role": UserRole.VETERINARIAN,
            "first_name": "Dr. Test",
            "last_name": "Veterinarian",
            "clinic_id": clinic_id,
        }
        defaults.update(kwargs)
        return await UserFactory.create(session_manager, **defaults)


class PetFactory:
    """Factory for creating test Pet instances."""

    @staticmethod
    def build(owner_id: uuid.UUID, **kwargs) -> Pet:
        defaults = {"owner_id": owner_id, "name": "Buddy", "species": "dog"}
        defaults.update(kwargs)
        return Pet(**defaults)

    @staticmethod
    async def create(
        session_manager: SessionManager, owner_id: uuid.UUID, **kwargs
    ) -> Pet:
        pet = PetFactory.build(owner_id, **kwargs)
        async with session_manager.get_transaction() as session:
            session.add(pet)
        return pet


@pytest_asyncio.fixture
async def clinic(session_manager: SessionManager) -> Clinic:
    return await ClinicFactory.create(session_manager)


@pytest_asyncio.fixture
async def other_clinic(session_manager: SessionManager) -> Clinic:
    return await ClinicFactory.create(session_manager, name="Hilltop Veterinary")


@pytest_asyncio.fixture
async def owner(session_manager: SessionManager) -> User:
    return await UserFactory.create(
        session_manager, first_name="Jane", last_name="Doe", email="jane@example.com"
    )


@pytest_asyncio.fixture
async def stranger(session_manager: SessionManager) -> User:
    return await UserFactory.create(session_manager, first_name="Sam", last_name="Stone")


@pytest_asyncio.fixture
async def vet(session_manager: SessionManager, clinic: Clinic) -> User:
    return await UserFactory.create_veterinarian(
        session_manager, clinic.id, first_name="Alex", last_name="Reyes"
    )


@pytest_asyncio.fixture
async def pet(session_manager: SessionManager, owner: User) -> Pet:
    return await PetFactory.create(session_manager, owner.id, name="Rex")


async def grant_access(
    service: ConsentService,
    pet: Pet,
    clinic: Clinic,
    owner: User,
    requesting_actor: Optional[User] = None,
    duration_days: Optional[int] = None,
):
    """Request access and approve it; returns the decision response."""
    request = await service.request_access(
        pet.id,
        clinic.id,
        "Ongoing treatment",
        requesting_actor_id=requesting_actor.id if requesting_actor else None,
    )
    return await service.decide_request(
        request.id, owner.id, "approve", access_duration_days=duration_days
    )


@pytest_asyncio.fixture
async def granted(service: ConsentService, pet: Pet, clinic: Clinic, owner: User, vet: User):
    """The clinic holds a live grant for the pet."""
    return await grant_access(service, pet, clinic, owner, requesting_actor=vet)
