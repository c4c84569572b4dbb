"""
Tests for database session management utilities.
"""

from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

from vet_access.database import session as session_module
from vet_access.database.session import (
    SessionManager,
    get_session,
    get_session_manager,
    get_transaction,
    initialize_session_manager,
)
from vet_access.exceptions import (
    ConnectionException,
    NoActiveGrantException,
    TransactionException,
)
from vet_access.models import Base, Clinic


class TestSessionManager:
    """Test cases for SessionManager class."""

    def test_session_manager_initialization(self):
        mock_engine = Mock()
        manager = SessionManager(mock_engine)

        assert manager.engine == mock_engine
        assert manager.session_factory is not None
        assert manager.is_initialized is False

    async def test_get_session_context_manager(self):
        manager = SessionManager(Mock())
        mock_session = AsyncMock()

        with patch.object(manager, "create_session", return_value=mock_session):
            async with manager.get_session() as session:
                assert session == mock_session

            mock_session.close.assert_called_once()

    async def test_get_session_with_exception(self):
        manager = SessionManager(Mock())
        mock_session = AsyncMock()

        with patch.object(manager, "create_session", return_value=mock_session):
            with pytest.raises(ValueError):
                async with manager.get_session():
                    raise ValueError("Test error")

            mock_session.rollback.assert_called_once()
            mock_session.close.assert_called_once()


class TestUnitOfWork:
    """Test cases for the unit-of-work error mapping."""

    @staticmethod
    def _failing_manager(error: Exception) -> SessionManager:
        manager = SessionManager(Mock(url="postgresql+asyncpg://vet:pw@db/vet_access"))
        transaction = MagicMock()
        transaction.__aenter__.side_effect = error
        manager.get_transaction = Mock(return_value=transaction)
        return manager

    async def test_domain_exception_passes_through(self):
        error = NoActiveGrantException(Mock(), Mock())
        manager = self._failing_manager(error)

        with pytest.raises(NoActiveGrantException) as exc_info:
            async with manager.unit_of_work("revoke_access"):
                pass

        assert exc_info.value is error

    async def test_operational_error_becomes_connection_exception(self):
        manager = self._failing_manager(
            OperationalError("SELECT 1", {}, Exception("server closed the connection"))
        )

        with pytest.raises(ConnectionException) as exc_info:
            async with manager.unit_of_work("decide_request"):
                pass

        assert "decide_request" in exc_info.value.message
        assert "pw" not in exc_info.value.details["database_url"]

    async def test_other_database_error_becomes_transaction_exception(self):
        manager = self._failing_manager(
            IntegrityError("INSERT", {}, Exception("check constraint failed"))
        )

        with pytest.raises(TransactionException) as exc_info:
            async with manager.unit_of_work("schedule_follow_up"):
                pass

        assert exc_info.value.details["operation"] == "schedule_follow_up"

    async def test_commits_on_success(self, session_manager):
        async with session_manager.unit_of_work("create_clinic") as session:
            session.add(Clinic(name="Lakeside Pet Hospital"))

        async with session_manager.get_session() as session:
            count = await session.scalar(text("SELECT COUNT(*) FROM clinics"))
        assert count == 1

    async def test_rolls_back_on_failure(self, session_manager):
        with pytest.raises(NoActiveGrantException):
            async with session_manager.unit_of_work("create_clinic") as session:
                session.add(Clinic(name="Lakeside Pet Hospital"))
                await session.flush()
                raise NoActiveGrantException(Mock(), Mock())

        async with session_manager.get_session() as session:
            count = await session.scalar(text("SELECT COUNT(*) FROM clinics"))
        assert count == 0

    async def test_execute_in_transaction(self, session_manager):
        async def add_clinic(session, name):
            clinic = Clinic(name=name)
            session.add(clinic)
            return clinic

        clinic = await session_manager.execute_in_transaction(add_clinic, "Oak Vet")

        assert clinic.name == "Oak Vet"


class TestHealthAndInitialization:
    """Test cases for health checks and schema initialization."""

    async def test_health_check(self, session_manager):
        health = await session_manager.health_check(force=True)

        assert health["status"] == "healthy"
        assert health["checks"]["basic_query"]["status"] == "pass"
        assert health["checks"]["transaction"]["status"] == "pass"

    async def test_health_check_is_throttled(self, session_manager):
        await session_manager.health_check(force=True)

        assert (await session_manager.health_check())["status"] == "skipped"

    async def test_initialize_database(self, session_manager):
        assert await session_manager.initialize_database(Base.metadata) is True
        assert session_manager.is_initialized


class TestGlobalSessionManager:
    """Test cases for the module-level session manager."""

    def test_uninitialized_raises(self, monkeypatch):
        monkeypatch.setattr(session_module, "_session_manager", None)

        with pytest.raises(RuntimeError, match="not initialized"):
            get_session_manager()

    async def test_global_helpers(self, monkeypatch, test_engine):
        monkeypatch.setattr(session_module, "_session_manager", None)
        manager = initialize_session_manager(test_engine)

        assert get_session_manager() is manager

        async with get_transaction() as session:
            session.add(Clinic(name="Global Clinic"))
        async with get_session() as session:
            count = await session.scalar(text("SELECT COUNT(*) FROM clinics"))
        assert count == 1
