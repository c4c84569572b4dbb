"""
Database connection, session management, and migration utilities.

This module provides async SQLAlchemy engine configuration, session and
unit-of-work management, and Alembic migration helpers for the access-consent
engine.
"""

from .connection import (
    DatabaseConfig,
    check_connection,
    close_engine,
    create_engine,
    wait_for_database,
)
from .migrations import MigrationManager
from .session import (
    SessionManager,
    get_session,
    get_session_manager,
    get_transaction,
    health_check,
    initialize_session_manager,
)
from .types import UTCDateTime

__all__ = [
    # Connection utilities
    "DatabaseConfig",
    "create_engine",
    "check_connection",
    "close_engine",
    "wait_for_database",
    # Session management
    "SessionManager",
    "initialize_session_manager",
    "get_session_manager",
    "get_session",
    "get_transaction",
    "health_check",
    # Column types
    "UTCDateTime",
    # Migration utilities
    "MigrationManager",
]
