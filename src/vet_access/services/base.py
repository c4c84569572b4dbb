"""
Shared plumbing for the access-consent service components.

Every component receives the same collaborators: a session manager, the
directory, the notification dispatcher, a clock and the settings. They are
bundled in ``ServiceContext`` so components can be wired independently in
tests.
"""

import enum
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncGenerator, Dict, Optional, Type, TypeVar

from pydantic import BaseModel as SchemaModel
from pydantic import ValidationError
from sqlalchemy import Table
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.session import SessionManager
from ..exceptions import SchemaValidationException, format_validation_errors
from ..utils.config import AccessSettings
from ..utils.datetime_utils import Clock, ensure_utc, get_current_utc
from .directory import DirectoryCollaborator
from .notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=SchemaModel)


@dataclass
class ServiceContext:
    """Collaborators shared by the service components."""

    session_manager: SessionManager
    directory: DirectoryCollaborator
    dispatcher: NotificationDispatcher
    settings: AccessSettings = field(default_factory=AccessSettings)
    clock: Clock = get_current_utc

    def now(self) -> datetime:
        """Current time from the injected clock, as aware UTC."""
        return ensure_utc(self.clock())

    @asynccontextmanager
    async def reading(
        self, session: Optional[AsyncSession] = None
    ) -> AsyncGenerator[AsyncSession, None]:
        """Reuse the caller's session, or open a short read-only one."""
        if session is not None:
            yield session
            return
        async with self.session_manager.get_session() as own:
            yield own

    @asynccontextmanager
    async def writing(
        self, operation: str, session: Optional[AsyncSession] = None
    ) -> AsyncGenerator[AsyncSession, None]:
        """Join the caller's unit of work, or open a new one."""
        if session is not None:
            yield session
            return
        async with self.session_manager.unit_of_work(operation) as own:
            yield own


def parse_payload(schema: Type[S], **data: Any) -> S:
    """
    Validate raw input against a Pydantic schema.

    Raises:
        SchemaValidationException: With the formatted field errors
    """
    try:
        return schema(**data)
    except ValidationError as e:
        errors = format_validation_errors(e.errors())
        logger.debug(f"{schema.__name__} rejected: {errors}")
        raise SchemaValidationException(
            f"Invalid {schema.__name__} payload",
            schema_name=schema.__name__,
            validation_errors=errors,
        )


SQLITE_UNIQUE_FAILURE = "unique constraint failed:"


def is_unique_violation(error: IntegrityError, table: Table, index_name: str) -> bool:
    """
    Check whether an IntegrityError came from the given unique index of ``table``.

    PostgreSQL names the violated index in the message. SQLite lists the
    index's columns instead (``table.col, table.col``), which must match the
    index exactly.
    """
    message = str(error.orig).lower()
    if index_name.lower() in message:
        return True
    if SQLITE_UNIQUE_FAILURE not in message:
        return False

    index = next((ix for ix in table.indexes if ix.name == index_name), None)
    if index is None:
        raise ValueError(f"{table.name} has no index named {index_name}")
    expected = ", ".join(f"{table.name}.{column.name}" for column in index.columns)
    reported = message.split(SQLITE_UNIQUE_FAILURE, 1)[1].strip()
    return reported == expected.lower()


def event_payload(**values: Any) -> Dict[str, Any]:
    """Build a JSON-friendly notification payload."""
    payload: Dict[str, Any] = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, datetime):
            payload[key] = ensure_utc(value).isoformat()
        elif isinstance(value, uuid.UUID):
            payload[key] = str(value)
        elif isinstance(value, enum.Enum):
            payload[key] = value.value
        else:
            payload[key] = value
    return payload
