"""
Base model class for all SQLAlchemy models in the vet-access package.

This module provides the declarative base, the abstract ``BaseModel`` with a
UUID primary key and audit timestamps, and a helper for enum columns that are
stored by value.

Primary keys and timestamps are generated in Python so that rows written
through an injected clock carry that clock's time, and so that the same models
work on PostgreSQL and SQLite.

Example:
    >>> from vet_access.models.base import BaseModel
    >>> from sqlalchemy.orm import Mapped, mapped_column
    >>> from sqlalchemy import String

    >>> class MyModel(BaseModel):
    ...     __tablename__ = "my_table"
    ...     name: Mapped[str] = mapped_column(String(100))
"""

import enum
import uuid
from datetime import datetime
from typing import Any, Dict, Type

from sqlalchemy import Enum, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

from ..database.types import UTCDateTime
from ..utils.datetime_utils import get_current_utc


class Base(DeclarativeBase):
    """
    Base declarative class for all SQLAlchemy models.

    Attributes:
        type_annotation_map: Maps Python types to SQLAlchemy column types
    """

    type_annotation_map = {
        uuid.UUID: Uuid(as_uuid=True),
        datetime: UTCDateTime(),
    }


def value_enum(enum_cls: Type[enum.Enum], name: str) -> Enum:
    """
    Build an ``Enum`` column type that persists member values.

    Partial indexes and raw SQL compare against the lowercase values
    (``status = 'pending'``), so the values rather than the member names are
    written to the database.

    Args:
        enum_cls: Python enum class
        name: Database type name

    Returns:
        SQLAlchemy Enum type
    """
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class BaseModel(Base):
    """
    Abstract base model class providing common functionality for all entities.

    Attributes:
        id (UUID): Primary key, generated UUID4
        created_at (datetime): Timestamp when record was created (UTC)
        updated_at (datetime): Timestamp when record was last updated (UTC)
    """

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=get_current_utc,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=get_current_utc,
        server_default=func.now(),
        onupdate=get_current_utc,
    )

    def __repr__(self) -> str:
        """Return string representation in format <ModelName(id=uuid)>."""
        return f"<{self.__class__.__name__}(id={self.id})>"

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model instance to dictionary representation.

        Datetimes become ISO strings, UUIDs become strings and enum members
        become their values.
        """
        result: Dict[str, Any] = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, datetime):
                result[column.key] = value.isoformat()
            elif isinstance(value, uuid.UUID):
                result[column.key] = str(value)
            elif isinstance(value, enum.Enum):
                result[column.key] = value.value
            else:
                result[column.key] = value
        return result

    @classmethod
    def get_table_name(cls) -> str:
        """Get the database table name for this model."""
        return cls.__tablename__
