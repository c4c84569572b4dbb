"""
Database-agnostic column types for vet-access.

PostgreSQL keeps the offset of ``timestamptz`` values; SQLite stores datetimes
as text without one. ``UTCDateTime`` normalizes both directions so the models
always hold aware UTC datetimes whatever the backend.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, TypeDecorator
from sqlalchemy.engine import Dialect

from ..utils.datetime_utils import ensure_utc


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime column stored in UTC.

    Values are converted to UTC before they are written, so SQLite's text
    representation sorts and compares correctly, and values read back are
    returned as aware UTC datetimes.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> Optional[datetime]:
        """Process value when storing to database."""
        if value is None:
            return None
        return ensure_utc(value)

    def process_result_value(self, value: Any, dialect: Dialect) -> Optional[datetime]:
        """Process value when loading from database."""
        if value is None:
            return None
        return ensure_utc(value)
