"""
Utility functions and helper modules.

This module provides datetime handling, text validation and configuration
management shared by the access-consent components.
"""

from .config import (
    AccessSettings,
    ConfigError,
    DatabaseURLValidator,
    EnvironmentConfig,
    LoggingConfigurator,
    LogLevel,
)
from .datetime_utils import (
    UTC,
    Clock,
    add_days,
    ensure_utc,
    get_current_utc,
    is_past,
    is_same_utc_day,
    utc_date,
)
from .validation import require_text, sanitize_optional_text, sanitize_string

__all__ = [
    # DateTime utilities
    "UTC",
    "Clock",
    "get_current_utc",
    "ensure_utc",
    "add_days",
    "utc_date",
    "is_same_utc_day",
    "is_past",
    # Validation helpers
    "sanitize_string",
    "sanitize_optional_text",
    "require_text",
    # Configuration utilities
    "ConfigError",
    "LogLevel",
    "EnvironmentConfig",
    "DatabaseURLValidator",
    "LoggingConfigurator",
    "AccessSettings",
]
