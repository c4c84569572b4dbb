"""
Core exceptions for the vet-access package.

``VetAccessException`` is the root of every error the engine raises on
purpose. Below it sit the infrastructure errors produced by the unit of work
and the migration helpers, the validation errors produced while parsing
caller payloads, and the configuration errors raised by ``AccessSettings``.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlparse, urlunparse


class VetAccessException(Exception):
    """
    Base exception class for all vet-access package exceptions.

    Every exception carries a human-readable ``message``, a stable
    ``error_code`` callers can branch on, and a ``details`` mapping of
    string-serializable identifiers (pet, clinic, request ids and the like).
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class DatabaseException(VetAccessException):
    """
    Base exception for database failures.

    A failed unit of work has already been rolled back when this is raised,
    and the engine never retries it. ``retryable`` tells the caller whether
    running the whole operation again could succeed.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
        retryable: bool = False,
    ):
        super().__init__(message, error_code, details)
        self.original_error = original_error
        self.retryable = retryable

        if original_error and "original_error" not in self.details:
            self.details["original_error"] = str(original_error)
        self.details["retryable"] = retryable


class ConnectionException(DatabaseException):
    """The database could not be reached or dropped the connection."""

    def __init__(
        self,
        message: str = "Database connection failed",
        database_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        """
        Initialize connection exception.

        Args:
            message: Error message
            database_url: Engine URL; credentials are stripped before it is stored
            original_error: Driver error that triggered the failure
        """
        details = {}
        if database_url:
            details["database_url"] = self._strip_credentials(database_url)

        super().__init__(
            message=message,
            error_code="DATABASE_CONNECTION_ERROR",
            details=details,
            original_error=original_error,
            retryable=self._is_transient(original_error),
        )

    @staticmethod
    def _strip_credentials(url: str) -> str:
        try:
            parsed = urlparse(url)
            if parsed.hostname is None:
                return urlunparse(parsed)
            netloc = parsed.hostname
            if parsed.port:
                netloc = f"{netloc}:{parsed.port}"
            return urlunparse(parsed._replace(netloc=netloc))
        except (ValueError, AttributeError) as e:
            return f"[URL_PARSE_ERROR: {e}]"

    @staticmethod
    def _is_transient(original_error: Optional[Exception]) -> bool:
        """Bad credentials or a missing database will fail the same way again."""
        if original_error is None:
            return True
        error_str = str(original_error).lower()
        permanent = (
            "authentication failed",
            "invalid credentials",
            "permission denied",
            "database does not exist",
            "role does not exist",
        )
        return not any(pattern in error_str for pattern in permanent)


class TransactionException(DatabaseException):
    """A unit of work failed inside the database for a non-connectivity reason."""

    def __init__(
        self,
        message: str = "Database transaction failed",
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            error_code="DATABASE_TRANSACTION_ERROR",
            details=details,
            original_error=original_error,
        )


class MigrationException(DatabaseException):
    """Applying or rolling back an alembic revision failed."""

    def __init__(
        self,
        message: str = "Database migration failed",
        migration_version: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if migration_version:
            details["migration_version"] = migration_version

        super().__init__(
            message=message,
            error_code="DATABASE_MIGRATION_ERROR",
            details=details,
            original_error=original_error,
        )


class ValidationException(VetAccessException):
    """
    A caller-supplied value was rejected before any state changed.

    Raised directly for rules that depend on the clock or on settings, such as
    a follow-up date in the past or a grant longer than the configured maximum.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        value: Optional[Any] = None,
        validation_errors: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize validation exception.

        Args:
            message: Error message
            field: Field that failed validation
            value: Rejected value, stored as a string
            validation_errors: Field path to error messages
        """
        details: Dict[str, Any] = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        if validation_errors:
            details["validation_errors"] = validation_errors

        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details=details,
        )


class SchemaValidationException(ValidationException):
    """A request payload failed its Pydantic schema."""

    def __init__(
        self,
        message: str = "Schema validation failed",
        schema_name: Optional[str] = None,
        validation_errors: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            field=None,
            value=None,
            validation_errors=validation_errors,
        )
        self.error_code = "SCHEMA_VALIDATION_ERROR"
        if schema_name:
            self.details["schema_name"] = schema_name


# Settings whose values may embed credentials: database and webhook URLs.
REDACTED_SETTING_MARKERS = ("url", "password", "secret", "token")


class ConfigurationException(VetAccessException):
    """``AccessSettings`` or the environment it was read from is invalid."""

    def __init__(
        self,
        message: str = "Configuration error",
        config_key: Optional[str] = None,
        config_value: Optional[str] = None,
    ):
        """
        Initialize configuration exception.

        Args:
            message: Error message
            config_key: Setting or environment variable at fault
            config_value: Offending value; withheld for credential-bearing keys
        """
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value:
            details["config_value"] = self._redact(config_key, config_value)

        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details=details,
        )

    @staticmethod
    def _redact(key: Optional[str], value: str) -> str:
        if key and not any(m in key.lower() for m in REDACTED_SETTING_MARKERS):
            return value
        return "[REDACTED]"


def format_validation_errors(errors: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """
    Group Pydantic errors by dotted field path.

    Model-level validators have an empty location and are reported under
    ``root``.

    Args:
        errors: Output of ``ValidationError.errors()``

    Returns:
        Dictionary mapping field paths to lists of messages
    """
    formatted_errors: Dict[str, List[str]] = {}

    for error in errors:
        field_path = ".".join(str(loc) for loc in error.get("loc", [])) or "root"
        message = error.get("msg", "Validation error")
        error_type = error.get("type", "unknown")

        if error_type == "value_error":
            formatted_message = message
        elif error_type == "missing":
            formatted_message = "This field is required"
        else:
            formatted_message = f"{message} (type: {error_type})"

        formatted_errors.setdefault(field_path, []).append(formatted_message)

    return formatted_errors
