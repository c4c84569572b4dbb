"""
Configuration management utilities.

This module provides environment variable handling with type conversion,
database URL validation, logging configuration utilities, and the settings
object that parameterizes the access-consent engine.
"""

import logging
import logging.config
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import parse_qs, urlparse

from ..exceptions import ConfigurationException


class ConfigError(ConfigurationException):
    """Exception raised for configuration-related errors."""

    pass


class LogLevel(Enum):
    """Enumeration for log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentConfig:
    """Utility class for handling environment variables with type conversion."""

    @staticmethod
    def get_str(
        key: str, default: Optional[str] = None, required: bool = False
    ) -> Optional[str]:
        """
        Get a string environment variable.

        Args:
            key: Environment variable key
            default: Default value if not found
            required: Whether the variable is required

        Returns:
            String value or default

        Raises:
            ConfigError: If required variable is missing
        """
        value = os.getenv(key, default)

        if required and value is None:
            raise ConfigError(
                f"Required environment variable '{key}' is not set", config_key=key
            )

        return value

    @staticmethod
    def get_int(
        key: str, default: Optional[int] = None, required: bool = False
    ) -> Optional[int]:
        """
        Get an integer environment variable.

        Raises:
            ConfigError: If required variable is missing or invalid
        """
        value = os.getenv(key)

        if value is None:
            if required:
                raise ConfigError(
                    f"Required environment variable '{key}' is not set",
                    config_key=key,
                )
            return default

        try:
            return int(value)
        except ValueError:
            raise ConfigError(
                f"Environment variable '{key}' must be an integer, got: {value}",
                config_key=key,
                config_value=value,
            )

    @staticmethod
    def get_float(
        key: str, default: Optional[float] = None, required: bool = False
    ) -> Optional[float]:
        """
        Get a float environment variable.

        Raises:
            ConfigError: If required variable is missing or invalid
        """
        value = os.getenv(key)

        if value is None:
            if required:
                raise ConfigError(
                    f"Required environment variable '{key}' is not set",
                    config_key=key,
                )
            return default

        try:
            return float(value)
        except ValueError:
            raise ConfigError(
                f"Environment variable '{key}' must be a float, got: {value}",
                config_key=key,
                config_value=value,
            )

    @staticmethod
    def get_bool(
        key: str, default: Optional[bool] = None, required: bool = False
    ) -> Optional[bool]:
        """
        Get a boolean environment variable.

        Raises:
            ConfigError: If required variable is missing
        """
        value = os.getenv(key)

        if value is None:
            if required:
                raise ConfigError(
                    f"Required environment variable '{key}' is not set",
                    config_key=key,
                )
            return default

        return value.lower() in ("true", "1", "yes", "on", "enabled")


class DatabaseURLValidator:
    """Utility class for validating database URLs."""

    SUPPORTED_DRIVERS = {
        "postgresql": ["postgresql", "postgresql+asyncpg"],
        "sqlite": ["sqlite", "sqlite+aiosqlite"],
    }

    @classmethod
    def validate_url(cls, url: str) -> Dict[str, Any]:
        """
        Validate a database URL and return parsed components.

        Args:
            url: Database URL to validate

        Returns:
            Dictionary with validation results and parsed components

        Raises:
            ConfigError: If URL is invalid
        """
        if not url:
            raise ConfigError("Database URL cannot be empty")

        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise ConfigError(f"Invalid URL format: {e}")

        if not parsed.scheme:
            raise ConfigError(
                "Database URL must include a scheme (e.g., postgresql+asyncpg://)"
            )

        backend = None
        for db_type, drivers in cls.SUPPORTED_DRIVERS.items():
            if parsed.scheme in drivers:
                backend = db_type
                break

        if backend is None:
            supported_list = []
            for drivers in cls.SUPPORTED_DRIVERS.values():
                supported_list.extend(drivers)
            raise ConfigError(
                f"Unsupported database driver '{parsed.scheme}'. Supported: {', '.join(supported_list)}"
            )

        if backend != "sqlite":
            if not parsed.hostname:
                raise ConfigError("Database URL must include a hostname")
            if not parsed.path.lstrip("/"):
                raise ConfigError("Database URL must include a database name")

        return {
            "valid": True,
            "backend": backend,
            "scheme": parsed.scheme,
            "hostname": parsed.hostname,
            "port": parsed.port,
            "database": parsed.path.lstrip("/") if parsed.path else "",
            "username": parsed.username,
            "password": parsed.password,
            "query": dict(parse_qs(parsed.query)),
        }


class LoggingConfigurator:
    """Utility class for configuring logging."""

    DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @staticmethod
    def configure_basic_logging(
        level: Union[str, LogLevel] = LogLevel.INFO,
        format_string: Optional[str] = None,
        log_file: Optional[str] = None,
    ) -> None:
        """
        Configure basic logging for the application.

        Args:
            level: Logging level
            format_string: Custom format string
            log_file: Optional log file path
        """
        if isinstance(level, LogLevel):
            level = level.value

        basic_config_args: Dict[str, Any] = {
            "level": level,
            "format": format_string or LoggingConfigurator.DEFAULT_FORMAT,
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }

        if log_file:
            basic_config_args["filename"] = log_file
            basic_config_args["filemode"] = "a"

        logging.basicConfig(**basic_config_args)

    @staticmethod
    def set_package_level(
        level: Union[str, LogLevel], logger_name: str = "vet_access"
    ) -> None:
        """
        Set the level of the package logger, leaving handlers to the host.

        Args:
            level: Logging level
            logger_name: Logger to adjust
        """
        if isinstance(level, LogLevel):
            level = level.value
        logging.getLogger(logger_name).setLevel(level)

    @staticmethod
    def configure_structured_logging(
        config_dict: Optional[Dict[str, Any]] = None,
        config_file: Optional[str] = None,
        level: Union[str, LogLevel] = LogLevel.INFO,
    ) -> None:
        """
        Configure structured logging using a dictionary or file.

        Args:
            config_dict: Logging configuration dictionary
            config_file: Path to logging configuration file
            level: Level of the ``vet_access`` logger in the default configuration
        """
        if isinstance(level, LogLevel):
            level = level.value

        if config_file and Path(config_file).exists():
            logging.config.fileConfig(config_file)
        elif config_dict:
            logging.config.dictConfig(config_dict)
        else:
            default_config = {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "standard": {"format": LoggingConfigurator.DEFAULT_FORMAT},
                    "detailed": {
                        "format": "%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s - %(message)s"
                    },
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "standard",
                        "stream": "ext://sys.stdout",
                    }
                },
                "loggers": {
                    "vet_access": {
                        "level": level,
                        "handlers": ["console"],
                        "propagate": False,
                    }
                },
                "root": {"level": "WARNING", "handlers": ["console"]},
            }
            logging.config.dictConfig(default_config)


@dataclass
class AccessSettings:
    """Settings for the access-consent engine."""

    database_url: Optional[str] = None
    request_ttl_days: int = 7
    grant_duration_days: int = 365
    max_grant_duration_days: int = 3650
    sweep_enabled: bool = True
    sweep_interval_seconds: float = 300.0
    notification_webhook_url: Optional[str] = None
    notification_timeout_seconds: float = 10.0
    log_level: LogLevel = LogLevel.INFO

    def __post_init__(self) -> None:
        """Validate value ranges after dataclass creation."""
        if self.request_ttl_days <= 0:
            raise ConfigError(
                "Request TTL must be a positive number of days",
                config_key="request_ttl_days",
                config_value=str(self.request_ttl_days),
            )
        if not 0 < self.grant_duration_days <= self.max_grant_duration_days:
            raise ConfigError(
                f"Grant duration must be between 1 and {self.max_grant_duration_days} days",
                config_key="grant_duration_days",
                config_value=str(self.grant_duration_days),
            )
        if self.sweep_interval_seconds <= 0:
            raise ConfigError(
                "Sweep interval must be positive",
                config_key="sweep_interval_seconds",
                config_value=str(self.sweep_interval_seconds),
            )
        if self.database_url:
            DatabaseURLValidator.validate_url(self.database_url)

    @classmethod
    def from_env(cls, prefix: str = "VET_ACCESS_") -> "AccessSettings":
        """
        Build settings from environment variables.

        Args:
            prefix: Prefix shared by every variable

        Returns:
            Populated settings instance
        """
        level_name = EnvironmentConfig.get_str(f"{prefix}LOG_LEVEL", "INFO")
        try:
            log_level = LogLevel(level_name.upper())
        except ValueError:
            raise ConfigError(
                f"Unknown log level '{level_name}'",
                config_key=f"{prefix}LOG_LEVEL",
                config_value=level_name,
            )

        return cls(
            database_url=EnvironmentConfig.get_str(f"{prefix}DATABASE_URL"),
            request_ttl_days=EnvironmentConfig.get_int(f"{prefix}REQUEST_TTL_DAYS", 7),
            grant_duration_days=EnvironmentConfig.get_int(
                f"{prefix}GRANT_DURATION_DAYS", 365
            ),
            max_grant_duration_days=EnvironmentConfig.get_int(
                f"{prefix}MAX_GRANT_DURATION_DAYS", 3650
            ),
            sweep_enabled=EnvironmentConfig.get_bool(f"{prefix}SWEEP_ENABLED", True),
            sweep_interval_seconds=EnvironmentConfig.get_float(
                f"{prefix}SWEEP_INTERVAL_SECONDS", 300.0
            ),
            notification_webhook_url=EnvironmentConfig.get_str(
                f"{prefix}NOTIFICATION_WEBHOOK_URL"
            ),
            notification_timeout_seconds=EnvironmentConfig.get_float(
                f"{prefix}NOTIFICATION_TIMEOUT_SECONDS", 10.0
            ),
            log_level=log_level,
        )
