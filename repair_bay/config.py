"""
Repair Bay Server - Configuration Module

This module handles environment variable loading, validation, and configuration
management for the Repair Bay server.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional, Tuple
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


def get_env_var(
    var_name: str, required: bool = True, default: Optional[str] = None
) -> Optional[str]:
    """
    Get environment variable with optional default and validation.

    Args:
        var_name: Name of the environment variable
        required: Whether the variable is required
        default: Default value if not required and not found

    Returns:
        The environment variable value or default

    Raises:
        ConfigurationError: If required variable is missing
    """
    value = os.getenv(var_name, default)
    if required and not value:
        raise ConfigurationError(
            f"Required environment variable {var_name} is not set"
        )
    return value


def get_env_int(
    var_name: str, required: bool = True, default: Optional[int] = None
) -> Optional[int]:
    """
    Get environment variable as integer.

    Raises:
        ConfigurationError: If required variable is missing or invalid
    """
    value = get_env_var(var_name, required, str(default) if default is not None else None)
    if value is None:
        return default

    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"Environment variable {var_name} must be an integer, got: {value}") from e


def get_env_float(
    var_name: str, required: bool = True, default: Optional[float] = None
) -> Optional[float]:
    """
    Get environment variable as a number of seconds.

    Raises:
        ConfigurationError: If required variable is missing or invalid
    """
    value = get_env_var(var_name, required, str(default) if default is not None else None)
    if value is None:
        return default

    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"Environment variable {var_name} must be a number, got: {value}") from e


def get_env_bool(var_name: str, required: bool = True, default: Optional[bool] = None) -> Optional[bool]:
    """
    Get environment variable as boolean.

    Raises:
        ConfigurationError: If required variable is missing
    """
    value = get_env_var(var_name, required, str(default).lower() if default is not None else None)
    if value is None:
        return default

    return value.lower() in ("true", "1", "yes", "on")


def get_env_list(
    var_name: str, required: bool = True, default: Optional[Tuple[str, ...]] = None
) -> Optional[Tuple[str, ...]]:
    """Get a comma separated environment variable as a tuple of stripped items."""
    value = get_env_var(var_name, required, None)
    if value is None:
        return default

    return tuple(item.strip() for item in value.split(",") if item.strip())


# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_SYSTEM_NAMES = (
    "navigation",
    "communications",
    "life_support",
    "engines",
    "deflector_shield",
)
DEFAULT_SYSTEM_CODES = ("NAV-01", "COM-02", "LIFE-03", "ENG-04", "SHLD-05")
DEFAULT_SYSTEM_IDX = 3

DEFAULT_TEMPLATE_PATH = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "templates", "template.html"
)


@dataclass(frozen=True)
class ServerConfig:
    """Startup options for the server. Every field can be overridden."""

    host: str = "0.0.0.0"
    port: int = 3000
    # Accepted and validated; every connection closes after one response,
    # so no connection ever waits idle under it
    idle_timeout: float = 120.0
    read_timeout: float = 1.0
    write_timeout: float = 1.0
    shutdown_timeout: float = 30.0
    template_path: str = DEFAULT_TEMPLATE_PATH
    system_names: Tuple[str, ...] = DEFAULT_SYSTEM_NAMES
    system_codes: Tuple[str, ...] = DEFAULT_SYSTEM_CODES
    default_system_idx: int = DEFAULT_SYSTEM_IDX
    legacy_error_status: bool = False

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build the configuration from environment variables.

        Returns:
            Validated server configuration

        Raises:
            ConfigurationError: If a variable is malformed or the result is inconsistent
        """
        config = cls(
            host=get_env_var("HOST", required=False, default=cls.host),
            port=get_env_int("PORT", required=False, default=cls.port),
            idle_timeout=get_env_float("IDLE_TIMEOUT", required=False, default=cls.idle_timeout),
            read_timeout=get_env_float("READ_TIMEOUT", required=False, default=cls.read_timeout),
            write_timeout=get_env_float("WRITE_TIMEOUT", required=False, default=cls.write_timeout),
            shutdown_timeout=get_env_float(
                "SHUTDOWN_TIMEOUT", required=False, default=cls.shutdown_timeout
            ),
            template_path=get_env_var("TEMPLATE_PATH", required=False, default=DEFAULT_TEMPLATE_PATH),
            system_names=get_env_list("SYSTEM_NAMES", required=False, default=DEFAULT_SYSTEM_NAMES),
            system_codes=get_env_list("SYSTEM_CODES", required=False, default=DEFAULT_SYSTEM_CODES),
            default_system_idx=get_env_int(
                "DEFAULT_SYSTEM_IDX", required=False, default=DEFAULT_SYSTEM_IDX
            ),
            legacy_error_status=get_env_bool("LEGACY_ERROR_STATUS", required=False, default=False),
        )
        validate_config(config)
        return config


def validate_config(config: ServerConfig) -> None:
    """
    Validate configuration on startup.

    Raises:
        ConfigurationError: If configuration validation fails
    """
    logger.debug("Validating configuration...")

    if not 0 <= config.port <= 65535:
        raise ConfigurationError(f"PORT must be between 0 and 65535, got: {config.port}")

    for name in ("idle_timeout", "read_timeout", "write_timeout", "shutdown_timeout"):
        if getattr(config, name) <= 0:
            raise ConfigurationError(
                f"{name.upper()} must be greater than zero, got: {getattr(config, name)}"
            )

    if not config.system_names:
        raise ConfigurationError("SYSTEM_NAMES must contain at least one system")

    if len(config.system_names) != len(config.system_codes):
        raise ConfigurationError(
            f"SYSTEM_NAMES ({len(config.system_names)}) and SYSTEM_CODES "
            f"({len(config.system_codes)}) must have the same length"
        )

    if not 0 <= config.default_system_idx < len(config.system_names):
        raise ConfigurationError(
            f"DEFAULT_SYSTEM_IDX must be between 0 and {len(config.system_names) - 1}, "
            f"got: {config.default_system_idx}"
        )

    if config.legacy_error_status:
        logger.warning("LEGACY_ERROR_STATUS is enabled - client errors will be reported as 500")

    logger.debug("✅ Configuration validation passed")
