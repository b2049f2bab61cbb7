"""
Static configuration management for nexusbot.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. All values are
read once at process start; the connection manager, datastore service,
health server and prober take their tunables from here.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate critical settings on startup
- Create required directories (logs, data)
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Credential material (owned by the credential store)
- Runtime reconfiguration (restart the process instead)

Architecture Notes
------------------
- Singleton pattern via class methods (no instantiation)
- Auto-loads on module import via Config.validate()
- Validation failures only raise in production; elsewhere they are logged
  so that tests and local runs can import the package without a full .env

Environment Variables
---------------------
Required in production:
- DATASTORE_URI: SQLAlchemy async URL of the durable store
- TRANSPORT_PROVIDER: "package.module:factory" of the transport provider

Optional (with defaults):
- PORT: Health endpoint port (default: 3000)
- SESSION_DATA: Base64 credential override bundle (default: unset)
- MESSAGE_HANDLER: "package.module:callable" (default: built-in logger handler)
- RECONNECT_DELAY_SECONDS: Fixed delay between attempts (default: 3)
- QUERY_TIMEOUT_SECONDS: Transport query/open timeout (default: 60)
- KEEPALIVE_INTERVAL_SECONDS: Liveness probe interval (default: 300)
- KEY_CACHE_TTL_SECONDS: Signal key cache TTL (default: 300)
- TERMINAL_DISCONNECT_CODES: Extra comma-separated terminal close codes
- ENVIRONMENT, DEBUG, LOG_LEVEL, LOG_JSON, BOT_NAME
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# ============================================================================
# Enums and Constants
# ============================================================================


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger not yet initialized during bootstrap
            import logging
            logging.warning(
                f"Unknown environment '{value}', defaulting to development"
            )
            return cls.DEVELOPMENT


# ============================================================================
# Configuration Metrics Tracker
# ============================================================================


class _ConfigLoadMetrics:
    """
    Internal metrics tracker for configuration loading.

    Tracks which configuration values came from environment variables
    versus defaults, and any validation errors encountered.
    """

    def __init__(self):
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, value: Any, default: Any):
        """Record whether a config value came from environment."""
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str):
        """Record a validation error."""
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        """Get configuration loading summary."""
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration for the nexusbot process.

    Usage
    -----
    >>> port = Config.PORT
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    >>> logger.info("Config loaded", extra=Config.get_config_summary())
    """

    # =========================================================================
    # Internal State
    # =========================================================================

    _metrics: Optional[_ConfigLoadMetrics] = None
    _enable_metrics: bool = True
    _validated: bool = False

    # =========================================================================
    # Directory Configuration
    # =========================================================================

    # Place logs + data at project root
    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"
    DATA_DIR = PROJECT_ROOT / "data"

    # =========================================================================
    # Datastore Configuration
    # =========================================================================

    DATASTORE_URI: str = ""
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False
    DATABASE_POOL_RECYCLE: int = 1800
    DATABASE_CONNECT_TIMEOUT_SECONDS: int = 5

    # =========================================================================
    # HTTP / Liveness
    # =========================================================================

    PORT: int = 3000
    KEEPALIVE_INTERVAL_SECONDS: int = 300
    KEEPALIVE_REQUEST_TIMEOUT_SECONDS: int = 10

    # =========================================================================
    # Transport / Connection
    # =========================================================================

    TRANSPORT_PROVIDER: str = ""
    SESSION_DATA: Optional[str] = None
    RECONNECT_DELAY_SECONDS: int = 3
    QUERY_TIMEOUT_SECONDS: int = 60
    KEY_CACHE_TTL_SECONDS: int = 300
    TERMINAL_DISCONNECT_CODES: FrozenSet[int] = frozenset()
    READY_ANNOUNCEMENT_DESTINATION: str = "status@broadcast"

    # =========================================================================
    # Message Handling
    # =========================================================================

    MESSAGE_HANDLER: str = "nexusbot.handlers.default:handle_message"
    DISPATCH_DEDUPE_WINDOW: int = 1000

    # =========================================================================
    # Environment Configuration
    # =========================================================================

    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None

    # =========================================================================
    # Bot Metadata
    # =========================================================================

    BOT_NAME: str = "NexusCoders"
    BOT_VERSION: str = "1.0.0"

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _init_metrics(cls):
        """Initialize metrics tracking if enabled."""
        if cls._enable_metrics and cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Parameters
        ----------
        key:
            Environment variable name.
        default:
            Default value if not set or invalid.
        min_val:
            Minimum allowed value (inclusive).
        max_val:
            Maximum allowed value (inclusive).

        Returns
        -------
        int
            Validated integer value.
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        try:
            value = int(raw_value)

            if min_val is not None and value < min_val:
                error = f"{key}={value} is below minimum {min_val}, using default {default}"
                import logging
                logging.warning(error)
                if cls._metrics:
                    cls._metrics.record_validation_error(key, error)
                return default

            if max_val is not None and value > max_val:
                error = f"{key}={value} exceeds maximum {max_val}, using default {default}"
                import logging
                logging.warning(error)
                if cls._metrics:
                    cls._metrics.record_validation_error(key, error)
                return default

            if cls._metrics:
                cls._metrics.record_env_load(key, True, value, default)

            return value

        except ValueError:
            error = f"{key}='{raw_value}' is not a valid integer, using default {default}"
            import logging
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        normalized = raw_value.lower().strip()
        true_values = {"true", "yes", "1", "on"}
        false_values = {"false", "no", "0", "off"}

        if normalized in true_values:
            value = True
        elif normalized in false_values:
            value = False
        else:
            error = f"{key}='{raw_value}' is not a valid boolean, using default {default}"
            import logging
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)

        return value

    @classmethod
    def _safe_str(
        cls,
        key: str,
        default: str,
        required: bool = False,
    ) -> str:
        """
        Safely get string from environment.

        Parameters
        ----------
        key:
            Environment variable name.
        default:
            Default value if not set.
        required:
            Whether this config is required (logged if missing).
        """
        cls._init_metrics()

        value = os.getenv(key, default)
        from_env = key in os.environ

        if cls._metrics:
            cls._metrics.record_env_load(key, from_env, value, default)

        if required and not value:
            error = f"Required environment variable {key} is not set"
            import logging
            logging.error(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)

        return value

    @classmethod
    def _safe_optional_str(cls, key: str) -> Optional[str]:
        """Get an optional string; empty and whitespace-only values count as unset."""
        cls._init_metrics()

        raw_value = os.getenv(key)
        value = raw_value.strip() if raw_value and raw_value.strip() else None

        if cls._metrics:
            cls._metrics.record_env_load(key, value is not None, value, None)

        return value

    @classmethod
    def _safe_int_set(cls, key: str) -> FrozenSet[int]:
        """
        Parse a comma-separated list of integers.

        Invalid entries are skipped with a warning.

        Example
        -------
        >>> # TERMINAL_DISCONNECT_CODES="403, 411"
        >>> Config._safe_int_set("TERMINAL_DISCONNECT_CODES")
        frozenset({403, 411})
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if not raw_value:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, frozenset(), frozenset())
            return frozenset()

        values = set()
        for part in raw_value.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                values.add(int(part))
            except ValueError:
                error = f"{key} entry '{part}' is not a valid integer, skipping"
                import logging
                logging.warning(error)
                if cls._metrics:
                    cls._metrics.record_validation_error(key, error)

        if cls._metrics:
            cls._metrics.record_env_load(key, True, values, frozenset())

        return frozenset(values)

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def default_datastore_uri(cls) -> str:
        """Local SQLite file used when DATASTORE_URI is not set."""
        return f"sqlite+aiosqlite:///{cls.DATA_DIR / 'nexusbot.db'}"

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables with validation.

        Called automatically on module import; call again after changing the
        environment (tests do this) to pick up new values.
        """
        cls._init_metrics()

        # Datastore
        cls.DATASTORE_URI = cls._safe_str(
            "DATASTORE_URI",
            cls.default_datastore_uri(),
            required=True,
        )
        cls.DATABASE_POOL_SIZE = cls._safe_int(
            "DATABASE_POOL_SIZE", 5, min_val=1, max_val=200
        )
        cls.DATABASE_MAX_OVERFLOW = cls._safe_int(
            "DATABASE_MAX_OVERFLOW", 10, min_val=0, max_val=200
        )
        cls.DATABASE_ECHO = bool(cls._safe_bool("DATABASE_ECHO", False))
        cls.DATABASE_POOL_RECYCLE = cls._safe_int(
            "DATABASE_POOL_RECYCLE", 1800, min_val=60
        )
        cls.DATABASE_CONNECT_TIMEOUT_SECONDS = cls._safe_int(
            "DATABASE_CONNECT_TIMEOUT_SECONDS", 5, min_val=1, max_val=120
        )

        # HTTP / Liveness
        cls.PORT = cls._safe_int("PORT", 3000, min_val=1, max_val=65535)
        cls.KEEPALIVE_INTERVAL_SECONDS = cls._safe_int(
            "KEEPALIVE_INTERVAL_SECONDS", 300, min_val=1
        )
        cls.KEEPALIVE_REQUEST_TIMEOUT_SECONDS = cls._safe_int(
            "KEEPALIVE_REQUEST_TIMEOUT_SECONDS", 10, min_val=1, max_val=300
        )

        # Transport / Connection
        cls.TRANSPORT_PROVIDER = cls._safe_str("TRANSPORT_PROVIDER", "", required=True)
        cls.SESSION_DATA = cls._safe_optional_str("SESSION_DATA")
        cls.RECONNECT_DELAY_SECONDS = cls._safe_int(
            "RECONNECT_DELAY_SECONDS", 3, min_val=0, max_val=3600
        )
        cls.QUERY_TIMEOUT_SECONDS = cls._safe_int(
            "QUERY_TIMEOUT_SECONDS", 60, min_val=1, max_val=600
        )
        cls.KEY_CACHE_TTL_SECONDS = cls._safe_int(
            "KEY_CACHE_TTL_SECONDS", 300, min_val=0
        )
        cls.TERMINAL_DISCONNECT_CODES = cls._safe_int_set("TERMINAL_DISCONNECT_CODES")
        cls.READY_ANNOUNCEMENT_DESTINATION = cls._safe_str(
            "READY_ANNOUNCEMENT_DESTINATION", "status@broadcast"
        )

        # Message handling
        cls.MESSAGE_HANDLER = cls._safe_str(
            "MESSAGE_HANDLER", "nexusbot.handlers.default:handle_message"
        )
        cls.DISPATCH_DEDUPE_WINDOW = cls._safe_int(
            "DISPATCH_DEDUPE_WINDOW", 1000, min_val=0, max_val=1_000_000
        )

        # Environment
        cls.ENVIRONMENT = cls._safe_str("ENVIRONMENT", "development")
        cls.DEBUG = bool(cls._safe_bool("DEBUG", False))
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)

        # Metadata
        cls.BOT_NAME = cls._safe_str("BOT_NAME", "NexusCoders")

        if cls._metrics:
            from datetime import datetime, timezone
            cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Validate critical configuration values on startup.

        Raises
        ------
        ValueError:
            If required config values are missing or invalid in production.
        """
        if cls._validated:
            return

        import logging
        logger = logging.getLogger(__name__)
        cls._init_metrics()

        try:
            cls.load()

            if not cls.DATASTORE_URI:
                raise ValueError("DATASTORE_URI environment variable is required")

            if not cls.TRANSPORT_PROVIDER:
                raise ValueError("TRANSPORT_PROVIDER environment variable is required")

            if cls.is_production() and cls.DATASTORE_URI.startswith("sqlite"):
                logger.warning(
                    "Production environment using a local SQLite datastore - "
                    "this may be incorrect"
                )

            valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if cls.LOG_LEVEL.upper() not in valid_log_levels:
                logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
                cls.LOG_LEVEL = "INFO"

            cls.LOGS_DIR.mkdir(exist_ok=True)
            cls.DATA_DIR.mkdir(exist_ok=True)

            if cls.is_production() and cls.DEBUG:
                logger.warning("DEBUG mode enabled in production!")

            cls._validated = True

            if cls._metrics:
                summary = cls._metrics.get_summary()
                logger.info(f"Configuration loaded: {summary}")

                if cls._metrics.validation_errors:
                    logger.warning(
                        f"Configuration warnings: {cls._metrics.validation_errors}"
                    )

        except Exception as e:
            logger.warning(f"Config validation warning (safe for tests): {e}")
            if cls.ENVIRONMENT.lower() == "production":
                logger.error("Configuration validation failed in production!")
                raise

    @classmethod
    def reload(cls) -> None:
        """Force a fresh load and validation pass."""
        cls._validated = False
        cls.validate()

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment."""
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment."""
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_testing(cls) -> bool:
        """Check if running in testing environment."""
        return cls.ENVIRONMENT.lower() == "testing"

    # =========================================================================
    # Metrics & Summary
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        """Get configuration loading metrics."""
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Get non-sensitive configuration summary for debugging.

        SESSION_DATA and the datastore URI are reported as set/unset only.
        """
        return {
            "environment": cls.ENVIRONMENT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "port": cls.PORT,
            "bot_name": cls.BOT_NAME,
            "bot_version": cls.BOT_VERSION,
            "transport_provider": cls.TRANSPORT_PROVIDER,
            "message_handler": cls.MESSAGE_HANDLER,
            "reconnect_delay_seconds": cls.RECONNECT_DELAY_SECONDS,
            "query_timeout_seconds": cls.QUERY_TIMEOUT_SECONDS,
            "keepalive_interval_seconds": cls.KEEPALIVE_INTERVAL_SECONDS,
            "terminal_disconnect_codes": sorted(cls.TERMINAL_DISCONNECT_CODES),
            "datastore_uri_set": bool(cls.DATASTORE_URI),
            "session_data_set": bool(cls.SESSION_DATA),
        }


# Auto-validate on import
Config.validate()
