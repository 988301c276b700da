"""
Server configuration management.

This module handles loading and accessing server configuration from multiple sources
with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/server.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The ServerConfig
dataclass provides typed access to all settings.

Usage:
    from coin_server.config import config

    # Access settings
    print(config.server.port)
    print(config.security.shared_secret)
    print(config.ledger.max_attempts)

Environment Variable Mapping:
    COIN_HOST                  -> server.host
    COIN_PORT (or PORT)        -> server.port
    COIN_PRODUCTION            -> security.production
    COIN_CORS_ORIGINS          -> security.cors_origins
    COIN_SHARED_SECRET         -> security.shared_secret
    BIN_SECRET                 -> security.shared_secret (legacy name)
    COIN_DB_PATH               -> database.path
    COIN_LOG_LEVEL             -> logging.level
    COIN_LOG_FORMAT            -> logging.format
    COIN_TX_MAX_ATTEMPTS       -> ledger.max_attempts
    COIN_TX_BACKOFF_MS         -> ledger.backoff_ms
    COIN_ALLOW_NEGATIVE_AWARDS -> ledger.allow_negative_awards
"""

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Config file paths
CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "server.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "server.example.ini"


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ServerSettings:
    """Network server configuration."""

    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding
    port: int = 5000


@dataclass
class SecuritySettings:
    """Security-related configuration.

    ``shared_secret`` gates every ledger endpoint. When it is empty the gate is
    open and all requests pass.
    """

    production: bool = False
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    shared_secret: str = ""
    docs_enabled: Literal["auto", "enabled", "disabled"] = "auto"


@dataclass
class DatabaseSettings:
    """Database configuration."""

    path: str = "data/coins.db"

    @property
    def absolute_path(self) -> Path:
        """Get absolute path to database file."""
        p = Path(self.path)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass
class LedgerSettings:
    """Ledger transaction policy.

    Attributes:
        max_attempts: Transaction attempts before a write conflict is surfaced
            as ``TransactionConflictError``.
        backoff_ms: Base delay between conflicting attempts; the actual sleep is
            ``backoff_ms * attempt`` plus jitter.
        busy_timeout_ms: SQLite busy handler timeout per connection.
        allow_negative_awards: Accept negative coin amounts on party results.
    """

    max_attempts: int = 5
    backoff_ms: int = 10
    busy_timeout_ms: int = 5000
    allow_negative_awards: bool = False


@dataclass
class ServerConfig:
    """
    Complete server configuration.

    This is the main configuration object that aggregates all settings sections.
    Access via the module-level `config` singleton.
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)

    @property
    def is_production(self) -> bool:
        """Convenience property for production mode check."""
        return self.security.production

    @property
    def gate_enabled(self) -> bool:
        """True when a shared secret is configured."""
        return bool(self.security.shared_secret)

    @property
    def docs_should_be_enabled(self) -> bool:
        """Determine if API docs should be enabled based on settings."""
        if self.security.docs_enabled == "enabled":
            return True
        if self.security.docs_enabled == "disabled":
            return False
        # "auto" - follow production setting
        return not self.is_production


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_bool(value: str) -> bool:
    """Parse a string value to boolean."""
    return value.lower() in ("true", "yes", "1", "on", "enabled")


def _parse_list(value: str) -> list[str]:
    """Parse a comma-separated string to list, stripping whitespace."""
    if not value or value.strip() == "":
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _load_from_ini(parser: configparser.ConfigParser, cfg: ServerConfig) -> None:
    """Load configuration from parsed INI file into ServerConfig."""
    # Server section
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    # Security section
    if parser.has_section("security"):
        if parser.has_option("security", "production"):
            cfg.security.production = _parse_bool(parser.get("security", "production"))
        if parser.has_option("security", "cors_origins"):
            cfg.security.cors_origins = _parse_list(parser.get("security", "cors_origins"))
        if parser.has_option("security", "shared_secret"):
            cfg.security.shared_secret = parser.get("security", "shared_secret").strip()
        if parser.has_option("security", "docs_enabled"):
            val = parser.get("security", "docs_enabled").lower()
            if val in ("auto", "enabled", "disabled"):
                cfg.security.docs_enabled = val  # type: ignore[assignment]

    # Database section
    if parser.has_section("database"):
        if parser.has_option("database", "path"):
            cfg.database.path = parser.get("database", "path")

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed", "json"):
                cfg.logging.format = val  # type: ignore[assignment]

    # Ledger section
    if parser.has_section("ledger"):
        if parser.has_option("ledger", "max_attempts"):
            cfg.ledger.max_attempts = parser.getint("ledger", "max_attempts")
        if parser.has_option("ledger", "backoff_ms"):
            cfg.ledger.backoff_ms = parser.getint("ledger", "backoff_ms")
        if parser.has_option("ledger", "busy_timeout_ms"):
            cfg.ledger.busy_timeout_ms = parser.getint("ledger", "busy_timeout_ms")
        if parser.has_option("ledger", "allow_negative_awards"):
            cfg.ledger.allow_negative_awards = _parse_bool(
                parser.get("ledger", "allow_negative_awards")
            )


def _apply_env_overrides(cfg: ServerConfig) -> None:
    """Apply environment variable overrides to configuration."""
    # Server settings
    if env_host := os.getenv("COIN_HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv("COIN_PORT") or os.getenv("PORT"):
        cfg.server.port = int(env_port)

    # Security settings
    if env_production := os.getenv("COIN_PRODUCTION"):
        cfg.security.production = _parse_bool(env_production)
    if env_cors := os.getenv("COIN_CORS_ORIGINS"):
        cfg.security.cors_origins = _parse_list(env_cors)
    if env_secret := os.getenv("COIN_SHARED_SECRET") or os.getenv("BIN_SECRET"):
        cfg.security.shared_secret = env_secret.strip()

    # Database settings
    if env_db := os.getenv("COIN_DB_PATH"):
        cfg.database.path = env_db

    # Logging settings
    if env_log := os.getenv("COIN_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()
    if env_log_format := os.getenv("COIN_LOG_FORMAT"):
        if env_log_format.lower() in ("simple", "detailed", "json"):
            cfg.logging.format = env_log_format.lower()  # type: ignore[assignment]

    # Ledger settings
    if env_attempts := os.getenv("COIN_TX_MAX_ATTEMPTS"):
        cfg.ledger.max_attempts = int(env_attempts)
    if env_backoff := os.getenv("COIN_TX_BACKOFF_MS"):
        cfg.ledger.backoff_ms = int(env_backoff)
    if env_negative := os.getenv("COIN_ALLOW_NEGATIVE_AWARDS"):
        cfg.ledger.allow_negative_awards = _parse_bool(env_negative)


def load_config() -> ServerConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/server.ini
        3. config/server.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        ServerConfig: Fully populated configuration object.
    """
    cfg = ServerConfig()

    # Determine which config file to use
    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        # Use example as fallback for development
        config_file = CONFIG_EXAMPLE

    # Load from INI file if available
    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    # Apply environment variable overrides (highest priority)
    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> "ServerConfig":
    """
    Reload configuration from disk and environment.

    This updates the module-level `config` singleton. Stores that were already
    opened keep the settings they were created with.

    Returns:
        ServerConfig: The newly loaded configuration.
    """
    global config
    config = load_config()
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

# Load configuration once at module import time
config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_config_status() -> dict:
    """
    Get configuration status for diagnostics.

    Returns a dictionary with configuration source information. The shared
    secret itself is never included, only whether one is set.
    """
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "production_mode": config.is_production,
        "gate_enabled": config.gate_enabled,
        "cors_origins_count": len(config.security.cors_origins),
        "docs_enabled": config.docs_should_be_enabled,
        "max_attempts": config.ledger.max_attempts,
    }


def print_config_summary() -> None:
    """Print a summary of current configuration to stdout."""
    status = get_config_status()
    print("\n" + "=" * 60)
    print("SERVER CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("WARNING: Using example config (copy to server.ini for production)")
    print("-" * 60)
    print(f"Server:       {config.server.host}:{config.server.port}")
    print(f"Production:   {config.is_production}")
    print(f"Secret gate:  {'enabled' if config.gate_enabled else 'open'}")
    print(f"CORS origins: {config.security.cors_origins}")
    print(f"Database:     {config.database.absolute_path}")
    print(f"Log level:    {config.logging.level}")
    print(f"Tx attempts:  {config.ledger.max_attempts}")
    print("=" * 60 + "\n")


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_database:
    """
    Context manager for using a temporary test database.

    Usage:
        from coin_server.config import use_test_database

        def test_something(tmp_path):
            with use_test_database(tmp_path / "test.db"):
                store = LedgerStore.from_config()
                store.open()

    Args:
        db_path: Path to the test database file
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.original_path: str | None = None

    def __enter__(self) -> Path:
        """Set up test database path."""
        self.original_path = config.database.path
        config.database.path = str(self.db_path)
        return self.db_path

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Restore original database path."""
        if self.original_path is not None:
            config.database.path = self.original_path
        return None
