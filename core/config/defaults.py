# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for migration runs and logging
# CREATED: 14 OCT 2026
# ============================================================================
"""
Configuration Defaults

Defaults for migration runs, overridable via environment variables or CLI
arguments. Connection settings are resolved by infrastructure.postgresql.

Environment:
    FINGERPRINT_TABLE        Fingerprint table name (default "__schema_fingerprints")
    MIGRATION_OWNER          Logical schema owner (default "default")
    MIGRATION_LOCK_TIMEOUT   Seconds to wait for the migration lock (default 60, 0 = forever)
    DEFAULT_COLLATION        Collation for text columns ("C", "POSIX" or a name)
    LOG_LEVEL                Root log level (default INFO)
    LOG_FORMAT               "json" for structured output
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from core.models.relational import Collation


@dataclass(frozen=True)
class MigrationDefaults:
    """
    Defaults for a migration run.
    """
    fingerprint_table: str = "__schema_fingerprints"
    owner: str = "default"
    lock_timeout_seconds: Optional[float] = 60.0
    default_collation: Optional[str] = None

    @property
    def collation(self) -> Optional[Collation]:
        return Collation.from_name(self.default_collation)

    @classmethod
    def from_env(cls) -> "MigrationDefaults":
        """Create from environment variables."""
        timeout = float(os.getenv("MIGRATION_LOCK_TIMEOUT", 60))
        return cls(
            fingerprint_table=os.getenv("FINGERPRINT_TABLE", "__schema_fingerprints"),
            owner=os.getenv("MIGRATION_OWNER", "default"),
            lock_timeout_seconds=timeout if timeout > 0 else None,
            default_collation=os.getenv("DEFAULT_COLLATION") or None,
        )


@dataclass(frozen=True)
class LoggingDefaults:
    """Defaults for log output."""
    level: str = "INFO"
    json_output: bool = False

    @classmethod
    def from_env(cls) -> "LoggingDefaults":
        """Create from environment variables."""
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            json_output=os.getenv("LOG_FORMAT", "").lower() == "json",
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    migration: MigrationDefaults = field(default_factory=MigrationDefaults)
    logging: LoggingDefaults = field(default_factory=LoggingDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            migration=MigrationDefaults.from_env(),
            logging=LoggingDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "MigrationDefaults",
    "LoggingDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
