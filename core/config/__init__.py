# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 14 OCT 2026
# ============================================================================
"""
Configuration Module

Centralized configuration and defaults for migration runs.
"""

from core.config.defaults import (
    MigrationDefaults,
    LoggingDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "MigrationDefaults",
    "LoggingDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
