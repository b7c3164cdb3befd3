# ============================================================================
# MIGRATION MODULE
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Fingerprint-based migration engine
# PURPOSE: Fingerprint generation, migration planning, history bookkeeping
# CREATED: 14 OCT 2026
# ============================================================================

from core.migration.fingerprints import create_hash, FingerprintGenerator
from core.migration.planner import plan_migration, is_same_model
from core.migration.history import (
    FingerprintStore,
    HistoryUpdate,
    load_fingerprints,
    record_fingerprints,
)

__all__ = [
    # Fingerprints
    "create_hash",
    "FingerprintGenerator",
    # Planning
    "plan_migration",
    "is_same_model",
    # History
    "FingerprintStore",
    "HistoryUpdate",
    "load_fingerprints",
    "record_fingerprints",
]
