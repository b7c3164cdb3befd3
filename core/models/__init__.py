# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Model exports
# PURPOSE: Central export point for relational and fingerprint models
# LAST_REVIEWED: 14 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

Relational descriptors (what the schema looks like) and fingerprint models
(what was last recorded, and what has to change).
"""

from core.models.relational import (
    CollationFunction,
    Collation,
    ColumnDescriptor,
    TableDescriptor,
    IndexDescriptor,
    AssociationDescriptor,
    RelationalModel,
)
from core.models.fingerprint import FingerprintRecord, MigrationPlan

__all__ = [
    # Relational
    "CollationFunction",
    "Collation",
    "ColumnDescriptor",
    "TableDescriptor",
    "IndexDescriptor",
    "AssociationDescriptor",
    "RelationalModel",
    # Fingerprints
    "FingerprintRecord",
    "MigrationPlan",
]
