# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core module initialization
# PURPOSE: Export core contracts, models, schema and migration engine
# LAST_REVIEWED: 14 OCT 2026
# ============================================================================

from core.contracts import SchemaObjectKind, SchemaObjectKey
from core.models import (
    Collation,
    CollationFunction,
    ColumnDescriptor,
    TableDescriptor,
    IndexDescriptor,
    AssociationDescriptor,
    RelationalModel,
    FingerprintRecord,
    MigrationPlan,
)
from core.schema import SqlGenerator, PydanticModelSource
from core.migration import FingerprintGenerator, plan_migration, is_same_model

__all__ = [
    # Contracts
    "SchemaObjectKind",
    "SchemaObjectKey",
    # Models
    "Collation",
    "CollationFunction",
    "ColumnDescriptor",
    "TableDescriptor",
    "IndexDescriptor",
    "AssociationDescriptor",
    "RelationalModel",
    "FingerprintRecord",
    "MigrationPlan",
    # Schema
    "SqlGenerator",
    "PydanticModelSource",
    # Migration
    "FingerprintGenerator",
    "plan_migration",
    "is_same_model",
]
