# ============================================================================
# MIGRATION PLANNER
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Stored vs current fingerprint comparison
# PURPOSE: Decide which tables and indexes to drop and which to (re)create
# CREATED: 14 OCT 2026
# EXPORTS: plan_migration, is_same_model
# DEPENDENCIES: core.models.fingerprint
# ============================================================================
"""
Migration Planner.

Compares recorded fingerprints against freshly computed ones:

    stored only                 -> removed  -> drop (table or index)
    both, hash differs, table   -> changed  -> drop + create
    both, hash differs, index   -> changed  -> drop index, create index
    both, same hash             -> unchanged
    current only, table         -> new      -> create
    current only, index         -> new      -> create index

Changed and new indexes land in indexes_to_create; when their table is
recreated anyway, the create-phase builder regenerates them with the table
and ignores the standalone entry.

One pass over each mapping; correctness depends on set membership only,
never on iteration order.
"""

import logging
from typing import Mapping, Optional, Union

from core.contracts import SchemaObjectKey
from core.models.fingerprint import FingerprintRecord, MigrationPlan

logger = logging.getLogger(__name__)


StoredFingerprint = Union[FingerprintRecord, str]


def _stored_hash(value: StoredFingerprint) -> str:
    return value.hash if isinstance(value, FingerprintRecord) else value


def plan_migration(
    old_fingerprints: Mapping[SchemaObjectKey, StoredFingerprint],
    current_fingerprints: Mapping[SchemaObjectKey, str],
    index_owners: Optional[Mapping[str, str]] = None,
) -> MigrationPlan:
    """
    Build the migration plan.

    Args:
        old_fingerprints: Stored records (or bare hashes) of the current owner
        current_fingerprints: Hashes computed from the model
        index_owners: Optional index name -> table name of the current model;
            when given, indexes of recreated tables are left out of
            indexes_to_create since they are rebuilt with their table

    Returns:
        MigrationPlan
    """
    tables_to_drop = set()
    indexes_to_drop = set()
    tables_to_create = set()
    indexes_to_create = set()

    for key, stored in old_fingerprints.items():
        current = current_fingerprints.get(key)
        if current is None:
            (tables_to_drop if key.is_table else indexes_to_drop).add(key.name)
        elif _stored_hash(stored) != current:
            if key.is_table:
                tables_to_drop.add(key.name)
                tables_to_create.add(key.name)
            else:
                indexes_to_drop.add(key.name)
                indexes_to_create.add(key.name)

    for key in current_fingerprints:
        if key not in old_fingerprints:
            (tables_to_create if key.is_table else indexes_to_create).add(key.name)

    if index_owners:
        indexes_to_create = {
            name for name in indexes_to_create
            if index_owners.get(name) not in tables_to_create
        }

    plan = MigrationPlan(
        tables_to_drop=frozenset(tables_to_drop),
        indexes_to_drop=frozenset(indexes_to_drop),
        tables_to_create=frozenset(tables_to_create),
        indexes_to_create=frozenset(indexes_to_create),
    )
    logger.info(
        f"Migration plan: drop {len(plan.tables_to_drop)} tables / {len(plan.indexes_to_drop)} indexes, "
        f"create {len(plan.tables_to_create)} tables / {len(plan.indexes_to_create)} indexes"
    )
    return plan


def is_same_model(
    old_fingerprints: Mapping[SchemaObjectKey, StoredFingerprint],
    current_fingerprints: Mapping[SchemaObjectKey, str],
) -> bool:
    """True if every object is recorded with its current hash and nothing was removed."""
    if old_fingerprints.keys() != current_fingerprints.keys():
        return False
    return all(
        _stored_hash(old_fingerprints[key]) == current
        for key, current in current_fingerprints.items()
    )


__all__ = ["plan_migration", "is_same_model"]
