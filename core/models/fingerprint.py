# ============================================================================
# FINGERPRINT MODELS
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core model - Fingerprint history record and migration plan
# PURPOSE: Persisted DDL hashes per schema object, and the planner's output
# CREATED: 14 OCT 2026
# EXPORTS: FingerprintRecord, MigrationPlan
# DEPENDENCIES: pydantic
# ============================================================================
"""
Fingerprint Models

FingerprintRecord is "the last DDL text observed for this object, as hashed,
for this owner". The owner is the logical schema/context name, so several
independent schemas can share one physical fingerprint table.

Maps to: <fingerprint_table> (default "__schema_fingerprints"). The table DDL
is generated from the __sql_* metadata below through the same statement
builders that generate the application schema.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional
from pydantic import BaseModel, Field

from core.contracts import SchemaObjectKey, SchemaObjectKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FingerprintRecord(BaseModel):
    """
    Stored fingerprint of one table or index.

    Lifecycle:
        1. Created when the object is first fingerprinted
        2. Hash updated when the object's DDL changes
        3. Deleted when the object disappears from the model
    """

    # =========================================================================
    # SQL DDL METADATA (Used by PydanticModelSource)
    # =========================================================================
    __sql_table__: ClassVar[str] = "__schema_fingerprints"
    __sql_primary_key__: ClassVar[List[str]] = ["id"]
    __sql_serial_columns__: ClassVar[List[str]] = ["id"]
    __sql_indexes__: ClassVar[List[Dict[str, Any]]] = [
        {"name": "ix_schema_fingerprints_owner_key", "columns": ["owner", "kind", "name"], "unique": True},
    ]

    id: Optional[int] = Field(default=None, description="Identity assigned by the store")
    name: str = Field(..., max_length=255, description="Raw table or index name")
    kind: SchemaObjectKind
    hash: str = Field(..., max_length=128, description="Content hash of the object's DDL")
    owner: str = Field(..., max_length=255, description="Logical schema owner")
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}

    @property
    def key(self) -> SchemaObjectKey:
        return SchemaObjectKey(name=self.name, kind=self.kind)

    @classmethod
    def create(cls, owner: str, key: SchemaObjectKey, hash: str) -> "FingerprintRecord":
        return cls(name=key.name, kind=key.kind, hash=hash, owner=owner)


@dataclass(frozen=True)
class MigrationPlan:
    """
    Output of the migration planner.

    Indexes of a table in tables_to_create are regenerated with the table and
    are never listed in indexes_to_create. indexes_to_create holds indexes
    that must be (re)built while their owning table is left untouched.
    """
    tables_to_drop: FrozenSet[str] = field(default_factory=frozenset)
    indexes_to_drop: FrozenSet[str] = field(default_factory=frozenset)
    tables_to_create: FrozenSet[str] = field(default_factory=frozenset)
    indexes_to_create: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not (
            self.tables_to_drop
            or self.indexes_to_drop
            or self.tables_to_create
            or self.indexes_to_create
        )

    def to_dict(self) -> Dict[str, List[str]]:
        """Convert to dictionary for JSON serialization."""
        return {
            "tables_to_drop": sorted(self.tables_to_drop),
            "indexes_to_drop": sorted(self.indexes_to_drop),
            "tables_to_create": sorted(self.tables_to_create),
            "indexes_to_create": sorted(self.indexes_to_create),
        }


__all__ = ["FingerprintRecord", "MigrationPlan"]
