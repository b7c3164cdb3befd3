# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Foundation - Schema object identity
# PURPOSE: Define the key that names a table or index across model and history
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: SchemaObjectKind, SchemaObjectKey
# DEPENDENCIES: enum, pydantic
# ============================================================================
"""
Base contracts for the schema migration engine.

A schema object is identified by its raw (unescaped) name plus its kind.
The same key is used on both sides of a comparison:
- Fingerprint history (stored records)
- Relational model (freshly computed hashes)
"""

from enum import Enum
from pydantic import BaseModel, Field


# ============================================================================
# KIND ENUM
# ============================================================================

class SchemaObjectKind(str, Enum):
    """Kind of a fingerprinted schema object."""
    TABLE = "table"
    INDEX = "index"


# ============================================================================
# OBJECT KEY
# ============================================================================

class SchemaObjectKey(BaseModel):
    """
    Identity of a schema object: (name, kind).

    Hashing and equality use both fields, so a table and an index
    may share a name without colliding.
    """
    name: str = Field(..., min_length=1, description="Raw object name as declared in the model")
    kind: SchemaObjectKind

    model_config = {"frozen": True}

    @classmethod
    def table(cls, name: str) -> "SchemaObjectKey":
        return cls(name=name, kind=SchemaObjectKind.TABLE)

    @classmethod
    def index(cls, name: str) -> "SchemaObjectKey":
        return cls(name=name, kind=SchemaObjectKind.INDEX)

    @property
    def is_table(self) -> bool:
        return self.kind == SchemaObjectKind.TABLE

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.name}"
