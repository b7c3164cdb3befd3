# ============================================================================
# FINGERPRINT GENERATOR
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Per-object DDL hashing
# PURPOSE: Hash the DDL each table and index would be created with today
# CREATED: 14 OCT 2026
# EXPORTS: create_hash, FingerprintGenerator
# DEPENDENCIES: hashlib, core.schema
# ============================================================================
"""
Fingerprint Generator.

The hash of an object's generated DDL is the only signal for "did this
object change". Text generation must therefore be deterministic; the hash
is SHA-256 over the UTF-8 text, stable across processes and platforms.

Tables are hashed on their CREATE TABLE text alone, each index on its own
CREATE INDEX text, so an index change does not mark its table as changed.
"""

import hashlib
import logging
from typing import Dict, List, Optional, Tuple

from core.contracts import SchemaObjectKey
from core.models.relational import Collation, RelationalModel
from core.schema.sql_generator import SqlGenerator
from core.schema.statements import (
    CollectionStatement,
    CreateIndexStatement,
    CreateTableStatement,
    Statement,
)

logger = logging.getLogger(__name__)


def create_hash(text: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoded text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class FingerprintGenerator:
    """Computes SchemaObjectKey -> hash for every table and index of a model."""

    def __init__(self, default_collation: Optional[Collation] = None):
        self.generator = SqlGenerator(default_collation)

    def _walk(self, statement: Statement) -> List[Tuple[SchemaObjectKey, str]]:
        if isinstance(statement, CreateTableStatement):
            return [(SchemaObjectKey.table(statement.object_name), statement.render())]
        if isinstance(statement, CreateIndexStatement):
            return [(SchemaObjectKey.index(statement.object_name), statement.render())]
        if isinstance(statement, CollectionStatement):
            result = []
            for child in statement:
                result.extend(self._walk(child))
            return result
        return []

    def generate_sql(self, model: RelationalModel) -> List[Tuple[SchemaObjectKey, str]]:
        """DDL text per schema object, in schema generation order."""
        return self._walk(self.generator.generate_individually(model))

    def compute(self, model: RelationalModel) -> Dict[SchemaObjectKey, str]:
        """
        Fingerprint every table and index.

        Returns:
            Dict mapping SchemaObjectKey to hash
        """
        fingerprints: Dict[SchemaObjectKey, str] = {}
        for key, text in self.generate_sql(model):
            fingerprints[key] = create_hash(text)

        logger.debug(f"Computed {len(fingerprints)} fingerprints")
        return fingerprints

    @staticmethod
    def index_owners(model: RelationalModel) -> Dict[str, str]:
        """Index name -> owning table name."""
        return {index.name: index.table for index in model.indexes}


__all__ = ["create_hash", "FingerprintGenerator"]
