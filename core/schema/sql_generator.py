# ============================================================================
# SQL GENERATOR
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - DDL generation entry point
# PURPOSE: Generate schema, drop-phase and create-phase DDL from a model
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: SqlGenerator
# DEPENDENCIES: core.schema.builders
# ============================================================================
"""
SQL Generator.

Thin facade over the statement builders:

Usage:
    generator = SqlGenerator(default_collation=Collation(function=CollationFunction.C))
    ddl = generator.generate(model)
    drop_sql = generator.generate_prepare_upgrade(["users"], ["ix_users_name"])
    create_sql = generator.generate_finalize_upgrade(model, ["users"])
"""

import logging
from typing import Iterable, Optional

from core.models.relational import Collation, RelationalModel
from core.schema.builders import (
    CreateDatabaseStatementBuilder,
    FinalizeDatabaseUpgradeStatementBuilder,
    PrepareDatabaseUpgradeStatementBuilder,
)
from core.schema.statements import CreateDatabaseStatement

logger = logging.getLogger(__name__)


class SqlGenerator:
    """Generates PostgreSQL DDL text for a RelationalModel."""

    def __init__(self, default_collation: Optional[Collation] = None):
        self.default_collation = default_collation

    def generate(self, model: RelationalModel) -> str:
        """Full schema DDL: every table followed by its indexes."""
        return self.generate_individually(model).render()

    def generate_individually(self, model: RelationalModel) -> CreateDatabaseStatement:
        """Statement tree of the full schema, for per-object inspection."""
        return CreateDatabaseStatementBuilder(model, self.default_collation).build_statement()

    def generate_prepare_upgrade(self, tables: Iterable[str], indexes: Iterable[str]) -> str:
        """Drop-phase DDL: tables first, then indexes."""
        return PrepareDatabaseUpgradeStatementBuilder(tables, indexes).build_statement().render()

    def generate_finalize_upgrade(
        self,
        model: RelationalModel,
        tables: Iterable[str],
        indexes: Iterable[str] = (),
    ) -> str:
        """Create-phase DDL restricted to the given tables and standalone indexes."""
        builder = FinalizeDatabaseUpgradeStatementBuilder(
            model, self.default_collation, tables, indexes
        )
        return builder.build_statement().render()


__all__ = ['SqlGenerator']
