# ============================================================================
# SCHEMA UPGRADER
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Infrastructure - Two-phase DDL execution
# PURPOSE: Apply a MigrationPlan to a live PostgreSQL connection
# CREATED: 14 OCT 2026
# EXPORTS: SchemaUpgrader, UpgradeResult, UpgradePhaseError, ensure_transaction
# ============================================================================
"""
Schema Upgrader

Executes a MigrationPlan in two phases:

    Phase 1 (prepare):  DROP TABLE / DROP INDEX for everything removed or changed
    Phase 2 (finalize): CREATE TABLE (+ its indexes) for new or changed tables,
                        CREATE INDEX for new or changed indexes of kept tables

Each non-empty phase runs as one batch inside its own transaction (or inside
the caller's transaction when one is already open). If phase 2 fails after
phase 1 committed, the database is left with the drops applied; the error
says so and the fingerprint history is not touched, so the next run plans the
same creates again.

The upgrader never reads or writes the fingerprint store.

Usage:
    upgrader = SchemaUpgrader()
    with repo.get_connection() as conn:
        result = upgrader.upgrade(conn, model, plan)
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from psycopg.pq import TransactionStatus

from core.logging import log_context, log_statements
from core.models import Collation, MigrationPlan, RelationalModel
from core.schema import SqlGenerator

logger = logging.getLogger(__name__)


PHASE_PREPARE = "prepare"
PHASE_FINALIZE = "finalize"


class UpgradePhaseError(Exception):
    """
    Raised when one DDL phase fails.

    Attributes:
        phase: "prepare" or "finalize"
        sql: The batch that failed
        partial: True when the prepare phase had already committed
    """

    def __init__(self, phase: str, sql: str, partial: bool = False, cause: Optional[BaseException] = None):
        self.phase = phase
        self.sql = sql
        self.partial = partial
        message = f"Schema upgrade failed in {phase} phase"
        if partial:
            message += " (prepare phase already committed; dropped objects are not restored)"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


@dataclass
class UpgradeResult:
    """Outcome of SchemaUpgrader.upgrade()."""
    prepare_sql: str = ""
    finalize_sql: str = ""
    executed_phases: List[str] = field(default_factory=list)
    dry_run: bool = False
    duration_ms: float = 0.0

    @property
    def changed(self) -> bool:
        return bool(self.executed_phases)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prepare_sql": self.prepare_sql,
            "finalize_sql": self.finalize_sql,
            "executed_phases": list(self.executed_phases),
            "dry_run": self.dry_run,
            "duration_ms": round(self.duration_ms, 2),
        }


@contextmanager
def ensure_transaction(conn):
    """
    Run the block inside a transaction.

    Reuses the caller's transaction when one is open; otherwise opens one
    with conn.transaction(), committed on success and rolled back on error.
    Yields True when the transaction is owned (and committed) here.
    """
    if conn.info.transaction_status == TransactionStatus.IDLE:
        with conn.transaction():
            yield True
    else:
        logger.debug("Reusing open transaction")
        yield False


class SchemaUpgrader:
    """Two-phase executor for a MigrationPlan."""

    def __init__(self, default_collation: Optional[Collation] = None):
        self.generator = SqlGenerator(default_collation)

    def render(self, model: RelationalModel, plan: MigrationPlan) -> UpgradeResult:
        """SQL of both phases, without touching a connection."""
        return UpgradeResult(
            prepare_sql=self.generator.generate_prepare_upgrade(
                plan.tables_to_drop, plan.indexes_to_drop
            ),
            finalize_sql=self.generator.generate_finalize_upgrade(
                model, plan.tables_to_create, plan.indexes_to_create
            ),
        )

    def _execute(self, conn, phase: str, sql_text: str, partial: bool) -> bool:
        log_statements(logger, phase, sql_text)
        try:
            with ensure_transaction(conn) as owned:
                with conn.cursor() as cur:
                    cur.execute(sql_text)
            return owned
        except Exception as e:
            logger.error(f"Schema upgrade {phase} phase failed: {e}")
            raise UpgradePhaseError(phase, sql_text, partial=partial, cause=e) from e

    def upgrade(
        self,
        conn,
        model: RelationalModel,
        plan: MigrationPlan,
        dry_run: bool = False,
    ) -> UpgradeResult:
        """
        Apply a migration plan.

        Args:
            conn: Open psycopg connection
            model: Current relational model
            plan: Output of plan_migration()
            dry_run: Render both phases without executing

        Returns:
            UpgradeResult with the SQL of each phase and the phases executed

        Raises:
            ValueError: If conn or model is None
            UpgradePhaseError: If a phase fails
        """
        if conn is None:
            raise ValueError("conn is required")
        if model is None:
            raise ValueError("model is required")

        start = time.monotonic()
        result = self.render(model, plan)
        result.dry_run = dry_run

        if dry_run:
            logger.info("Dry run: schema upgrade rendered, nothing executed")
            return result

        prepare_committed = False
        with log_context(phase=PHASE_PREPARE):
            if result.prepare_sql.strip():
                prepare_committed = self._execute(conn, PHASE_PREPARE, result.prepare_sql, partial=False)
                result.executed_phases.append(PHASE_PREPARE)
                logger.info(
                    f"Dropped {len(plan.tables_to_drop)} tables, {len(plan.indexes_to_drop)} indexes"
                )
            else:
                logger.debug("Nothing to drop")

        with log_context(phase=PHASE_FINALIZE):
            if result.finalize_sql.strip():
                self._execute(conn, PHASE_FINALIZE, result.finalize_sql, partial=prepare_committed)
                result.executed_phases.append(PHASE_FINALIZE)
                logger.info(
                    f"Created {len(plan.tables_to_create)} tables, "
                    f"{len(plan.indexes_to_create)} standalone indexes"
                )
            else:
                logger.debug("Nothing to create")

        result.duration_ms = (time.monotonic() - start) * 1000
        return result


__all__ = [
    "SchemaUpgrader",
    "UpgradeResult",
    "UpgradePhaseError",
    "ensure_transaction",
    "PHASE_PREPARE",
    "PHASE_FINALIZE",
]
