# ============================================================================
# SCHEMA INITIALIZER - FINGERPRINT MIGRATION RUN
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Infrastructure - Migration run orchestrator
# PURPOSE: Bring a database in line with a relational model, once per startup
# CREATED: 14 OCT 2026
# ============================================================================
"""
SchemaInitializer - one migration run for one owner.

Steps:
1. test_connection      SELECT version(), current_database()
2. load_fingerprints    Stored history of the owner (empty if no store yet)
3. plan_migration       Current fingerprints vs stored; unchanged -> stop here
4. upgrade_schema       Two-phase drop/create under the migration lock
5. record_fingerprints  Only after upgrade_schema succeeded

The run never raises for step failures; each step reports into an
InitializationResult, matching how deploy tooling consumes it.

Usage:
    initializer = SchemaInitializer(model, owner="billing")
    result = initializer.initialize()

    # Show the SQL without executing or recording anything
    result = initializer.initialize(dry_run=True)
"""

import logging
import traceback
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.logging import migration_run
from core.migration import (
    FingerprintGenerator,
    FingerprintStore,
    is_same_model,
    load_fingerprints,
    plan_migration,
    record_fingerprints,
)
from core.models import Collation, MigrationPlan, RelationalModel
from infrastructure.locking import LockNotAcquired, MigrationLock
from infrastructure.postgresql import PostgreSQLRepository, get_postgres_repository
from infrastructure.upgrader import SchemaUpgrader, UpgradePhaseError

logger = logging.getLogger(__name__)


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class StepResult:
    """Result of a single migration step."""
    name: str
    status: str  # 'success', 'failed', 'skipped'
    message: str = ""
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class InitializationResult:
    """Complete result of one migration run."""
    owner: str
    timestamp: str
    success: bool
    dry_run: bool = False
    run_id: Optional[str] = None
    plan: Optional[MigrationPlan] = None
    steps: List[StepResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def step(self, name: str) -> Optional[StepResult]:
        for s in self.steps:
            if s.name == name:
                return s
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "owner": self.owner,
            "timestamp": self.timestamp,
            "success": self.success,
            "dry_run": self.dry_run,
            "run_id": self.run_id,
            "plan": self.plan.to_dict() if self.plan else None,
            "steps": [
                {
                    "name": s.name,
                    "status": s.status,
                    "message": s.message,
                    "error": s.error,
                    "details": s.details
                }
                for s in self.steps
            ],
            "errors": self.errors,
            "warnings": self.warnings,
            "summary": {
                "total_steps": len(self.steps),
                "successful": len([s for s in self.steps if s.status == "success"]),
                "failed": len([s for s in self.steps if s.status == "failed"]),
                "skipped": len([s for s in self.steps if s.status == "skipped"])
            }
        }


# ============================================================================
# SCHEMA INITIALIZER
# ============================================================================

class SchemaInitializer:
    """
    Migration run orchestrator.

    Args:
        model: Current relational model
        owner: Logical schema owner
        repo: PostgreSQL repository (default: environment-configured)
        store: Fingerprint store (default: PostgresFingerprintStore on repo)
        default_collation: Collation for text columns without their own
        lock: Migration lock; pass use_lock=False to run without one
        lock_timeout_seconds: Timeout for the default lock
    """

    def __init__(
        self,
        model: RelationalModel,
        owner: str,
        repo: Optional[PostgreSQLRepository] = None,
        store: Optional[FingerprintStore] = None,
        default_collation: Optional[Collation] = None,
        lock: Optional[MigrationLock] = None,
        use_lock: bool = True,
        lock_timeout_seconds: Optional[float] = None,
    ):
        if model is None:
            raise ValueError("model is required")
        self.model = model
        self.owner = owner
        self.repo = repo or get_postgres_repository()
        if store is None:
            from repositories.fingerprint_repo import PostgresFingerprintStore
            store = PostgresFingerprintStore(self.repo)
        self.store = store
        self.fingerprints = FingerprintGenerator(default_collation)
        self.upgrader = SchemaUpgrader(default_collation)
        if use_lock:
            self.lock = lock or MigrationLock(owner=owner, timeout_seconds=lock_timeout_seconds)
        else:
            self.lock = None

        logger.debug(f"SchemaInitializer created for owner={owner} ({len(model.tables)} tables)")

    @contextmanager
    def _locked(self, conn, dry_run: bool):
        if self.lock is None or dry_run:
            yield
        else:
            with self.lock.hold(conn):
                yield

    def initialize(self, dry_run: bool = False) -> InitializationResult:
        """
        Run the migration.

        Args:
            dry_run: Plan and render SQL, execute nothing, record nothing

        Returns:
            InitializationResult with detailed step results
        """
        result = InitializationResult(
            owner=self.owner,
            timestamp=datetime.now(timezone.utc).isoformat(),
            success=False,
            dry_run=dry_run,
        )

        logger.info("=" * 70)
        logger.info("SCHEMA MIGRATION")
        logger.info(f"   Owner: {self.owner}")
        logger.info(f"   Model: {len(self.model.tables)} tables, {len(self.model.indexes)} indexes")
        logger.info(f"   Mode: {'DRY RUN' if dry_run else 'EXECUTE'}")
        logger.info("=" * 70)

        with migration_run(self.owner) as run:
            result.run_id = run.run_id
            try:
                step = self._test_connection()
                result.steps.append(step)
                if step.status == "failed":
                    result.errors.append(f"Connection failed: {step.error}")
                    return self._finish(result)

                with self.repo.get_connection() as conn:
                    with self._locked(conn, dry_run):
                        self._run_steps(conn, result, dry_run)

            except LockNotAcquired as e:
                result.errors.append(str(e))
                result.success = False
                logger.error(f"Migration aborted: {e}")
            except Exception as e:
                logger.error(f"Migration failed: {e}")
                logger.error(traceback.format_exc())
                result.errors.append(str(e))
                result.success = False

        return self._finish(result)

    def _run_steps(self, conn, result: InitializationResult, dry_run: bool) -> None:
        current = self.fingerprints.compute(self.model)

        step = self._load_fingerprints()
        result.steps.append(step)
        if step.status == "failed":
            result.errors.append(f"Loading fingerprints failed: {step.error}")
            return
        old = step.details.pop("records")

        if is_same_model(old, current):
            result.plan = MigrationPlan()
            for name in ("plan_migration", "upgrade_schema", "record_fingerprints"):
                result.steps.append(StepResult(name=name, status="skipped", message="Model unchanged"))
            logger.info("Model unchanged, nothing to migrate")
            result.success = True
            return

        plan = plan_migration(old, current, self.fingerprints.index_owners(self.model))
        result.plan = plan
        result.steps.append(StepResult(
            name="plan_migration",
            status="success",
            message=f"{len(plan.tables_to_create)} tables to create, {len(plan.tables_to_drop)} to drop",
            details=plan.to_dict(),
        ))

        step = self._upgrade_schema(conn, plan, dry_run)
        result.steps.append(step)
        if step.status == "failed":
            result.errors.append(f"Schema upgrade failed: {step.error}")
            if step.details.get("partial"):
                result.warnings.append(
                    "Drops were committed before the create phase failed; "
                    "the next run will plan the same creates again"
                )
            result.steps.append(StepResult(
                name="record_fingerprints", status="skipped", message="Upgrade did not complete",
            ))
            return

        if dry_run:
            result.steps.append(StepResult(
                name="record_fingerprints", status="skipped", message="[DRY RUN] Nothing recorded",
            ))
            result.success = True
            return

        step = self._record_fingerprints(current, old)
        result.steps.append(step)
        if step.status == "failed":
            result.errors.append(f"Recording fingerprints failed: {step.error}")
            return

        result.success = True

    def _finish(self, result: InitializationResult) -> InitializationResult:
        summary = result.to_dict()["summary"]
        logger.info("=" * 70)
        logger.info(f"MIGRATION {'COMPLETE' if result.success else 'FAILED'}")
        logger.info(
            f"   Steps: {summary['successful']} succeeded, {summary['failed']} failed, "
            f"{summary['skipped']} skipped"
        )
        if result.errors:
            logger.warning(f"   Errors: {result.errors}")
        logger.info("=" * 70)
        return result

    # ========================================================================
    # STEPS
    # ========================================================================

    def _test_connection(self) -> StepResult:
        step = StepResult(name="test_connection", status="pending")
        logger.info("Step: Testing database connection...")

        try:
            row = self.repo.fetch_one("SELECT version() AS version, current_database() AS db")
            step.status = "success"
            step.message = f"Connected to {row['db']}"
            step.details = {
                "version": row["version"][:50] + "...",
                "database": row["db"],
            }
        except Exception as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Connection failed: {e}"
            logger.error(f"Connection test failed: {e}")

        logger.info(f"   Result: {step.status} - {step.message}")
        return step

    def _load_fingerprints(self) -> StepResult:
        step = StepResult(name="load_fingerprints", status="pending")
        logger.info("Step: Loading stored fingerprints...")

        try:
            records = load_fingerprints(self.store, self.owner)
            step.status = "success"
            step.message = f"Loaded {len(records)} fingerprints"
            step.details = {"records": records}
        except Exception as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Loading fingerprints failed: {e}"
            logger.error(f"Loading fingerprints failed: {e}")

        logger.info(f"   Result: {step.status} - {step.message}")
        return step

    def _upgrade_schema(self, conn, plan: MigrationPlan, dry_run: bool) -> StepResult:
        step = StepResult(name="upgrade_schema", status="pending")
        logger.info("Step: Upgrading schema...")

        try:
            upgrade = self.upgrader.upgrade(conn, self.model, plan, dry_run=dry_run)
            step.status = "success"
            if dry_run:
                step.message = "[DRY RUN] Rendered upgrade SQL"
            else:
                step.message = f"Executed phases: {', '.join(upgrade.executed_phases) or 'none'}"
            step.details = upgrade.to_dict()
        except UpgradePhaseError as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"{e.phase} phase failed"
            step.details = {"phase": e.phase, "partial": e.partial, "sql": e.sql}

        logger.info(f"   Result: {step.status} - {step.message}")
        return step

    def _record_fingerprints(self, current, old) -> StepResult:
        step = StepResult(name="record_fingerprints", status="pending")
        logger.info("Step: Recording fingerprints...")

        try:
            update = record_fingerprints(self.store, self.owner, current, old)
            step.status = "success"
            step.message = f"{update.added} added, {update.updated} updated, {update.removed} removed"
            step.details = update.to_dict()
        except Exception as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Recording fingerprints failed: {e}"
            logger.error(f"Recording fingerprints failed: {e}")

        logger.info(f"   Result: {step.status} - {step.message}")
        return step


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "SchemaInitializer",
    "InitializationResult",
    "StepResult",
]
