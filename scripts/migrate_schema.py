#!/usr/bin/env python
# ============================================================================
# SCHEMA MIGRATION SCRIPT
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# PURPOSE: Migrate a PostgreSQL schema to the current Pydantic models
# USAGE:
#   python scripts/migrate_schema.py --models app.models:MODELS --owner billing --plan
#   python scripts/migrate_schema.py --models app.models:MODELS --owner billing --dry-run
#   python scripts/migrate_schema.py --models app.models:MODELS --owner billing
# ============================================================================

import sys
import os
import argparse
import importlib
import json
import logging
from typing import List, Optional, Sequence

from pydantic import BaseModel

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from __version__ import __version__
from core.config import MigrationDefaults
from core.logging import configure_logging, get_logger
from core.models import Collation, RelationalModel
from core.schema import PydanticModelSource, SqlGenerator
from infrastructure import PostgreSQLRepository, SchemaInitializer
from repositories import PostgresFingerprintStore

logger = get_logger("migration.cli")


def load_object(spec: str):
    """Resolve "package.module:attribute"."""
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected module:attribute, got '{spec}'")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError:
        raise ValueError(f"Module '{module_name}' has no attribute '{attr}'")


def load_model(specs: Sequence[str], default_collation: Optional[Collation] = None) -> RelationalModel:
    """
    Build one relational model from --models entries.

    Each entry names a Pydantic model class, a list/tuple of them, or a
    ready RelationalModel (which must then be the only entry).
    """
    models: List[type] = []
    for spec in specs:
        obj = load_object(spec)
        if isinstance(obj, RelationalModel):
            if len(specs) > 1:
                raise ValueError("A RelationalModel entry cannot be combined with other --models entries")
            return obj
        candidates = list(obj) if isinstance(obj, (list, tuple)) else [obj]
        for candidate in candidates:
            if not (isinstance(candidate, type) and issubclass(candidate, BaseModel)):
                raise ValueError(f"{spec} is not a Pydantic model class (got {candidate!r})")
        models.extend(candidates)
    if not models:
        raise ValueError("No models given")
    return PydanticModelSource(models, default_collation=default_collation).build()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Migrate a PostgreSQL schema to the current Pydantic models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/migrate_schema.py --models app.models:MODELS --ddl        # Full CREATE script
  python scripts/migrate_schema.py --models app.models:MODELS --plan       # Plan as JSON
  python scripts/migrate_schema.py --models app.models:MODELS --dry-run    # Plan + SQL, no changes
  python scripts/migrate_schema.py --models app.models:MODELS              # Migrate

Environment Variables:
  DATABASE_URL            Full PostgreSQL connection string
  POSTGRES_HOST           Database host
  POSTGRES_DB             Database name
  POSTGRES_USER           Database user (default: postgres)
  POSTGRES_PASSWORD       Database password
  POSTGRES_PORT           Database port (default: 5432)
  FINGERPRINT_TABLE       Fingerprint table (default: __schema_fingerprints)
  MIGRATION_OWNER         Schema owner (default: default)
  MIGRATION_LOCK_TIMEOUT  Lock wait in seconds (default: 60, 0 = forever)
  DEFAULT_COLLATION       Collation for text columns
  LOG_FORMAT              "json" for structured logs
        """
    )
    parser.add_argument(
        "--models",
        action="append",
        required=True,
        metavar="MODULE:ATTR",
        help="Pydantic model class, list of classes, or RelationalModel (repeatable)"
    )
    parser.add_argument("--owner", type=str, help="Logical schema owner (overrides MIGRATION_OWNER)")
    parser.add_argument("--fingerprint-table", type=str, help="Fingerprint table name")
    parser.add_argument("--collation", type=str, help="Default collation for text columns")
    parser.add_argument(
        "--ddl",
        action="store_true",
        help="Print the full CREATE script for the model and exit (no database access)"
    )
    parser.add_argument(
        "--plan",
        action="store_true",
        help="Print the migration plan as JSON without executing"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan and render SQL without executing or recording"
    )
    parser.add_argument("--no-lock", action="store_true", help="Skip the migration advisory lock")
    parser.add_argument(
        "--connection",
        type=str,
        help="PostgreSQL connection string (overrides environment)"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    configure_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_output=args.json_logs,
    )

    defaults = MigrationDefaults.from_env()
    owner = args.owner or defaults.owner
    table_name = args.fingerprint_table or defaults.fingerprint_table
    collation = Collation.from_name(args.collation) if args.collation else defaults.collation

    try:
        model = load_model(args.models, default_collation=collation)
    except (ImportError, ValueError) as e:
        logger.error(f"Could not load models: {e}")
        return 2

    if args.ddl:
        print(SqlGenerator(collation).generate(model))
        return 0

    repo = PostgreSQLRepository(connection_string=args.connection)
    initializer = SchemaInitializer(
        model,
        owner=owner,
        repo=repo,
        store=PostgresFingerprintStore(repo, table_name=table_name),
        default_collation=collation,
        use_lock=not args.no_lock,
        lock_timeout_seconds=defaults.lock_timeout_seconds,
    )

    result = initializer.initialize(dry_run=args.dry_run or args.plan)

    if args.plan:
        print(json.dumps(result.plan.to_dict() if result.plan else None, indent=2))
        return 0 if result.success else 1

    print("\n[RESULTS]\n")
    for step in result.steps:
        print(f"[{step.status.upper():7}] {step.name}: {step.message}")
        if step.error:
            print(f"          Error: {step.error}")

    if args.dry_run:
        upgrade = result.step("upgrade_schema")
        if upgrade and upgrade.status == "success":
            for phase in ("prepare_sql", "finalize_sql"):
                sql_text = upgrade.details.get(phase)
                if sql_text:
                    print(f"\n-- {phase.replace('_sql', '')} phase")
                    print(sql_text)

    print()
    if result.success:
        print("Migration completed successfully")
        return 0

    print("Migration failed")
    for error in result.errors:
        print(f"   - {error}")
    for warning in result.warnings:
        print(f"   ! {warning}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
