# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Infrastructure - Database operations
# PURPOSE: Connections, locking, DDL execution and migration runs
# CREATED: 14 OCT 2026
# ============================================================================
"""
Infrastructure module.

Provides:
- PostgreSQLRepository: Connection handling
- SchemaUpgrader: Two-phase execution of a migration plan
- MigrationLock: Advisory lock serialising migrators per database
- SchemaInitializer: One complete migration run

Usage:
    from infrastructure import SchemaInitializer

    initializer = SchemaInitializer(model, owner="billing")
    result = initializer.initialize()
"""

from infrastructure.base_repository import (
    BaseRepository,
    RepositoryError,
    ValidationError,
)
from infrastructure.postgresql import (
    PostgreSQLRepository,
    build_connection_string,
    get_postgres_repository,
)
from infrastructure.locking import (
    MigrationLock,
    LockNotAcquired,
)
from infrastructure.upgrader import (
    SchemaUpgrader,
    UpgradeResult,
    UpgradePhaseError,
    ensure_transaction,
)
from infrastructure.schema_initializer import (
    SchemaInitializer,
    InitializationResult,
    StepResult,
)

__all__ = [
    # Repository base
    'BaseRepository',
    'RepositoryError',
    'ValidationError',
    # PostgreSQL
    'PostgreSQLRepository',
    'build_connection_string',
    'get_postgres_repository',
    # Locking
    'MigrationLock',
    'LockNotAcquired',
    # Upgrade
    'SchemaUpgrader',
    'UpgradeResult',
    'UpgradePhaseError',
    'ensure_transaction',
    # Migration run
    'SchemaInitializer',
    'InitializationResult',
    'StepResult',
]
