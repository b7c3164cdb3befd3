# ============================================================================
# MIGRATION LOCKING
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Infrastructure - Concurrency control
# PURPOSE: PostgreSQL advisory lock so one migrator runs per database
# CREATED: 14 OCT 2026
# ============================================================================
"""
Migration Locking

Two migrators running against the same database would both see "no history"
(or race on the shared fingerprint table) and both try to create every
table. A session-level advisory lock serialises them. Advisory locks are
scoped to the current database, so one fixed key covers every owner.

Advisory locks are:
- Fast (in-memory, no disk I/O)
- Auto-release on disconnect (crash-safe)
- 64-bit key space

The lock is taken outside any transaction; the connection is committed
right after acquisition so the upgrader starts from an idle connection.

Usage:
    from infrastructure.locking import MigrationLock

    lock = MigrationLock(owner="billing", timeout_seconds=30)
    with lock.hold(conn):
        upgrader.upgrade(conn, model, plan)
"""

import hashlib
import logging
from contextlib import contextmanager
from typing import Optional

from psycopg import errors
from psycopg.pq import TransactionStatus

logger = logging.getLogger(__name__)


class LockNotAcquired(Exception):
    """Raised when the migration lock cannot be acquired."""

    def __init__(self, lock_type: str, key: str):
        self.lock_type = lock_type
        self.key = key
        super().__init__(f"Failed to acquire {lock_type} lock for {key}")


class MigrationLock:
    """
    Session-level advisory lock, one per database.

    Args:
        owner: Logical schema owner being migrated (log output only)
        timeout_seconds: Upper bound for a blocking wait (None waits forever)
        key: Lock key; migrators sharing a key exclude each other
    """

    LOCK_KEY = "schema-migration"

    def __init__(
        self,
        owner: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        key: str = LOCK_KEY,
    ):
        self.owner = owner
        self.timeout_seconds = timeout_seconds
        self.key = key
        self.lock_id = self._hash_to_lock_id(key)

    @staticmethod
    def _hash_to_lock_id(key: str) -> int:
        """
        Convert string key to int64 for PostgreSQL advisory lock.

        Returns:
            Signed int64 (first 8 bytes of SHA256)
        """
        h = hashlib.sha256(key.encode()).digest()[:8]
        return int.from_bytes(h, byteorder='big', signed=True)

    @staticmethod
    def _first_value(row) -> bool:
        # Handle both dict_row and tuple row factories
        if not row:
            return False
        return row["acquired"] if hasattr(row, 'keys') else row[0]

    def acquire(self, conn, blocking: bool = True) -> bool:
        """
        Acquire the lock on conn.

        Returns:
            True if acquired; False when the lock is held elsewhere (non-blocking) or the wait timed out
        """
        with conn.cursor() as cur:
            if not blocking:
                cur.execute("SELECT pg_try_advisory_lock(%s) AS acquired", (self.lock_id,))
                acquired = self._first_value(cur.fetchone())
            else:
                if self.timeout_seconds is not None:
                    cur.execute(
                        "SELECT set_config('lock_timeout', %s, true)",
                        (f"{int(self.timeout_seconds * 1000)}ms",),
                    )
                try:
                    cur.execute("SELECT pg_advisory_lock(%s)", (self.lock_id,))
                    acquired = True
                except errors.LockNotAvailable:
                    conn.rollback()
                    logger.warning(
                        f"Timed out after {self.timeout_seconds}s waiting for migration lock "
                        f"(owner={self.owner})"
                    )
                    return False
        conn.commit()

        if acquired:
            logger.info(f"Acquired migration lock (owner={self.owner}, lock_id={self.lock_id})")
        else:
            logger.warning(f"Migration lock {self.key} is held by another process (owner={self.owner})")
        return acquired

    def release(self, conn) -> None:
        with conn.cursor() as cur:
            cur.execute("SELECT pg_advisory_unlock(%s)", (self.lock_id,))
        conn.commit()
        logger.info(f"Released migration lock (owner={self.owner})")

    @contextmanager
    def hold(self, conn, blocking: bool = True):
        """
        Context manager around acquire/release.

        Raises:
            LockNotAcquired: If the lock could not be taken
        """
        if not self.acquire(conn, blocking=blocking):
            raise LockNotAcquired("migration", self.key)
        try:
            yield
        finally:
            if conn.info.transaction_status != TransactionStatus.IDLE:
                conn.rollback()
            self.release(conn)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ['MigrationLock', 'LockNotAcquired']
