# ============================================================================
# MIGRATION LOCK TESTS
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Tests - Advisory lock per database
# PURPOSE: Verify lock ids, acquire/release SQL and context manager behavior
# CREATED: 14 OCT 2026
# ============================================================================
"""
Migration Lock Tests

Run with:
    pytest tests/test_locking.py -v
"""

from unittest.mock import MagicMock

import pytest
from psycopg import errors
from psycopg.pq import TransactionStatus

from infrastructure.locking import LockNotAcquired, MigrationLock


def make_conn(row=None):
    conn = MagicMock()
    conn.info.transaction_status = TransactionStatus.IDLE
    cur = conn.cursor.return_value.__enter__.return_value
    cur.fetchone.return_value = row
    return conn, cur


def statements(cur):
    return [c[0][0] for c in cur.execute.call_args_list]


class TestLockId:

    def test_deterministic(self):
        assert MigrationLock("app").lock_id == MigrationLock("app").lock_id

    def test_shared_across_owners(self):
        assert MigrationLock("app").lock_id == MigrationLock("billing").lock_id

    def test_differs_per_key(self):
        assert MigrationLock("app").lock_id != MigrationLock("app", key="other-migrator").lock_id

    def test_fits_bigint(self):
        lock_id = MigrationLock("app").lock_id
        assert -(2 ** 63) <= lock_id < 2 ** 63


class TestAcquire:

    def test_non_blocking_acquired(self):
        conn, cur = make_conn({"acquired": True})
        assert MigrationLock("app").acquire(conn, blocking=False) is True
        assert "pg_try_advisory_lock" in statements(cur)[0]
        conn.commit.assert_called_once()

    def test_non_blocking_held_elsewhere(self):
        conn, cur = make_conn({"acquired": False})
        assert MigrationLock("app").acquire(conn, blocking=False) is False

    def test_tuple_rows(self):
        conn, cur = make_conn((True,))
        assert MigrationLock("app").acquire(conn, blocking=False) is True

    def test_blocking_with_timeout_sets_lock_timeout(self):
        conn, cur = make_conn()
        assert MigrationLock("app", timeout_seconds=1.5).acquire(conn) is True
        assert "lock_timeout" in statements(cur)[0]
        assert cur.execute.call_args_list[0][0][1] == ("1500ms",)
        assert "pg_advisory_lock" in statements(cur)[1]

    def test_blocking_without_timeout(self):
        conn, cur = make_conn()
        MigrationLock("app").acquire(conn)
        assert len(statements(cur)) == 1

    def test_blocking_timeout_returns_false(self):
        conn, cur = make_conn()
        cur.execute.side_effect = [None, errors.LockNotAvailable("canceling statement due to lock timeout")]
        assert MigrationLock("app", timeout_seconds=1).acquire(conn) is False
        conn.rollback.assert_called_once()


class TestHold:

    def test_releases_after_block(self):
        conn, cur = make_conn({"acquired": True})
        lock = MigrationLock("app")
        with lock.hold(conn, blocking=False):
            pass
        assert "pg_advisory_unlock" in statements(cur)[-1]
        assert cur.execute.call_args_list[-1][0][1] == (lock.lock_id,)

    def test_raises_when_not_acquired(self):
        conn, cur = make_conn({"acquired": False})
        with pytest.raises(LockNotAcquired) as exc_info:
            with MigrationLock("app").hold(conn, blocking=False):
                pass
        assert exc_info.value.key == MigrationLock.LOCK_KEY
        assert not any("pg_advisory_unlock" in s for s in statements(cur))

    def test_rolls_back_failed_transaction_before_release(self):
        conn, cur = make_conn({"acquired": True})
        with pytest.raises(RuntimeError):
            with MigrationLock("app").hold(conn, blocking=False):
                conn.info.transaction_status = TransactionStatus.INERROR
                raise RuntimeError("boom")
        conn.rollback.assert_called_once()
        assert "pg_advisory_unlock" in statements(cur)[-1]
