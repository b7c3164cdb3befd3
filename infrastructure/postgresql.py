# ============================================================================
# POSTGRESQL CONNECTION INFRASTRUCTURE
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Infrastructure - PostgreSQL connection handling
# PURPOSE: Connections for the migrator and the fingerprint store
# CREATED: 14 OCT 2026
# ============================================================================
"""
PostgreSQL Connection Infrastructure

A migration run needs one connection for the DDL (held for the whole run,
under the advisory lock) and short autocommitted round-trips for the
fingerprint store. Both come from PostgreSQLRepository.

Connection settings, first match wins:
1. connection string passed to PostgreSQLRepository (CLI --connection)
2. DATABASE_URL
3. POSTGRES_HOST + POSTGRES_DB (+ POSTGRES_PORT, POSTGRES_USER,
   POSTGRES_PASSWORD, POSTGRES_SSLMODE)
"""

import os
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import psycopg
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row

logger = logging.getLogger(__name__)

APPLICATION_NAME = "schema-fingerprint-migrator"


def build_connection_string() -> str:
    """
    Connection string from the environment.

    Raises:
        ValueError: Neither DATABASE_URL nor POSTGRES_HOST/POSTGRES_DB is set
    """
    url = os.environ.get("DATABASE_URL")
    if url:
        return url

    host = os.environ.get("POSTGRES_HOST")
    dbname = os.environ.get("POSTGRES_DB")
    if not host or not dbname:
        raise ValueError(
            "Database connection not configured: set DATABASE_URL, "
            "or POSTGRES_HOST and POSTGRES_DB"
        )

    params = {
        "host": host,
        "port": os.environ.get("POSTGRES_PORT", "5432"),
        "dbname": dbname,
        "user": os.environ.get("POSTGRES_USER", "postgres"),
        "sslmode": os.environ.get("POSTGRES_SSLMODE", "prefer"),
        "application_name": APPLICATION_NAME,
    }
    password = os.environ.get("POSTGRES_PASSWORD")
    if password:
        params["password"] = password

    logger.debug(f"Using {dbname}@{host}:{params['port']}")
    return make_conninfo(**params)


# ============================================================================
# REPOSITORY
# ============================================================================

class PostgreSQLRepository:
    """
    Connection factory and one-shot query helpers.

    execute/fetch_one/fetch_all open their own connection and commit;
    code that needs a transaction of its own (the upgrader) works on a
    connection from get_connection().

    Usage:
        repo = PostgreSQLRepository()
        with repo.get_connection() as conn:
            upgrader.upgrade(conn, model, plan)
    """

    def __init__(self, connection_string: Optional[str] = None):
        self._conn_string = connection_string
        self._lock = threading.Lock()

    @property
    def conn_string(self) -> str:
        """Resolved lazily so constructing a repository never needs the environment."""
        if self._conn_string is None:
            with self._lock:
                if self._conn_string is None:
                    self._conn_string = build_connection_string()
        return self._conn_string

    @contextmanager
    def get_connection(self) -> Iterator[psycopg.Connection]:
        """
        Open a connection (dict rows), closed on exit.

        A psycopg.Error inside the block rolls back before re-raising.
        """
        conn = psycopg.connect(self.conn_string, row_factory=dict_row)
        try:
            yield conn
        except psycopg.Error as e:
            logger.error(f"PostgreSQL error: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def get_cursor(self, conn: Optional[psycopg.Connection] = None) -> Iterator[psycopg.Cursor]:
        """
        Cursor on conn (caller owns the transaction), or on a fresh
        connection that is committed when the block succeeds.
        """
        if conn is not None:
            with conn.cursor() as cur:
                yield cur
            return

        with self.get_connection() as own:
            with own.cursor() as cur:
                yield cur
            own.commit()

    def execute(self, query, params: Optional[tuple] = None) -> None:
        with self.get_cursor() as cur:
            cur.execute(query, params)

    def fetch_one(self, query, params: Optional[tuple] = None) -> Optional[Dict[str, Any]]:
        with self.get_cursor() as cur:
            cur.execute(query, params)
            return cur.fetchone()

    def fetch_all(self, query, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        with self.get_cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()


# ============================================================================
# SHARED INSTANCE
# ============================================================================

_default_repo: Optional[PostgreSQLRepository] = None
_default_repo_lock = threading.Lock()


def get_postgres_repository() -> PostgreSQLRepository:
    """Process-wide repository configured from the environment."""
    global _default_repo
    if _default_repo is None:
        with _default_repo_lock:
            if _default_repo is None:
                _default_repo = PostgreSQLRepository()
    return _default_repo


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "APPLICATION_NAME",
    "PostgreSQLRepository",
    "build_connection_string",
    "get_postgres_repository",
]
