# ============================================================================
# FINGERPRINT REPOSITORY
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Fingerprint store implementations
# PURPOSE: Database access for the __schema_fingerprints table
# CREATED: 14 OCT 2026
# EXPORTS: PostgresFingerprintStore, InMemoryFingerprintStore
# ============================================================================
"""
Fingerprint Repository

FingerprintStore implementations:
- PostgresFingerprintStore: one table, shared by every owner
- InMemoryFingerprintStore: process-local, for tests and dry runs

The fingerprint table's DDL is generated from FingerprintRecord through the
same builders that generate the application schema.

Usage:
    store = PostgresFingerprintStore(PostgreSQLRepository())
    old = load_fingerprints(store, "billing")
"""

import itertools
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Set, Tuple

from psycopg import sql
from pydantic import ValidationError as PydanticValidationError

from core.contracts import SchemaObjectKey
from core.migration.history import FingerprintStore
from core.models import FingerprintRecord, RelationalModel
from core.schema import PydanticModelSource, SqlGenerator
from infrastructure.base_repository import BaseRepository, RepositoryError, ValidationError
from infrastructure.postgresql import PostgreSQLRepository

logger = logging.getLogger(__name__)

DEFAULT_TABLE = FingerprintRecord.__sql_table__

_COLUMNS = ("id", "name", "kind", "hash", "owner", "created_at")


def fingerprint_store_model(table_name: str = DEFAULT_TABLE) -> RelationalModel:
    """Relational model of the fingerprint table, optionally renamed."""
    model = PydanticModelSource([FingerprintRecord]).build()
    if table_name == DEFAULT_TABLE:
        return model

    table = model.tables[0].model_copy(update={"name": table_name})
    indexes = tuple(
        index.model_copy(update={"name": f"ix_{table_name.strip('_')}_owner_key", "table": table_name})
        for index in model.indexes
    )
    return RelationalModel(tables=(table,), indexes=indexes)


# ============================================================================
# POSTGRESQL STORE
# ============================================================================

class PostgresFingerprintStore(BaseRepository, FingerprintStore):
    """Fingerprint store backed by a PostgreSQL table."""

    def __init__(self, repo: PostgreSQLRepository, table_name: str = DEFAULT_TABLE):
        super().__init__()
        self.repo = repo
        self.table_name = table_name
        self._table = sql.Identifier(table_name)
        self._conn = None

    def _to_record(self, row) -> FingerprintRecord:
        try:
            return FingerprintRecord(**row)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid fingerprint row in {self.table_name}: {e}",
                field="row",
                value=row.get("id"),
            ) from e

    def _fetch_one(self, query, params):
        if self._conn is None:
            return self.repo.fetch_one(query, params)
        with self.repo.get_cursor(self._conn) as cur:
            cur.execute(query, params)
            return cur.fetchone()

    def _execute(self, query, params) -> None:
        if self._conn is None:
            self.repo.execute(query, params)
            return
        with self.repo.get_cursor(self._conn) as cur:
            cur.execute(query, params)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Run upserts and deletes on one connection, committed when the block
        succeeds and rolled back otherwise. Nested calls join the outer one.
        """
        if self._conn is not None:
            yield
            return

        with self._error_context("fingerprint transaction", self.table_name):
            with self.repo.get_connection() as conn:
                with conn.transaction():
                    self._conn = conn
                    try:
                        yield
                    finally:
                        self._conn = None

    def exists(self) -> bool:
        with self._error_context("fingerprint store lookup", self.table_name):
            row = self.repo.fetch_one(
                "SELECT to_regclass(%s) IS NOT NULL AS present",
                (sql.Identifier(self.table_name).as_string(),),
            )
        return bool(row and row["present"])

    def create_store(self) -> None:
        ddl = SqlGenerator().generate(fingerprint_store_model(self.table_name))
        with self._error_context("fingerprint store creation", self.table_name):
            with self.repo.get_connection() as conn:
                with conn.transaction():
                    conn.execute(ddl)
        logger.info(f"Created fingerprint store {self.table_name}")

    def list(self, owner: str) -> Set[FingerprintRecord]:
        query = sql.SQL("SELECT {columns} FROM {table} WHERE owner = %s ORDER BY id").format(
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in _COLUMNS),
            table=self._table,
        )
        with self._error_context("fingerprint listing", owner):
            rows = self.repo.fetch_all(query, (owner,))
        records = {self._to_record(row) for row in rows}
        logger.debug(f"Loaded {len(records)} fingerprints for owner={owner}")
        return records

    def upsert(self, owner: str, key: SchemaObjectKey, hash: str) -> FingerprintRecord:
        record = self.create_record(owner, key, hash)
        query = sql.SQL(
            "INSERT INTO {table} (name, kind, hash, owner, created_at) "
            "VALUES (%s, %s, %s, %s, %s) "
            "ON CONFLICT (owner, kind, name) DO UPDATE "
            "SET hash = EXCLUDED.hash, created_at = EXCLUDED.created_at "
            "RETURNING {columns}"
        ).format(
            table=self._table,
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in _COLUMNS),
        )
        with self._error_context("fingerprint upsert", str(key)):
            row = self._fetch_one(
                query,
                (record.name, record.kind.value, record.hash, record.owner, record.created_at),
            )
            stored = self._to_record(row) if row else record
        self._log_operation(True, "Fingerprint stored", str(key), {"owner": owner})
        return stored

    def delete(self, owner: str, key: SchemaObjectKey) -> None:
        query = sql.SQL("DELETE FROM {table} WHERE owner = %s AND kind = %s AND name = %s").format(
            table=self._table,
        )
        with self._error_context("fingerprint delete", str(key)):
            self._execute(query, (owner, key.kind.value, key.name))
        self._log_operation(True, "Fingerprint deleted", str(key), {"owner": owner})


# ============================================================================
# IN-MEMORY STORE
# ============================================================================

class InMemoryFingerprintStore(FingerprintStore):
    """
    Process-local fingerprint store.

    Args:
        created: Whether the store already "exists"
    """

    def __init__(self, created: bool = True):
        self._created = created
        self._records: Dict[Tuple[str, SchemaObjectKey], FingerprintRecord] = {}
        self._ids = itertools.count(1)

    def _require_store(self, operation: str) -> None:
        if not self._created:
            raise RepositoryError(f"{operation} failed: fingerprint store does not exist", operation=operation)

    def exists(self) -> bool:
        return self._created

    def create_store(self) -> None:
        self._created = True

    def list(self, owner: str) -> Set[FingerprintRecord]:
        self._require_store("fingerprint listing")
        return {r for (o, _), r in self._records.items() if o == owner}

    def upsert(self, owner: str, key: SchemaObjectKey, hash: str) -> FingerprintRecord:
        self._require_store("fingerprint upsert")
        existing = self._records.get((owner, key))
        record = self.create_record(owner, key, hash)
        record_id = existing.id if existing else next(self._ids)
        record = record.model_copy(update={"id": record_id})
        self._records[(owner, key)] = record
        return record

    def delete(self, owner: str, key: SchemaObjectKey) -> None:
        self._require_store("fingerprint delete")
        self._records.pop((owner, key), None)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Restore the records as they were when the block raises."""
        snapshot = dict(self._records)
        try:
            yield
        except Exception:
            self._records = snapshot
            raise

    def get(self, owner: str, key: SchemaObjectKey) -> Optional[FingerprintRecord]:
        return self._records.get((owner, key))


__all__ = [
    "DEFAULT_TABLE",
    "fingerprint_store_model",
    "PostgresFingerprintStore",
    "InMemoryFingerprintStore",
]
