# ============================================================================
# SCHEMA UPGRADER TESTS
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Tests - Two-phase DDL execution
# PURPOSE: Verify phase SQL, transaction handling and partial failures
# CREATED: 14 OCT 2026
# ============================================================================
"""
Schema Upgrader Tests

Connections are MagicMocks; psycopg's TransactionStatus drives
ensure_transaction().

Run with:
    pytest tests/test_upgrader.py -v
"""

from unittest.mock import MagicMock

import pytest
from psycopg.pq import TransactionStatus

from core.migration import FingerprintGenerator, plan_migration
from core.models import (
    AssociationDescriptor,
    ColumnDescriptor,
    IndexDescriptor,
    MigrationPlan,
    RelationalModel,
    TableDescriptor,
)
from infrastructure.upgrader import (
    PHASE_FINALIZE,
    PHASE_PREPARE,
    SchemaUpgrader,
    UpgradePhaseError,
    ensure_transaction,
)


USERS_DDL = 'CREATE TABLE "Users" ("id" INTEGER NOT NULL, "name" VARCHAR(64), PRIMARY KEY ("id"));'
IX_NAME_DDL = 'CREATE INDEX "ix_name" ON "Users" ("name");'


@pytest.fixture
def users_model():
    return RelationalModel(
        tables=(TableDescriptor(
            name="Users",
            columns=(
                ColumnDescriptor(name="id", sql_type="INTEGER", nullable=False),
                ColumnDescriptor(name="name", sql_type="VARCHAR(64)"),
            ),
            primary_key=("id",),
        ),),
        indexes=(IndexDescriptor(name="ix_name", table="Users", columns=("name",)),),
    )


def make_conn(status=TransactionStatus.IDLE):
    conn = MagicMock()
    conn.info.transaction_status = status
    return conn


def executed(conn):
    cur = conn.cursor.return_value.__enter__.return_value
    return [c[0][0] for c in cur.execute.call_args_list]


class TestEnsureTransaction:

    def test_opens_transaction_when_idle(self):
        conn = make_conn()
        with ensure_transaction(conn) as owned:
            assert owned is True
        conn.transaction.assert_called_once()

    def test_reuses_open_transaction(self):
        conn = make_conn(TransactionStatus.INTRANS)
        with ensure_transaction(conn) as owned:
            assert owned is False
        conn.transaction.assert_not_called()


class TestUpgrade:

    def test_requires_conn_and_model(self, users_model):
        upgrader = SchemaUpgrader()
        with pytest.raises(ValueError):
            upgrader.upgrade(None, users_model, MigrationPlan())
        with pytest.raises(ValueError):
            upgrader.upgrade(make_conn(), None, MigrationPlan())

    def test_empty_plan_executes_nothing(self, users_model):
        conn = make_conn()
        result = SchemaUpgrader().upgrade(conn, users_model, MigrationPlan())
        assert executed(conn) == []
        assert result.executed_phases == []
        assert not result.changed

    def test_first_run_creates_table_and_index(self, users_model):
        conn = make_conn()
        plan = MigrationPlan(tables_to_create=frozenset({"Users"}))
        result = SchemaUpgrader().upgrade(conn, users_model, plan)
        assert executed(conn) == [USERS_DDL + "\r\n" + IX_NAME_DDL]
        assert result.executed_phases == [PHASE_FINALIZE]
        assert result.prepare_sql == ""

    def test_drop_only(self, users_model):
        conn = make_conn()
        plan = MigrationPlan(tables_to_drop=frozenset({"Orders"}), indexes_to_drop=frozenset({"ix_old"}))
        result = SchemaUpgrader().upgrade(conn, users_model, plan)
        assert executed(conn) == ['DROP TABLE IF EXISTS "Orders" CASCADE;\r\nDROP INDEX IF EXISTS "ix_old";']
        assert result.executed_phases == [PHASE_PREPARE]

    def test_changed_table_drops_before_create(self, users_model):
        conn = make_conn()
        plan = MigrationPlan(tables_to_drop=frozenset({"Users"}), tables_to_create=frozenset({"Users"}))
        SchemaUpgrader().upgrade(conn, users_model, plan)
        assert executed(conn) == ['DROP TABLE IF EXISTS "Users" CASCADE;', USERS_DDL + "\r\n" + IX_NAME_DDL]
        assert conn.transaction.call_count == 2

    def test_index_only_rebuild(self, users_model):
        conn = make_conn()
        plan = MigrationPlan(indexes_to_drop=frozenset({"ix_name"}), indexes_to_create=frozenset({"ix_name"}))
        SchemaUpgrader().upgrade(conn, users_model, plan)
        assert executed(conn) == ['DROP INDEX IF EXISTS "ix_name";', IX_NAME_DDL]

    def test_dry_run_executes_nothing(self, users_model):
        conn = make_conn()
        plan = MigrationPlan(tables_to_drop=frozenset({"Users"}), tables_to_create=frozenset({"Users"}))
        result = SchemaUpgrader().upgrade(conn, users_model, plan, dry_run=True)
        conn.cursor.assert_not_called()
        assert result.dry_run is True
        assert result.prepare_sql == 'DROP TABLE IF EXISTS "Users" CASCADE;'
        assert result.finalize_sql.startswith(USERS_DDL)

    def test_to_dict(self, users_model):
        result = SchemaUpgrader().render(users_model, MigrationPlan(tables_to_create=frozenset({"Users"})))
        data = result.to_dict()
        assert data["finalize_sql"].startswith(USERS_DDL)
        assert data["executed_phases"] == []


class TestFailures:

    def test_prepare_failure_is_not_partial(self, users_model):
        conn = make_conn()
        cur = conn.cursor.return_value.__enter__.return_value
        cur.execute.side_effect = RuntimeError("permission denied")
        plan = MigrationPlan(tables_to_drop=frozenset({"Users"}), tables_to_create=frozenset({"Users"}))
        with pytest.raises(UpgradePhaseError) as exc_info:
            SchemaUpgrader().upgrade(conn, users_model, plan)
        assert exc_info.value.phase == PHASE_PREPARE
        assert exc_info.value.partial is False
        assert cur.execute.call_count == 1

    def test_finalize_failure_after_commit_is_partial(self, users_model):
        conn = make_conn()
        cur = conn.cursor.return_value.__enter__.return_value
        cur.execute.side_effect = [None, RuntimeError("duplicate table")]
        plan = MigrationPlan(tables_to_drop=frozenset({"Users"}), tables_to_create=frozenset({"Users"}))
        with pytest.raises(UpgradePhaseError) as exc_info:
            SchemaUpgrader().upgrade(conn, users_model, plan)
        error = exc_info.value
        assert error.phase == PHASE_FINALIZE
        assert error.partial is True
        assert error.sql.startswith(USERS_DDL)
        assert "not restored" in str(error)
        assert isinstance(error.__cause__, RuntimeError)

    def test_finalize_failure_in_caller_transaction_is_not_partial(self, users_model):
        conn = make_conn(TransactionStatus.INTRANS)
        cur = conn.cursor.return_value.__enter__.return_value
        cur.execute.side_effect = [None, RuntimeError("duplicate table")]
        plan = MigrationPlan(tables_to_drop=frozenset({"Users"}), tables_to_create=frozenset({"Users"}))
        with pytest.raises(UpgradePhaseError) as exc_info:
            SchemaUpgrader().upgrade(conn, users_model, plan)
        assert exc_info.value.partial is False
        conn.transaction.assert_not_called()


class TestForeignKeys:
    """A referenced table changes while the table pointing at it does not."""

    @staticmethod
    def blog_model(*user_columns):
        users = TableDescriptor(
            name="users",
            columns=(ColumnDescriptor(name="id", sql_type="INTEGER", nullable=False),) + user_columns,
            primary_key=("id",),
        )
        posts = TableDescriptor(
            name="posts",
            columns=(
                ColumnDescriptor(name="id", sql_type="INTEGER", nullable=False),
                ColumnDescriptor(name="user_id", sql_type="INTEGER", nullable=False),
            ),
            primary_key=("id",),
        )
        return RelationalModel(
            tables=(users, posts),
            associations=(AssociationDescriptor(
                name="fk_posts_user_id",
                principal_table="users",
                principal_columns=("id",),
                dependent_table="posts",
                dependent_columns=("user_id",),
            ),),
        )

    def test_principal_rebuilt_dependent_kept(self):
        generator = FingerprintGenerator()
        old = generator.compute(self.blog_model())
        new_model = self.blog_model(ColumnDescriptor(name="email", sql_type="TEXT"))
        plan = plan_migration(old, generator.compute(new_model))
        assert plan.tables_to_drop == frozenset({"users"})
        assert plan.tables_to_create == frozenset({"users"})

        conn = make_conn()
        SchemaUpgrader().upgrade(conn, new_model, plan)
        prepare, finalize = executed(conn)
        assert prepare == 'DROP TABLE IF EXISTS "users" CASCADE;'
        statements = finalize.split("\r\n")
        assert statements[0].startswith('CREATE TABLE "users"')
        assert statements[1] == (
            'ALTER TABLE "posts" ADD FOREIGN KEY ("user_id") REFERENCES "users" ("id") '
            'ON DELETE CASCADE NOT VALID;'
        )

    def test_removed_tables_drop_in_any_order(self):
        plan = MigrationPlan(tables_to_drop=frozenset({"accounts", "orders"}))
        conn = make_conn()
        SchemaUpgrader().upgrade(conn, RelationalModel(), plan)
        assert executed(conn) == [
            'DROP TABLE IF EXISTS "accounts" CASCADE;\r\nDROP TABLE IF EXISTS "orders" CASCADE;'
        ]
