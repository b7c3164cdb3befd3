# ============================================================================
# FINGERPRINT GENERATOR TESTS
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Tests - Per-object DDL hashing
# PURPOSE: Verify determinism, per-object keys and change detection
# CREATED: 14 OCT 2026
# ============================================================================
"""
Fingerprint Generator Tests

Run with:
    pytest tests/test_fingerprints.py -v
"""

import hashlib

import pytest

from core.contracts import SchemaObjectKey, SchemaObjectKind
from core.migration import FingerprintGenerator, create_hash
from core.models import (
    Collation,
    CollationFunction,
    ColumnDescriptor,
    IndexDescriptor,
    RelationalModel,
    TableDescriptor,
)


def make_model(name_type: str = "VARCHAR(64)", index_columns=("name",), extra_tables=()) -> RelationalModel:
    users = TableDescriptor(
        name="Users",
        columns=(
            ColumnDescriptor(name="id", sql_type="INTEGER", nullable=False),
            ColumnDescriptor(name="name", sql_type=name_type),
            ColumnDescriptor(name="email", sql_type="VARCHAR(255)"),
        ),
        primary_key=("id",),
    )
    return RelationalModel(
        tables=(users,) + tuple(extra_tables),
        indexes=(IndexDescriptor(name="ix_name", table="Users", columns=tuple(index_columns)),),
    )


@pytest.fixture
def generator():
    return FingerprintGenerator()


class TestCreateHash:

    def test_sha256_hex(self):
        assert create_hash("abc") == hashlib.sha256(b"abc").hexdigest()

    def test_utf8(self):
        assert create_hash("é") == hashlib.sha256("é".encode("utf-8")).hexdigest()

    def test_differs_on_single_char(self):
        assert create_hash("CREATE TABLE a;") != create_hash("CREATE TABLE b;")


class TestFingerprintGenerator:

    def test_keys_for_tables_and_indexes(self, generator):
        fingerprints = generator.compute(make_model())
        assert set(fingerprints) == {SchemaObjectKey.table("Users"), SchemaObjectKey.index("ix_name")}

    def test_keys_use_raw_names(self, generator):
        keys = [key for key, _ in generator.generate_sql(make_model())]
        assert keys[0].name == "Users"
        assert keys[0].kind == SchemaObjectKind.TABLE

    def test_text_per_object(self, generator):
        texts = dict(generator.generate_sql(make_model()))
        assert texts[SchemaObjectKey.index("ix_name")] == 'CREATE INDEX "ix_name" ON "Users" ("name");'
        assert texts[SchemaObjectKey.table("Users")].startswith('CREATE TABLE "Users" (')

    def test_deterministic(self, generator):
        assert generator.compute(make_model()) == FingerprintGenerator().compute(make_model())

    def test_column_change_only_changes_table(self, generator):
        before = generator.compute(make_model())
        after = generator.compute(make_model(name_type="VARCHAR(128)"))
        assert before[SchemaObjectKey.table("Users")] != after[SchemaObjectKey.table("Users")]
        assert before[SchemaObjectKey.index("ix_name")] == after[SchemaObjectKey.index("ix_name")]

    def test_index_change_only_changes_index(self, generator):
        before = generator.compute(make_model())
        after = generator.compute(make_model(index_columns=("email",)))
        assert before[SchemaObjectKey.table("Users")] == after[SchemaObjectKey.table("Users")]
        assert before[SchemaObjectKey.index("ix_name")] != after[SchemaObjectKey.index("ix_name")]

    def test_collation_changes_text_tables(self):
        plain = FingerprintGenerator().compute(make_model())
        collated = FingerprintGenerator(Collation(function=CollationFunction.C)).compute(make_model())
        assert plain[SchemaObjectKey.table("Users")] != collated[SchemaObjectKey.table("Users")]

    def test_table_and_index_may_share_a_name(self, generator):
        shared = TableDescriptor(
            name="ix_name",
            columns=(ColumnDescriptor(name="id", sql_type="INTEGER"),),
        )
        fingerprints = generator.compute(make_model(extra_tables=(shared,)))
        assert SchemaObjectKey.table("ix_name") in fingerprints
        assert SchemaObjectKey.index("ix_name") in fingerprints
        assert len(fingerprints) == 3

    def test_index_owners(self):
        assert FingerprintGenerator.index_owners(make_model()) == {"ix_name": "Users"}

    def test_empty_model(self, generator):
        assert generator.compute(RelationalModel()) == {}
