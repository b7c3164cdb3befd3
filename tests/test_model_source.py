# ============================================================================
# PYDANTIC MODEL SOURCE TESTS
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Tests - Pydantic classes -> RelationalModel
# PURPOSE: Verify __sql_* metadata handling and type mapping
# CREATED: 14 OCT 2026
# ============================================================================
"""
Pydantic Model Source Tests

Covers:
1. Column types, nullability and defaults from field annotations
2. SERIAL columns and primary keys
3. Index definitions (tuple and dict form)
4. Foreign keys and many-to-many link tables
5. Error handling for incomplete metadata

Run with:
    pytest tests/test_model_source.py -v
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

import pytest
from pydantic import BaseModel, Field

from core.models import Collation, CollationFunction, FingerprintRecord
from core.schema import PydanticModelSource, SqlGenerator
from repositories.fingerprint_repo import fingerprint_store_model


# ============================================================================
# TEST MODELS
# ============================================================================

class PostStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class User(BaseModel):
    __sql_table__: ClassVar[str] = "users"
    __sql_primary_key__: ClassVar[str] = "id"
    __sql_serial_columns__: ClassVar[List[str]] = ["id"]
    __sql_indexes__: ClassVar[List[Any]] = [
        ("ix_users_email", ["email"]),
        {"name": "ux_users_handle", "columns": "handle", "unique": True},
    ]
    __sql_many_to_many__: ClassVar[Dict[str, str]] = {"user_groups": "groups(id)"}

    id: Optional[int] = None
    email: str = Field(..., max_length=255)
    handle: str
    active: bool = True
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Post(BaseModel):
    __sql_table__: ClassVar[str] = "posts"
    __sql_primary_key__: ClassVar[List[str]] = ["id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {"user_id": "app.users(id)"}

    id: int
    user_id: int
    body: Optional[str] = None
    status: PostStatus = PostStatus.DRAFT
    extra_data: Dict[str, Any] = Field(default_factory=dict)
    score: float = 0.5


class Group(BaseModel):
    __sql_table__: ClassVar[str] = "groups"
    __sql_primary_key__: ClassVar[List[str]] = ["id"]
    __sql_collation__: ClassVar[Collation] = Collation(function=CollationFunction.C)

    id: int
    name: str = Field(..., max_length=64)


class Category(BaseModel):
    __sql_table__: ClassVar[str] = "categories"
    __sql_primary_key__: ClassVar[str] = "id"
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {"parent_id": "categories(id)"}

    id: int
    parent_id: Optional[int] = None


class NoTable(BaseModel):
    id: int


@pytest.fixture
def model():
    return PydanticModelSource([User, Post, Group]).build()


def columns_of(model, table_name):
    return {c.name: c for c in model.table(table_name).columns}


# ============================================================================
# TESTS
# ============================================================================

class TestMetadata:

    def test_primary_key_string_normalized(self):
        meta = PydanticModelSource.get_model_metadata(User)
        assert meta["table"] == "users"
        assert meta["primary_key"] == ["id"]

    def test_missing_metadata_defaults(self):
        meta = PydanticModelSource.get_model_metadata(NoTable)
        assert meta["table"] is None
        assert meta["indexes"] == []
        assert meta["foreign_keys"] == {}

    def test_parse_reference(self):
        assert PydanticModelSource.parse_reference("users(id)") == ("users", "id")
        assert PydanticModelSource.parse_reference("app.users(id)") == ("users", "id")

    def test_parse_reference_invalid(self):
        with pytest.raises(ValueError):
            PydanticModelSource.parse_reference("users.id")

    def test_missing_table_raises(self):
        with pytest.raises(ValueError, match="__sql_table__"):
            PydanticModelSource([NoTable]).build()


class TestColumns:

    def test_serial_primary_key(self, model):
        column = columns_of(model, "users")["id"]
        assert column.sql_type == "SERIAL"
        assert column.nullable is False

    def test_string_max_length(self, model):
        columns = columns_of(model, "users")
        assert columns["email"].sql_type == "VARCHAR(255)"
        assert columns["handle"].sql_type == "VARCHAR"
        assert columns["email"].nullable is False

    def test_optional_is_nullable(self, model):
        column = columns_of(model, "posts")["body"]
        assert column.nullable is True
        assert column.default is None

    def test_literal_defaults(self, model):
        users = columns_of(model, "users")
        posts = columns_of(model, "posts")
        assert users["active"].default == "true"
        assert posts["status"].sql_type == "VARCHAR(64)"
        assert posts["status"].default == "'draft'"
        assert posts["score"].sql_type == "DOUBLE PRECISION"

    def test_factory_defaults(self, model):
        users = columns_of(model, "users")
        posts = columns_of(model, "posts")
        assert users["tags"].sql_type == "JSONB"
        assert users["tags"].default == "'[]'::jsonb"
        assert posts["extra_data"].default == "'{}'::jsonb"
        assert users["created_at"].sql_type == "TIMESTAMPTZ"
        assert users["created_at"].default == "NOW()"

    def test_column_order_follows_fields(self, model):
        assert [c.name for c in model.table("users").columns] == [
            "id", "email", "handle", "active", "tags", "created_at",
        ]

    def test_table_collation(self, model):
        assert model.table("groups").collation.name == "C"
        assert model.table("users").collation is None

    def test_default_collation_for_tables_without_one(self):
        built = PydanticModelSource(
            [User, Group], default_collation=Collation(function=CollationFunction.POSIX)
        ).build()
        assert built.table("users").collation.name == "POSIX"
        assert built.table("groups").collation.name == "C"


class TestIndexesAndAssociations:

    def test_index_forms(self, model):
        indexes = {i.name: i for i in model.indexes}
        assert indexes["ix_users_email"].columns == ("email",)
        assert indexes["ix_users_email"].is_unique is False
        assert indexes["ux_users_handle"].columns == ("handle",)
        assert indexes["ux_users_handle"].is_unique is True

    def test_foreign_key(self, model):
        fk = [a for a in model.associations if a.name == "fk_posts_user_id"][0]
        assert fk.principal_table == "users"
        assert fk.dependent_table == "posts"
        assert fk.dependent_columns == ("user_id",)
        assert not fk.is_many_to_many

    def test_dependent_before_principal_rejected(self):
        with pytest.raises(ValueError, match="posts references users"):
            PydanticModelSource([Post, User, Group]).build()

    def test_self_reference_allowed(self):
        built = PydanticModelSource([Category]).build()
        fk = built.associations[0]
        assert fk.principal_table == fk.dependent_table == "categories"

    def test_principal_created_first(self, model):
        ddl = SqlGenerator().generate(model)
        assert ddl.index('CREATE TABLE "users"') < ddl.index('CREATE TABLE "posts"')

    def test_join_table(self, model):
        assert model.table_names == ["users", "posts", "groups", "user_groups"]
        link = model.table("user_groups")
        assert link.is_association
        assert link.primary_key == ("users_id", "groups_id")
        assert [c.sql_type for c in link.columns] == ["INTEGER", "INTEGER"]

    def test_generated_schema(self, model):
        ddl = SqlGenerator().generate(model)
        statements = ddl.split("\r\n")
        assert statements[0].startswith('CREATE TABLE "users" ("id" SERIAL NOT NULL, ')
        assert statements[1] == 'CREATE INDEX "ix_users_email" ON "users" ("email");'
        assert statements[2] == 'CREATE UNIQUE INDEX "ux_users_handle" ON "users" ("handle");'
        assert statements[-1].startswith('CREATE TABLE "user_groups"')
        assert '"name" VARCHAR(64) COLLATE "C" NOT NULL' in ddl


class TestFingerprintTableModel:
    """The fingerprint table is described by FingerprintRecord itself."""

    def test_default_table(self):
        ddl = SqlGenerator().generate(fingerprint_store_model())
        assert ddl == (
            'CREATE TABLE "__schema_fingerprints" ('
            '"id" SERIAL NOT NULL, '
            '"name" VARCHAR(255) NOT NULL, '
            '"kind" VARCHAR(64) NOT NULL, '
            '"hash" VARCHAR(128) NOT NULL, '
            '"owner" VARCHAR(255) NOT NULL, '
            '"created_at" TIMESTAMPTZ NOT NULL DEFAULT NOW(), '
            'PRIMARY KEY ("id"));'
            '\r\n'
            'CREATE UNIQUE INDEX "ix_schema_fingerprints_owner_key" '
            'ON "__schema_fingerprints" ("owner", "kind", "name");'
        )

    def test_renamed_table(self):
        model = fingerprint_store_model("migration_history")
        assert model.table_names == ["migration_history"]
        assert model.indexes[0].name == "ix_migration_history_owner_key"
        assert model.indexes[0].table == "migration_history"

    def test_record_key_roundtrip(self):
        from core.contracts import SchemaObjectKey
        record = FingerprintRecord.create("billing", SchemaObjectKey.index("ix_a"), "abc")
        assert record.key == SchemaObjectKey.index("ix_a")
        assert record.owner == "billing"
