# ============================================================================
# MIGRATION CLI TESTS
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Tests - scripts/migrate_schema.py
# PURPOSE: Verify model loading, argument handling and --ddl output
# CREATED: 14 OCT 2026
# ============================================================================
"""
Migration CLI Tests

Model entries point at this module ("<module>:ATTR"), so no database or
external package is needed.

Run with:
    pytest tests/test_migrate_schema.py -v
"""

import logging
from typing import ClassVar, List, Optional
from unittest.mock import MagicMock, patch

import pytest
from pydantic import BaseModel, Field

from core.models import ColumnDescriptor, RelationalModel, TableDescriptor
from scripts import migrate_schema
from scripts.migrate_schema import build_parser, load_model, load_object, main


class Account(BaseModel):
    __sql_table__: ClassVar[str] = "accounts"
    __sql_primary_key__: ClassVar[List[str]] = ["id"]

    id: int
    label: Optional[str] = Field(default=None, max_length=32)


class Invoice(BaseModel):
    __sql_table__: ClassVar[str] = "invoices"
    __sql_primary_key__: ClassVar[List[str]] = ["id"]

    id: int


MODELS = [Account, Invoice]
PREBUILT = RelationalModel(tables=(TableDescriptor(
    name="prebuilt",
    columns=(ColumnDescriptor(name="id", sql_type="INTEGER"),),
),))
NOT_A_MODEL = 42

ACCOUNTS_DDL = 'CREATE TABLE "accounts" ("id" INTEGER NOT NULL, "label" VARCHAR(32), PRIMARY KEY ("id"));'


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def target(attr: str) -> str:
    return f"{__name__}:{attr}"


class TestLoadModel:

    def test_load_object(self):
        assert load_object(target("Account")) is Account

    def test_load_object_requires_colon(self):
        with pytest.raises(ValueError):
            load_object(__name__)

    def test_load_object_missing_attribute(self):
        with pytest.raises(ValueError, match="no attribute"):
            load_object(target("Missing"))

    def test_list_of_classes(self):
        assert load_model([target("MODELS")]).table_names == ["accounts", "invoices"]

    def test_repeated_entries(self):
        assert load_model([target("Invoice"), target("Account")]).table_names == ["invoices", "accounts"]

    def test_prebuilt_model(self):
        assert load_model([target("PREBUILT")]) is PREBUILT

    def test_prebuilt_model_must_be_alone(self):
        with pytest.raises(ValueError):
            load_model([target("PREBUILT"), target("Account")])


class TestParser:

    def test_models_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_flags(self):
        args = build_parser().parse_args(["--models", "a:b", "--owner", "billing", "--dry-run", "--no-lock"])
        assert args.models == ["a:b"]
        assert args.owner == "billing"
        assert args.dry_run and args.no_lock
        assert not args.plan


class TestMain:

    def test_ddl_prints_script(self, capsys):
        assert main(["--models", target("MODELS"), "--ddl"]) == 0
        out = capsys.readouterr().out
        assert out.startswith(ACCOUNTS_DDL + "\r\n")
        assert 'CREATE TABLE "invoices"' in out

    def test_ddl_with_collation(self, capsys):
        main(["--models", target("Account"), "--ddl", "--collation", "C"])
        assert '"label" VARCHAR(32) COLLATE "C"' in capsys.readouterr().out

    def test_bad_models_exit_code(self):
        assert main(["--models", "no_such_module_xyz:MODELS", "--ddl"]) == 2

    def test_non_model_entry_fails(self):
        assert main(["--models", target("NOT_A_MODEL"), "--ddl"]) == 2

    def test_migration_uses_owner_and_table(self, capsys):
        result = MagicMock(success=True, steps=[], errors=[], warnings=[])
        with patch.object(migrate_schema, "SchemaInitializer") as initializer_cls, \
                patch.object(migrate_schema, "PostgresFingerprintStore") as store_cls:
            initializer_cls.return_value.initialize.return_value = result
            code = main([
                "--models", target("MODELS"),
                "--owner", "billing",
                "--fingerprint-table", "history",
                "--no-lock",
                "--connection", "postgresql://localhost/app",
            ])
        assert code == 0
        assert store_cls.call_args[1]["table_name"] == "history"
        kwargs = initializer_cls.call_args[1]
        assert kwargs["owner"] == "billing"
        assert kwargs["use_lock"] is False
        initializer_cls.return_value.initialize.assert_called_once_with(dry_run=False)
        assert "Migration completed successfully" in capsys.readouterr().out

    def test_failed_migration_exit_code(self, capsys):
        result = MagicMock(success=False, steps=[], errors=["boom"], warnings=[])
        with patch.object(migrate_schema, "SchemaInitializer") as initializer_cls, \
                patch.object(migrate_schema, "PostgresFingerprintStore"):
            initializer_cls.return_value.initialize.return_value = result
            assert main(["--models", target("MODELS")]) == 1
        assert "boom" in capsys.readouterr().out
