# ============================================================================
# SCHEMA MODULE
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - DDL generation
# PURPOSE: Statement model, builders and generator for PostgreSQL DDL
# LAST_REVIEWED: 14 OCT 2026
# ============================================================================

from core.schema.ddl_utils import (
    InvalidIdentifierError,
    IdentifierRules,
    POSTGRES_RULES,
    escape_name,
    TYPE_MAP,
    get_postgres_type,
)
from core.schema.statements import (
    STATEMENT_SEPARATOR,
    Statement,
    CollectionStatement,
    CreateDatabaseStatement,
    CreateIndexStatementCollection,
    DropTablesAndIndexesStatement,
    CreateTableStatement,
    CreateIndexStatement,
    DropTableStatement,
    DropIndexStatement,
    AddForeignKeyStatement,
)
from core.schema.sql_generator import SqlGenerator
from core.schema.model_source import PydanticModelSource

__all__ = [
    # Generator
    "SqlGenerator",
    "PydanticModelSource",
    # Statements
    "STATEMENT_SEPARATOR",
    "Statement",
    "CollectionStatement",
    "CreateDatabaseStatement",
    "CreateIndexStatementCollection",
    "DropTablesAndIndexesStatement",
    "CreateTableStatement",
    "CreateIndexStatement",
    "DropTableStatement",
    "DropIndexStatement",
    "AddForeignKeyStatement",
    # Utilities
    "InvalidIdentifierError",
    "IdentifierRules",
    "POSTGRES_RULES",
    "escape_name",
    "TYPE_MAP",
    "get_postgres_type",
]
