# ============================================================================
# DDL STATEMENT MODEL
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Composable DDL statements
# PURPOSE: Render CREATE/DROP TABLE, INDEX and FOREIGN KEY text from escaped parts
# CREATED: 14 OCT 2026
# EXPORTS: Statement, CollectionStatement, CreateDatabaseStatement,
#          CreateIndexStatementCollection, DropTablesAndIndexesStatement,
#          ColumnStatement, ColumnStatementCollection, PrimaryKeyStatement,
#          ForeignKeyStatement, CreateTableStatement, CreateIndexStatement,
#          DropTableStatement, DropIndexStatement,
#          AddForeignKeyStatement, AddForeignKeyStatementCollection
# DEPENDENCIES: psycopg
# ============================================================================
"""
DDL Statement Model

Every statement exposes render() -> str. Rendering is pure and deterministic:
it is the input of the fingerprint hash, so identical objects must render
byte-identical text on every run.

Leaf statements hold a psycopg.sql template and substitute their parts
verbatim (sql.SQL). They never escape anything themselves; escaping is the
job of the builders in core.schema.builders.

Collections render their children joined by a fixed separator, in insertion
order. An empty collection renders as "".
"""

from abc import ABC, abstractmethod
from typing import Iterable, Iterator, List, Optional

from psycopg import sql


STATEMENT_SEPARATOR = "\r\n"


class Statement(ABC):
    """A unit of DDL text."""

    @abstractmethod
    def render(self) -> str:
        """Render the statement as SQL text."""

    def __str__(self) -> str:
        return self.render()


def _fill(template: sql.SQL, **parts: str) -> str:
    """Substitute verbatim text into a template."""
    return template.format(**{k: sql.SQL(v) for k, v in parts.items()}).as_string()


# ============================================================================
# COLLECTIONS
# ============================================================================

class CollectionStatement(Statement):
    """Ordered sequence of child statements."""

    separator: str = STATEMENT_SEPARATOR

    def __init__(self, statements: Optional[Iterable[Statement]] = None):
        self._statements: List[Statement] = list(statements or [])

    def append(self, statement: Statement) -> None:
        self._statements.append(statement)

    def extend(self, statements: Iterable[Statement]) -> None:
        self._statements.extend(statements)

    def __iter__(self) -> Iterator[Statement]:
        return iter(self._statements)

    def __len__(self) -> int:
        return len(self._statements)

    def __getitem__(self, index: int) -> Statement:
        return self._statements[index]

    def render(self) -> str:
        return self.separator.join(s.render() for s in self._statements)


class CreateDatabaseStatement(CollectionStatement):
    """CREATE TABLE statements, each followed by its index collection."""


class CreateIndexStatementCollection(CollectionStatement):
    """CREATE INDEX statements of one table."""


class DropTablesAndIndexesStatement(CollectionStatement):
    """DROP TABLE statements followed by DROP INDEX statements."""


class AddForeignKeyStatementCollection(CollectionStatement):
    """ALTER TABLE ... ADD FOREIGN KEY statements run after all tables exist."""


class ColumnStatementCollection(CollectionStatement):
    """Column and constraint clauses inside a CREATE TABLE."""

    separator = ", "


# ============================================================================
# TABLE CLAUSES
# ============================================================================

class ColumnStatement(Statement):
    TEMPLATE = sql.SQL("{column_name} {column_type}{collation}{not_null}{default}")

    def __init__(
        self,
        column_name: str,
        column_type: str,
        nullable: bool = True,
        default: Optional[str] = None,
        collation: Optional[str] = None,
    ):
        self.column_name = column_name
        self.column_type = column_type
        self.nullable = nullable
        self.default = default
        self.collation = collation

    def render(self) -> str:
        return _fill(
            self.TEMPLATE,
            column_name=self.column_name,
            column_type=self.column_type,
            collation=f" COLLATE {self.collation}" if self.collation else "",
            not_null="" if self.nullable else " NOT NULL",
            default=f" DEFAULT {self.default}" if self.default is not None else "",
        )


class PrimaryKeyStatement(Statement):
    TEMPLATE = sql.SQL("PRIMARY KEY ({column_list})")

    def __init__(self, column_list: str):
        self.column_list = column_list

    def render(self) -> str:
        return _fill(self.TEMPLATE, column_list=self.column_list)


class ForeignKeyStatement(Statement):
    """
    FOREIGN KEY clause.

    referenced_object is the raw name of the referenced table (not rendered).
    """
    TEMPLATE = sql.SQL(
        "FOREIGN KEY ({column_list}) REFERENCES {referenced_table} ({referenced_columns}){on_delete}"
    )

    def __init__(
        self,
        column_list: str,
        referenced_table: str,
        referenced_columns: str,
        cascade_delete: bool = True,
        referenced_object: Optional[str] = None,
    ):
        self.column_list = column_list
        self.referenced_table = referenced_table
        self.referenced_object = referenced_object
        self.referenced_columns = referenced_columns
        self.cascade_delete = cascade_delete

    def render(self) -> str:
        return _fill(
            self.TEMPLATE,
            column_list=self.column_list,
            referenced_table=self.referenced_table,
            referenced_columns=self.referenced_columns,
            on_delete=" ON DELETE CASCADE" if self.cascade_delete else "",
        )


# ============================================================================
# LEAF STATEMENTS
# ============================================================================

class CreateTableStatement(Statement):
    """
    CREATE TABLE for one table.

    object_name is the raw model name; it is metadata for fingerprinting
    and is not rendered.
    """
    TEMPLATE = sql.SQL("CREATE TABLE {table_name} ({column_definitions});")

    def __init__(self, object_name: str, table_name: str, column_definitions: ColumnStatementCollection):
        self.object_name = object_name
        self.table_name = table_name
        self.column_definitions = column_definitions

    def render(self) -> str:
        return _fill(
            self.TEMPLATE,
            table_name=self.table_name,
            column_definitions=self.column_definitions.render(),
        )


class CreateIndexStatement(Statement):
    TEMPLATE = sql.SQL("CREATE {unique}INDEX {index_name} ON {table_name} ({column_list});")

    def __init__(
        self,
        object_name: str,
        index_name: str,
        table_name: str,
        column_list: str,
        is_unique: bool = False,
        table_object_name: Optional[str] = None,
    ):
        self.object_name = object_name
        self.index_name = index_name
        self.table_name = table_name
        self.column_list = column_list
        self.is_unique = is_unique
        self.table_object_name = table_object_name

    def render(self) -> str:
        return _fill(
            self.TEMPLATE,
            unique="UNIQUE " if self.is_unique else "",
            index_name=self.index_name,
            table_name=self.table_name,
            column_list=self.column_list,
        )


class DropTableStatement(Statement):
    TEMPLATE = sql.SQL("DROP TABLE IF EXISTS {table_name} CASCADE;")

    def __init__(self, table_name: str):
        self.table_name = table_name

    def render(self) -> str:
        return _fill(self.TEMPLATE, table_name=self.table_name)


class AddForeignKeyStatement(Statement):
    """
    Re-attach a FOREIGN KEY to a table that survived an upgrade.

    NOT VALID: rows already in the table are not checked against the
    recreated (empty) referenced table; new rows are.
    """
    TEMPLATE = sql.SQL("ALTER TABLE {table_name} ADD {foreign_key} NOT VALID;")

    def __init__(self, table_name: str, foreign_key: ForeignKeyStatement):
        self.table_name = table_name
        self.foreign_key = foreign_key

    def render(self) -> str:
        return _fill(self.TEMPLATE, table_name=self.table_name, foreign_key=self.foreign_key.render())


class DropIndexStatement(Statement):
    TEMPLATE = sql.SQL("DROP INDEX IF EXISTS {index_name};")

    def __init__(self, index_name: str):
        self.index_name = index_name

    def render(self) -> str:
        return _fill(self.TEMPLATE, index_name=self.index_name)


__all__ = [
    "STATEMENT_SEPARATOR",
    "Statement",
    "CollectionStatement",
    "CreateDatabaseStatement",
    "CreateIndexStatementCollection",
    "DropTablesAndIndexesStatement",
    "AddForeignKeyStatementCollection",
    "ColumnStatementCollection",
    "ColumnStatement",
    "PrimaryKeyStatement",
    "ForeignKeyStatement",
    "CreateTableStatement",
    "CreateIndexStatement",
    "DropTableStatement",
    "DropIndexStatement",
    "AddForeignKeyStatement",
]
