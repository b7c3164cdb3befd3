# ============================================================================
# DDL STATEMENT BUILDERS
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Relational model -> statement tree
# PURPOSE: Build create/drop statements for tables, indexes and whole schemas
# CREATED: 14 OCT 2026
# EXPORTS: AssociationTypeContainer, ColumnStatementBuilder,
#          CreateTableStatementBuilder, CreateIndexStatementBuilder,
#          SingleIndexStatementBuilder, DropTableStatementBuilder,
#          DropIndexStatementBuilder, CreateDatabaseStatementBuilder,
#          PrepareDatabaseUpgradeStatementBuilder,
#          FinalizeDatabaseUpgradeStatementBuilder
# DEPENDENCIES: core.schema.statements, core.schema.ddl_utils
# ============================================================================
"""
Statement Builders.

A builder is a pure function from a model fragment to a statement tree:
construct it with the fragment, call build_statement(). All identifiers are
escaped here, never in the statements.

Ordering:
    - Whole-schema builders follow the model's table order.
    - Drop builders sort names, so the same plan always yields the same text.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Set

from core.models.relational import (
    AssociationDescriptor,
    Collation,
    ColumnDescriptor,
    IndexDescriptor,
    RelationalModel,
    TableDescriptor,
)
from core.schema.ddl_utils import escape_name, escape_names
from core.schema.statements import (
    AddForeignKeyStatement,
    AddForeignKeyStatementCollection,
    ColumnStatement,
    ColumnStatementCollection,
    CreateDatabaseStatement,
    CreateIndexStatement,
    CreateIndexStatementCollection,
    CreateTableStatement,
    DropIndexStatement,
    DropTableStatement,
    DropTablesAndIndexesStatement,
    ForeignKeyStatement,
    PrimaryKeyStatement,
    Statement,
)

logger = logging.getLogger(__name__)


# ============================================================================
# ASSOCIATIONS
# ============================================================================

class AssociationTypeContainer:
    """
    Association lookup for table builders.

    One-to-many associations become FOREIGN KEY clauses on the dependent
    table. Many-to-many associations own their link table: the container
    covers it, and it is built after the entity tables.
    """

    def __init__(self, associations: Iterable[AssociationDescriptor]):
        self._foreign_keys: Dict[str, List[AssociationDescriptor]] = {}
        self._join_tables: Dict[str, AssociationDescriptor] = {}
        for association in associations:
            if association.is_many_to_many:
                self._join_tables[association.join_table] = association
            else:
                self._foreign_keys.setdefault(association.dependent_table, []).append(association)

    def covers(self, table_name: str) -> bool:
        """True if table_name is a link table built by this container."""
        return table_name in self._join_tables

    def foreign_keys_for(self, table_name: str) -> List[ForeignKeyStatement]:
        statements = []
        for association in self._foreign_keys.get(table_name, []):
            statements.append(ForeignKeyStatement(
                column_list=escape_names(association.dependent_columns),
                referenced_table=escape_name(association.principal_table),
                referenced_columns=escape_names(association.principal_columns),
                cascade_delete=association.cascade_delete,
                referenced_object=association.principal_table,
            ))

        join = self._join_tables.get(table_name)
        if join is not None:
            principal_columns, dependent_columns = join.join_columns()
            statements.append(ForeignKeyStatement(
                column_list=escape_names(principal_columns),
                referenced_table=escape_name(join.principal_table),
                referenced_columns=escape_names(join.principal_columns),
                cascade_delete=True,
                referenced_object=join.principal_table,
            ))
            statements.append(ForeignKeyStatement(
                column_list=escape_names(dependent_columns),
                referenced_table=escape_name(join.dependent_table),
                referenced_columns=escape_names(join.dependent_columns),
                cascade_delete=True,
                referenced_object=join.dependent_table,
            ))
        return statements


# ============================================================================
# TABLE / INDEX BUILDERS
# ============================================================================

class ColumnStatementBuilder:
    """Column clauses of one table; text columns inherit the table collation."""

    def __init__(self, table: TableDescriptor, default_collation: Optional[Collation] = None):
        self.table = table
        self.default_collation = default_collation

    def _collation_for(self, column: ColumnDescriptor) -> Optional[str]:
        if not column.is_text:
            return None
        collation = column.collation or self.table.collation or self.default_collation
        if collation is None or collation.name is None:
            return None
        return escape_name(collation.name)

    def build_statement(self) -> List[ColumnStatement]:
        primary_key = set(self.table.primary_key)
        return [
            ColumnStatement(
                column_name=escape_name(column.name),
                column_type=column.sql_type,
                nullable=column.nullable and column.name not in primary_key,
                default=column.default,
                collation=self._collation_for(column),
            )
            for column in self.table.columns
        ]


class CreateTableStatementBuilder:
    def __init__(
        self,
        table: TableDescriptor,
        association_container: AssociationTypeContainer,
        default_collation: Optional[Collation] = None,
    ):
        self.table = table
        self.association_container = association_container
        self.default_collation = default_collation

    def build_statement(self) -> CreateTableStatement:
        definitions = ColumnStatementCollection(
            ColumnStatementBuilder(self.table, self.default_collation).build_statement()
        )
        if self.table.primary_key:
            definitions.append(PrimaryKeyStatement(escape_names(self.table.primary_key)))
        definitions.extend(self.association_container.foreign_keys_for(self.table.name))

        return CreateTableStatement(
            object_name=self.table.name,
            table_name=escape_name(self.table.name),
            column_definitions=definitions,
        )


class SingleIndexStatementBuilder:
    """CREATE INDEX for one index, outside of a table rebuild."""

    def __init__(self, index: IndexDescriptor):
        self.index = index

    def build_statement(self) -> CreateIndexStatement:
        return CreateIndexStatement(
            object_name=self.index.name,
            index_name=escape_name(self.index.name),
            table_name=escape_name(self.index.table),
            column_list=escape_names(self.index.columns),
            is_unique=self.index.is_unique,
            table_object_name=self.index.table,
        )


class CreateIndexStatementBuilder:
    """All indexes of one table, in model order."""

    def __init__(self, table: TableDescriptor, model: RelationalModel):
        self.table = table
        self.model = model

    def build_statement(self) -> CreateIndexStatementCollection:
        return CreateIndexStatementCollection(
            SingleIndexStatementBuilder(index).build_statement()
            for index in self.model.indexes_for(self.table.name)
        )


class DropTableStatementBuilder:
    def __init__(self, name: str):
        self.name = name

    def build_statement(self) -> DropTableStatement:
        return DropTableStatement(table_name=escape_name(self.name))


class DropIndexStatementBuilder:
    def __init__(self, name: str):
        self.name = name

    def build_statement(self) -> DropIndexStatement:
        return DropIndexStatement(index_name=escape_name(self.name))


# ============================================================================
# SCHEMA BUILDERS
# ============================================================================

class CreateDatabaseStatementBuilder:
    """
    Whole-schema builder.

    For each entity set in model order: CREATE TABLE, then that table's
    CREATE INDEX collection (omitted when the table has no indexes). Pure
    link tables covered by the association container are skipped in that
    pass and built afterwards, once both referenced tables exist.
    """

    def __init__(self, model: RelationalModel, default_collation: Optional[Collation] = None):
        self.model = model
        self.default_collation = default_collation
        self.association_container = AssociationTypeContainer(model.associations)

    def _include(self, table: TableDescriptor) -> bool:
        return True

    def _ordered_tables(self) -> Iterator[TableDescriptor]:
        link_tables = []
        for table in self.model.tables:
            if table.is_association and self.association_container.covers(table.name):
                link_tables.append(table)
                continue
            yield table
        yield from link_tables

    def _table_statements(self) -> Iterator[Statement]:
        for table in self._ordered_tables():
            if not self._include(table):
                continue
            yield CreateTableStatementBuilder(
                table, self.association_container, self.default_collation
            ).build_statement()
            indexes = CreateIndexStatementBuilder(table, self.model).build_statement()
            if len(indexes):
                yield indexes

    def build_statement(self) -> CreateDatabaseStatement:
        statement = CreateDatabaseStatement(self._table_statements())
        logger.debug(f"Built {len(statement)} schema statements for {len(self.model.tables)} tables")
        return statement


class FinalizeDatabaseUpgradeStatementBuilder(CreateDatabaseStatementBuilder):
    """
    Restricted schema builder for the create phase of an upgrade.

    Emits full DDL (table plus all its indexes) only for tables in `tables`,
    then a standalone CREATE INDEX for each name in `indexes` whose owning
    table is not being recreated.

    The drop phase removes tables with CASCADE, which also strips the
    FOREIGN KEY constraints other tables hold on them. Tables that are kept
    get those constraints back as ALTER TABLE statements at the end.
    """

    def __init__(
        self,
        model: RelationalModel,
        default_collation: Optional[Collation],
        tables: Iterable[str],
        indexes: Iterable[str] = (),
    ):
        super().__init__(model, default_collation)
        self.tables: Set[str] = set(tables)
        self.indexes: Set[str] = set(indexes)

    def _include(self, table: TableDescriptor) -> bool:
        return table.name in self.tables

    def _restored_foreign_keys(self) -> Iterator[AddForeignKeyStatement]:
        """FOREIGN KEYs of kept tables that reference a recreated table, in creation order."""
        for table in self._ordered_tables():
            if table.name in self.tables:
                continue
            for foreign_key in self.association_container.foreign_keys_for(table.name):
                if foreign_key.referenced_object in self.tables:
                    yield AddForeignKeyStatement(
                        table_name=escape_name(table.name),
                        foreign_key=foreign_key,
                    )

    def build_statement(self) -> CreateDatabaseStatement:
        statement = CreateDatabaseStatement(self._table_statements())

        standalone = CreateIndexStatementCollection(
            SingleIndexStatementBuilder(index).build_statement()
            for index in self.model.indexes
            if index.name in self.indexes and index.table not in self.tables
        )
        if len(standalone):
            statement.append(standalone)

        restored = AddForeignKeyStatementCollection(self._restored_foreign_keys())
        if len(restored):
            logger.debug(f"Re-adding {len(restored)} foreign keys on kept tables")
            statement.append(restored)

        unknown = self.tables - set(self.model.table_names)
        if unknown:
            logger.warning(f"Tables requested for creation are not in the model: {sorted(unknown)}")
        return statement


class PrepareDatabaseUpgradeStatementBuilder:
    """Drop phase: all DROP TABLE statements, then all DROP INDEX statements."""

    def __init__(self, tables: Iterable[str], indexes: Iterable[str]):
        self.tables = sorted(set(tables))
        self.indexes = sorted(set(indexes))

    def build_statement(self) -> DropTablesAndIndexesStatement:
        statement = DropTablesAndIndexesStatement()
        statement.extend(DropTableStatementBuilder(name).build_statement() for name in self.tables)
        statement.extend(DropIndexStatementBuilder(name).build_statement() for name in self.indexes)
        return statement


__all__ = [
    "AssociationTypeContainer",
    "ColumnStatementBuilder",
    "CreateTableStatementBuilder",
    "CreateIndexStatementBuilder",
    "SingleIndexStatementBuilder",
    "DropTableStatementBuilder",
    "DropIndexStatementBuilder",
    "CreateDatabaseStatementBuilder",
    "FinalizeDatabaseUpgradeStatementBuilder",
    "PrepareDatabaseUpgradeStatementBuilder",
]
