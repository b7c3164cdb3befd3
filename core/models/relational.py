# ============================================================================
# RELATIONAL MODEL
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core model - Read-only schema description
# PURPOSE: Tables, columns, indexes and associations the DDL is generated from
# CREATED: 14 OCT 2026
# EXPORTS: Collation, CollationFunction, ColumnDescriptor, TableDescriptor,
#          IndexDescriptor, AssociationDescriptor, RelationalModel
# DEPENDENCIES: pydantic
# ============================================================================
"""
Relational Model

The schema description consumed by the statement builders. It is produced
by a model source (see core.schema.model_source) and is immutable for the
duration of one operation.

Ordering matters everywhere in this module: tables, columns and indexes
keep their declaration order, because that order determines the generated
DDL text and therefore the fingerprint of every object.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field, model_validator


# ============================================================================
# COLLATION
# ============================================================================

class CollationFunction(str, Enum):
    """Collations applied to text columns."""
    NONE = "none"
    C = "C"
    POSIX = "POSIX"
    CUSTOM = "custom"


class Collation(BaseModel):
    """
    Collation for text columns of a table.

    CUSTOM requires `custom` to hold the collation name
    (e.g. "en-US-x-icu").
    """
    function: CollationFunction = CollationFunction.NONE
    custom: Optional[str] = Field(default=None, max_length=63)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_custom(self) -> "Collation":
        if self.function == CollationFunction.CUSTOM and not self.custom:
            raise ValueError("Custom collation requires a collation name")
        if self.function != CollationFunction.CUSTOM and self.custom:
            raise ValueError(
                f"Collation name '{self.custom}' is only valid with CollationFunction.CUSTOM"
            )
        return self

    @classmethod
    def from_name(cls, name: Optional[str]) -> Optional["Collation"]:
        """"C", "POSIX", any other collation name, or None/"" for none."""
        if not name or name.lower() == CollationFunction.NONE.value:
            return None
        for function in (CollationFunction.C, CollationFunction.POSIX):
            if name == function.value:
                return cls(function=function)
        return cls(function=CollationFunction.CUSTOM, custom=name)

    @property
    def name(self) -> Optional[str]:
        """Collation name to emit, or None for the server default."""
        if self.function == CollationFunction.NONE:
            return None
        if self.function == CollationFunction.CUSTOM:
            return self.custom
        return self.function.value


# ============================================================================
# DESCRIPTORS
# ============================================================================

class ColumnDescriptor(BaseModel):
    """A single column of a table."""
    name: str = Field(..., min_length=1)
    sql_type: str = Field(..., min_length=1, description="PostgreSQL type, e.g. VARCHAR(64)")
    nullable: bool = True
    default: Optional[str] = Field(default=None, description="Rendered SQL default expression")
    collation: Optional[Collation] = None

    model_config = {"frozen": True}

    @property
    def is_text(self) -> bool:
        sql_type = self.sql_type.upper()
        return sql_type.startswith(("VARCHAR", "TEXT", "CHAR"))


class TableDescriptor(BaseModel):
    """
    A table (entity set) of the model.

    is_association marks a pure link table of a many-to-many association.
    """
    name: str = Field(..., min_length=1)
    columns: Tuple[ColumnDescriptor, ...] = ()
    primary_key: Tuple[str, ...] = ()
    collation: Optional[Collation] = None
    is_association: bool = False

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_primary_key(self) -> "TableDescriptor":
        column_names = {c.name for c in self.columns}
        missing = [c for c in self.primary_key if c not in column_names]
        if missing:
            raise ValueError(f"Primary key of {self.name} references unknown columns: {missing}")
        return self

    def column(self, name: str) -> Optional[ColumnDescriptor]:
        for column in self.columns:
            if column.name == name:
                return column
        return None


class IndexDescriptor(BaseModel):
    """An index on one table."""
    name: str = Field(..., min_length=1)
    table: str = Field(..., min_length=1)
    columns: Tuple[str, ...] = Field(..., min_length=1)
    is_unique: bool = False

    model_config = {"frozen": True}


class AssociationDescriptor(BaseModel):
    """
    Relationship between two tables.

    One-to-many: the dependent table carries a FOREIGN KEY referencing the
    principal table. Many-to-many: join_table names a link table that
    references both sides.
    """
    name: str = Field(..., min_length=1)
    principal_table: str
    principal_columns: Tuple[str, ...]
    dependent_table: str
    dependent_columns: Tuple[str, ...]
    cascade_delete: bool = True
    join_table: Optional[str] = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_arity(self) -> "AssociationDescriptor":
        if len(self.principal_columns) != len(self.dependent_columns):
            raise ValueError(
                f"Association {self.name}: principal and dependent column counts differ"
            )
        return self

    @property
    def is_many_to_many(self) -> bool:
        return self.join_table is not None

    def join_columns(self) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        """Link-table columns referencing (principal, dependent)."""
        principal = tuple(f"{self.principal_table}_{c}" for c in self.principal_columns)
        dependent = tuple(f"{self.dependent_table}_{c}" for c in self.dependent_columns)
        return principal, dependent


# ============================================================================
# MODEL
# ============================================================================

class RelationalModel(BaseModel):
    """
    Complete, ordered schema description.

    Construction fails on duplicate table names, duplicate index names
    and indexes that reference unknown tables.
    """
    tables: Tuple[TableDescriptor, ...] = ()
    indexes: Tuple[IndexDescriptor, ...] = ()
    associations: Tuple[AssociationDescriptor, ...] = ()

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_consistency(self) -> "RelationalModel":
        table_names: Dict[str, TableDescriptor] = {}
        for table in self.tables:
            if table.name in table_names:
                raise ValueError(f"Duplicate table name: {table.name}")
            table_names[table.name] = table

        index_names = set()
        for index in self.indexes:
            if index.name in index_names:
                raise ValueError(f"Duplicate index name: {index.name}")
            index_names.add(index.name)
            if index.table not in table_names:
                raise ValueError(f"Index {index.name} references unknown table {index.table}")
        return self

    def table(self, name: str) -> Optional[TableDescriptor]:
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def indexes_for(self, table: str) -> List[IndexDescriptor]:
        """Indexes of one table, in model order."""
        return [index for index in self.indexes if index.table == table]

    @property
    def table_names(self) -> List[str]:
        return [table.name for table in self.tables]


__all__ = [
    "CollationFunction",
    "Collation",
    "ColumnDescriptor",
    "TableDescriptor",
    "IndexDescriptor",
    "AssociationDescriptor",
    "RelationalModel",
]
