# ============================================================================
# PYDANTIC MODEL SOURCE
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Relational model from Pydantic classes
# PURPOSE: Read __sql_* metadata and field annotations into a RelationalModel
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: PydanticModelSource
# DEPENDENCIES: pydantic, psycopg, annotated_types
# ============================================================================
"""
Pydantic Model Source.

Pydantic models are the SINGLE SOURCE OF TRUTH for schema. This source turns
a list of model classes into the RelationalModel the engine works on.

Model Metadata Convention:
    Models define SQL metadata via ClassVar attributes:
    - __sql_table__: Table name (required)
    - __sql_primary_key__: Primary key column(s) - string or list
    - __sql_foreign_keys__: Dict of {column: "table(column)"}
      ("schema.table(column)" is accepted; the schema part is ignored)
    - __sql_indexes__: List of index definitions, tuples (name, columns)
      or dicts {"name", "columns", "unique"}
    - __sql_serial_columns__: Columns that should be SERIAL
    - __sql_collation__: Collation for the table's text columns
    - __sql_many_to_many__: Dict of {join_table: "other_table(column)"}

Usage:
    source = PydanticModelSource([User, Group])
    model = source.build()

The result is deterministic for a fixed declaration: tables follow the order
of the model list, columns follow field declaration order.

Tables are created in list order, so a model must come after every model
its __sql_foreign_keys__ reference (a table may reference itself).
"""

import logging
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union, get_args, get_origin

from annotated_types import MaxLen
from psycopg import sql
from pydantic import BaseModel
from pydantic.fields import FieldInfo

from core.models.relational import (
    AssociationDescriptor,
    Collation,
    ColumnDescriptor,
    IndexDescriptor,
    RelationalModel,
    TableDescriptor,
)
from core.schema.ddl_utils import get_postgres_type

logger = logging.getLogger(__name__)

_REFERENCE = re.compile(r"^(?:(\w+)\.)?(\w+)\((\w+)\)$")


class PydanticModelSource:
    """
    Convert Pydantic models to a RelationalModel.

    Analyzes Pydantic models with __sql_* metadata and produces table,
    index and association descriptors.
    """

    TYPE_MAP = {
        str: "VARCHAR",
        int: "INTEGER",
        float: "DOUBLE PRECISION",
        bool: "BOOLEAN",
        datetime: "TIMESTAMPTZ",
        date: "DATE",
        dict: "JSONB",
        Dict: "JSONB",
        list: "JSONB",
        List: "JSONB",
    }

    def __init__(self, models: Sequence[Type[BaseModel]], default_collation: Optional[Collation] = None):
        """
        Initialize the source.

        Args:
            models: Pydantic model classes, in table creation order
            default_collation: Collation for tables that declare none
        """
        self.models = list(models)
        self.default_collation = default_collation

    # =========================================================================
    # METADATA EXTRACTION
    # =========================================================================

    @staticmethod
    def get_model_metadata(model: Type[BaseModel]) -> Dict[str, Any]:
        """
        Extract SQL DDL metadata from a Pydantic model.

        Looks for __sql_* attributes (which Python mangles to _ClassName__sql_*).

        Args:
            model: Pydantic model class

        Returns:
            Dict with table, primary_key, foreign_keys, indexes, serial_columns,
            collation, many_to_many
        """
        # Try both mangled and unmangled attribute names
        def get_attr(name: str, default=None):
            mangled = f"_{model.__name__}__{name}"
            return getattr(model, mangled, getattr(model, f"__{name}", default))

        metadata = {
            "table": get_attr("sql_table__"),
            "primary_key": get_attr("sql_primary_key__", []),
            "foreign_keys": get_attr("sql_foreign_keys__", {}),
            "indexes": get_attr("sql_indexes__", []),
            "serial_columns": get_attr("sql_serial_columns__", []),
            "collation": get_attr("sql_collation__"),
            "many_to_many": get_attr("sql_many_to_many__", {}),
        }

        # Normalize primary_key to list
        if isinstance(metadata["primary_key"], str):
            metadata["primary_key"] = [metadata["primary_key"]]

        return metadata

    @staticmethod
    def parse_reference(reference: str) -> Tuple[str, str]:
        """Parse "table(column)" or "schema.table(column)" into (table, column)."""
        match = _REFERENCE.match(reference.strip())
        if not match:
            raise ValueError(f"Invalid column reference: {reference!r}")
        _, table, column = match.groups()
        return table, column

    # =========================================================================
    # TYPE CONVERSION
    # =========================================================================

    def python_type_to_sql(self, field_type: Type, field_info: FieldInfo) -> str:
        """
        Convert Python type to PostgreSQL type.

        Args:
            field_type: Python type from Pydantic model
            field_info: Pydantic field information

        Returns:
            PostgreSQL type string
        """
        actual_type = field_type
        origin = get_origin(field_type)

        # Unwrap Optional/Union
        if origin is Union:
            args = [a for a in get_args(field_type) if a is not type(None)]
            actual_type = args[0] if len(args) == 1 else Any
            origin = get_origin(actual_type)

        if origin in (dict, Dict, list, List):
            return "JSONB"

        # Handle string with max_length
        if actual_type is str:
            for constraint in field_info.metadata or []:
                if isinstance(constraint, MaxLen):
                    return f"VARCHAR({constraint.max_length})"
            return "VARCHAR"

        # Enums are stored by value
        if isinstance(actual_type, type) and issubclass(actual_type, Enum):
            return "VARCHAR(64)"

        if isinstance(actual_type, type) and issubclass(actual_type, BaseModel):
            return "JSONB"

        sql_type = self.TYPE_MAP.get(actual_type)
        if sql_type:
            return sql_type

        return get_postgres_type(actual_type)

    @staticmethod
    def is_optional(field_type: Type) -> bool:
        return get_origin(field_type) is Union and type(None) in get_args(field_type)

    @staticmethod
    def default_expression(field_name: str, field_info: FieldInfo, sql_type: str) -> Optional[str]:
        """Rendered DEFAULT expression for a field, or None."""
        default = field_info.default
        if default is not None and default is not ... and not field_info.is_required():
            if isinstance(default, Enum):
                default = default.value
            if isinstance(default, (str, bool, int, float)):
                return sql.Literal(default).as_string()

        factory = field_info.default_factory
        if factory is not None:
            if sql_type == "TIMESTAMPTZ" or field_name in ("created_at", "updated_at"):
                return "NOW()"
            if sql_type == "JSONB":
                return "'[]'::jsonb" if factory is list else "'{}'::jsonb"
        return None

    # =========================================================================
    # TABLE GENERATION
    # =========================================================================

    def build_table(self, model: Type[BaseModel]) -> TableDescriptor:
        """
        Build the table descriptor of one model.

        Raises:
            ValueError: Model has no __sql_table__
        """
        meta = self.get_model_metadata(model)
        table_name = meta["table"]
        if not table_name:
            raise ValueError(f"Model {model.__name__} missing __sql_table__ attribute")

        logger.debug(f"Building table {table_name} from {model.__name__}")

        columns = []
        for field_name, field_info in model.model_fields.items():
            field_type = field_info.annotation
            sql_type = self.python_type_to_sql(field_type, field_info)
            nullable = self.is_optional(field_type)

            if field_name in meta["serial_columns"]:
                columns.append(ColumnDescriptor(name=field_name, sql_type="SERIAL", nullable=False))
                continue

            columns.append(ColumnDescriptor(
                name=field_name,
                sql_type=sql_type,
                nullable=nullable,
                default=self.default_expression(field_name, field_info, sql_type),
            ))

        return TableDescriptor(
            name=table_name,
            columns=tuple(columns),
            primary_key=tuple(meta["primary_key"]),
            collation=meta["collation"] or self.default_collation,
        )

    def build_indexes(self, model: Type[BaseModel]) -> List[IndexDescriptor]:
        """Index descriptors from a model's __sql_indexes__."""
        meta = self.get_model_metadata(model)
        table_name = meta["table"]

        result = []
        for idx_def in meta["indexes"]:
            # Handle tuple format: (name, columns)
            if isinstance(idx_def, tuple):
                name = idx_def[0]
                columns = idx_def[1] if len(idx_def) > 1 else []
                unique = False
            # Handle dict format
            elif isinstance(idx_def, dict):
                name = idx_def.get("name")
                columns = idx_def.get("columns", [])
                unique = idx_def.get("unique", False)
            else:
                logger.warning(f"Ignoring index definition on {table_name}: {idx_def!r}")
                continue

            if not columns or not name:
                logger.warning(f"Ignoring incomplete index definition on {table_name}: {idx_def!r}")
                continue

            # Ensure columns is a list
            if isinstance(columns, str):
                columns = [columns]

            result.append(IndexDescriptor(
                name=name, table=table_name, columns=tuple(columns), is_unique=unique,
            ))
        return result

    def build_foreign_keys(self, model: Type[BaseModel]) -> List[AssociationDescriptor]:
        meta = self.get_model_metadata(model)
        table_name = meta["table"]

        result = []
        for column, reference in meta["foreign_keys"].items():
            ref_table, ref_column = self.parse_reference(reference)
            result.append(AssociationDescriptor(
                name=f"fk_{table_name}_{column}",
                principal_table=ref_table,
                principal_columns=(ref_column,),
                dependent_table=table_name,
                dependent_columns=(column,),
            ))
        return result

    def build_join_table(
        self,
        association: AssociationDescriptor,
        tables: Dict[str, TableDescriptor],
    ) -> TableDescriptor:
        """Link table of a many-to-many association, typed after the referenced columns."""
        principal_columns, dependent_columns = association.join_columns()
        columns = []
        for join_columns, table_name, ref_columns in (
            (principal_columns, association.principal_table, association.principal_columns),
            (dependent_columns, association.dependent_table, association.dependent_columns),
        ):
            table = tables.get(table_name)
            if table is None:
                raise ValueError(f"Join table {association.join_table} references unknown table {table_name}")
            for join_column, ref_column in zip(join_columns, ref_columns):
                referenced = table.column(ref_column)
                if referenced is None:
                    raise ValueError(
                        f"Join table {association.join_table} references unknown column {table_name}.{ref_column}"
                    )
                sql_type = "INTEGER" if referenced.sql_type == "SERIAL" else referenced.sql_type
                columns.append(ColumnDescriptor(name=join_column, sql_type=sql_type, nullable=False))

        return TableDescriptor(
            name=association.join_table,
            columns=tuple(columns),
            primary_key=principal_columns + dependent_columns,
            is_association=True,
        )

    # =========================================================================
    # COMPLETE MODEL
    # =========================================================================

    def build(self) -> RelationalModel:
        """
        Build the complete RelationalModel.

        Raises:
            ValueError: Missing __sql_table__, a foreign key to a table not
                declared earlier, or an invalid many-to-many reference
        """
        tables: Dict[str, TableDescriptor] = {}
        indexes: List[IndexDescriptor] = []
        associations: List[AssociationDescriptor] = []
        many_to_many: List[AssociationDescriptor] = []

        for model in self.models:
            table = self.build_table(model)
            tables[table.name] = table
            indexes.extend(self.build_indexes(model))

            foreign_keys = self.build_foreign_keys(model)
            for fk in foreign_keys:
                if fk.principal_table not in tables:
                    raise ValueError(
                        f"Table {table.name} references {fk.principal_table}, "
                        f"which must be declared before it"
                    )
            associations.extend(foreign_keys)

            for join_table, reference in self.get_model_metadata(model)["many_to_many"].items():
                if len(table.primary_key) != 1:
                    raise ValueError(f"Many-to-many on {table.name} requires a single-column primary key")
                ref_table, ref_column = self.parse_reference(reference)
                many_to_many.append(AssociationDescriptor(
                    name=f"m2m_{join_table}",
                    principal_table=table.name,
                    principal_columns=table.primary_key,
                    dependent_table=ref_table,
                    dependent_columns=(ref_column,),
                    join_table=join_table,
                ))

        join_tables = [self.build_join_table(a, tables) for a in many_to_many]

        model = RelationalModel(
            tables=tuple(tables.values()) + tuple(join_tables),
            indexes=tuple(indexes),
            associations=tuple(associations) + tuple(many_to_many),
        )
        logger.info(
            f"Built relational model: {len(model.tables)} tables, "
            f"{len(model.indexes)} indexes, {len(model.associations)} associations"
        )
        return model


__all__ = ['PydanticModelSource']
