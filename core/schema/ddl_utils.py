# ============================================================================
# DDL UTILITIES
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Identifier naming and type mapping
# PURPOSE: Stateless identifier escaping and Python -> PostgreSQL type mapping
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: escape_name, IdentifierRules, POSTGRES_RULES, InvalidIdentifierError,
#          TYPE_MAP, get_postgres_type
# DEPENDENCIES: psycopg
# ============================================================================
"""
DDL Utilities - Shared SQL Generation Patterns.

Identifier quoting is delegated to psycopg.sql.Identifier, which renders
without a connection. The naming function is pure: the same raw name always
produces the same escaped text, so fingerprints stay stable across runs.

Usage:
    from core.schema.ddl_utils import escape_name

    escape_name("Users")        # '"Users"'
    escape_name('odd"name')     # '"odd""name"'
"""

from dataclasses import dataclass
from psycopg import sql


class InvalidIdentifierError(ValueError):
    """Raised when a name cannot be used as a PostgreSQL identifier."""

    def __init__(self, message: str, name: str = None):
        self.name = name
        super().__init__(message)


@dataclass(frozen=True)
class IdentifierRules:
    """
    Dialect rules applied before quoting.

    PostgreSQL silently truncates identifiers longer than NAMEDATALEN - 1
    bytes; two long names could then collide, so they are rejected instead.
    """
    max_length: int = 63


POSTGRES_RULES = IdentifierRules()


def escape_name(name: str, rules: IdentifierRules = POSTGRES_RULES) -> str:
    """
    Quote a raw identifier for embedding in DDL.

    Args:
        name: Raw table, column or index name
        rules: Dialect rules (length limit)

    Returns:
        Quoted identifier text

    Raises:
        InvalidIdentifierError: Empty name or name over the length limit
    """
    if not name:
        raise InvalidIdentifierError("Identifier must not be empty", name=name)
    if "\x00" in name:
        raise InvalidIdentifierError(f"Identifier contains a NUL byte: {name!r}", name=name)
    if len(name.encode("utf-8")) > rules.max_length:
        raise InvalidIdentifierError(
            f"Identifier exceeds {rules.max_length} bytes: {name}",
            name=name,
        )
    return sql.Identifier(name).as_string()


def escape_names(names, rules: IdentifierRules = POSTGRES_RULES) -> str:
    """Comma-separated list of escaped identifiers."""
    return ", ".join(escape_name(n, rules) for n in names)


# ============================================================================
# TYPE MAPPING
# ============================================================================

TYPE_MAP = {
    # Python native types
    str: "VARCHAR",
    int: "INTEGER",
    float: "DOUBLE PRECISION",
    bool: "BOOLEAN",
    dict: "JSONB",
    list: "JSONB",
    bytes: "BYTEA",

    # String representations
    'str': 'VARCHAR',
    'string': 'TEXT',
    'int': 'INTEGER',
    'int64': 'BIGINT',
    'float': 'DOUBLE PRECISION',
    'bool': 'BOOLEAN',
    'boolean': 'BOOLEAN',
    'datetime': 'TIMESTAMPTZ',
    'date': 'DATE',
    'uuid': 'UUID',
    'decimal': 'NUMERIC',
}


def get_postgres_type(python_type) -> str:
    """
    Map Python type to PostgreSQL type.

    Args:
        python_type: Python type or string representation

    Returns:
        PostgreSQL type string
    """
    if python_type in TYPE_MAP:
        return TYPE_MAP[python_type]

    type_name = getattr(python_type, "__name__", str(python_type)).lower()
    if type_name in TYPE_MAP:
        return TYPE_MAP[type_name]

    return 'TEXT'


__all__ = [
    'InvalidIdentifierError',
    'IdentifierRules',
    'POSTGRES_RULES',
    'escape_name',
    'escape_names',
    'TYPE_MAP',
    'get_postgres_type',
]
