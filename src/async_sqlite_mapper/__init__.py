# src/async_sqlite_mapper/__init__.py

"""
Async SQLite Mapper Library Initialization.

This package maps typed Python entities onto SQLite tables. It reconciles the
live table schema with the entity definition (adding missing columns, never
dropping or retyping them), translates between Python and SQLite types, and
generates SQL for single-table CRUD.

It initializes a logger with a NullHandler and makes the repository, the
mapping model, the SQL builders and the exceptions available at the top level.
"""

import logging

# --------------------------------------------------------------------------
# Logging Setup
# --------------------------------------------------------------------------
# Library logs are discarded unless the consuming application configures
# logging for the "async_sqlite_mapper" logger.
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())
logger.propagate = False

# --------------------------------------------------------------------------
# Core Interface and Exception Exports
# --------------------------------------------------------------------------
from .base.interfaces import Repository
from .base.entity import SQLiteTable
from .base.exceptions import (
    MappingException,
    UnmappedColumnException,
    SchemaConflictException,
    UnsupportedTypeException,
    InvalidNullComparisonException,
)

# --------------------------------------------------------------------------
# Type Mapping Exports
# --------------------------------------------------------------------------
from .base.types import (
    SQLDataType,
    HostDataType,
    Int16,
    Int32,
    Int64,
    Byte,
    Single,
    to_sql_data_type,
    to_host_data_type,
    resolve_host_data_type,
    parse_sql_data_type,
)

# --------------------------------------------------------------------------
# Query and SQL Building Exports
# --------------------------------------------------------------------------
from .base.query import Condition, Field, Operator
from .base.sql import (
    SQLFragment,
    fnuttify,
    make_sql_value_literal,
    to_sqlite_where_clause,
    to_sqlite_insert_values,
    to_sqlite_update_set,
)

# --------------------------------------------------------------------------
# Mapping Exports
# --------------------------------------------------------------------------
from .meta.column import SQLColumn
from .meta.mapping import (
    ColumnMapping,
    EntityDescriptor,
    MappingState,
    PropertyAccessor,
    TableMapping,
)
from .meta.registry import TableMappingRegistry, default_registry

# --------------------------------------------------------------------------
# Database and Repository Implementation Exports
# --------------------------------------------------------------------------
from .sqlite.database import SQLiteDatabase
from .db_implementations.sqlite_repository import SqliteRepository

__all__ = [
    # Core
    "Repository",
    "SQLiteTable",
    # Exceptions
    "MappingException",
    "UnmappedColumnException",
    "SchemaConflictException",
    "UnsupportedTypeException",
    "InvalidNullComparisonException",
    # Types
    "SQLDataType",
    "HostDataType",
    "Int16",
    "Int32",
    "Int64",
    "Byte",
    "Single",
    "to_sql_data_type",
    "to_host_data_type",
    "resolve_host_data_type",
    "parse_sql_data_type",
    # Query / SQL
    "Condition",
    "Field",
    "Operator",
    "SQLFragment",
    "fnuttify",
    "make_sql_value_literal",
    "to_sqlite_where_clause",
    "to_sqlite_insert_values",
    "to_sqlite_update_set",
    # Mapping
    "SQLColumn",
    "ColumnMapping",
    "EntityDescriptor",
    "MappingState",
    "PropertyAccessor",
    "TableMapping",
    "TableMappingRegistry",
    "default_registry",
    # Implementations
    "SQLiteDatabase",
    "SqliteRepository",
    # Logging
    "logger",
]

__version__ = "0.1.0"
