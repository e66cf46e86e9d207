# src/async_sqlite_mapper/base/types.py
import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from types import UnionType
from typing import Any, Optional, Union, get_args, get_origin

from pydantic import GetCoreSchemaHandler
from pydantic_core import CoreSchema

log = logging.getLogger(__name__)


# --- Host scalar markers ---
# Python has a single int and a single float type. These subclasses let an
# entity declare the narrower SQLite storage it wants for a field. Pydantic
# validates them as their builtin base, so they work on model fields too.
class _IntMarker(int):
    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> CoreSchema:
        return handler(int)


class _FloatMarker(float):
    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> CoreSchema:
        return handler(float)


class Int16(_IntMarker):
    """Annotation marker for a field stored as SMALLINT."""


class Int32(_IntMarker):
    """Annotation marker for a field stored as INT (same as plain int)."""


class Int64(_IntMarker):
    """Annotation marker for a field stored as BIGINT."""


class Byte(_IntMarker):
    """Annotation marker for a field stored as TINYINT."""


class Single(_FloatMarker):
    """Annotation marker for a field stored as SINGLE."""


# --- Enumerations ---
class SQLDataType(Enum):
    """SQLite storage affinities understood by the mapper."""

    SMALLINT = "SMALLINT"
    INT = "INT"
    BIGINT = "BIGINT"
    SINGLE = "SINGLE"
    DOUBLE = "DOUBLE"
    DECIMAL = "DECIMAL"
    TINYINT = "TINYINT"
    TEXT = "TEXT"
    BOOLEAN = "BOOLEAN"
    DATETIME = "DATETIME"
    UNSUPPORTED = "UNSUPPORTED"

    def __str__(self) -> str:
        return self.value


class HostDataType(Enum):
    """Python scalar kinds that can be stored in a mapped column."""

    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    SINGLE = "single"
    DOUBLE = "double"
    DECIMAL = "decimal"
    BYTE = "byte"
    STRING = "string"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    UNSUPPORTED = "unsupported"


_HOST_TO_SQL = {
    HostDataType.INT16: SQLDataType.SMALLINT,
    HostDataType.INT32: SQLDataType.INT,
    HostDataType.INT64: SQLDataType.BIGINT,
    HostDataType.SINGLE: SQLDataType.SINGLE,
    HostDataType.DOUBLE: SQLDataType.DOUBLE,
    HostDataType.DECIMAL: SQLDataType.DECIMAL,
    HostDataType.BYTE: SQLDataType.TINYINT,
    HostDataType.STRING: SQLDataType.TEXT,
    HostDataType.BOOLEAN: SQLDataType.BOOLEAN,
    HostDataType.DATETIME: SQLDataType.DATETIME,
}
_SQL_TO_HOST = {sql: host for host, sql in _HOST_TO_SQL.items()}

# Order matters: bool is an int subclass and the markers subclass int/float.
_HOST_CLASSES = (
    (bool, HostDataType.BOOLEAN),
    (Int16, HostDataType.INT16),
    (Int32, HostDataType.INT32),
    (Int64, HostDataType.INT64),
    (Byte, HostDataType.BYTE),
    (int, HostDataType.INT32),
    (Single, HostDataType.SINGLE),
    (float, HostDataType.DOUBLE),
    (Decimal, HostDataType.DECIMAL),
    (str, HostDataType.STRING),
    (datetime, HostDataType.DATETIME),
)


def _is_none_type(t: Optional[type]) -> bool:
    return t is type(None)


def _unwrap_optional(hint: Any) -> Any:
    """Returns X for Optional[X] / X | None, otherwise the hint unchanged."""
    origin = get_origin(hint)
    if origin is Union or origin is UnionType:
        args = [a for a in get_args(hint) if not _is_none_type(a)]
        if len(args) == 1:
            return args[0]
    return hint


def to_sql_data_type(host_type: HostDataType) -> SQLDataType:
    return _HOST_TO_SQL.get(host_type, SQLDataType.UNSUPPORTED)


def to_host_data_type(sql_type: SQLDataType) -> HostDataType:
    return _SQL_TO_HOST.get(sql_type, HostDataType.UNSUPPORTED)


def resolve_host_data_type(hint: Any) -> HostDataType:
    """
    Classifies a Python type annotation.

    Optional wrappers are removed first. Only exact scalar classes (or their
    subclasses, which covers the size markers) are supported; containers,
    enums, models and multi-type unions resolve to UNSUPPORTED.
    """
    hint = _unwrap_optional(hint)
    if not isinstance(hint, type) or issubclass(hint, Enum):
        return HostDataType.UNSUPPORTED
    for cls, host_type in _HOST_CLASSES:
        if issubclass(hint, cls):
            return host_type
    return HostDataType.UNSUPPORTED


def is_sqlite_compatible(hint: Any) -> bool:
    return resolve_host_data_type(hint) is not HostDataType.UNSUPPORTED


def parse_sql_data_type(type_text: Optional[str]) -> SQLDataType:
    """Parses a declared column type read back from the database."""
    if not type_text:
        return SQLDataType.UNSUPPORTED
    try:
        parsed = SQLDataType(type_text.strip().upper())
    except ValueError:
        log.debug(f"Unrecognized SQLite column type '{type_text}'")
        return SQLDataType.UNSUPPORTED
    return parsed


# --- Value conversion ---
def to_sql_parameter(value: Any) -> Any:
    """Prepares a single Python value for binding as a SQLite parameter."""
    if value is None:
        return None
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, datetime):
        return value.isoformat(timespec="microseconds")
    if isinstance(value, Decimal):
        return str(value)
    return value


def from_sql_value(value: Any, host_type: HostDataType) -> Any:
    """Converts a value read from SQLite back to the field's host type."""
    if value is None:
        return None
    if host_type is HostDataType.BOOLEAN:
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true")
        return bool(value)
    if host_type is HostDataType.DATETIME:
        if isinstance(value, datetime):
            return value
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if host_type is HostDataType.DECIMAL:
        return Decimal(str(value))
    if host_type in (
        HostDataType.INT16,
        HostDataType.INT32,
        HostDataType.INT64,
        HostDataType.BYTE,
    ):
        return int(value)
    if host_type in (HostDataType.SINGLE, HostDataType.DOUBLE):
        return float(value)
    if host_type is HostDataType.STRING and not isinstance(value, str):
        return str(value)
    return value
