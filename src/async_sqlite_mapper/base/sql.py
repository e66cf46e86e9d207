# src/async_sqlite_mapper/base/sql.py
"""
SQL text generation for mapped tables.

Two families of builders live here:

* literal builders (``make_sql_value_literal``, ``to_sqlite_where_clause``,
  ``to_sqlite_insert_values``, ``to_sqlite_update_set``) render values
  straight into SQL text. They are used for DDL and for callers that need a
  self-contained statement.
* parameterized builders (``to_parameterized_*``) return an ``SQLFragment``
  with ``?`` placeholders and a parameter list. The repository executes every
  value-carrying statement through these.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, List, NamedTuple, Optional, Tuple

from .exceptions import InvalidNullComparisonException
from .query import Condition, Operator
from .types import to_sql_parameter

if TYPE_CHECKING:
    from ..meta.mapping import TableMapping

log = logging.getLogger(__name__)

NULL_LITERAL = "NULL"

_SQL_OPERATORS = {
    Operator.EQUALS: "=",
    Operator.NOT_EQUALS: "<>",
    Operator.LESS_THAN: "<",
    Operator.GREATER_THAN: ">",
    Operator.LESS_THAN_OR_EQUALS: "<=",
    Operator.GREATER_THAN_OR_EQUALS: ">=",
}


class SQLFragment(NamedTuple):
    """A piece of SQL text together with the parameters its placeholders bind."""

    sql: str
    params: Tuple[Any, ...] = ()


def fnuttify(identifier: str) -> str:
    """Wraps an identifier in double quotes (embedded quotes are doubled)."""
    return '"' + identifier.replace('"', '""') + '"'


def make_sql_value_literal(value: Any) -> str:
    """Renders a Python value as SQL literal text."""
    if value is None:
        return NULL_LITERAL
    if value is True:
        return "1"
    if value is False:
        return "0"
    if isinstance(value, str):
        escaped = value.replace("'", "''")
        return f"'{escaped}'"
    if isinstance(value, datetime):
        stamp = value.isoformat(timespec="microseconds")
        return f"DATETIME('{stamp}')"
    return f"{value}"


def get_sql_operator(operator: Operator) -> str:
    try:
        return _SQL_OPERATORS[operator]
    except KeyError:
        raise ValueError(f"Unsupported operator: {operator!r}") from None


def _null_operator(operator: Operator) -> str:
    if operator is Operator.EQUALS:
        return "IS"
    if operator is Operator.NOT_EQUALS:
        return "IS NOT"
    raise InvalidNullComparisonException(
        f"Operator '{get_sql_operator(operator)}' is not valid for comparison with NULL"
    )


def to_sqlite_where_clause(conditions: Optional[Iterable[Condition]]) -> Optional[str]:
    """
    Renders conditions as a literal WHERE clause.

    Skipped conditions are dropped. Returns None (not an empty string) when
    nothing remains.
    """
    parts = []
    for condition in conditions or ():
        if condition.skip:
            continue
        op = get_sql_operator(condition.operator)
        literal = make_sql_value_literal(condition.value)
        if literal == NULL_LITERAL:
            op = _null_operator(condition.operator)
        parts.append(f"{fnuttify(condition.key)} {op} {literal}")
    if not parts:
        return None
    return "WHERE " + " AND ".join(parts)


def to_parameterized_where_clause(
    conditions: Optional[Iterable[Condition]],
) -> Optional[SQLFragment]:
    """Same rules as ``to_sqlite_where_clause`` but with bound parameters."""
    parts = []
    params: List[Any] = []
    for condition in conditions or ():
        if condition.skip:
            continue
        key = fnuttify(condition.key)
        if condition.value is None:
            parts.append(f"{key} {_null_operator(condition.operator)} NULL")
            continue
        parts.append(f"{key} {get_sql_operator(condition.operator)} ?")
        params.append(to_sql_parameter(condition.value))
    if not parts:
        return None
    return SQLFragment("WHERE " + " AND ".join(parts), tuple(params))


def to_sqlite_insert_values(entity: Any, table_mapping: "TableMapping") -> str:
    """Renders ``(col,col,...) VALUES (lit,lit,...)`` for an entity."""
    names = []
    literals = []
    for mapping in table_mapping.value_mappings:
        names.append(mapping.sql_column.name)
        literals.append(make_sql_value_literal(mapping.get_value(entity)))
    return f"({','.join(names)}) VALUES ({','.join(literals)})"


def to_sqlite_update_set(entity: Any, table_mapping: "TableMapping") -> str:
    """Renders ``col=lit,...`` for an entity."""
    return ",".join(
        f"{mapping.sql_column.name}={make_sql_value_literal(mapping.get_value(entity))}"
        for mapping in table_mapping.value_mappings
    )


def to_parameterized_insert(entity: Any, table_mapping: "TableMapping") -> SQLFragment:
    names = []
    params = []
    for mapping in table_mapping.value_mappings:
        names.append(fnuttify(mapping.sql_column.name))
        params.append(to_sql_parameter(mapping.get_value(entity)))
    placeholders = ",".join("?" for _ in names)
    return SQLFragment(f"({','.join(names)}) VALUES ({placeholders})", tuple(params))


def to_parameterized_update_set(entity: Any, table_mapping: "TableMapping") -> SQLFragment:
    parts = []
    params = []
    for mapping in table_mapping.value_mappings:
        parts.append(f"{fnuttify(mapping.sql_column.name)}=?")
        params.append(to_sql_parameter(mapping.get_value(entity)))
    return SQLFragment(",".join(parts), tuple(params))
