# src/async_sqlite_mapper/base/query.py
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

# --- Setup Logging ---
log = logging.getLogger(__name__)


# --- Operator Enum ---
class Operator(Enum):
    """Comparison operators a condition can use."""

    EQUALS = "eq"
    NOT_EQUALS = "ne"
    LESS_THAN = "lt"
    GREATER_THAN = "gt"
    LESS_THAN_OR_EQUALS = "le"
    GREATER_THAN_OR_EQUALS = "ge"


# --- Condition ---
@dataclass
class Condition:
    """
    A typed predicate over one column: ``key <operator> value``.

    Conditions with ``skip`` set are kept by callers for bookkeeping but are
    left out of any generated SQL.
    """

    key: str
    operator: Operator
    value: Any
    skip: bool = False


# --- Field Representation ---
class Field:
    """
    Represents a column name that builds conditions through comparison operators.

    Example:
        >>> Field("Age") >= 18
        Condition(key='Age', operator=<Operator.GREATER_THAN_OR_EQUALS: 'ge'>, value=18, skip=False)
    """

    __hash__ = None  # __eq__ builds conditions instead of comparing

    def __init__(self, key: str):
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def _op(self, operator: Operator, other: Any) -> Condition:
        log.debug(f"Creating condition: Field('{self._key}') {operator.name} {other!r}")
        return Condition(self._key, operator, other)

    def __eq__(self, other: Any) -> Condition:  # type: ignore[override]
        return self._op(Operator.EQUALS, other)

    def __ne__(self, other: Any) -> Condition:  # type: ignore[override]
        return self._op(Operator.NOT_EQUALS, other)

    def __lt__(self, other: Any) -> Condition:
        return self._op(Operator.LESS_THAN, other)

    def __gt__(self, other: Any) -> Condition:
        return self._op(Operator.GREATER_THAN, other)

    def __le__(self, other: Any) -> Condition:
        return self._op(Operator.LESS_THAN_OR_EQUALS, other)

    def __ge__(self, other: Any) -> Condition:
        return self._op(Operator.GREATER_THAN_OR_EQUALS, other)

    def __repr__(self) -> str:
        return f"Field({self._key!r})"
