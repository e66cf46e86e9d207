# src/async_sqlite_mapper/meta/column.py
import logging
from typing import TYPE_CHECKING, Any, Optional

from ..base.exceptions import (SchemaConflictException,
                               UnmappedColumnException,
                               UnsupportedTypeException)
from ..base.sql import fnuttify
from ..base.types import SQLDataType

if TYPE_CHECKING:
    from ..sqlite.database import SQLiteDatabase
    from .mapping import ColumnMapping

log = logging.getLogger(__name__)

ROW_ID_COLUMN = "rowid"


class SQLColumn:
    """
    A column of a SQLite table: a name and a SQL type.

    Names compare case-insensitively, types exactly. A column may be bound to
    one ``ColumnMapping``, which is what allows it to push itself to the live
    table.
    """

    __slots__ = ("_name", "_type", "_mapping")

    def __init__(self, name: str, sql_type: SQLDataType):
        self._name = name
        self._type = sql_type
        self._mapping: Optional["ColumnMapping"] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> SQLDataType:
        return self._type

    @property
    def is_row_id(self) -> bool:
        return self._name.casefold() == ROW_ID_COLUMN

    @property
    def mapping(self) -> Optional["ColumnMapping"]:
        return self._mapping

    def set_mapping(self, mapping: "ColumnMapping") -> None:
        if self._mapping is not None and self._mapping is not mapping:
            raise ValueError(f"SQL column '{self._name}' is already mapped")
        self._mapping = mapping

    def to_sql(self) -> str:
        return f"{fnuttify(self._name)} {self._type}"

    async def push(self, database: "SQLiteDatabase") -> bool:
        """
        Makes sure this column exists in the owning table.

        Returns True if the column was added, False if an equal column was
        already present.

        Raises:
            UnmappedColumnException: If the column has no owning mapping.
            SchemaConflictException: If a same-named column has another type.
            UnsupportedTypeException: If the column would be added with an
                unsupported type.
        """
        if self._mapping is None:
            raise UnmappedColumnException(
                f"Cannot push the unmapped SQL column '{self._name}' to the database"
            )
        table_mapping = self._mapping.table_mapping
        for column in await table_mapping.get_sql_columns(database):
            if column == self:
                return False
            if column.name.casefold() == self._name.casefold():
                raise SchemaConflictException(
                    f"Cannot push column '{self._name}' to SQLite table "
                    f"'{table_mapping.table_name}'. The table already contained a "
                    f"column definition '({column.to_sql()})'.",
                    existing=column.to_sql(),
                    declared=self.to_sql(),
                )
        if self._type is SQLDataType.UNSUPPORTED:
            raise UnsupportedTypeException(
                f"Cannot add column '{self._name}' with an unsupported type to "
                f"SQLite table '{table_mapping.table_name}'"
            )
        statement = (
            f"ALTER TABLE {fnuttify(table_mapping.table_name)} ADD COLUMN {self.to_sql()}"
        )
        async with database.transaction() as command:
            await command.execute(statement)
        log.info(f"Added column ({self.to_sql()}) to table '{table_mapping.table_name}'")
        return True

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, SQLColumn):
            return NotImplemented
        return self._name.casefold() == other._name.casefold() and self._type is other._type

    def __hash__(self) -> int:
        return hash((self._name.casefold(), self._type))

    def __str__(self) -> str:
        return self.to_sql()

    def __repr__(self) -> str:
        return f"SQLColumn({self._name!r}, SQLDataType.{self._type.name})"
