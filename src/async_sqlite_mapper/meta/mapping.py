# src/async_sqlite_mapper/meta/mapping.py
import logging
from dataclasses import dataclass, field
from enum import Enum
from logging import LoggerAdapter
from typing import (TYPE_CHECKING, Any, Callable, ClassVar, Dict, Generic,
                    List, Optional, Tuple, Type, TypeVar, get_origin,
                    get_type_hints)

from ..base.exceptions import MappingException, SchemaConflictException
from ..base.sql import fnuttify
from ..base.types import (HostDataType, SQLDataType, from_sql_value,
                          parse_sql_data_type, resolve_host_data_type,
                          to_sql_data_type)
from .column import ROW_ID_COLUMN, SQLColumn

if TYPE_CHECKING:
    from ..sqlite.database import SQLiteDatabase

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ROW_ID_FIELD = "row_id"


# --- Entity Description ---
@dataclass(frozen=True)
class PropertyAccessor:
    """A named, typed entity property with its read and write functions."""

    name: str
    host_type: Any
    getter: Callable[[Any], Any]
    setter: Optional[Callable[[Any, Any], None]] = None

    @classmethod
    def for_attribute(cls, name: str, host_type: Any) -> "PropertyAccessor":
        """Accessor reading and writing a plain instance attribute."""

        def _get(entity: Any) -> Any:
            return getattr(entity, name, None)

        def _set(entity: Any, value: Any) -> None:
            setattr(entity, name, value)

        return cls(name, host_type, _get, _set)


def _declared_fields(entity_type: type) -> Dict[str, Any]:
    """Field name -> annotation, in declaration order."""
    model_fields = getattr(entity_type, "model_fields", None)
    if isinstance(model_fields, dict):
        # Pydantic models
        return {name: info.annotation for name, info in model_fields.items()}
    hints = get_type_hints(entity_type)
    return {
        name: hint
        for name, hint in hints.items()
        if not name.startswith("_") and get_origin(hint) is not ClassVar and hint is not ClassVar
    }


@dataclass
class EntityDescriptor(Generic[T]):
    """
    Describes how an entity type is laid out for mapping.

    Build one with ``from_type`` to reflect over the type's annotations, or
    construct it directly with explicit accessors when the entity shape is not
    expressed through annotations.
    """

    entity_type: Type[T]
    table_name: str
    properties: List[PropertyAccessor] = field(default_factory=list)
    row_id: Optional[PropertyAccessor] = None
    factory: Optional[Callable[[], T]] = None

    def __post_init__(self):
        if self.factory is None:
            # Pydantic models are filled column by column, so skip validation
            # of required fields when creating the empty instance.
            self.factory = getattr(self.entity_type, "model_construct", self.entity_type)

    @classmethod
    def from_type(
        cls,
        entity_type: Type[T],
        row_id_field: str = DEFAULT_ROW_ID_FIELD,
        table_name: Optional[str] = None,
    ) -> "EntityDescriptor[T]":
        """
        Reflects over the annotations of ``entity_type``.

        The field named ``row_id_field`` (if declared) carries the row identity
        and is not mapped to a regular column. The table name defaults to the
        ``__sqlite_table__`` class attribute, then to the class name.
        """
        name = table_name or getattr(entity_type, "__sqlite_table__", None) or entity_type.__name__
        row_id = None
        properties = []
        for field_name, hint in _declared_fields(entity_type).items():
            accessor = PropertyAccessor.for_attribute(field_name, hint)
            if field_name == row_id_field:
                row_id = accessor
            else:
                properties.append(accessor)
        log.debug(
            f"Reflected {entity_type.__name__}: table '{name}', "
            f"properties {[p.name for p in properties]}, row id field "
            f"{row_id.name if row_id else None!r}"
        )
        return cls(entity_type=entity_type, table_name=name, properties=properties, row_id=row_id)


# --- Mapping Lifecycle ---
class MappingState(Enum):
    UNMAPPED = "unmapped"
    REFLECTED = "reflected"
    RECONCILED = "reconciled"
    READY = "ready"


class ColumnMapping:
    """Binds one entity property to one SQL column of a table mapping."""

    def __init__(
        self,
        table_mapping: "TableMapping",
        accessor: Optional[PropertyAccessor],
        sql_column: SQLColumn,
        host_type: HostDataType,
    ):
        self._table_mapping = table_mapping
        self._accessor = accessor
        self._sql_column = sql_column
        self._host_type = host_type
        sql_column.set_mapping(self)

    @property
    def table_mapping(self) -> "TableMapping":
        return self._table_mapping

    @property
    def sql_column(self) -> SQLColumn:
        return self._sql_column

    @property
    def accessor(self) -> Optional[PropertyAccessor]:
        return self._accessor

    @property
    def host_type(self) -> HostDataType:
        return self._host_type

    @property
    def is_row_id(self) -> bool:
        return self._sql_column.is_row_id

    def get_value(self, entity: Any) -> Any:
        if self._accessor is None:
            return None
        return self._accessor.getter(entity)

    def set_value(self, entity: Any, value: Any) -> None:
        """Writes a value read from the database onto the entity."""
        if self._accessor is None or self._accessor.setter is None:
            return
        self._accessor.setter(entity, from_sql_value(value, self._host_type))

    async def push(self, database: "SQLiteDatabase") -> bool:
        return await self._sql_column.push(database)

    def __repr__(self) -> str:
        prop = self._accessor.name if self._accessor else None
        return f"ColumnMapping({prop!r} -> {self._sql_column!r})"


class TableMapping(Generic[T]):
    """
    The correspondence between one entity type and one SQLite table.

    Column mappings are ordered: the row identity first, then the entity's
    properties in declaration order. Reconciliation only ever adds columns;
    columns present in the live table but absent from the entity are left
    alone.
    """

    def __init__(self, descriptor: EntityDescriptor[T]):
        self._descriptor = descriptor
        self._column_mappings: List[ColumnMapping] = []
        self._state = MappingState.UNMAPPED

    @classmethod
    def build(cls, descriptor: EntityDescriptor[T]) -> "TableMapping[T]":
        mapping = cls(descriptor)
        mapping._reflect()
        return mapping

    def _reflect(self) -> None:
        self._column_mappings = [
            ColumnMapping(
                self,
                self._descriptor.row_id,
                SQLColumn(ROW_ID_COLUMN, SQLDataType.BIGINT),
                HostDataType.INT64,
            )
        ]
        for accessor in self._descriptor.properties:
            host_type = resolve_host_data_type(accessor.host_type)
            if host_type is HostDataType.UNSUPPORTED:
                log.warning(
                    f"Skipping property '{accessor.name}' of {self.entity_type.__name__}: "
                    f"type {accessor.host_type!r} has no SQLite mapping"
                )
                continue
            if accessor.name.casefold() == ROW_ID_COLUMN:
                raise MappingException(
                    f"Property '{accessor.name}' of {self.entity_type.__name__} "
                    f"collides with the implicit row identity column"
                )
            column = SQLColumn(accessor.name, to_sql_data_type(host_type))
            self._column_mappings.append(ColumnMapping(self, accessor, column, host_type))
        self._state = MappingState.REFLECTED

    # --- Properties ---
    @property
    def descriptor(self) -> EntityDescriptor[T]:
        return self._descriptor

    @property
    def entity_type(self) -> Type[T]:
        return self._descriptor.entity_type

    @property
    def table_name(self) -> str:
        return self._descriptor.table_name

    @property
    def state(self) -> MappingState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is MappingState.READY

    @property
    def column_mappings(self) -> Tuple[ColumnMapping, ...]:
        return tuple(self._column_mappings)

    @property
    def row_id_mapping(self) -> ColumnMapping:
        return self._column_mappings[0]

    @property
    def value_mappings(self) -> Tuple[ColumnMapping, ...]:
        """All column mappings except the row identity."""
        return tuple(m for m in self._column_mappings if not m.is_row_id)

    def get_mapping(self, column_name: str) -> Optional[ColumnMapping]:
        folded = column_name.casefold()
        for mapping in self._column_mappings:
            if mapping.sql_column.name.casefold() == folded:
                return mapping
        return None

    # --- Live Schema ---
    async def get_sql_columns(self, database: "SQLiteDatabase") -> List[SQLColumn]:
        """The columns of the live table, as reported by the database."""
        return [
            SQLColumn(name, parse_sql_data_type(type_text))
            for name, type_text in await database.get_columns(self.table_name)
        ]

    async def create_table_if_missing(self, database: "SQLiteDatabase") -> bool:
        """Creates the table with every declared column unless it already exists."""
        if await database.table_exists(self.table_name):
            return False
        definitions = [m.sql_column.to_sql() for m in self.value_mappings]
        if not definitions:
            raise MappingException(
                f"Cannot create table '{self.table_name}': "
                f"{self.entity_type.__name__} has no mappable properties"
            )
        statement = (
            f"CREATE TABLE IF NOT EXISTS {fnuttify(self.table_name)} ({','.join(definitions)})"
        )
        async with database.transaction() as command:
            await command.execute(statement)
        log.info(f"Created SQLite table '{self.table_name}' for {self.entity_type.__name__}")
        return True

    async def reconcile(
        self, database: "SQLiteDatabase", logger: Optional[LoggerAdapter] = None
    ) -> List[SQLColumn]:
        """
        Makes the live table a superset of the declared columns.

        Returns the columns that were added. A schema conflict aborts the
        whole reconciliation and leaves the mapping un-reconciled.
        """
        logger = logger or log
        if self._state in (MappingState.RECONCILED, MappingState.READY):
            return []
        if self._state is MappingState.UNMAPPED:
            self._reflect()

        logger.debug(f"Reconciling table '{self.table_name}' for {self.entity_type.__name__}")
        await self.create_table_if_missing(database)
        added = []
        for mapping in self._column_mappings:
            try:
                if await mapping.push(database):
                    added.append(mapping.sql_column)
            except SchemaConflictException as e:
                logger.error(f"Reconciliation of '{self.table_name}' failed: {e}")
                raise
        self._state = MappingState.RECONCILED
        logger.info(
            f"Table '{self.table_name}' reconciled for {self.entity_type.__name__} "
            f"({len(added)} column(s) added)."
        )
        return added

    def mark_ready(self) -> None:
        if self._state is not MappingState.RECONCILED:
            raise MappingException(
                f"Table mapping for {self.entity_type.__name__} must be reconciled "
                f"before it is ready (state: {self._state.value})"
            )
        self._state = MappingState.READY

    def __repr__(self) -> str:
        return (
            f"TableMapping({self.entity_type.__name__} -> '{self.table_name}', "
            f"state={self._state.value}, columns={[str(m.sql_column) for m in self._column_mappings]})"
        )
