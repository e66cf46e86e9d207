# src/async_sqlite_mapper/db_implementations/sqlite_repository.py

import logging
from contextlib import AbstractAsyncContextManager
from logging import LoggerAdapter
from typing import (Any, AsyncGenerator, Callable, Generic, Iterable, List,
                    Optional, Type, TypeVar, Union)

import aiosqlite
from pydantic import BaseModel

# --- Framework Imports ---
from async_sqlite_mapper.base.interfaces import Repository, WhereArgument
from async_sqlite_mapper.base.query import Condition
from async_sqlite_mapper.base.sql import (SQLFragment, fnuttify,
                                          to_parameterized_insert,
                                          to_parameterized_update_set,
                                          to_parameterized_where_clause)
from async_sqlite_mapper.meta.column import ROW_ID_COLUMN
from async_sqlite_mapper.meta.mapping import EntityDescriptor, TableMapping
from async_sqlite_mapper.meta.registry import (TableMappingRegistry,
                                               default_registry)
from async_sqlite_mapper.sqlite.database import Command, SQLiteDatabase

# --- Type Variables ---
T = TypeVar("T")


class SqliteRepository(Repository[T], Generic[T]):
    """
    SQLite CRUD repository for one entity type.

    The repository obtains a ready ``TableMapping`` from its registry the first
    time it is used; that reconciles the live table with the entity type by
    adding any missing columns. All values are sent as bound parameters.

    Features/Limitations:
        - Rows are addressed by SQLite's implicit rowid. Update and delete need
          the row identity captured on the entity (set by insert and select).
        - Batches (an iterable passed to insert/update/delete) run in the given
          order on one connection inside one transaction: a failing statement
          rolls back the whole batch.
        - A plain string passed as ``where`` is appended to the statement
          verbatim and is therefore trusted input.
    """

    # --- Initialization ---
    def __init__(
        self,
        database: SQLiteDatabase,
        entity_type: Type[T],
        descriptor: Optional[EntityDescriptor[T]] = None,
        registry: Optional[TableMappingRegistry] = None,
    ):
        """
        Args:
            database: The database the entity table lives in.
            entity_type: The Python class representing the entity.
            descriptor: Explicit entity layout. Reflected from `entity_type`
                        when omitted.
            registry: Registry holding the table mappings for `database`.
                      Defaults to the shared module-level registry.
        """
        if not isinstance(database, SQLiteDatabase):
            raise TypeError("database must be an instance of SQLiteDatabase")

        self._database = database
        self._entity_type = entity_type
        self._descriptor = descriptor
        self._registry = registry if registry is not None else default_registry
        self._mapping: Optional[TableMapping[T]] = None

        self._logger = logging.getLogger(
            f"{__name__}.{self.__class__.__name__}[{entity_type.__name__}]"
        )
        self._logger.debug(
            f"Repository instance created for {entity_type.__name__} on '{database.path}'."
        )

    # --- Abstract Property Implementations ---
    @property
    def entity_type(self) -> Type[T]:
        return self._entity_type

    @property
    def database(self) -> SQLiteDatabase:
        return self._database

    # --- Mapping ---
    async def initialize(self, logger: LoggerAdapter) -> TableMapping[T]:
        """Reconciles the table (once per registry) and returns the ready mapping."""
        if self._mapping is None:
            logger.info(f"Initializing table mapping for {self._entity_type.__name__}")
            try:
                self._mapping = await self._registry.get(
                    self._entity_type, self._database, self._descriptor, logger
                )
            except Exception as e:
                logger.error(
                    f"Failed to initialize table mapping for {self._entity_type.__name__}: {e}",
                    exc_info=True,
                )
                raise
        return self._mapping

    @property
    def table_mapping(self) -> Optional[TableMapping[T]]:
        """The ready mapping, or None before the repository was initialized."""
        return self._mapping

    # --- Core CRUD Method Implementations ---
    async def select(
        self, logger: LoggerAdapter, where: WhereArgument = None
    ) -> AsyncGenerator[T, None]:
        """Yield entities lazily from ``SELECT rowid,* FROM <table> <where>``."""
        mapping = await self.initialize(logger)
        clause = self._translate_where(where)
        sql = f"SELECT {ROW_ID_COLUMN},* FROM {fnuttify(mapping.table_name)} {clause.sql}".rstrip()
        logger.debug(f"Selecting {self._entity_type.__name__}(s): {sql}")
        reader = self._database.execute_reader(sql, clause.params)
        try:
            async for row in reader:
                yield self._row_to_entity(mapping, row)
        except Exception as e:
            logger.error(f"Error selecting {self._entity_type.__name__}(s): {e}", exc_info=True)
            raise
        finally:
            # Releases the connection when the caller stops iterating early.
            await reader.aclose()

    async def insert(
        self, entities: Union[T, Iterable[T], None], logger: LoggerAdapter
    ) -> int:
        mapping = await self.initialize(logger)
        stub = f"INSERT INTO {fnuttify(mapping.table_name)} "

        def build(entity: T) -> SQLFragment:
            if not mapping.value_mappings:
                return SQLFragment(stub + "DEFAULT VALUES")
            values = to_parameterized_insert(entity, mapping)
            return SQLFragment(stub + values.sql, values.params)

        def write_back(entity: T, command: Command) -> None:
            mapping.row_id_mapping.set_value(entity, command.lastrowid)

        return await self._execute(entities, build, logger, "insert", after=write_back)

    async def update(
        self, entities: Union[T, Iterable[T], None], logger: LoggerAdapter
    ) -> int:
        mapping = await self.initialize(logger)
        if not mapping.value_mappings:
            logger.warning(
                f"Update of {self._entity_type.__name__} skipped: no mapped columns to set."
            )
            return 0
        stub = f"UPDATE {fnuttify(mapping.table_name)} SET "

        def build(entity: T) -> SQLFragment:
            row_id = self._require_row_id(mapping, entity, "update")
            values = to_parameterized_update_set(entity, mapping)
            return SQLFragment(
                f"{stub}{values.sql} WHERE {ROW_ID_COLUMN}=?", values.params + (row_id,)
            )

        return await self._execute(entities, build, logger, "update")

    async def delete(
        self, entities: Union[T, Iterable[T], None], logger: LoggerAdapter
    ) -> int:
        mapping = await self.initialize(logger)
        sql = f"DELETE FROM {fnuttify(mapping.table_name)} WHERE {ROW_ID_COLUMN}=?"

        def build(entity: T) -> SQLFragment:
            return SQLFragment(sql, (self._require_row_id(mapping, entity, "delete"),))

        return await self._execute(entities, build, logger, "delete")

    async def count(self, logger: LoggerAdapter, where: WhereArgument = None) -> int:
        mapping = await self.initialize(logger)
        clause = self._translate_where(where)
        sql = f"SELECT COUNT({ROW_ID_COLUMN}) FROM {fnuttify(mapping.table_name)} {clause.sql}".rstrip()
        try:
            result = await self._database.execute_scalar(sql, clause.params)
        except Exception as e:
            logger.error(f"Error counting {self._entity_type.__name__}(s): {e}", exc_info=True)
            raise
        count_val = int(result or 0)
        logger.info(f"Counted {count_val} {self._entity_type.__name__}(s).")
        return count_val

    # --- Helper Method Implementations ---
    async def _execute(
        self,
        entities: Union[T, Iterable[T], None],
        build: Callable[[T], SQLFragment],
        logger: LoggerAdapter,
        context: str,
        after: Optional[Callable[[T, Command], None]] = None,
    ) -> int:
        """
        Runs one statement per entity and sums the affected row counts.

        A single entity runs on its own connection; an iterable runs as one
        transaction on one reused command.
        """
        if entities is None:
            return 0
        if self._is_single(entities):
            batch: List[T] = [entities]
            scope: AbstractAsyncContextManager[Command] = self._database.command()
        else:
            batch = list(entities)
            if not batch:
                return 0
            scope = self._database.transaction()

        logger.debug(f"Running {context} for {len(batch)} {self._entity_type.__name__}(s)")
        count = 0
        try:
            async with scope as command:
                for entity in batch:
                    self.validate_entity(entity)
                    statement = build(entity)
                    count += await command.execute(statement.sql, statement.params)
                    if after is not None:
                        after(entity, command)
        except aiosqlite.Error as e:
            logger.error(
                f"Database error during {context} of {self._entity_type.__name__}: {e}",
                exc_info=True,
            )
            raise
        except Exception as e:
            logger.error(f"Error during {context} of {self._entity_type.__name__}: {e}")
            raise
        logger.info(f"{context.capitalize()} affected {count} {self._entity_type.__name__} row(s).")
        return count

    def _is_single(self, entities: Any) -> bool:
        # Pydantic models iterate over their fields, so they never count as a batch.
        return (
            isinstance(entities, self._entity_type)
            or isinstance(entities, (str, bytes, BaseModel))
            or not isinstance(entities, Iterable)
        )

    def _require_row_id(self, mapping: TableMapping[T], entity: T, context: str) -> Any:
        row_id = mapping.row_id_mapping.get_value(entity)
        if row_id is None:
            raise ValueError(
                f"Cannot {context} {self._entity_type.__name__}: the entity has no row identity. "
                f"Insert or select it first."
            )
        return row_id

    def _translate_where(self, where: WhereArgument) -> SQLFragment:
        if where is None:
            return SQLFragment("")
        if isinstance(where, SQLFragment):
            return where
        if isinstance(where, str):
            return SQLFragment(where.strip())
        conditions = [where] if isinstance(where, Condition) else list(where)
        return to_parameterized_where_clause(conditions) or SQLFragment("")

    def _row_to_entity(self, mapping: TableMapping[T], row: aiosqlite.Row) -> T:
        """Materializes one row; columns the entity does not declare are ignored."""
        entity = mapping.descriptor.factory()
        for key, value in zip(row.keys(), row):
            column_mapping = mapping.get_mapping(key)
            if column_mapping is not None:
                column_mapping.set_value(entity, value)
        return entity
