# src/async_sqlite_mapper/sqlite/database.py
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, List, Optional, Sequence, Tuple

import aiosqlite

from ..base.sql import fnuttify
from ..meta.column import ROW_ID_COLUMN

logger = logging.getLogger(__name__)  # Module-level logger

# Declared type reported for the implicit row identity column.
ROW_ID_TYPE = "BIGINT"

Params = Sequence[Any]


async def _register_sqlite_pragmas(
    connection: aiosqlite.Connection, journal_mode: Optional[str]
) -> None:
    """Applies the configured pragmas to a freshly opened connection."""
    if not journal_mode:
        return
    try:
        await connection.execute(f"PRAGMA journal_mode={journal_mode};")
    except aiosqlite.Error as e:
        logger.debug(f"Could not set PRAGMA journal_mode={journal_mode}: {e}")


class Command:
    """
    A reusable statement scope bound to one open connection.

    Batches execute every statement through the same command so they share a
    connection and, inside ``SQLiteDatabase.transaction``, one transaction.
    """

    def __init__(self, database: "SQLiteDatabase", connection: aiosqlite.Connection):
        self._database = database
        self._connection = connection
        self.lastrowid: Optional[int] = None
        self.statements = 0

    async def execute(self, sql: str, params: Params = ()) -> int:
        """Executes a non-query and returns the number of affected rows."""
        cursor = await self._database._run(self._connection, sql, params)
        try:
            self.lastrowid = cursor.lastrowid
            self.statements += 1
            return cursor.rowcount
        finally:
            await cursor.close()


class SQLiteDatabase:
    """
    Executes SQL against one SQLite database file using aiosqlite.

    Every public call opens its own short-lived connection in autocommit mode
    (``isolation_level=None``); multi-statement work uses ``transaction()``,
    which issues explicit BEGIN / COMMIT / ROLLBACK.

    The database also answers schema introspection questions for the table
    mappings (``table_exists`` and ``get_columns``).
    """

    def __init__(
        self,
        path: str,
        journal_mode: Optional[str] = "WAL",
        timeout: float = 5.0,
    ):
        """
        Args:
            path: Path of the SQLite database file.
            journal_mode: Value for ``PRAGMA journal_mode``; None leaves the default.
            timeout: Seconds a connection waits on a locked database.
        """
        self._path = str(path)
        self._journal_mode = journal_mode
        self._timeout = timeout

    @property
    def path(self) -> str:
        return self._path

    # --- Connection Helpers ---
    @asynccontextmanager
    async def connect(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Opens a connection, applies pragmas and closes it on exit."""
        try:
            conn = await aiosqlite.connect(
                self._path, timeout=self._timeout, isolation_level=None
            )
        except Exception as e:
            logger.error(
                f"Failed to connect to SQLite database {self._path}: {e}",
                exc_info=True,
            )
            raise
        try:
            conn.row_factory = aiosqlite.Row
            await _register_sqlite_pragmas(conn, self._journal_mode)
            yield conn
        finally:
            await conn.close()

    async def _run(
        self, connection: aiosqlite.Connection, sql: str, params: Params = ()
    ) -> aiosqlite.Cursor:
        """Single funnel every statement passes through."""
        logger.debug(f"SQLite Query: {sql} | Params: {tuple(params)}")
        return await connection.execute(sql, tuple(params))

    @asynccontextmanager
    async def command(self) -> AsyncGenerator[Command, None]:
        """Yields a command on its own connection, without an explicit transaction."""
        async with self.connect() as conn:
            yield Command(self, conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Command, None]:
        """
        Yields a command whose statements run inside one transaction.

        The transaction commits when the block exits normally and rolls back
        when it raises.
        """
        async with self.connect() as conn:
            await self._run(conn, "BEGIN TRANSACTION")
            try:
                yield Command(self, conn)
            except BaseException:
                logger.debug("Rolling back transaction")
                await self._run(conn, "ROLLBACK")
                raise
            await self._run(conn, "COMMIT")

    # --- Execution ---
    async def execute(self, sql: str, params: Params = ()) -> int:
        """Executes a non-query and returns the number of affected rows."""
        async with self.command() as command:
            return await command.execute(sql, params)

    async def execute_scalar(self, sql: str, params: Params = ()) -> Any:
        """Returns the first column of the first row, or None."""
        async with self.connect() as conn:
            cursor = await self._run(conn, sql, params)
            try:
                row = await cursor.fetchone()
            finally:
                await cursor.close()
        return row[0] if row is not None else None

    async def execute_reader(
        self, sql: str, params: Params = ()
    ) -> AsyncGenerator[aiosqlite.Row, None]:
        """Yields rows one at a time; the connection stays open until exhausted."""
        async with self.connect() as conn:
            cursor = await self._run(conn, sql, params)
            try:
                async for row in cursor:
                    yield row
            finally:
                await cursor.close()

    # --- Schema Introspection ---
    async def table_exists(self, table_name: str) -> bool:
        found = await self.execute_scalar(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=? COLLATE NOCASE",
            (table_name,),
        )
        return found is not None

    async def get_columns(self, table_name: str) -> List[Tuple[str, str]]:
        """
        Lists the live columns of a table as (name, declared type) pairs.

        The implicit row identity column comes first. A table that does not
        exist has no columns.
        """
        columns: List[Tuple[str, str]] = []
        async for row in self.execute_reader(f"PRAGMA table_info({fnuttify(table_name)})"):
            columns.append((row["name"], row["type"]))
        if not columns:
            return []
        return [(ROW_ID_COLUMN, ROW_ID_TYPE)] + columns
