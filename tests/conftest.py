# tests/conftest.py
import logging
from typing import Any, List, Sequence

import aiosqlite
import pytest
import pytest_asyncio

from async_sqlite_mapper import SqliteRepository, SQLiteDatabase, TableMappingRegistry
from tests.models import Person


class RecordingDatabase(SQLiteDatabase):
    """SQLiteDatabase that remembers every statement it executes."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.statements: List[str] = []

    async def _run(
        self, connection: aiosqlite.Connection, sql: str, params: Sequence[Any] = ()
    ) -> aiosqlite.Cursor:
        self.statements.append(sql)
        return await super()._run(connection, sql, params)

    def executed(self, prefix: str) -> List[str]:
        """Recorded statements starting with `prefix` (case-insensitive)."""
        return [s for s in self.statements if s.upper().startswith(prefix.upper())]

    def reset(self) -> None:
        self.statements.clear()


@pytest.fixture(scope="session")
def logger():
    """Create a test logger."""
    _logger = logging.getLogger("test_mapper_logger")
    if not _logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        handler.setLevel(logging.DEBUG)
        _logger.addHandler(handler)
        _logger.setLevel(logging.DEBUG)
        _logger.propagate = False
    return logging.LoggerAdapter(_logger, {})


@pytest.fixture(scope="function")
def database(tmp_path) -> RecordingDatabase:
    """A fresh file-backed database per test."""
    return RecordingDatabase(str(tmp_path / "mapper.db"))


@pytest.fixture(scope="function")
def registry() -> TableMappingRegistry:
    """A registry private to the test, so mappings never leak between databases."""
    return TableMappingRegistry()


@pytest.fixture(scope="function")
def repository_factory(database, registry):
    """Builds repositories bound to the test database and registry."""

    def _create(entity_type, descriptor=None):
        return SqliteRepository(database, entity_type, descriptor=descriptor, registry=registry)

    return _create


@pytest_asyncio.fixture(scope="function")
async def people_repository(repository_factory, logger):
    """An initialized Person repository with the statement log cleared."""
    repo = repository_factory(Person)
    await repo.initialize(logger)
    repo.database.reset()
    return repo
