# src/async_sqlite_mapper/base/interfaces.py

from abc import ABC, abstractmethod
from logging import LoggerAdapter
from typing import (Any, AsyncGenerator, Generic, Iterable, Optional, Type,
                    TypeVar, Union)

from async_sqlite_mapper.base.query import Condition
from async_sqlite_mapper.base.sql import SQLFragment

# Type variable for any entity
T = TypeVar("T")

# Accepted forms of a filter: raw WHERE text, a prepared fragment, or conditions.
WhereArgument = Union[None, str, SQLFragment, Condition, Iterable[Condition]]


class Repository(Generic[T], ABC):
    """
    Base repository interface for single-table CRUD over mapped entities.

    Provides select, insert, update, delete and count. Mutating operations
    accept a single entity or an iterable of entities and return the number
    of affected rows; ``None`` is accepted and affects nothing.
    """

    @property
    @abstractmethod
    def entity_type(self) -> Type[T]:
        """The entity type this repository manages."""
        pass

    # --- Initialization ---

    @abstractmethod
    async def initialize(self, logger: LoggerAdapter) -> None:
        """
        Prepares the repository for use, reconciling the table schema with
        the entity type. Should be idempotent.

        Args:
            logger: Logger adapter for recording initialization steps.
        """
        pass

    # --- Core CRUD Methods ---

    @abstractmethod
    async def select(
        self, logger: LoggerAdapter, where: WhereArgument = None
    ) -> AsyncGenerator[T, None]:
        """
        Select entities, optionally filtered.

        Args:
            logger: Logger adapter for recording operations.
            where: Raw WHERE clause text (appended verbatim), an SQLFragment,
                   or one or more Conditions (rendered with bound parameters).

        Yields:
            Entity instances (`T`), one per row, lazily.
        """
        # Abstract method requires yield, but it won't be executed.
        if False:  # pragma: no cover
            yield

    @abstractmethod
    async def insert(
        self, entities: Union[T, Iterable[T], None], logger: LoggerAdapter
    ) -> int:
        """
        Insert one entity or a batch of entities.

        Returns:
            The number of rows inserted.
        """
        pass

    @abstractmethod
    async def update(
        self, entities: Union[T, Iterable[T], None], logger: LoggerAdapter
    ) -> int:
        """
        Write the current state of one entity or a batch of entities back to
        the rows identified by their row identity.

        Returns:
            The number of rows updated.

        Raises:
            ValueError: If an entity has no row identity.
        """
        pass

    @abstractmethod
    async def delete(
        self, entities: Union[T, Iterable[T], None], logger: LoggerAdapter
    ) -> int:
        """
        Delete the rows of one entity or a batch of entities.

        Returns:
            The number of rows deleted.

        Raises:
            ValueError: If an entity has no row identity.
        """
        pass

    @abstractmethod
    async def count(self, logger: LoggerAdapter, where: WhereArgument = None) -> int:
        """
        Count rows, optionally filtered.

        Args:
            logger: Logger adapter for recording operations.
            where: Same forms as for `select`.

        Returns:
            The number of matching rows.
        """
        pass

    # --- Helper Methods ---

    def validate_entity(self, entity: Any) -> None:
        """
        Basic validation that an entity instance is of the expected type.

        Args:
            entity: The entity instance to validate.

        Raises:
            ValueError: If the entity is not an instance of `self.entity_type`.
        """
        if not isinstance(entity, self.entity_type):
            raise ValueError(
                f"Entity must be of type {self.entity_type.__name__}, "
                f"but received {type(entity).__name__}"
            )

    async def find_one(
        self, logger: LoggerAdapter, where: WhereArgument = None
    ) -> Optional[T]:
        """
        Return the first entity matching `where`, or None.

        This default implementation consumes the first item of `select()`
        and closes the generator.
        """
        results = self.select(logger, where)
        try:
            async for entity in results:
                return entity
        finally:
            await results.aclose()
        return None
