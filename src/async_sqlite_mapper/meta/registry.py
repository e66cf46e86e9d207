# src/async_sqlite_mapper/meta/registry.py
import asyncio
import logging
from logging import LoggerAdapter
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, Type, TypeVar

from ..base.exceptions import MappingException
from .mapping import EntityDescriptor, TableMapping

if TYPE_CHECKING:
    from ..sqlite.database import SQLiteDatabase

log = logging.getLogger(__name__)

T = TypeVar("T")

# (database path, entity type, casefolded table name)
RegistryKey = Tuple[str, type, str]


def _layout(descriptor: EntityDescriptor) -> Tuple[Optional[str], List[str]]:
    row_id = descriptor.row_id.name if descriptor.row_id else None
    return row_id, [p.name for p in descriptor.properties]


class TableMappingRegistry:
    """
    Holds one ready ``TableMapping`` per database, entity type and table.

    A mapping is built and reconciled at most once per key: concurrent first
    use waits on a per-key lock and then reuses the published mapping. Failed
    reconciliations are not cached, so a later call retries. Asking for a
    registered key with a descriptor of a different column layout raises
    ``MappingException``.
    """

    def __init__(self):
        self._mappings: Dict[RegistryKey, TableMapping] = {}
        self._locks: Dict[RegistryKey, asyncio.Lock] = {}

    @staticmethod
    def _key(database: "SQLiteDatabase", descriptor: EntityDescriptor) -> RegistryKey:
        return database.path, descriptor.entity_type, descriptor.table_name.casefold()

    def _check_layout(self, mapping: TableMapping, descriptor: EntityDescriptor) -> None:
        if _layout(mapping.descriptor) != _layout(descriptor):
            raise MappingException(
                f"Table '{descriptor.table_name}' is already mapped for "
                f"{descriptor.entity_type.__name__} with a different column layout"
            )

    async def get(
        self,
        entity_type: Type[T],
        database: "SQLiteDatabase",
        descriptor: Optional[EntityDescriptor[T]] = None,
        logger: Optional[LoggerAdapter] = None,
    ) -> TableMapping[T]:
        """Returns the ready mapping for ``entity_type`` in ``database``, creating it on first use."""
        descriptor = descriptor or EntityDescriptor.from_type(entity_type)
        key = self._key(database, descriptor)
        mapping = self._mappings.get(key)
        if mapping is not None:
            self._check_layout(mapping, descriptor)
            return mapping

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            mapping = self._mappings.get(key)
            if mapping is not None:
                self._check_layout(mapping, descriptor)
                return mapping

            mapping = TableMapping.build(descriptor)
            await mapping.reconcile(database, logger)
            mapping.mark_ready()
            self._mappings[key] = mapping
            log.debug(
                f"Registered table mapping for {entity_type.__name__} "
                f"-> '{descriptor.table_name}' in '{database.path}'"
            )
            return mapping

    def peek(
        self, entity_type: type, database: Optional["SQLiteDatabase"] = None
    ) -> Optional[TableMapping]:
        """The first registered mapping for the type (in ``database``, if given), without creating one."""
        for (path, registered_type, _), mapping in self._mappings.items():
            if registered_type is entity_type and (database is None or path == database.path):
                return mapping
        return None

    def __contains__(self, entity_type: type) -> bool:
        return self.peek(entity_type) is not None

    def __len__(self) -> int:
        return len(self._mappings)

    def clear(self) -> None:
        self._mappings.clear()
        self._locks.clear()


# Shared registry used by repositories that are not given one explicitly.
default_registry = TableMappingRegistry()
