"""
Storage sinks the crawl controller forwards records to.

Each sink is an independent best-effort save: a record rejected by one
sink may still be stored by the other and always stays in the crawl
output. There is no cross-sink transaction.
"""

from abc import ABC, abstractmethod
import logging

from .base import PropertyRecord

logger = logging.getLogger(__name__)


class StorageSink(ABC):
    """Small save capability over a storage collaborator."""

    name = 'sink'

    async def open(self):
        """Prepare the underlying store. Failures here are not fatal to a crawl."""

    @abstractmethod
    async def save(self, record: PropertyRecord) -> bool:
        """Store one record, returning False when the store rejected it."""

    async def close(self):
        """Release the underlying store."""


class GraphSink(StorageSink):
    """Forwards records to the property graph store."""

    name = 'graph'

    def __init__(self, store):
        self.store = store

    async def open(self):
        await self.store.connect()

    async def save(self, record: PropertyRecord) -> bool:
        return await self.store.save_property(record)

    async def close(self):
        await self.store.close()


class VectorSink(StorageSink):
    """Forwards records to the similarity-search store."""

    name = 'vector'

    def __init__(self, store):
        self.store = store

    async def open(self):
        await self.store.initialize()

    async def save(self, record: PropertyRecord) -> bool:
        return await self.store.store_property(record) is not None

    async def close(self):
        await self.store.close()
