"""
Local Database Client
In-process client exposing the DatabaseClient interface over a DocumentEngine
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from distrack.database.engine import DocumentEngine
from distrack.database.schema import create_collections

logger = logging.getLogger('db_client')


class LocalDatabaseClient:
    def __init__(self, engine: Optional[DocumentEngine] = None, snapshot_path: Optional[str] = None):
        self.engine = create_collections(engine or DocumentEngine())
        self.snapshot_path = snapshot_path
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        if self.snapshot_path:
            self.engine.load(self.snapshot_path)
        self._connected = True
        logger.info("Using in-process document engine")
        return True

    async def disconnect(self):
        if self.snapshot_path:
            self.engine.save(self.snapshot_path)
        self._connected = False

    async def ping(self) -> bool:
        return self._connected

    async def insert(self, table: str, row: Dict[str, Any]) -> int:
        return await self.engine.insert(table, row)

    async def update(
        self,
        table: str,
        data: Dict[str, Any],
        conditions: Optional[Dict[str, Any]] = None
    ) -> int:
        return await self.engine.update(table, data, conditions)

    async def increment(
        self,
        table: str,
        conditions: Dict[str, Any],
        column: str,
        amount: int = 1,
        defaults: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        return await self.engine.increment(table, conditions, column, amount, defaults)

    async def delete(self, table: str, conditions: Optional[Dict[str, Any]] = None) -> int:
        return await self.engine.delete(table, conditions)

    async def select(
        self,
        table: str,
        conditions: Optional[Dict[str, Any]] = None,
        order_by: Optional[Sequence[Sequence[str]]] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        return await self.engine.select(table, conditions, order_by, limit, offset)

    async def find_one(self, table: str, conditions: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self.engine.find_one(table, conditions)

    async def count(self, table: str, conditions: Optional[Dict[str, Any]] = None) -> int:
        return await self.engine.count(table, conditions)

    async def group_count(
        self,
        table: str,
        column: str,
        conditions: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        return await self.engine.group_count(table, column, conditions)

    async def stats(self) -> Dict[str, Any]:
        return self.engine.stats()
