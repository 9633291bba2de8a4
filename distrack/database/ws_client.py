"""
WebSocket Database Client
Client for communicating with the Database API via WebSocket
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

import websockets
from websockets.asyncio.client import ClientConnection

from distrack.database import codec
from distrack.database.engine import DatabaseError, DuplicateKeyError

logger = logging.getLogger('db_client')


class DatabaseClient:
    def __init__(
        self,
        uri: str = "ws://localhost:8080",
        reconnect_interval: float = 5.0,
        max_reconnect_attempts: int = -1
    ):
        self.uri = uri
        self.reconnect_interval = reconnect_interval
        self.max_reconnect_attempts = max_reconnect_attempts

        self._ws: Optional[ClientConnection] = None
        self._connected = False
        self._reconnecting = False
        self._pending_requests: Dict[str, asyncio.Future[Dict[str, Any]]] = {}
        self._receive_task: Optional[asyncio.Task[None]] = None
        self._reconnect_task: Optional[asyncio.Task[None]] = None
        self._reconnect_attempts = 0

    @property
    def is_connected(self) -> bool:
        return self._connected and self._ws is not None

    async def connect(self) -> bool:
        if self._connected:
            return True

        try:
            self._ws = await websockets.connect(
                self.uri,
                ping_interval=30,
                ping_timeout=10,
                max_size=10 * 1024 * 1024
            )
            self._connected = True
            self._reconnect_attempts = 0

            self._receive_task = asyncio.create_task(self._receive_loop())

            logger.info(f"Connected to Database API at {self.uri}")
            return True

        except (OSError, websockets.exceptions.WebSocketException) as e:
            logger.error(f"Failed to connect to Database API: {e}")
            self._connected = False
            self._schedule_reconnect()
            return False

    async def disconnect(self):
        self._connected = False

        for task in (self._receive_task, self._reconnect_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        if self._ws:
            await self._ws.close()
            self._ws = None

        for future in self._pending_requests.values():
            if not future.done():
                future.set_exception(ConnectionError("Disconnected"))
        self._pending_requests.clear()

        logger.info("Disconnected from Database API")

    def _schedule_reconnect(self):
        if not self._reconnecting:
            self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _receive_loop(self) -> None:
        if self._ws is None:
            return

        try:
            async for message in self._ws:
                if isinstance(message, bytes):
                    message = message.decode('utf-8')
                try:
                    response = codec.loads(message)
                except ValueError:
                    logger.warning("Received invalid JSON from server")
                    continue

                request_id = response.get('request_id')
                if request_id and request_id in self._pending_requests:
                    future = self._pending_requests.pop(request_id)
                    if not future.done():
                        future.set_result(response)
                else:
                    logger.debug(f"Dropping unmatched response: {request_id}")

        except websockets.exceptions.ConnectionClosed:
            logger.warning("Connection to Database API closed")
            self._connected = False
            self._schedule_reconnect()

    async def _reconnect(self):
        self._reconnecting = True

        while not self._connected:
            if self.max_reconnect_attempts > 0 and self._reconnect_attempts >= self.max_reconnect_attempts:
                logger.error("Max reconnection attempts reached")
                break

            self._reconnect_attempts += 1
            logger.info(f"Attempting to reconnect... (attempt {self._reconnect_attempts})")

            await asyncio.sleep(self.reconnect_interval)

            try:
                self._ws = await websockets.connect(
                    self.uri,
                    ping_interval=30,
                    ping_timeout=10
                )
                self._connected = True
                self._reconnect_attempts = 0

                self._receive_task = asyncio.create_task(self._receive_loop())

                logger.info("Reconnected to Database API")

            except (OSError, websockets.exceptions.WebSocketException) as e:
                logger.warning(f"Reconnection failed: {e}")

        self._reconnecting = False

    async def request(
        self,
        action: str,
        data: Optional[Dict[str, Any]] = None,
        timeout: float = 30.0
    ) -> Dict[str, Any]:
        if not self.is_connected:
            await self.connect()
            if not self.is_connected:
                raise ConnectionError("Not connected to Database API")

        if self._ws is None:
            raise ConnectionError("WebSocket connection is not available")

        request_id = str(uuid.uuid4())
        request_payload = {
            'action': action,
            'data': data or {},
            'request_id': request_id
        }

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Dict[str, Any]] = loop.create_future()
        self._pending_requests[request_id] = future

        try:
            await self._ws.send(codec.dumps(request_payload))
            response = await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            self._pending_requests.pop(request_id, None)
            raise TimeoutError(f"Request timed out after {timeout}s")
        except BaseException:
            self._pending_requests.pop(request_id, None)
            raise

        if not response.get('success', False):
            if response.get('error_type') == 'duplicate_key':
                raise DuplicateKeyError(response.get('error', 'Duplicate key'))
            raise DatabaseError(response.get('error', f"Request '{action}' failed"))

        return response

    async def ping(self) -> bool:
        try:
            response = await self.request('ping', timeout=5.0)
            return response.get('pong', False)
        except (ConnectionError, TimeoutError, DatabaseError):
            return False

    async def insert(self, table: str, row: Dict[str, Any]) -> int:
        response = await self.request('insert', {'table': table, 'row': row})
        return response.get('row_id', -1)

    async def update(
        self,
        table: str,
        data: Dict[str, Any],
        conditions: Optional[Dict[str, Any]] = None
    ) -> int:
        response = await self.request('update', {
            'table': table,
            'data': data,
            'conditions': conditions or {}
        })
        return response.get('updated', 0)

    async def increment(
        self,
        table: str,
        conditions: Dict[str, Any],
        column: str,
        amount: int = 1,
        defaults: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        response = await self.request('increment', {
            'table': table,
            'conditions': conditions,
            'column': column,
            'amount': amount,
            'defaults': defaults or {}
        })
        return response.get('row', {})

    async def delete(self, table: str, conditions: Optional[Dict[str, Any]] = None) -> int:
        response = await self.request('delete', {
            'table': table,
            'conditions': conditions or {}
        })
        return response.get('deleted', 0)

    async def select(
        self,
        table: str,
        conditions: Optional[Dict[str, Any]] = None,
        order_by: Optional[Sequence[Sequence[str]]] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        response = await self.request('select', {
            'table': table,
            'conditions': conditions or {},
            'order_by': order_by,
            'limit': limit,
            'offset': offset
        })
        return response.get('rows', [])

    async def find_one(
        self,
        table: str,
        conditions: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        response = await self.request('find_one', {
            'table': table,
            'conditions': conditions
        })
        return response.get('row')

    async def count(
        self,
        table: str,
        conditions: Optional[Dict[str, Any]] = None
    ) -> int:
        response = await self.request('count', {
            'table': table,
            'conditions': conditions or {}
        })
        return response.get('count', 0)

    async def group_count(
        self,
        table: str,
        column: str,
        conditions: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        response = await self.request('group_count', {
            'table': table,
            'column': column,
            'conditions': conditions or {}
        })
        return response.get('groups', [])

    async def stats(self) -> Dict[str, Any]:
        response = await self.request('stats')
        return response.get('stats', {})
