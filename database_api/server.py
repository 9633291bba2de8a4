"""
WebSocket Database API Server
Serves the DisTrack document engine over the WebSocket protocol

Supports:
- CRUD, counting and grouped counts over document collections
- Atomic increment-and-read for per-guild counters
- Periodic JSON snapshots and an HTTP health endpoint
"""

import asyncio
import logging
import os
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Dict, Optional, Set

import websockets
from dotenv import load_dotenv
from websockets.asyncio.server import ServerConnection
from websockets.http11 import Request, Response

from distrack.database import codec
from distrack.database.engine import DatabaseError, DocumentEngine, DuplicateKeyError
from distrack.database.schema import create_collections

logger = logging.getLogger('db_server')

SNAPSHOT_INTERVAL = 30


class DatabaseAPIServer:
    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8080,
        data_dir: str = "data/db",
        snapshot_interval: float = SNAPSHOT_INTERVAL
    ):
        self.host = host
        self.port = port
        self.data_dir = data_dir
        self.snapshot_interval = snapshot_interval
        self.db: Optional[DocumentEngine] = None
        self.clients: Set[ServerConnection] = set()
        self._lock = asyncio.Lock()
        self._initialized = False
        self._dirty = False
        self._snapshot_task: Optional[asyncio.Task] = None

    @property
    def snapshot_path(self) -> str:
        return os.path.join(self.data_dir, 'snapshot.json')

    async def initialize(self, load_snapshot: bool = True):
        if self._initialized:
            return

        os.makedirs(self.data_dir, exist_ok=True)

        self.db = create_collections(DocumentEngine())
        if load_snapshot:
            self.db.load(self.snapshot_path)

        self._initialized = True
        logger.info("Database initialized successfully")

    async def handle_request(self, request: Dict[str, Any]) -> Dict[str, Any]:
        action = request.get('action')
        data = request.get('data', {})
        request_id = request.get('request_id')

        db = self.db
        if db is None:
            return {
                'request_id': request_id,
                'success': False,
                'error': 'Database not initialized'
            }

        try:
            async with self._lock:
                if action == 'ping':
                    result = {'pong': True, 'timestamp': datetime.now(timezone.utc).isoformat()}

                elif action == 'insert':
                    row_id = await db.insert(data.get('table'), data.get('row'))
                    self._dirty = True
                    result = {'row_id': row_id}

                elif action == 'update':
                    count = await db.update(data.get('table'), data.get('data'), data.get('conditions', {}))
                    self._dirty = self._dirty or count > 0
                    result = {'updated': count}

                elif action == 'increment':
                    row = await db.increment(
                        data.get('table'),
                        data.get('conditions', {}),
                        data.get('column'),
                        data.get('amount', 1),
                        data.get('defaults')
                    )
                    self._dirty = True
                    result = {'row': row}

                elif action == 'delete':
                    count = await db.delete(data.get('table'), data.get('conditions', {}))
                    self._dirty = self._dirty or count > 0
                    result = {'deleted': count}

                elif action == 'select':
                    rows = await db.select(
                        data.get('table'),
                        conditions=data.get('conditions', {}),
                        order_by=data.get('order_by'),
                        limit=data.get('limit'),
                        offset=data.get('offset', 0)
                    )
                    result = {'rows': rows, 'count': len(rows)}

                elif action == 'find_one':
                    row = await db.find_one(data.get('table'), data.get('conditions', {}))
                    result = {'row': row}

                elif action == 'count':
                    count = await db.count(data.get('table'), data.get('conditions', {}))
                    result = {'count': count}

                elif action == 'group_count':
                    groups = await db.group_count(
                        data.get('table'),
                        data.get('column'),
                        data.get('conditions', {})
                    )
                    result = {'groups': groups}

                elif action == 'list_tables':
                    result = {'tables': db.list_tables()}

                elif action == 'stats':
                    result = {'stats': db.stats()}

                else:
                    result = {'error': f'Unknown action: {action}'}

            return {
                'request_id': request_id,
                'success': 'error' not in result,
                **result
            }

        except DuplicateKeyError as e:
            return {
                'request_id': request_id,
                'success': False,
                'error': str(e),
                'error_type': 'duplicate_key'
            }
        except DatabaseError as e:
            return {
                'request_id': request_id,
                'success': False,
                'error': str(e)
            }
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Error handling request: {e}", exc_info=True)
            return {
                'request_id': request_id,
                'success': False,
                'error': f"Malformed '{action}' request: {e}"
            }

    async def handler(self, websocket: ServerConnection) -> None:
        self.clients.add(websocket)
        client_id = id(websocket)
        logger.info(f"Client connected: {client_id}")

        try:
            async for message in websocket:
                if isinstance(message, bytes):
                    message = message.decode('utf-8')
                try:
                    request = codec.loads(message)
                except ValueError:
                    await websocket.send(codec.dumps({
                        'success': False,
                        'error': 'Invalid JSON'
                    }))
                    continue

                response = await self.handle_request(request)
                await websocket.send(codec.dumps(response))
        except websockets.exceptions.ConnectionClosed:
            logger.info(f"Client disconnected: {client_id}")
        finally:
            self.clients.discard(websocket)

    def process_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        """Handle HTTP requests gracefully (health checks)"""
        upgrade = request.headers.get("Upgrade", "").lower()

        if upgrade != "websocket":
            if request.path == "/health" or request.path == "/":
                return connection.respond(HTTPStatus.OK, "OK\n")
            return connection.respond(HTTPStatus.BAD_REQUEST, "WebSocket endpoint only\n")
        return None

    async def save_snapshot(self):
        if self.db is None:
            return
        async with self._lock:
            self.db.save(self.snapshot_path)
            self._dirty = False
        logger.debug(f"Snapshot written to {self.snapshot_path}")

    async def _snapshot_loop(self):
        while True:
            await asyncio.sleep(self.snapshot_interval)
            if self._dirty:
                try:
                    await self.save_snapshot()
                except OSError as e:
                    logger.error(f"Failed to write snapshot: {e}")

    async def start(self) -> None:
        await self.initialize()

        logger.info(f"Starting WebSocket Database API on {self.host}:{self.port}")
        self._snapshot_task = asyncio.create_task(self._snapshot_loop())

        async with websockets.serve(
            self.handler,
            self.host,
            self.port,
            ping_interval=30,
            ping_timeout=10,
            max_size=10 * 1024 * 1024,
            process_request=self.process_request
        ):
            logger.info(f"Database API Server running on ws://{self.host}:{self.port}")
            await asyncio.Future()

    async def close(self):
        logger.info("Shutting down Database API Server...")

        if self._snapshot_task:
            self._snapshot_task.cancel()

        for client in list(self.clients):
            await client.close()

        await self.save_snapshot()


async def main():
    load_dotenv()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    host = os.getenv('DB_API_HOST', '0.0.0.0')
    port = int(os.getenv('DB_API_PORT', '8080'))
    data_dir = os.getenv('DB_DATA_DIR', 'data/db')

    server = DatabaseAPIServer(host=host, port=port, data_dir=data_dir)

    try:
        await server.start()
    finally:
        await server.close()


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
