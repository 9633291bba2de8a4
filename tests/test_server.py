from __future__ import annotations

import os

import pytest
import pytest_asyncio

from database_api.server import DatabaseAPIServer
from distrack.utils.helpers import utcnow


@pytest_asyncio.fixture()
async def server(tmp_path):
    server = DatabaseAPIServer(data_dir=str(tmp_path / "db"))
    await server.initialize(load_snapshot=False)
    return server


async def call(server, action, **data):
    return await server.handle_request({'action': action, 'data': data, 'request_id': 'r1'})


@pytest.mark.asyncio
async def test_ping(server):
    response = await call(server, 'ping')

    assert response['success']
    assert response['pong']
    assert response['request_id'] == 'r1'


@pytest.mark.asyncio
async def test_insert_and_duplicate(server):
    row = {'guild_id': 1, 'warning_id': 'warn-0001', 'created_at': utcnow()}

    first = await call(server, 'insert', table='warnings', row=row)
    second = await call(server, 'insert', table='warnings', row=row)

    assert first['success'] and first['row_id'] == 1
    assert not second['success']
    assert second['error_type'] == 'duplicate_key'


@pytest.mark.asyncio
async def test_increment_and_select(server):
    for _ in range(3):
        response = await call(server, 'increment', table='guild_configs', conditions={'guild_id': 7},
                              column='ticket_counter', defaults={'warning_counter': 0})

    assert response['row']['ticket_counter'] == 3
    found = await call(server, 'select', table='guild_configs', conditions={'guild_id': 7})
    assert found['count'] == 1


@pytest.mark.asyncio
async def test_unknown_action_and_table(server):
    unknown = await call(server, 'drop_everything')
    missing = await call(server, 'count', table='nope')

    assert not unknown['success']
    assert 'Unknown action' in unknown['error']
    assert not missing['success']


@pytest.mark.asyncio
async def test_snapshot_persists(server):
    await call(server, 'insert', table='audit_logs', row={'guild_id': 1, 'action': 'ban'})
    await server.save_snapshot()
    assert os.path.exists(server.snapshot_path)

    restored = DatabaseAPIServer(data_dir=server.data_dir)
    await restored.initialize()
    response = await call(restored, 'count', table='audit_logs', conditions={'guild_id': 1})
    assert response['count'] == 1
