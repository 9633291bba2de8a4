from __future__ import annotations

import itertools
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock

import pytest

from distrack.database import LocalDatabaseClient
from distrack.db_manager import DatabaseManager
from distrack.utils.permissions import PermissionChecker

GUILD_ID = 111111111111111111
BOT_ID = 999999999999999999
OWNER_ID = 100000000000000001


@dataclass(order=True)
class RoleStub:
    position: int


class AsyncIter:
    def __init__(self, items):
        self._items = list(items)

    def __aiter__(self):
        self._iter = iter(self._items)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


_ids = itertools.count(200000000000000000)


def make_member(admin: bool = False, position: int = 1, bot: bool = False, member_id: int | None = None):
    member = MagicMock()
    member.id = member_id or next(_ids)
    member.bot = bot
    member.mention = f"<@{member.id}>"
    member.guild_permissions = MagicMock(administrator=admin)
    member.top_role = RoleStub(position)
    member.send = AsyncMock()
    member.kick = AsyncMock()
    member.timeout = AsyncMock()
    member.add_roles = AsyncMock()
    member.is_timed_out = MagicMock(return_value=False)
    return member


@pytest.fixture()
def db():
    return DatabaseManager(client=LocalDatabaseClient())


@pytest.fixture()
def permissions():
    return PermissionChecker()


@pytest.fixture()
def admin():
    return make_member(admin=True, position=10)


@pytest.fixture()
def guild(admin):
    guild = MagicMock()
    guild.id = GUILD_ID
    guild.name = "Test Guild"
    guild.owner_id = OWNER_ID
    guild.me = make_member(admin=True, position=50, bot=True, member_id=BOT_ID)
    guild.roles = []
    guild.get_role = MagicMock(return_value=None)
    guild.get_channel = MagicMock(return_value=None)
    guild.get_member = MagicMock(return_value=None)
    guild.fetch_ban = AsyncMock()
    guild.ban = AsyncMock()
    guild.unban = AsyncMock()

    channel_ids = itertools.count(300000000000000000)

    def new_channel(**kwargs):
        channel = MagicMock()
        channel.id = next(channel_ids)
        channel.name = kwargs.get('name')
        channel.guild = guild
        channel.mention = f"<#{channel.id}>"
        channel.set_permissions = AsyncMock()
        channel.edit = AsyncMock()
        channel.delete = AsyncMock()
        channel.send = AsyncMock()
        return channel

    category = MagicMock()
    category.id = 400000000000000000

    guild.create_text_channel = AsyncMock(side_effect=new_channel)
    guild.create_category = AsyncMock(return_value=category)

    admin.guild = guild
    return guild
