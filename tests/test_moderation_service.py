from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from distrack.errors import (
    AlreadyBanned,
    AlreadyInState,
    ForbiddenTarget,
    InvalidDuration,
    InvalidInput,
    InvalidState,
    NotFound,
    PermissionDenied,
)
from distrack.models.audit import AuditAction, TargetType
from distrack.models.warning import Severity
from distrack.services.moderation import ModerationService, PurgeFilters, filter_purge_candidates
from distrack.utils.helpers import utcnow

from conftest import AsyncIter, RoleStub, make_member


def not_found():
    return discord.NotFound(MagicMock(status=404, reason="Not Found"), "Unknown Ban")


def make_message(bot=False, age=timedelta(minutes=5), content="hello", now=None):
    message = MagicMock()
    message.author = MagicMock(id=500 if bot else 600, bot=bot)
    message.content = content
    message.embeds = []
    message.attachments = []
    message.pinned = False
    message.created_at = (now or utcnow()) - age
    message.delete = AsyncMock()
    return message


@pytest.fixture()
def service(db, permissions):
    return ModerationService(db, permissions)


@pytest.fixture()
def channel(guild):
    channel = MagicMock()
    channel.id = 700000000000000000
    channel.name = "general"
    channel.guild = guild
    channel.permissions_for = MagicMock(return_value=MagicMock(manage_messages=True, read_message_history=True))
    channel.delete_messages = AsyncMock()
    return channel


@pytest.mark.asyncio
async def test_kick_dms_then_kicks_and_audits(service, db, guild, admin):
    member = make_member()

    result = await service.kick(guild, admin, member, "rude")

    assert result.dm_sent
    member.send.assert_awaited_once()
    member.kick.assert_awaited_once_with(reason=f"rude | Kicked by {admin}")
    entries = await db.audit.find(guild.id, action=AuditAction.KICK)
    assert entries[0].target_id == member.id
    assert entries[0].reason == "rude"


@pytest.mark.asyncio
async def test_kick_survives_closed_dms(service, guild, admin):
    member = make_member()
    member.send.side_effect = discord.Forbidden(MagicMock(status=403, reason="Forbidden"), "Cannot send")

    result = await service.kick(guild, admin, member)

    assert not result.dm_sent
    assert result.reason == "No reason provided"
    member.kick.assert_awaited_once()


@pytest.mark.asyncio
async def test_target_rules(service, guild, admin):
    with pytest.raises(PermissionDenied):
        await service.kick(guild, make_member(), make_member())
    with pytest.raises(ForbiddenTarget):
        await service.kick(guild, admin, admin)
    with pytest.raises(ForbiddenTarget):
        await service.kick(guild, admin, guild.me)
    with pytest.raises(ForbiddenTarget):
        await service.kick(guild, admin, make_member(admin=True))


@pytest.mark.asyncio
async def test_role_hierarchy_blocks_kick(service, guild, admin):
    member = MagicMock(spec=discord.Member)
    member.id = 12345
    member.bot = False
    member.guild_permissions = MagicMock(administrator=False)
    member.top_role = RoleStub(20)
    member.kick = AsyncMock()

    with pytest.raises(ForbiddenTarget):
        await service.kick(guild, admin, member)
    member.kick.assert_not_awaited()

    member.top_role = RoleStub(60)
    with pytest.raises(ForbiddenTarget, match="higher than mine"):
        await service.kick(guild, admin, member)


@pytest.mark.asyncio
async def test_ban_already_banned(service, guild, admin):
    guild.fetch_ban = AsyncMock(return_value=MagicMock())

    with pytest.raises(AlreadyBanned):
        await service.ban(guild, admin, make_member(), "spam")
    guild.ban.assert_not_awaited()


@pytest.mark.asyncio
async def test_ban_deletes_history(service, db, guild, admin):
    guild.fetch_ban = AsyncMock(side_effect=not_found())
    user = make_member()

    result = await service.ban(guild, admin, user, "spam", delete_days=2)

    guild.ban.assert_awaited_once_with(user, reason=f"spam | Banned by {admin}", delete_message_seconds=172800)
    assert result.details == {'deleteDays': 2}
    assert not result.dm_sent
    assert await db.audit.count(guild.id, action=AuditAction.BAN) == 1


@pytest.mark.asyncio
async def test_ban_rejects_delete_days(service, guild, admin):
    with pytest.raises(InvalidInput):
        await service.ban(guild, admin, make_member(), delete_days=8)


@pytest.mark.asyncio
async def test_unban(service, db, guild, admin):
    with pytest.raises(InvalidInput):
        await service.unban(guild, admin, "not-an-id")

    guild.fetch_ban = AsyncMock(side_effect=not_found())
    with pytest.raises(NotFound):
        await service.unban(guild, admin, "123456789012345678")

    guild.fetch_ban = AsyncMock(return_value=MagicMock())
    result = await service.unban(guild, admin, "123456789012345678", "appeal")
    assert result.target_id == 123456789012345678
    guild.unban.assert_awaited_once()
    assert await db.audit.count(guild.id, action=AuditAction.UNBAN) == 1


@pytest.mark.asyncio
async def test_timeout(service, db, guild, admin):
    member = make_member()

    result = await service.timeout(guild, admin, member, "10m", "spam")

    member.timeout.assert_awaited_once_with(timedelta(minutes=10), reason=f"spam | Timed out by {admin}")
    assert result.details['duration'] == "10m 0s"
    entries = await db.audit.find(guild.id, action=AuditAction.TIMEOUT)
    assert entries[0].metadata == {'duration': 600_000}


@pytest.mark.asyncio
@pytest.mark.parametrize("duration", ["abc", "40d", "0m"])
async def test_timeout_rejects_bad_durations(service, guild, admin, duration):
    member = make_member()

    with pytest.raises(InvalidDuration):
        await service.timeout(guild, admin, member, duration)
    member.timeout.assert_not_awaited()


@pytest.mark.asyncio
async def test_remove_timeout(service, guild, admin):
    member = make_member()
    with pytest.raises(InvalidState):
        await service.remove_timeout(guild, admin, member)

    member.is_timed_out.return_value = True
    await service.remove_timeout(guild, admin, member)
    member.timeout.assert_awaited_once_with(None, reason=f"No reason provided | Timeout removed by {admin}")


@pytest.mark.asyncio
async def test_warn_add_numbers_warnings(service, db, guild, admin):
    member = make_member()

    first = await service.warn_add(guild, admin, member, "spam")
    second = await service.warn_add(guild, admin, member, "more spam", Severity.HIGH, expires="1M")

    assert first.warning.warning_id == "warn-0001"
    assert second.warning.warning_id == "warn-0002"
    assert second.warning.expires_at is not None
    assert second.details['severity'] == "high"
    assert await db.warnings.count(guild.id, user_id=member.id, active=True) == 2


@pytest.mark.asyncio
async def test_warn_add_rejects(service, guild, admin):
    with pytest.raises(InvalidInput):
        await service.warn_add(guild, admin, make_member(), "   ")
    with pytest.raises(ForbiddenTarget):
        await service.warn_add(guild, admin, make_member(bot=True), "spam")
    with pytest.raises(ForbiddenTarget):
        await service.warn_add(guild, admin, admin, "spam")
    with pytest.raises(InvalidDuration):
        await service.warn_add(guild, admin, make_member(), "spam", expires="forever")


@pytest.mark.asyncio
async def test_warn_remove(service, db, guild, admin):
    member = make_member()
    added = await service.warn_add(guild, admin, member, "spam")

    await service.warn_remove(guild, admin, added.warning.warning_id, "appeal")

    stored = await service.warn_info(guild.id, added.warning.warning_id)
    assert not stored.active
    assert stored.removed_reason == "appeal"
    with pytest.raises(AlreadyInState):
        await service.warn_remove(guild, admin, added.warning.warning_id)
    with pytest.raises(NotFound):
        await service.warn_remove(guild, admin, "warn-9999")


@pytest.mark.asyncio
async def test_warn_clear_only_touches_target(service, db, guild, admin):
    target = make_member()
    bystander = make_member()
    await service.warn_add(guild, admin, target, "one")
    await service.warn_add(guild, admin, target, "two")
    await service.warn_add(guild, admin, bystander, "three")

    result = await service.warn_clear(guild, admin, target)

    assert result.details == {'clearedCount': 2}
    assert await db.warnings.count(guild.id, user_id=target.id, active=True) == 0
    assert await db.warnings.count(guild.id, user_id=bystander.id, active=True) == 1
    with pytest.raises(AlreadyInState):
        await service.warn_clear(guild, admin, target)


@pytest.mark.asyncio
async def test_warn_list(service, guild, admin):
    member = make_member()
    first = await service.warn_add(guild, admin, member, "one")
    await service.warn_add(guild, admin, member, "two")
    await service.warn_remove(guild, admin, first.warning.warning_id)

    active = await service.warn_list(guild.id, member.id)
    everything = await service.warn_list(guild.id, member.id, active_only=False)

    assert [w.reason for w in active] == ["two"]
    assert len(everything) == 2


def test_purge_filters_are_anded():
    now = utcnow()
    messages = [make_message(bot=True, now=now) for _ in range(3)] + [make_message(now=now) for _ in range(3)]
    messages[0].content = "buy now"

    plan = filter_purge_candidates(messages, PurgeFilters(bots_only=True, contains="BUY"), 10, now)

    assert plan.deletable == [messages[0]]
    assert plan.undeletable_count == 0


def test_purge_filter_window_validation():
    now = utcnow()
    filters = PurgeFilters.from_options(older_than="1h", newer_than="1d", now=now)
    filters.validate()
    assert filters.matches(make_message(age=timedelta(hours=3), now=now))
    assert not filters.matches(make_message(age=timedelta(minutes=3), now=now))

    with pytest.raises(InvalidInput):
        PurgeFilters.from_options(older_than="1d", newer_than="1h", now=now).validate()
    with pytest.raises(InvalidDuration):
        PurgeFilters.from_options(older_than="soon")


@pytest.mark.asyncio
async def test_purge_bots_only_skips_old_messages(service, db, guild, admin, channel):
    now = utcnow()
    bots = [make_message(bot=True, now=now) for _ in range(25)]
    bots += [make_message(bot=True, age=timedelta(days=20), now=now) for _ in range(5)]
    humans = [make_message(now=now) for _ in range(20)]
    channel.history = MagicMock(return_value=AsyncIter(bots + humans))

    result = await service.purge(channel, admin, 50, PurgeFilters(bots_only=True))

    assert result.deleted == 25
    assert result.undeletable == 5
    deleted = channel.delete_messages.await_args.args[0]
    assert all(m.author.bot for m in deleted)
    entries = await db.audit.find(guild.id, action=AuditAction.PURGE)
    assert entries[0].target_type == TargetType.CHANNEL
    assert entries[0].details['undeletable'] == 5


@pytest.mark.asyncio
async def test_purge_single_message_and_empty(service, guild, admin, channel):
    message = make_message()
    channel.history = MagicMock(return_value=AsyncIter([message]))

    result = await service.purge(channel, admin, 5)
    assert result.deleted == 1
    message.delete.assert_awaited_once()

    channel.history = MagicMock(return_value=AsyncIter([]))
    result = await service.purge(channel, admin, 5)
    assert result.deleted == 0
    channel.delete_messages.assert_not_awaited()


@pytest.mark.asyncio
async def test_purge_preconditions(service, guild, admin, channel):
    with pytest.raises(InvalidInput):
        await service.purge(channel, admin, 101)

    channel.permissions_for.return_value = MagicMock(manage_messages=False, read_message_history=True)
    with pytest.raises(PermissionDenied):
        await service.purge(channel, admin, 10)


def forbidden():
    return discord.Forbidden(MagicMock(status=403, reason="Forbidden"), "Missing Permissions")


@pytest.mark.asyncio
async def test_ban_list_lookup_without_permission(service, db, guild, admin):
    guild.fetch_ban = AsyncMock(side_effect=forbidden())

    with pytest.raises(PermissionDenied):
        await service.ban(guild, admin, make_member(), "spam")
    with pytest.raises(PermissionDenied):
        await service.unban(guild, admin, "123456789012345678")

    guild.ban.assert_not_awaited()
    guild.unban.assert_not_awaited()
    assert await db.audit.count(guild.id) == 0
