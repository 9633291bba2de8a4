from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import discord
import pytest

from distrack.errors import InvalidInput
from distrack.models.audit import AuditAction, AuditLogEntry
from distrack.models.ticket import Ticket
from distrack.services.reporting import ReportingService, TicketStats, activity_stats, period_start
from distrack.utils.helpers import utcnow

GUILD = 1


@pytest.fixture()
def reporting(db):
    return ReportingService(db)


@pytest.mark.asyncio
async def test_empty_guild(reporting):
    stats = await reporting.moderation_stats(GUILD, 'all')

    assert stats.actions.total_actions == 0
    assert stats.actions.action_counts == {}
    assert stats.actions.moderator_counts == {}
    assert not stats.has_data

    tickets = await reporting.ticket_stats(GUILD)
    assert tickets.total == 0
    assert tickets.open_rate == 0
    assert tickets.average_resolution is None
    assert tickets.daily_trend == [0] * 7


@pytest.mark.asyncio
async def test_action_counts_respect_period(reporting, db):
    for moderator, action in [(10, AuditAction.BAN), (10, AuditAction.KICK), (20, AuditAction.BAN)]:
        await db.audit.log_action(GUILD, action, moderator, 99)
    await db.audit.create(AuditLogEntry(
        guild_id=GUILD, action=AuditAction.KICK, moderator_id=30,
        created_at=utcnow() - timedelta(days=40)
    ))
    await db.audit.log_action(2, AuditAction.BAN, 10, 99)

    recent = await reporting.moderation_stats(GUILD, '30d')
    everything = await reporting.moderation_stats(GUILD, 'all')

    assert recent.actions.total_actions == 3
    assert recent.actions.action_counts == {'ban': 2, 'kick': 1}
    assert recent.top_moderators[0] == (10, 2)
    assert everything.actions.total_actions == 4


@pytest.mark.asyncio
async def test_ticket_stats(reporting, db):
    now = utcnow()
    for n in range(4):
        ticket = Ticket(ticket_id=f"ticket-{n:04d}", guild_id=GUILD, channel_id=n, user_id=5 if n else 6,
                        created_at=now - timedelta(days=n))
        if n >= 2:
            ticket.close(closed_by=1)
            ticket.closed_at = ticket.created_at + timedelta(hours=n)
        await db.tickets.create(ticket)

    stats = await reporting.ticket_stats(GUILD, now=now)

    assert stats.total == 4
    assert stats.open == 2
    assert stats.closed == 2
    assert stats.open_rate == 50
    assert stats.this_week == 4
    assert stats.average_resolution == int(timedelta(hours=2.5).total_seconds())
    assert stats.top_creators[0] == (5, 3)
    assert sum(stats.daily_trend) == 4
    assert stats.daily_trend[-1] == 1


def test_period_start():
    now = utcnow()

    assert period_start('7d', now) == now - timedelta(days=7)
    assert period_start('all', now) is None
    with pytest.raises(InvalidInput):
        period_start('1y', now)


def test_trend_emoji():
    assert TicketStats.trend_emoji(0) == "⚫"
    assert TicketStats.trend_emoji(2) == "🟢"
    assert TicketStats.trend_emoji(5) == "🟡"
    assert TicketStats.trend_emoji(6) == "🔴"


@pytest.mark.asyncio
async def test_cleanup_old_logs(reporting, db):
    await db.audit.create(AuditLogEntry(
        guild_id=GUILD, action=AuditAction.KICK, moderator_id=1,
        created_at=utcnow() - timedelta(days=100)
    ))
    await db.audit.log_action(GUILD, AuditAction.KICK, 1)

    assert await reporting.cleanup_old_logs(90) == 1
    assert await db.audit.count(GUILD) == 1


def test_action_label():
    assert ReportingService.action_label('ban').endswith(AuditAction.BAN.display_name)
    assert ReportingService.action_label('mystery') == "Mystery"


def presence_member(status, *activity_types, bot=False):
    member = MagicMock()
    member.bot = bot
    member.status = status
    member.activities = [MagicMock(type=kind) for kind in activity_types]
    return member


def voice_channel(name, members):
    channel = MagicMock()
    channel.name = name
    channel.members = [MagicMock() for _ in range(members)]
    return channel


def test_activity_stats_counts_humans_and_voice():
    guild = MagicMock()
    guild.members = [
        presence_member(discord.Status.online, discord.ActivityType.playing, discord.ActivityType.custom),
        presence_member(discord.Status.idle, discord.ActivityType.listening),
        presence_member(discord.Status.dnd),
        presence_member(discord.Status.invisible, discord.ActivityType.unknown),
        presence_member(discord.Status.offline),
        presence_member(discord.Status.online, discord.ActivityType.playing, bot=True),
    ]
    guild.voice_channels = [voice_channel("Lounge", 2), voice_channel("Empty", 0), voice_channel("Gaming", 5)]

    stats = activity_stats(guild)

    assert stats.presence == {'online': 1, 'idle': 1, 'dnd': 1, 'offline': 2}
    assert stats.activities['playing'] == 1
    assert stats.activities['custom'] == 1
    assert stats.activities['listening'] == 1
    assert stats.total_activities == 3
    assert stats.voice_members == 7
    assert stats.busiest_channels == [("Gaming", 5), ("Lounge", 2)]


def test_activity_stats_limits_busiest_channels():
    guild = MagicMock()
    guild.members = []
    guild.voice_channels = [voice_channel(f"vc-{i}", i) for i in range(1, 8)]

    stats = activity_stats(guild)

    assert stats.total_activities == 0
    assert len(stats.voice_channels) == 7
    assert [name for name, _ in stats.busiest_channels] == ["vc-7", "vc-6", "vc-5", "vc-4", "vc-3"]
