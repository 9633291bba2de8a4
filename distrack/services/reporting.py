"""
Reporting Engine
Read-only aggregation over the audit log, warnings and tickets
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import discord

from distrack.config import AUDIT_RETENTION_DAYS
from distrack.db_manager import DatabaseManager
from distrack.errors import InvalidInput
from distrack.models.audit import AuditAction
from distrack.models.ticket import TicketStatus
from distrack.utils.helpers import utcnow

logger = logging.getLogger('distrack.reporting')

PERIODS: Dict[str, Optional[timedelta]] = {
    '24h': timedelta(hours=24),
    '7d': timedelta(days=7),
    '30d': timedelta(days=30),
    'all': None,
}

PERIOD_LABELS = {
    '24h': 'Last 24 Hours',
    '7d': 'Last 7 Days',
    '30d': 'Last 30 Days',
    'all': 'All Time',
}

TREND_DAYS = 7
RESOLUTION_SAMPLE = 10
BUSIEST_VOICE_CHANNELS = 5

PRESENCE_STATES = ('online', 'idle', 'dnd', 'offline')
ACTIVITY_TYPES = ('playing', 'streaming', 'listening', 'watching', 'custom', 'competing')


def period_start(period: str = '30d', now: Optional[datetime] = None) -> Optional[datetime]:
    if period not in PERIODS:
        raise InvalidInput(f"Unknown period `{period}`. Choose one of: {', '.join(PERIODS)}.")
    delta = PERIODS[period]
    if delta is None:
        return None
    return (now or utcnow()) - delta


def _top(counts: Dict, n: int) -> List[Tuple]:
    return sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:n]


@dataclass
class ActionStats:
    total_actions: int
    action_counts: Dict[str, int]
    moderator_counts: Dict[int, int]
    period: str


@dataclass
class ModerationStats:
    actions: ActionStats
    total_warnings: int = 0
    active_warnings: int = 0
    severity_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return self.actions.total_actions > 0 or self.total_warnings > 0

    @property
    def top_actions(self) -> List[Tuple[str, int]]:
        return _top(self.actions.action_counts, 8)

    @property
    def top_moderators(self) -> List[Tuple[int, int]]:
        return _top(self.actions.moderator_counts, 5)


@dataclass
class TicketStats:
    total: int = 0
    open: int = 0
    closed: int = 0
    archived: int = 0
    today: int = 0
    this_week: int = 0
    this_month: int = 0
    average_resolution: Optional[int] = None
    top_creators: List[Tuple[int, int]] = field(default_factory=list)
    daily_trend: List[int] = field(default_factory=list)

    @property
    def open_rate(self) -> int:
        if self.total == 0:
            return 0
        return round(self.open / self.total * 100)

    @property
    def daily_average(self) -> int:
        if not self.daily_trend:
            return 0
        return round(sum(self.daily_trend) / len(self.daily_trend))

    @staticmethod
    def trend_emoji(count: int) -> str:
        if count == 0:
            return "⚫"
        if count <= 2:
            return "🟢"
        if count <= 5:
            return "🟡"
        return "🔴"


@dataclass
class ActivityStats:
    presence: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(PRESENCE_STATES, 0))
    activities: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(ACTIVITY_TYPES, 0))
    voice_members: int = 0
    voice_channels: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def total_activities(self) -> int:
        return sum(self.activities.values())

    @property
    def busiest_channels(self) -> List[Tuple[str, int]]:
        return self.voice_channels[:BUSIEST_VOICE_CHANNELS]


def activity_stats(guild: discord.Guild) -> ActivityStats:
    """Live presence, activity and voice counts for ``guild``.

    Bots are skipped. Any status outside online, idle and dnd counts as
    offline, and activities of an unknown type are ignored.
    """
    stats = ActivityStats()

    for member in guild.members:
        if member.bot:
            continue

        status = str(member.status)
        stats.presence[status if status in stats.presence else 'offline'] += 1

        for activity in member.activities:
            kind = getattr(activity.type, 'name', None)
            if kind in stats.activities:
                stats.activities[kind] += 1

    for channel in guild.voice_channels:
        count = len(channel.members)
        if count:
            stats.voice_members += count
            stats.voice_channels.append((channel.name, count))

    stats.voice_channels.sort(key=lambda item: item[1], reverse=True)
    return stats


class ReportingService:
    def __init__(self, db: DatabaseManager):
        self.db = db

    async def action_stats(self, guild_id: int, since: Optional[datetime] = None) -> ActionStats:
        action_counts = await self.db.audit.group_count(guild_id, 'action', since)
        moderator_counts = await self.db.audit.group_count(guild_id, 'moderator_id', since)

        return ActionStats(
            total_actions=sum(action_counts.values()),
            action_counts=action_counts,
            moderator_counts=moderator_counts,
            period=f"Since {since.isoformat()}" if since else "All time"
        )

    async def moderation_stats(self, guild_id: int, period: str = '30d') -> ModerationStats:
        since = period_start(period)
        actions = await self.action_stats(guild_id, since)

        total_warnings = await self.db.warnings.count(guild_id, since=since)
        active_warnings = await self.db.warnings.count(guild_id, active=True, since=since)
        severity_counts = await self.db.warnings.group_count(guild_id, 'severity', since)

        return ModerationStats(
            actions=actions,
            total_warnings=total_warnings,
            active_warnings=active_warnings,
            severity_counts=severity_counts
        )

    async def ticket_stats(self, guild_id: int, now: Optional[datetime] = None) -> TicketStats:
        now = now or utcnow()
        tickets = self.db.tickets
        stats = TicketStats()

        by_status = await tickets.group_count(guild_id, 'status')
        stats.open = by_status.get(TicketStatus.OPEN.value, 0)
        stats.closed = by_status.get(TicketStatus.CLOSED.value, 0)
        stats.archived = by_status.get(TicketStatus.ARCHIVED.value, 0)
        stats.total = stats.open + stats.closed + stats.archived

        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        stats.today = await tickets.count(guild_id, since=today_start)
        stats.this_week = await tickets.count(guild_id, since=now - timedelta(days=7))
        stats.this_month = await tickets.count(guild_id, since=now - timedelta(days=30))

        recent = await tickets.find_recent_closed(guild_id, limit=RESOLUTION_SAMPLE)
        durations = [t.resolution_time for t in recent if t.resolution_time is not None]
        if durations:
            stats.average_resolution = sum(durations) // len(durations)

        creators = await tickets.group_count(guild_id, 'user_id')
        stats.top_creators = _top(creators, 5)

        for days_ago in range(TREND_DAYS - 1, -1, -1):
            start = today_start - timedelta(days=days_ago)
            stats.daily_trend.append(
                await tickets.count(guild_id, since=start, until=start + timedelta(days=1))
            )

        return stats

    async def cleanup_old_logs(self, days: int = AUDIT_RETENTION_DAYS) -> int:
        removed = await self.db.audit.delete_older_than(days)
        if removed:
            logger.info(f"Removed {removed} audit log entries older than {days} days")
        return removed

    @staticmethod
    def action_label(value: str) -> str:
        try:
            action = AuditAction(value)
        except ValueError:
            return value.capitalize()
        return f"{action.emoji} {action.display_name}"
