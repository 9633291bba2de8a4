"""
Moderation Action Processor
Validates and executes kick/ban/timeout/warn/purge actions against policy
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Union

import discord

from distrack.config import BULK_DELETE_MAX_AGE, PURGE_MAX, WARNING_REASON_MAX
from distrack.db_manager import DatabaseManager
from distrack.errors import (
    AlreadyBanned,
    AlreadyInState,
    ForbiddenTarget,
    InvalidDuration,
    InvalidInput,
    InvalidState,
    NotFound,
    PermissionDenied,
    notify_best_effort,
    translate_discord_errors,
)
from distrack.models.audit import AuditAction, AuditLogEntry, TargetType
from distrack.models.warning import Severity, Warning
from distrack.utils.embed_builder import EmbedBuilder
from distrack.utils.helpers import (
    format_duration,
    generate_warning_id,
    is_snowflake,
    is_valid_timeout_duration,
    parse_duration,
    parse_extended_duration,
    utcnow,
)
from distrack.utils.permissions import PermissionChecker

logger = logging.getLogger('distrack.moderation')

UserLike = Union[discord.Member, discord.User]


@dataclass
class ModerationResult:
    action: AuditAction
    target_id: int
    reason: str
    dm_sent: bool = False
    details: Dict[str, Any] = field(default_factory=dict)
    warning: Optional[Warning] = None
    entry: Optional[AuditLogEntry] = None


@dataclass
class PurgeFilters:
    user_id: Optional[int] = None
    contains: Optional[str] = None
    bots_only: bool = False
    embeds_only: bool = False
    attachments_only: bool = False
    pins_only: bool = False
    older_than: Optional[datetime] = None
    newer_than: Optional[datetime] = None

    @classmethod
    def from_options(
        cls,
        user_id: Optional[int] = None,
        contains: Optional[str] = None,
        bots_only: bool = False,
        embeds_only: bool = False,
        attachments_only: bool = False,
        pins_only: bool = False,
        older_than: Optional[str] = None,
        newer_than: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> 'PurgeFilters':
        now = now or utcnow()
        return cls(
            user_id=user_id,
            contains=contains or None,
            bots_only=bots_only,
            embeds_only=embeds_only,
            attachments_only=attachments_only,
            pins_only=pins_only,
            older_than=cls._cutoff(older_than, 'older-than', now),
            newer_than=cls._cutoff(newer_than, 'newer-than', now)
        )

    @staticmethod
    def _cutoff(value: Optional[str], name: str, now: datetime) -> Optional[datetime]:
        if not value:
            return None
        ms = parse_duration(value)
        if not ms:
            raise InvalidDuration(f'Invalid "{name}" duration format. Use formats like: 1h, 30m, 2d')
        return now - timedelta(milliseconds=ms)

    def validate(self):
        if self.older_than and self.newer_than and self.older_than <= self.newer_than:
            raise InvalidInput('The "older-than" date must be more recent than the "newer-than" date.')

    def matches(self, message: discord.Message) -> bool:
        if self.user_id and message.author.id != self.user_id:
            return False
        if self.contains and self.contains.lower() not in (message.content or '').lower():
            return False
        if self.bots_only and not message.author.bot:
            return False
        if self.embeds_only and not message.embeds:
            return False
        if self.attachments_only and not message.attachments:
            return False
        if self.pins_only and not message.pinned:
            return False
        if self.older_than and not message.created_at < self.older_than:
            return False
        if self.newer_than and not message.created_at > self.newer_than:
            return False
        return True

    def describe(self) -> Dict[str, Any]:
        return {
            'user': self.user_id,
            'content': self.contains,
            'botsOnly': self.bots_only,
            'embedsOnly': self.embeds_only,
            'attachmentsOnly': self.attachments_only,
            'pinsOnly': self.pins_only,
            'olderThan': self.older_than,
            'newerThan': self.newer_than
        }


@dataclass
class PurgePlan:
    deletable: List[discord.Message]
    undeletable_count: int


@dataclass
class PurgeResult:
    requested: int
    deleted: int
    undeletable: int
    filters: PurgeFilters


def filter_purge_candidates(
    messages: Sequence[discord.Message],
    filters: PurgeFilters,
    amount: int,
    now: Optional[datetime] = None
) -> PurgePlan:
    """Apply every filter (AND), split off messages too old to bulk delete, then cap at ``amount``."""
    cutoff = (now or utcnow()) - BULK_DELETE_MAX_AGE
    matched = [m for m in messages if filters.matches(m)]
    deletable = [m for m in matched if m.created_at > cutoff]
    return PurgePlan(deletable=deletable[:amount], undeletable_count=len(matched) - len(deletable))


class ModerationService:
    def __init__(self, db: DatabaseManager, permissions: PermissionChecker):
        self.db = db
        self.permissions = permissions

    def check_target(
        self,
        guild: discord.Guild,
        actor: discord.Member,
        target: UserLike,
        verb: str,
        hierarchy: bool = True
    ):
        self.permissions.require_admin(actor)

        if target.id == guild.me.id:
            raise ForbiddenTarget(f"I cannot {verb} myself.")
        if target.id == actor.id:
            raise ForbiddenTarget(f"You cannot {verb} yourself.")
        if self.permissions.is_protected(target):
            raise ForbiddenTarget(f"You cannot {verb} an administrator.")

        if hierarchy and isinstance(target, discord.Member):
            if not self.permissions.bot_outranks(guild, target):
                raise ForbiddenTarget(f"I cannot {verb} this user. Their role may be higher than mine.")
            if not self.permissions.can_moderate(actor, target):
                raise ForbiddenTarget(f"You cannot {verb} a member whose role is equal to or higher than yours.")

    async def _is_banned(self, guild: discord.Guild, user: discord.abc.Snowflake) -> bool:
        async with translate_discord_errors("check the ban list"):
            try:
                await guild.fetch_ban(user)
            except discord.NotFound:
                return False
        return True

    async def _dm(self, user: UserLike, guild: discord.Guild, title: str, reason: str, extra: str = "") -> bool:
        embed = EmbedBuilder.warning(title, f"**Server:** {guild.name}\n**Reason:** {reason}{extra}")
        return await notify_best_effort(user.send(embed=embed), f"DM to {user.id}")

    async def kick(self, guild: discord.Guild, actor: discord.Member, member: discord.Member,
                   reason: Optional[str] = None) -> ModerationResult:
        reason = reason or "No reason provided"
        self.check_target(guild, actor, member, "kick")

        dm_sent = await self._dm(member, guild, "You have been kicked", reason)
        async with translate_discord_errors("kick this member"):
            await member.kick(reason=f"{reason} | Kicked by {actor}")

        entry = await self.db.audit.log_action(guild.id, AuditAction.KICK, actor.id, member.id, reason=reason)
        logger.info(f"{actor} kicked {member} ({member.id}) in {guild.id}")
        return ModerationResult(AuditAction.KICK, member.id, reason, dm_sent, entry=entry)

    async def ban(self, guild: discord.Guild, actor: discord.Member, user: UserLike,
                  reason: Optional[str] = None, delete_days: int = 0) -> ModerationResult:
        reason = reason or "No reason provided"
        if not 0 <= delete_days <= 7:
            raise InvalidInput("Message history deletion must be between 0 and 7 days.")

        member = guild.get_member(user.id)
        self.check_target(guild, actor, member or user, "ban")

        if await self._is_banned(guild, user):
            raise AlreadyBanned("This user is already banned.")

        dm_sent = False
        if member is not None:
            dm_sent = await self._dm(member, guild, "You have been banned", reason)

        async with translate_discord_errors("ban this user"):
            await guild.ban(
                user,
                reason=f"{reason} | Banned by {actor}",
                delete_message_seconds=delete_days * 86400
            )

        details = {'deleteDays': delete_days}
        entry = await self.db.audit.log_action(guild.id, AuditAction.BAN, actor.id, user.id,
                                               reason=reason, details=details)
        logger.info(f"{actor} banned {user} ({user.id}) in {guild.id}")
        return ModerationResult(AuditAction.BAN, user.id, reason, dm_sent, details, entry=entry)

    async def unban(self, guild: discord.Guild, actor: discord.Member, user_id: str,
                    reason: Optional[str] = None) -> ModerationResult:
        reason = reason or "No reason provided"
        self.permissions.require_admin(actor)

        user_id = user_id.strip()
        if not is_snowflake(user_id):
            raise InvalidInput("Please provide a valid user ID (17-19 digits).")

        target = discord.Object(id=int(user_id))
        if not await self._is_banned(guild, target):
            raise NotFound("This user is not banned.")

        async with translate_discord_errors("unban this user"):
            await guild.unban(target, reason=f"{reason} | Unbanned by {actor}")

        entry = await self.db.audit.log_action(guild.id, AuditAction.UNBAN, actor.id, target.id, reason=reason)
        logger.info(f"{actor} unbanned {target.id} in {guild.id}")
        return ModerationResult(AuditAction.UNBAN, target.id, reason, entry=entry)

    async def timeout(self, guild: discord.Guild, actor: discord.Member, member: discord.Member,
                      duration: str, reason: Optional[str] = None) -> ModerationResult:
        reason = reason or "No reason provided"
        ms = parse_duration(duration)
        if ms is None:
            raise InvalidDuration("Invalid duration format. Use formats like: 10m, 1h, 2d")
        if not is_valid_timeout_duration(ms):
            raise InvalidDuration("Timeout duration must be greater than 0 and no longer than 28 days.")

        self.check_target(guild, actor, member, "timeout")

        expires_at = utcnow() + timedelta(milliseconds=ms)
        async with translate_discord_errors("timeout this member"):
            await member.timeout(timedelta(milliseconds=ms), reason=f"{reason} | Timed out by {actor}")

        dm_sent = await self._dm(member, guild, "You have been timed out", reason,
                                 f"\n**Duration:** {format_duration(ms)}")

        details = {'duration': format_duration(ms), 'expiresAt': expires_at}
        entry = await self.db.audit.log_action(
            guild.id, AuditAction.TIMEOUT, actor.id, member.id,
            reason=reason, details=details, metadata={'duration': ms}
        )
        logger.info(f"{actor} timed out {member} ({member.id}) for {format_duration(ms)}")
        return ModerationResult(AuditAction.TIMEOUT, member.id, reason, dm_sent, details, entry=entry)

    async def remove_timeout(self, guild: discord.Guild, actor: discord.Member, member: discord.Member,
                             reason: Optional[str] = None) -> ModerationResult:
        reason = reason or "No reason provided"
        self.check_target(guild, actor, member, "remove the timeout from")

        if not member.is_timed_out():
            raise InvalidState("This user is not currently timed out.")

        async with translate_discord_errors("remove this timeout"):
            await member.timeout(None, reason=f"{reason} | Timeout removed by {actor}")

        entry = await self.db.audit.log_action(guild.id, AuditAction.REMOVE_TIMEOUT, actor.id, member.id,
                                               reason=reason)
        return ModerationResult(AuditAction.REMOVE_TIMEOUT, member.id, reason, entry=entry)

    async def warn_add(self, guild: discord.Guild, actor: discord.Member, member: UserLike, reason: str,
                       severity: Severity = Severity.MEDIUM, expires: Optional[str] = None) -> ModerationResult:
        self.permissions.require_admin(actor)

        reason = (reason or '').strip()
        if not reason or len(reason) > WARNING_REASON_MAX:
            raise InvalidInput(f"Warning reasons must be between 1 and {WARNING_REASON_MAX} characters.")

        if member.id == actor.id:
            raise ForbiddenTarget("You cannot warn yourself.")
        if member.bot:
            raise ForbiddenTarget("You cannot warn bots.")
        if self.permissions.is_protected(member):
            raise ForbiddenTarget("You cannot warn an administrator.")

        expires_at = None
        if expires:
            ms = parse_extended_duration(expires)
            if not ms:
                raise InvalidDuration("Invalid expiry format. Use formats like: 1d, 1M, 1y")
            expires_at = utcnow() + timedelta(milliseconds=ms)

        number = await self.db.guilds.next_warning_number(guild.id)
        warning = Warning(
            warning_id=generate_warning_id(number),
            guild_id=guild.id,
            user_id=member.id,
            moderator_id=actor.id,
            reason=reason,
            severity=severity,
            expires_at=expires_at
        )
        await self.db.warnings.create(warning)

        details = {
            'warningId': warning.warning_id,
            'severity': severity.value,
            'expiresAt': expires_at
        }
        entry = await self.db.audit.log_action(guild.id, AuditAction.WARN_ADD, actor.id, member.id,
                                               reason=reason, details=details)

        dm_sent = await self._dm(member, guild, "You have received a warning", reason,
                                 f"\n**Severity:** {severity.label}\n**Warning ID:** {warning.warning_id}")

        logger.info(f"{actor} warned {member} ({member.id}): {warning.warning_id}")
        return ModerationResult(AuditAction.WARN_ADD, member.id, reason, dm_sent, details,
                                warning=warning, entry=entry)

    async def warn_remove(self, guild: discord.Guild, actor: discord.Member, warning_id: str,
                          reason: Optional[str] = None) -> ModerationResult:
        reason = reason or "No reason provided"
        self.permissions.require_admin(actor)

        warning = await self.db.warnings.find_one(guild.id, warning_id.strip())
        if warning is None:
            raise NotFound(f"Warning `{warning_id}` was not found.")

        warning.remove(actor.id, reason)
        await self.db.warnings.update(warning)

        details = {'warningId': warning.warning_id, 'originalReason': warning.reason}
        entry = await self.db.audit.log_action(guild.id, AuditAction.WARN_REMOVE, actor.id, warning.user_id,
                                               reason=reason, details=details)
        return ModerationResult(AuditAction.WARN_REMOVE, warning.user_id, reason, details=details,
                                warning=warning, entry=entry)

    async def warn_clear(self, guild: discord.Guild, actor: discord.Member, user: UserLike,
                         reason: Optional[str] = None) -> ModerationResult:
        reason = reason or "No reason provided"
        self.permissions.require_admin(actor)

        active = await self.db.warnings.count(guild.id, user_id=user.id, active=True)
        if active == 0:
            raise AlreadyInState("User has no active warnings to clear.")

        cleared = await self.db.warnings.deactivate_all(guild.id, user.id, actor.id, reason)

        details = {'clearedCount': cleared}
        entry = await self.db.audit.log_action(guild.id, AuditAction.WARN_CLEAR, actor.id, user.id,
                                               reason=reason, details=details)
        return ModerationResult(AuditAction.WARN_CLEAR, user.id, reason, details=details, entry=entry)

    async def warn_list(self, guild_id: int, user_id: int, active_only: bool = True,
                        limit: int = 10) -> List[Warning]:
        return await self.db.warnings.find(guild_id, user_id=user_id, active_only=active_only, limit=limit)

    async def warn_info(self, guild_id: int, warning_id: str) -> Warning:
        warning = await self.db.warnings.find_one(guild_id, warning_id.strip())
        if warning is None:
            raise NotFound(f"Warning `{warning_id}` was not found.")
        return warning

    async def purge(self, channel: discord.TextChannel, actor: discord.Member, amount: int,
                    filters: Optional[PurgeFilters] = None) -> PurgeResult:
        self.permissions.require_admin(actor)
        filters = filters or PurgeFilters()

        if not 1 <= amount <= PURGE_MAX:
            raise InvalidInput(f"Amount must be between 1 and {PURGE_MAX}.")
        filters.validate()

        perms = channel.permissions_for(channel.guild.me)
        if not (perms.manage_messages and perms.read_message_history):
            raise PermissionDenied('I need "Manage Messages" and "Read Message History" permissions in this channel.')

        async with translate_discord_errors("read this channel's history"):
            messages = [m async for m in channel.history(limit=min(amount * 3, PURGE_MAX))]

        plan = filter_purge_candidates(messages, filters, amount)
        if not plan.deletable:
            return PurgeResult(amount, 0, plan.undeletable_count, filters)

        async with translate_discord_errors("delete messages"):
            if len(plan.deletable) == 1:
                await plan.deletable[0].delete()
            else:
                await channel.delete_messages(plan.deletable)

        deleted = len(plan.deletable)
        await self.db.audit.log_action(
            guild_id=channel.guild.id,
            action=AuditAction.PURGE,
            moderator_id=actor.id,
            target_id=channel.id,
            target_type=TargetType.CHANNEL,
            reason=f"Purged {deleted} message(s)",
            details={
                'channelName': channel.name,
                'requested': amount,
                'deleted': deleted,
                'undeletable': plan.undeletable_count,
                'filters': filters.describe()
            },
            metadata={'channel_id': channel.id, 'count': deleted}
        )

        logger.info(f"{actor} purged {deleted} message(s) in #{channel.name} ({channel.id})")
        return PurgeResult(amount, deleted, plan.undeletable_count, filters)
