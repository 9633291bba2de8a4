"""
Ticket Lifecycle Manager
Creates, closes, reopens and archives support tickets and their channels
"""

import asyncio
import logging
import weakref
from typing import Dict, List, Optional, Set, Tuple

import discord

from distrack.config import (
    MAX_TICKETS_PER_USER,
    TICKET_DELETE_DELAY,
    TICKET_DESCRIPTION_MAX,
    TICKET_LIST_LIMIT,
    TICKET_SUBJECT_MAX,
    category_display,
    find_category,
)
from distrack.database.engine import DatabaseError
from distrack.db_manager import DatabaseManager
from distrack.errors import (
    InvalidInput,
    LimitExceeded,
    NotFound,
    notify_best_effort,
    translate_discord_errors,
)
from distrack.models.audit import AuditAction, TargetType
from distrack.models.guild import GuildConfig
from distrack.models.ticket import Ticket, TicketStatus
from distrack.utils.embed_builder import EmbedBuilder
from distrack.utils.helpers import generate_ticket_id
from distrack.utils.permissions import PermissionChecker

logger = logging.getLogger('distrack.tickets')

NOTE_MAX = 1000


class TicketService:
    def __init__(
        self,
        db: DatabaseManager,
        permissions: PermissionChecker,
        max_open: int = MAX_TICKETS_PER_USER,
        delete_delay: float = TICKET_DELETE_DELAY
    ):
        self.db = db
        self.permissions = permissions
        self.max_open = max_open
        self.delete_delay = delete_delay
        self._guild_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._pending_deletes: Set[asyncio.Task] = set()

    def _lock_for(self, guild_id: int) -> asyncio.Lock:
        lock = self._guild_locks.get(guild_id)
        if lock is None:
            lock = self._guild_locks[guild_id] = asyncio.Lock()
        return lock

    async def ensure_can_open(self, guild_id: int, user_id: int):
        open_count = await self.db.tickets.count_open(guild_id, user_id)
        if open_count >= self.max_open:
            raise LimitExceeded(f"You can only have {self.max_open} open tickets at a time.")

    async def create_ticket(
        self,
        guild: discord.Guild,
        user: discord.Member,
        category: str,
        subject: str,
        description: str
    ) -> Tuple[Ticket, discord.TextChannel]:
        if find_category(category) is None:
            raise InvalidInput(f"Unknown ticket category `{category}`.")

        subject = subject.strip()
        description = description.strip()
        if not subject or not description:
            raise InvalidInput("Both a subject and a description are required.")
        if len(subject) > TICKET_SUBJECT_MAX or len(description) > TICKET_DESCRIPTION_MAX:
            raise InvalidInput(
                f"Subjects are limited to {TICKET_SUBJECT_MAX} characters and "
                f"descriptions to {TICKET_DESCRIPTION_MAX}."
            )

        async with self._lock_for(guild.id):
            await self.ensure_can_open(guild.id, user.id)

            number = await self.db.guilds.next_ticket_number(guild.id)
            ticket_id = generate_ticket_id(number)
            config = await self.db.guilds.get_or_create(guild.id)
            parent = await self._ensure_category(guild, config)

            async with translate_discord_errors("create the ticket channel"):
                channel = await guild.create_text_channel(
                    name=ticket_id,
                    category=parent,
                    overwrites=self._build_overwrites(guild, user, config),
                    reason=f"Ticket {ticket_id} opened by {user}"
                )

            ticket = Ticket(
                ticket_id=ticket_id,
                guild_id=guild.id,
                channel_id=channel.id,
                user_id=user.id,
                category=category_display(category),
                subject=subject
            )
            ticket.add_message(user.id, str(user), description)

            try:
                await self.db.tickets.create(ticket)
            except (DatabaseError, ConnectionError, TimeoutError):
                await notify_best_effort(channel.delete(reason="Ticket could not be saved"), "orphan channel cleanup")
                raise

        await self.db.audit.log_action(
            guild_id=guild.id,
            action=AuditAction.TICKET_CREATE,
            moderator_id=user.id,
            target_id=channel.id,
            target_type=TargetType.CHANNEL,
            reason=subject,
            details={'ticketId': ticket_id, 'category': ticket.category},
            metadata={'channel_id': channel.id}
        )

        logger.info(f"{user} ({user.id}) created ticket {ticket_id} in {ticket.category}")
        return ticket, channel

    async def _ensure_category(self, guild: discord.Guild, config: GuildConfig) -> Optional[discord.CategoryChannel]:
        category_id = config.ticket.ticket_category_id
        if category_id:
            existing = guild.get_channel(category_id)
            if isinstance(existing, discord.CategoryChannel):
                return existing

        try:
            category = await guild.create_category(
                "Tickets",
                overwrites={guild.default_role: discord.PermissionOverwrite(view_channel=False)},
                reason="Ticket category"
            )
        except discord.HTTPException as e:
            logger.error(f"Failed to create ticket category in {guild.id}: {e}")
            return None

        config.ticket.ticket_category_id = category.id
        await self.db.guilds.save(config)
        return category

    def _build_overwrites(
        self,
        guild: discord.Guild,
        user: discord.Member,
        config: GuildConfig
    ) -> Dict[discord.abc.Snowflake, discord.PermissionOverwrite]:
        overwrites = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
            user: discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                read_message_history=True,
                attach_files=True
            ),
            guild.me: discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                read_message_history=True,
                manage_channels=True,
                manage_messages=True
            )
        }

        staff_role = None
        if config.ticket.staff_role_id:
            staff_role = guild.get_role(config.ticket.staff_role_id)
        if staff_role is None:
            staff_role = next(
                (r for r in guild.roles if r.permissions.administrator and not r.managed),
                None
            )
        if staff_role is not None:
            overwrites[staff_role] = discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                read_message_history=True,
                manage_messages=True
            )

        return overwrites

    async def _get_ticket(self, channel: discord.abc.GuildChannel) -> Ticket:
        ticket = await self.db.tickets.find_by_channel(channel.id)
        if ticket is None:
            raise NotFound("This is not a ticket channel.")
        return ticket

    async def close_ticket(
        self,
        channel: discord.TextChannel,
        actor: discord.Member,
        reason: Optional[str] = None
    ) -> Ticket:
        self.permissions.require_admin(actor, "Only administrators can close tickets.")
        ticket = await self._get_ticket(channel)

        ticket.close(actor.id)

        creator = channel.guild.get_member(ticket.user_id)
        async with translate_discord_errors("lock the ticket channel"):
            if creator is not None:
                await channel.set_permissions(creator, send_messages=False, reason=f"Ticket closed by {actor}")
            await channel.edit(name=f"closed-{ticket.ticket_id}")

        await self.db.tickets.update(ticket)

        await self.db.audit.log_action(
            guild_id=ticket.guild_id,
            action=AuditAction.TICKET_CLOSE,
            moderator_id=actor.id,
            target_id=ticket.user_id,
            reason=reason,
            details={'ticketId': ticket.ticket_id},
            metadata={'channel_id': channel.id}
        )

        if creator is not None:
            embed = EmbedBuilder.info(
                "Ticket Closed",
                f"Your ticket **{ticket.ticket_id}** in **{channel.guild.name}** was closed."
                + (f"\n**Reason:** {reason}" if reason else "")
            )
            await notify_best_effort(creator.send(embed=embed), "ticket close DM")

        logger.info(f"{actor} ({actor.id}) closed ticket {ticket.ticket_id}")
        return ticket

    async def reopen_ticket(self, channel: discord.TextChannel, actor: discord.Member) -> Ticket:
        self.permissions.require_admin(actor, "Only administrators can reopen tickets.")
        ticket = await self._get_ticket(channel)

        ticket.reopen()

        creator = channel.guild.get_member(ticket.user_id)
        async with translate_discord_errors("unlock the ticket channel"):
            if creator is not None:
                await channel.set_permissions(creator, send_messages=True, reason=f"Ticket reopened by {actor}")
            await channel.edit(name=ticket.ticket_id)

        await self.db.tickets.update(ticket)

        await self.db.audit.log_action(
            guild_id=ticket.guild_id,
            action=AuditAction.TICKET_REOPEN,
            moderator_id=actor.id,
            target_id=ticket.user_id,
            details={'ticketId': ticket.ticket_id},
            metadata={'channel_id': channel.id}
        )

        logger.info(f"{actor} ({actor.id}) reopened ticket {ticket.ticket_id}")
        return ticket

    async def archive_and_delete(
        self,
        channel: discord.TextChannel,
        actor: discord.Member,
        reason: Optional[str] = None
    ) -> Ticket:
        self.permissions.require_admin(actor, "Only administrators can delete tickets.")
        ticket = await self._get_ticket(channel)

        ticket.archive(actor.id)
        await self.db.tickets.update(ticket)

        await self.db.audit.log_action(
            guild_id=ticket.guild_id,
            action=AuditAction.TICKET_DELETE,
            moderator_id=actor.id,
            target_id=ticket.user_id,
            reason=reason,
            details={'ticketId': ticket.ticket_id},
            metadata={'channel_id': channel.id}
        )

        self._schedule_channel_delete(channel, f"Ticket {ticket.ticket_id} deleted by {actor}")
        logger.info(f"{actor} ({actor.id}) deleted ticket {ticket.ticket_id}")
        return ticket

    def _schedule_channel_delete(self, channel: discord.TextChannel, reason: str):
        task = asyncio.create_task(self._delete_later(channel, reason))
        self._pending_deletes.add(task)
        task.add_done_callback(self._pending_deletes.discard)

    async def _delete_later(self, channel: discord.TextChannel, reason: str):
        await asyncio.sleep(self.delete_delay)
        try:
            await channel.delete(reason=reason)
        except discord.HTTPException as e:
            logger.error(f"Failed to delete ticket channel {channel.id}: {e}")

    async def add_note(self, channel: discord.TextChannel, staff: discord.Member, note: str) -> Ticket:
        self.permissions.require_admin(staff, "Only administrators can add ticket notes.")
        note = note.strip()
        if not note or len(note) > NOTE_MAX:
            raise InvalidInput(f"Notes must be between 1 and {NOTE_MAX} characters.")

        ticket = await self._get_ticket(channel)
        ticket.add_note(staff.id, str(staff), note)
        await self.db.tickets.update(ticket)
        return ticket

    async def list_tickets(
        self,
        guild_id: int,
        status: Optional[TicketStatus] = None,
        user_id: Optional[int] = None
    ) -> List[Ticket]:
        return await self.db.tickets.find(guild_id, status=status, user_id=user_id, limit=TICKET_LIST_LIMIT)
