"""
Embed Builder for DisTrack
Fluent interface for Discord embeds plus the bot's reply presets
"""

from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

import discord

from distrack.config import Colors, Emojis
from distrack.models.audit import AuditLogEntry
from distrack.models.ticket import Ticket
from distrack.models.warning import Warning
from distrack.utils.helpers import format_timestamp, truncate_string, utcnow


class EmbedColor(Enum):
    PRIMARY = Colors.PRIMARY
    SUCCESS = Colors.SUCCESS
    WARNING = Colors.WARNING
    ERROR = Colors.ERROR
    INFO = Colors.INFO
    MODERATION = 0xEB459E
    TICKET = 0xF1C40F


class EmbedBuilder:
    def __init__(self, title: Optional[str] = None, description: Optional[str] = None):
        self._embed = discord.Embed()
        if title:
            self._embed.title = title
        if description:
            self._embed.description = description
        self._embed.timestamp = utcnow()

    def title(self, title: str) -> 'EmbedBuilder':
        self._embed.title = title
        return self

    def description(self, description: str) -> 'EmbedBuilder':
        self._embed.description = description
        return self

    def color(self, color: Union[EmbedColor, int, discord.Color]) -> 'EmbedBuilder':
        if isinstance(color, EmbedColor):
            self._embed.color = color.value
        else:
            self._embed.color = color
        return self

    def footer(self, text: str, icon_url: Optional[str] = None) -> 'EmbedBuilder':
        self._embed.set_footer(text=text, icon_url=icon_url)
        return self

    def thumbnail(self, url: str) -> 'EmbedBuilder':
        self._embed.set_thumbnail(url=url)
        return self

    def timestamp(self, timestamp: Optional[datetime] = None) -> 'EmbedBuilder':
        self._embed.timestamp = timestamp or utcnow()
        return self

    def field(self, name: str, value: str, inline: bool = False) -> 'EmbedBuilder':
        self._embed.add_field(name=name, value=value, inline=inline)
        return self

    def fields(self, *fields: Tuple[str, str, bool]) -> 'EmbedBuilder':
        for name, value, inline in fields:
            self._embed.add_field(name=name, value=value, inline=inline)
        return self

    def build(self) -> discord.Embed:
        return self._embed

    @classmethod
    def success(cls, title: str, description: str) -> discord.Embed:
        return cls(title=f"{Emojis.SUCCESS} {title}", description=description).color(EmbedColor.SUCCESS).build()

    @classmethod
    def error(cls, title: str, description: str) -> discord.Embed:
        return cls(title=f"{Emojis.ERROR} {title}", description=description).color(EmbedColor.ERROR).build()

    @classmethod
    def warning(cls, title: str, description: str) -> discord.Embed:
        return cls(title=f"{Emojis.WARNING} {title}", description=description).color(EmbedColor.WARNING).build()

    @classmethod
    def info(cls, title: str, description: str) -> discord.Embed:
        return cls(title=f"{Emojis.INFO} {title}", description=description).color(EmbedColor.INFO).build()

    @classmethod
    def moderation(
        cls,
        action: str,
        moderator: Union[discord.Member, discord.User],
        target: Union[discord.Member, discord.User, discord.Object],
        reason: Optional[str] = None,
        duration: Optional[str] = None,
        extra: Iterable[Tuple[str, str]] = ()
    ) -> discord.Embed:
        target_text = getattr(target, 'mention', f"<@{target.id}>")
        embed = (
            cls(title=f"🔨 {action}")
            .color(EmbedColor.MODERATION)
            .field("Target", f"{target_text} ({target.id})", True)
            .field("Moderator", moderator.mention, True)
        )

        if duration:
            embed.field("Duration", duration, True)

        for name, value in extra:
            embed.field(name, value, True)

        embed.field("Reason", reason or "No reason provided", False)
        return embed.footer(f"User ID: {target.id}").build()

    @classmethod
    def ticket_panel(cls) -> discord.Embed:
        return (
            cls(
                title=f"{Emojis.TICKET} Support Tickets",
                description="Need help? Click the button below to open a ticket and our staff will get back to you."
            )
            .color(EmbedColor.PRIMARY)
            .footer("One ticket per issue, please")
            .build()
        )

    @classmethod
    def ticket_opened(cls, ticket: Ticket, user: discord.abc.User, description: str) -> discord.Embed:
        return (
            cls(
                title=f"{Emojis.TICKET} {ticket.ticket_id}",
                description=(
                    f"**Subject:** {ticket.subject}\n"
                    f"**Category:** {ticket.category}\n"
                    f"**Created by:** {user.mention}\n\n"
                    f"**Description:**\n{description}"
                )
            )
            .color(EmbedColor.PRIMARY)
            .footer("Ticket created")
            .build()
        )

    @classmethod
    def ticket_list(cls, tickets: List[Ticket], filters: Optional[str] = None) -> discord.Embed:
        embed = (
            cls(title=f"{Emojis.TICKET} Ticket List", description=filters)
            .color(EmbedColor.PRIMARY)
            .footer(f"Showing {min(len(tickets), 10)} of {len(tickets)} tickets")
        )

        for ticket in tickets[:10]:
            embed.field(
                f"{ticket.status.emoji} {ticket.ticket_id}",
                f"**User:** <@{ticket.user_id}>\n"
                f"**Category:** {ticket.category}\n"
                f"**Created:** {format_timestamp(ticket.created_at, 'd')}\n"
                f"**Channel:** <#{ticket.channel_id}>",
                True
            )

        return embed.build()

    @classmethod
    def warning_detail(cls, warning: Warning) -> discord.Embed:
        status = "Active" if warning.active else "Removed"
        if warning.active and warning.is_expired:
            status = "Active (expired)"

        embed = (
            cls(title=f"{Emojis.WARNING} Warning {warning.warning_id}", description=warning.reason)
            .color(warning.severity.color)
            .field("User", f"<@{warning.user_id}>", True)
            .field("Moderator", f"<@{warning.moderator_id}>", True)
            .field("Severity", warning.severity.label, True)
            .field("Status", status, True)
            .field("Issued", format_timestamp(warning.created_at, 'R'), True)
        )

        if warning.expires_at:
            embed.field("Expires", format_timestamp(warning.expires_at, 'R'), True)

        if not warning.active:
            embed.field(
                "Removed",
                f"By <@{warning.removed_by}> {format_timestamp(warning.removed_at, 'R')}\n"
                f"**Reason:** {warning.removed_reason or 'No reason provided'}",
                False
            )

        return embed.build()

    @classmethod
    def warning_list(cls, user: discord.abc.User, warnings: List[Warning], active_only: bool) -> discord.Embed:
        kind = "Active Warnings" if active_only else "All Warnings"
        embed = (
            cls(title=f"{Emojis.WARNING} {kind} for {user}")
            .color(EmbedColor.WARNING)
            .footer(f"{len(warnings)} warning(s) shown")
        )

        for warning in warnings:
            state = "" if warning.active else " (removed)"
            embed.field(
                f"{warning.severity.emoji} {warning.warning_id}{state}",
                f"{truncate_string(warning.reason, 200)}\n"
                f"By <@{warning.moderator_id}> {format_timestamp(warning.created_at, 'R')}",
                False
            )

        return embed.build()

    @classmethod
    def audit_log(cls, entries: List[AuditLogEntry], guild: discord.Guild) -> discord.Embed:
        embed = (
            cls(title=f"📋 Audit Logs - {guild.name}")
            .color(EmbedColor.PRIMARY)
            .footer(f"{len(entries)} entries")
        )

        if not entries:
            return embed.description("No audit logs found.").build()

        if len(entries) > 10:
            embed.description(f"Showing 10 of {len(entries)} log entries.")

        for entry in entries[:10]:
            target = f"<@{entry.target_id}> ({entry.target_id})" if entry.target_id else "None"
            embed.field(
                f"{entry.action.emoji} {entry.action.display_name}",
                f"**Target:** {target}\n"
                f"**Moderator:** <@{entry.moderator_id}>\n"
                f"**Reason:** {truncate_string(entry.reason, 200)}\n"
                f"**Time:** {format_timestamp(entry.created_at, 'R')}",
                False
            )

        return embed.build()
