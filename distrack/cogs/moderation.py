"""
Moderation Cog
Slash commands for kick, ban, unban, timeout, warnings and purge
"""

from typing import Optional

import discord
from discord import app_commands

from distrack.cogs.base import DisTrackCog
from distrack.config import PURGE_MAX, PURGE_NOTICE_SECONDS
from distrack.errors import notify_best_effort
from distrack.models.warning import Severity
from distrack.services.moderation import ModerationResult, PurgeFilters, PurgeResult
from distrack.utils.embed_builder import EmbedBuilder, EmbedColor

SEVERITY_CHOICES = [app_commands.Choice(name=s.value.title(), value=s.value) for s in Severity]


def _dm_field(result: ModerationResult):
    return ("DM Sent", "✅" if result.dm_sent else "❌")


def _purge_summary(result: PurgeResult) -> discord.Embed:
    if result.deleted == 0:
        description = "No messages found matching the specified criteria."
        if result.undeletable:
            description += (
                f"\n\n{result.undeletable} matching message(s) are older than 14 days and cannot be bulk deleted."
            )
        return EmbedBuilder.info("Nothing To Purge", description)

    embed = (
        EmbedBuilder(
            title="🗑️ Messages Purged",
            description=f"Successfully deleted **{result.deleted}** message(s)."
        )
        .color(EmbedColor.SUCCESS)
        .field("Requested", str(result.requested), True)
    )

    if result.undeletable:
        embed.field("Skipped (older than 14 days)", str(result.undeletable), True)

    filters = result.filters
    active = []
    if filters.user_id:
        active.append(f"User: <@{filters.user_id}>")
    if filters.contains:
        active.append(f"Contains: `{filters.contains}`")
    if filters.bots_only:
        active.append("Bots only")
    if filters.embeds_only:
        active.append("Embeds only")
    if filters.attachments_only:
        active.append("Attachments only")
    if filters.pins_only:
        active.append("Pinned only")
    if filters.older_than:
        active.append(f"Older than <t:{int(filters.older_than.timestamp())}:R>")
    if filters.newer_than:
        active.append(f"Newer than <t:{int(filters.newer_than.timestamp())}:R>")
    if active:
        embed.field("Filters", "\n".join(active), False)

    return embed.build()


class ModerationCog(DisTrackCog, name="Moderation"):
    warn = app_commands.Group(name="warn", description="Manage member warnings", guild_only=True)

    @app_commands.command(name="kick", description="Kick a member from the server")
    @app_commands.guild_only()
    @app_commands.describe(member="The member to kick", reason="Reason for the kick")
    async def kick(self, interaction: discord.Interaction, member: discord.Member, reason: Optional[str] = None):
        await interaction.response.defer()
        result = await self.bot.moderation.kick(interaction.guild, interaction.user, member, reason)
        await interaction.followup.send(embed=EmbedBuilder.moderation(
            "Member Kicked", interaction.user, member, result.reason, extra=[_dm_field(result)]
        ))

    @app_commands.command(name="ban", description="Ban a user from the server")
    @app_commands.guild_only()
    @app_commands.describe(
        user="The user to ban",
        reason="Reason for the ban",
        delete_days="Days of message history to delete (0-7)"
    )
    async def ban(
        self,
        interaction: discord.Interaction,
        user: discord.User,
        reason: Optional[str] = None,
        delete_days: app_commands.Range[int, 0, 7] = 0
    ):
        await interaction.response.defer()
        result = await self.bot.moderation.ban(interaction.guild, interaction.user, user, reason, delete_days)
        await interaction.followup.send(embed=EmbedBuilder.moderation(
            "User Banned", interaction.user, user, result.reason,
            extra=[("Messages Deleted", f"{delete_days} day(s)"), _dm_field(result)]
        ))

    @app_commands.command(name="unban", description="Unban a user by ID")
    @app_commands.guild_only()
    @app_commands.describe(user_id="The ID of the user to unban", reason="Reason for the unban")
    async def unban(self, interaction: discord.Interaction, user_id: str, reason: Optional[str] = None):
        await interaction.response.defer()
        result = await self.bot.moderation.unban(interaction.guild, interaction.user, user_id, reason)
        await interaction.followup.send(embed=EmbedBuilder.moderation(
            "User Unbanned", interaction.user, discord.Object(id=result.target_id), result.reason
        ))

    @app_commands.command(name="timeout", description="Timeout a member")
    @app_commands.guild_only()
    @app_commands.describe(
        member="The member to timeout",
        duration="Duration such as 10m, 1h or 2d (max 28d)",
        reason="Reason for the timeout"
    )
    async def timeout(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        duration: str,
        reason: Optional[str] = None
    ):
        await interaction.response.defer()
        result = await self.bot.moderation.timeout(interaction.guild, interaction.user, member, duration, reason)
        await interaction.followup.send(embed=EmbedBuilder.moderation(
            "Member Timed Out", interaction.user, member, result.reason,
            duration=result.details['duration'], extra=[_dm_field(result)]
        ))

    @app_commands.command(name="untimeout", description="Remove a timeout from a member")
    @app_commands.guild_only()
    @app_commands.describe(member="The member to remove the timeout from", reason="Reason")
    async def untimeout(self, interaction: discord.Interaction, member: discord.Member, reason: Optional[str] = None):
        await interaction.response.defer()
        result = await self.bot.moderation.remove_timeout(interaction.guild, interaction.user, member, reason)
        await interaction.followup.send(embed=EmbedBuilder.moderation(
            "Timeout Removed", interaction.user, member, result.reason
        ))

    @warn.command(name="add", description="Warn a member")
    @app_commands.describe(
        member="The member to warn",
        reason="Reason for the warning",
        severity="How serious the warning is",
        expires="Optional expiry such as 7d, 1M or 1y"
    )
    @app_commands.choices(severity=SEVERITY_CHOICES)
    async def warn_add(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        reason: str,
        severity: Optional[app_commands.Choice[str]] = None,
        expires: Optional[str] = None
    ):
        await interaction.response.defer()
        level = Severity(severity.value) if severity else Severity.MEDIUM
        result = await self.bot.moderation.warn_add(
            interaction.guild, interaction.user, member, reason, level, expires
        )

        warning = result.warning
        extra = [("Warning ID", warning.warning_id), ("Severity", warning.severity.label)]
        if warning.expires_at:
            extra.append(("Expires", f"<t:{int(warning.expires_at.timestamp())}:R>"))
        extra.append(_dm_field(result))

        await interaction.followup.send(embed=EmbedBuilder.moderation(
            "Member Warned", interaction.user, member, warning.reason, extra=extra
        ))

    @warn.command(name="remove", description="Remove a warning by ID")
    @app_commands.describe(warning_id="The warning ID (e.g. warn-0001)", reason="Reason for removal")
    async def warn_remove(self, interaction: discord.Interaction, warning_id: str, reason: Optional[str] = None):
        await interaction.response.defer()
        result = await self.bot.moderation.warn_remove(interaction.guild, interaction.user, warning_id, reason)
        await interaction.followup.send(embed=EmbedBuilder.success(
            "Warning Removed",
            f"Warning **{result.warning.warning_id}** for <@{result.target_id}> has been removed.\n"
            f"**Reason:** {result.reason}"
        ))

    @warn.command(name="clear", description="Clear all active warnings for a member")
    @app_commands.describe(user="The user whose warnings to clear", reason="Reason for clearing")
    async def warn_clear(self, interaction: discord.Interaction, user: discord.User, reason: Optional[str] = None):
        await interaction.response.defer()
        result = await self.bot.moderation.warn_clear(interaction.guild, interaction.user, user, reason)
        await interaction.followup.send(embed=EmbedBuilder.success(
            "Warnings Cleared",
            f"Cleared **{result.details['clearedCount']}** active warning(s) for {user.mention}.\n"
            f"**Reason:** {result.reason}"
        ))

    @warn.command(name="list", description="List warnings for a member")
    @app_commands.describe(user="The user to look up", show_all="Include removed warnings")
    async def warn_list(self, interaction: discord.Interaction, user: discord.User, show_all: bool = False):
        self.bot.permissions.require_admin(interaction.user)
        await interaction.response.defer(ephemeral=True)

        warnings = await self.bot.moderation.warn_list(interaction.guild.id, user.id, active_only=not show_all)
        if not warnings:
            return await interaction.followup.send(
                embed=EmbedBuilder.info("No Warnings", f"{user.mention} has no warnings."),
                ephemeral=True
            )

        await interaction.followup.send(
            embed=EmbedBuilder.warning_list(user, warnings, active_only=not show_all),
            ephemeral=True
        )

    @warn.command(name="info", description="Show details for a single warning")
    @app_commands.describe(warning_id="The warning ID (e.g. warn-0001)")
    async def warn_info(self, interaction: discord.Interaction, warning_id: str):
        self.bot.permissions.require_admin(interaction.user)
        warning = await self.bot.moderation.warn_info(interaction.guild.id, warning_id)
        await interaction.response.send_message(embed=EmbedBuilder.warning_detail(warning), ephemeral=True)

    @app_commands.command(name="purge", description="Bulk delete recent messages")
    @app_commands.guild_only()
    @app_commands.describe(
        amount=f"Number of messages to delete (1-{PURGE_MAX})",
        user="Only delete messages from this user",
        contains="Only delete messages containing this text",
        bots="Only delete messages from bots",
        embeds="Only delete messages with embeds",
        attachments="Only delete messages with attachments",
        pinned="Only delete pinned messages",
        older_than="Only delete messages older than this (e.g. 1h)",
        newer_than="Only delete messages newer than this (e.g. 30m)"
    )
    @app_commands.rename(older_than="older-than", newer_than="newer-than")
    async def purge(
        self,
        interaction: discord.Interaction,
        amount: app_commands.Range[int, 1, PURGE_MAX],
        user: Optional[discord.User] = None,
        contains: Optional[str] = None,
        bots: bool = False,
        embeds: bool = False,
        attachments: bool = False,
        pinned: bool = False,
        older_than: Optional[str] = None,
        newer_than: Optional[str] = None
    ):
        filters = PurgeFilters.from_options(
            user_id=user.id if user else None,
            contains=contains,
            bots_only=bots,
            embeds_only=embeds,
            attachments_only=attachments,
            pins_only=pinned,
            older_than=older_than,
            newer_than=newer_than
        )

        await interaction.response.defer(ephemeral=True)
        result = await self.bot.moderation.purge(interaction.channel, interaction.user, amount, filters)

        summary = _purge_summary(result)
        await interaction.followup.send(embed=summary, ephemeral=True)

        if result.deleted:
            await notify_best_effort(
                interaction.channel.send(embed=summary, delete_after=PURGE_NOTICE_SECONDS),
                "purge notice"
            )
