"""
Audit Log Cog
Browse the moderation ledger and prune old entries
"""

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands, tasks

from distrack.cogs.base import DisTrackCog
from distrack.config import AUDIT_RETENTION_DAYS
from distrack.database.engine import DatabaseError
from distrack.models.audit import AuditAction
from distrack.services.reporting import PERIOD_LABELS, period_start
from distrack.utils.embed_builder import EmbedBuilder, EmbedColor

logger = logging.getLogger('distrack.bot')

ACTION_CHOICES = [
    app_commands.Choice(name=action.display_name, value=action.value)
    for action in AuditAction
][:25]

PERIOD_CHOICES = [app_commands.Choice(name=label, value=value) for value, label in PERIOD_LABELS.items()]


class LogsCog(DisTrackCog, name="Logs"):
    logs = app_commands.Group(name="logs", description="View the moderation audit log", guild_only=True)

    def __init__(self, bot: commands.Bot):
        super().__init__(bot)
        self.cleanup_logs.start()

    def cog_unload(self):
        self.cleanup_logs.cancel()

    @tasks.loop(hours=24)
    async def cleanup_logs(self):
        try:
            await self.bot.reporting.cleanup_old_logs(AUDIT_RETENTION_DAYS)
        except (DatabaseError, ConnectionError, TimeoutError) as e:
            logger.error(f"Audit log cleanup failed: {e}")

    @cleanup_logs.before_loop
    async def before_cleanup(self):
        await self.bot.wait_until_ready()

    async def _send_entries(self, interaction: discord.Interaction, **filters):
        self.bot.permissions.require_admin(interaction.user)
        await interaction.response.defer(ephemeral=True)

        entries = await self.bot.db.audit.find(interaction.guild.id, **filters)
        await interaction.followup.send(embed=EmbedBuilder.audit_log(entries, interaction.guild), ephemeral=True)

    @logs.command(name="recent", description="Show the most recent audit log entries")
    @app_commands.describe(limit="Number of entries (1-25)", action="Only show this action")
    @app_commands.choices(action=ACTION_CHOICES)
    async def logs_recent(
        self,
        interaction: discord.Interaction,
        limit: app_commands.Range[int, 1, 25] = 10,
        action: Optional[app_commands.Choice[str]] = None
    ):
        await self._send_entries(
            interaction,
            action=AuditAction(action.value) if action else None,
            limit=limit
        )

    @logs.command(name="user", description="Show audit log entries targeting a user")
    @app_commands.describe(user="The targeted user", limit="Number of entries (1-25)")
    async def logs_user(
        self,
        interaction: discord.Interaction,
        user: discord.User,
        limit: app_commands.Range[int, 1, 25] = 10
    ):
        await self._send_entries(interaction, target_id=user.id, limit=limit)

    @logs.command(name="moderator", description="Show audit log entries by a moderator")
    @app_commands.describe(moderator="The acting moderator", limit="Number of entries (1-25)")
    async def logs_moderator(
        self,
        interaction: discord.Interaction,
        moderator: discord.User,
        limit: app_commands.Range[int, 1, 25] = 10
    ):
        await self._send_entries(interaction, moderator_id=moderator.id, limit=limit)

    @logs.command(name="stats", description="Summarise audit log activity")
    @app_commands.describe(period="Time period to summarise")
    @app_commands.choices(period=PERIOD_CHOICES)
    async def logs_stats(self, interaction: discord.Interaction, period: Optional[app_commands.Choice[str]] = None):
        self.bot.permissions.require_admin(interaction.user)
        await interaction.response.defer(ephemeral=True)

        since = period_start(period.value if period else '30d')
        stats = await self.bot.reporting.action_stats(interaction.guild.id, since)

        embed = (
            EmbedBuilder(title=f"📊 Audit Log Statistics - {interaction.guild.name}")
            .color(EmbedColor.INFO)
            .field("Total Actions", str(stats.total_actions), True)
            .field("Period", stats.period, True)
        )

        if stats.action_counts:
            lines = [
                f"{self.bot.reporting.action_label(value)}: **{count}**"
                for value, count in sorted(stats.action_counts.items(), key=lambda kv: kv[1], reverse=True)
            ]
            embed.field("Actions", "\n".join(lines), False)
        else:
            embed.description("No actions recorded for this period.")

        await interaction.followup.send(embed=embed.build(), ephemeral=True)
