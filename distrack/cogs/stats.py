"""
Statistics Cog
Moderation, ticket, server and activity summaries built on the reporting engine
"""

from datetime import timedelta
from typing import Optional

import discord
from discord import app_commands

from distrack.cogs.base import DisTrackCog
from distrack.models.warning import Severity
from distrack.services.reporting import PERIOD_LABELS, TicketStats, activity_stats
from distrack.utils.embed_builder import EmbedBuilder, EmbedColor
from distrack.utils.helpers import format_duration, utcnow

PERIOD_CHOICES = [app_commands.Choice(name=label, value=value) for value, label in PERIOD_LABELS.items()]


class StatsCog(DisTrackCog, name="Stats"):
    stats = app_commands.Group(name="stats", description="Server statistics", guild_only=True)

    @stats.command(name="moderation", description="Moderation activity for a period")
    @app_commands.describe(period="Time period to summarise")
    @app_commands.choices(period=PERIOD_CHOICES)
    async def stats_moderation(self, interaction: discord.Interaction, period: Optional[app_commands.Choice[str]] = None):
        self.bot.permissions.require_admin(interaction.user)
        await interaction.response.defer()

        value = period.value if period else '30d'
        stats = await self.bot.reporting.moderation_stats(interaction.guild.id, value)

        embed = (
            EmbedBuilder(title=f"🛡️ Moderation Statistics - {PERIOD_LABELS[value]}")
            .color(EmbedColor.MODERATION)
        )

        if not stats.has_data:
            embed.description("No moderation actions found for this period.")
            return await interaction.followup.send(embed=embed.build())

        embed.field(
            "📈 Overview",
            f"**Total Actions:** {stats.actions.total_actions}\n"
            f"**Total Warnings:** {stats.total_warnings}\n"
            f"**Active Warnings:** {stats.active_warnings}",
            False
        )

        if stats.top_actions:
            embed.field(
                "🔨 Actions",
                "\n".join(f"{self.bot.reporting.action_label(a)}: **{c}**" for a, c in stats.top_actions),
                True
            )

        if stats.severity_counts:
            lines = []
            for severity in Severity:
                count = stats.severity_counts.get(severity.value)
                if count:
                    lines.append(f"{severity.label}: **{count}**")
            embed.field("⚠️ Warning Severity", "\n".join(lines) or "None", True)

        if stats.top_moderators:
            embed.field(
                "👮 Top Moderators",
                "\n".join(f"{i}. <@{m}>: **{c}**" for i, (m, c) in enumerate(stats.top_moderators, 1)),
                False
            )

        await interaction.followup.send(embed=embed.build())

    @stats.command(name="tickets", description="Ticket activity and resolution times")
    async def stats_tickets(self, interaction: discord.Interaction):
        self.bot.permissions.require_admin(interaction.user)
        await interaction.response.defer()

        stats: TicketStats = await self.bot.reporting.ticket_stats(interaction.guild.id)

        embed = (
            EmbedBuilder(title="🎫 Ticket Statistics")
            .color(EmbedColor.TICKET)
            .field(
                "📊 Overview",
                f"**Total:** {stats.total}\n"
                f"**Open:** {stats.open}\n"
                f"**Closed:** {stats.closed}\n"
                f"**Archived:** {stats.archived}\n"
                f"**Open Rate:** {stats.open_rate}%",
                True
            )
            .field(
                "📅 Recent",
                f"**Today:** {stats.today}\n"
                f"**This Week:** {stats.this_week}\n"
                f"**This Month:** {stats.this_month}",
                True
            )
        )

        if stats.average_resolution is not None:
            embed.field("⏱️ Avg. Resolution", format_duration(stats.average_resolution * 1000), True)
        else:
            embed.field("⏱️ Avg. Resolution", "No closed tickets yet", True)

        if stats.top_creators:
            embed.field(
                "👥 Top Creators",
                "\n".join(f"{i}. <@{u}>: **{c}**" for i, (u, c) in enumerate(stats.top_creators, 1)),
                False
            )

        today = utcnow().date()
        trend = []
        for days_ago, count in zip(range(len(stats.daily_trend) - 1, -1, -1), stats.daily_trend):
            day = today - timedelta(days=days_ago)
            trend.append(f"{TicketStats.trend_emoji(count)} {day.strftime('%a %d')}: **{count}**")
        embed.field(f"📈 Last 7 Days (avg {stats.daily_average}/day)", "\n".join(trend), False)

        await interaction.followup.send(embed=embed.build())

    @stats.command(name="server", description="Member, channel and role counts")
    async def stats_server(self, interaction: discord.Interaction):
        guild = interaction.guild
        bots = sum(1 for m in guild.members if m.bot)
        total = guild.member_count or len(guild.members)

        embed = (
            EmbedBuilder(title=f"📊 {guild.name}")
            .color(EmbedColor.INFO)
            .field("👥 Members", f"**Total:** {total}\n**Humans:** {total - bots}\n**Bots:** {bots}", True)
            .field(
                "💬 Channels",
                f"**Text:** {len(guild.text_channels)}\n"
                f"**Voice:** {len(guild.voice_channels)}\n"
                f"**Categories:** {len(guild.categories)}",
                True
            )
            .field("🏷️ Roles", str(len(guild.roles)), True)
            .field("🚀 Boosts", f"{guild.premium_subscription_count or 0} (Tier {guild.premium_tier})", True)
            .field("📅 Created", f"<t:{int(guild.created_at.timestamp())}:D>", True)
        )

        if guild.icon:
            embed.thumbnail(guild.icon.url)

        await interaction.response.send_message(embed=embed.build())

    @stats.command(name="activity", description="Live member status and voice activity")
    async def stats_activity(self, interaction: discord.Interaction):
        guild = interaction.guild
        stats = activity_stats(guild)
        presence = stats.presence

        embed = (
            EmbedBuilder(title=f"📈 Activity Statistics - {guild.name}")
            .color(EmbedColor.INFO)
            .footer(f"Live data from {guild.member_count or len(guild.members)} members", guild.icon.url if guild.icon else None)
            .timestamp()
            .field(
                "🟢 Member Status",
                f"🟢 **Online:** {presence['online']}\n"
                f"🟡 **Idle:** {presence['idle']}\n"
                f"🔴 **Do Not Disturb:** {presence['dnd']}\n"
                f"⚫ **Offline:** {presence['offline']}",
                True
            )
        )

        if stats.total_activities:
            activities = stats.activities
            embed.field(
                "🎮 Activities",
                f"🎮 **Playing:** {activities['playing']}\n"
                f"📺 **Watching:** {activities['watching']}\n"
                f"🎵 **Listening:** {activities['listening']}\n"
                f"🔴 **Streaming:** {activities['streaming']}\n"
                f"🏆 **Competing:** {activities['competing']}\n"
                f"✨ **Custom:** {activities['custom']}",
                True
            )

        embed.field(
            "🔊 Voice Activity",
            f"**Members in Voice:** {stats.voice_members}\n**Active Channels:** {len(stats.voice_channels)}",
            True
        )

        if stats.busiest_channels:
            embed.field(
                "🎙️ Busiest Voice Channels",
                "\n".join(f"**{name}:** {count} members" for name, count in stats.busiest_channels),
                False
            )

        await interaction.response.send_message(embed=embed.build())
