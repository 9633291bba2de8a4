"""
General Cog
Help, latency and bot information commands
"""

import platform
import time
from typing import Optional

import discord
import psutil
from discord import app_commands

from distrack.cogs.base import DisTrackCog
from distrack.errors import InvalidInput, PermissionDenied
from distrack.models.ticket import TicketStatus
from distrack.utils.embed_builder import EmbedBuilder, EmbedColor
from distrack.utils.helpers import format_uptime, utcnow

HELP_CATEGORIES = {
    'moderation': {
        'title': "🛡️ Moderation Commands",
        'description': "Commands for server moderation (Admin only)",
        'color': EmbedColor.MODERATION,
        'admin_only': True,
        'commands': [
            ("/kick", "Kick a member from the server", "/kick member:<@user> reason:<optional>"),
            ("/ban", "Ban a user from the server", "/ban user:<@user> reason:<optional> delete_days:<0-7>"),
            ("/unban", "Unban a user by ID", "/unban user_id:<user_id> reason:<optional>"),
            ("/timeout", "Timeout a member", "/timeout member:<@user> duration:<10m/1h/1d> reason:<optional>"),
            ("/untimeout", "Remove a timeout from a member", "/untimeout member:<@user> reason:<optional>"),
            ("/warn", "Add, remove, clear, list and inspect warnings", "/warn add member:<@user> reason:<text> severity:<optional>"),
            ("/purge", "Bulk delete recent messages", "/purge amount:<1-100> user:<optional> contains:<optional>"),
            ("/logs", "Browse the moderation audit log", "/logs recent|user|moderator|stats"),
            ("/stats", "Moderation, ticket, server and activity statistics", "/stats moderation|tickets|server|activity"),
            ("/autorole", "Configure the role given to new members", "/autorole set|enable|disable|status|test"),
        ],
    },
    'tickets': {
        'title': "🎫 Ticket Commands",
        'description': "Commands for managing the ticket system (Admin only)",
        'color': EmbedColor.TICKET,
        'admin_only': True,
        'commands': [
            ("/ticket panel", "Post the ticket creation panel", "/ticket panel channel:<optional>"),
            ("/ticket close", "Close the current ticket", "/ticket close reason:<optional>"),
            ("/ticket reopen", "Reopen the current ticket", "/ticket reopen"),
            ("/ticket delete", "Archive the current ticket and delete its channel", "/ticket delete"),
            ("/ticket list", "List tickets with optional filters", "/ticket list status:<optional> user:<optional>"),
            ("/ticket note", "Add a staff note to the current ticket", "/ticket note note:<text>"),
        ],
        'extra': (
            "Creating Tickets",
            "Users create tickets with the **Create Ticket** button on the ticket panel, "
            "then pick a category and describe their issue."
        ),
    },
    'general': {
        'title': "📋 General Commands",
        'description': "General bot commands available to everyone",
        'color': EmbedColor.PRIMARY,
        'admin_only': False,
        'commands': [
            ("/help", "Show this help information", "/help category:<optional>"),
            ("/ping", "Check bot latency", "/ping"),
            ("/bot-info", "View bot statistics", "/bot-info"),
            ("/stats server", "Member, channel and role counts", "/stats server"),
            ("/stats activity", "Live member status and voice activity", "/stats activity"),
        ],
        'extra': (
            "Ticket Creation",
            "Create support tickets using the ticket panel, if administrators have set one up."
        ),
    },
}

HELP_CHOICES = [app_commands.Choice(name=name.title(), value=name) for name in HELP_CATEGORIES]


def help_embed(category: Optional[str], is_admin: bool) -> discord.Embed:
    """Build the ``/help`` overview, or the page for a single category.

    Non-administrators only see the general category. Asking for an
    admin-only page raises :class:`PermissionDenied`.
    """
    if category is None:
        lines = ["Welcome to the DisTrack server management bot!", ""]
        if is_admin:
            lines.append("**You have administrator permissions** - You can use all commands.")
        else:
            lines.append("**Note:** Most commands require administrator permissions.")
        lines += ["", "**Available Categories:**"]
        for name, section in HELP_CATEGORIES.items():
            if is_admin or not section['admin_only']:
                lines.append(f"`/help category:{name}` - {section['title'].split(' ', 1)[1]}")
        lines += [
            "",
            "**Ticket System:**",
            "Users can create support tickets using the ticket panel.",
            "Staff will be notified and can assist accordingly.",
        ]
        return (
            EmbedBuilder(title="ℹ️ DisTrack Bot Help", description="\n".join(lines))
            .color(EmbedColor.PRIMARY)
            .footer("Use /help category:<name> for detailed command info")
            .timestamp()
            .build()
        )

    section = HELP_CATEGORIES.get(category)
    if section is None:
        raise InvalidInput("Unknown help category.")
    if section['admin_only'] and not is_admin:
        raise PermissionDenied(f"You need administrator permissions to view {category} commands.")

    embed = (
        EmbedBuilder(title=section['title'], description=section['description'])
        .color(section['color'])
        .timestamp()
    )
    for name, summary, usage in section['commands']:
        embed.field(name, f"{summary}\n**Usage:** `{usage}`", False)
    if 'extra' in section:
        embed.field(*section['extra'], False)
    return embed.build()


class GeneralCog(DisTrackCog, name="General"):
    @app_commands.command(name="help", description="Show bot commands and information")
    @app_commands.describe(category="Show commands for a specific category")
    @app_commands.choices(category=HELP_CHOICES)
    async def help_command(self, interaction: discord.Interaction, category: Optional[app_commands.Choice[str]] = None):
        is_admin = self.bot.permissions.has_admin_permissions(interaction.user)
        embed = help_embed(category.value if category else None, is_admin)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="ping", description="Check bot latency")
    async def ping(self, interaction: discord.Interaction):
        start = time.perf_counter()
        await interaction.response.send_message("Pinging...")
        round_trip = (time.perf_counter() - start) * 1000
        ws_latency = self.bot.latency * 1000 if self.bot.latency else 0

        embed = (
            EmbedBuilder(title="🏓 Pong!")
            .color(EmbedColor.SUCCESS if ws_latency < 200 else EmbedColor.WARNING)
            .field("WebSocket Latency", f"{ws_latency:.0f}ms", True)
            .field("Round Trip", f"{round_trip:.0f}ms", True)
            .build()
        )
        await interaction.edit_original_response(content=None, embed=embed)

    @app_commands.command(name="bot-info", description="View bot statistics")
    async def botinfo_command(self, interaction: discord.Interaction):
        await interaction.response.defer()

        memory_mb = psutil.Process().memory_info().rss / 1024 / 1024
        total_members = sum(g.member_count or 0 for g in self.bot.guilds)

        embed = (
            EmbedBuilder(title="🤖 Bot Information", description=f"**{self.bot.user.name}** v{self.bot.version}")
            .color(EmbedColor.PRIMARY)
            .thumbnail(self.bot.user.display_avatar.url)
            .field("Uptime", format_uptime(utcnow() - self.bot.start_time), True)
            .field("Latency", f"{self.bot.latency * 1000:.0f}ms", True)
            .field("Servers", str(len(self.bot.guilds)), True)
            .field("Users", f"{total_members:,}", True)
            .field("Memory", f"{memory_mb:.1f} MB", True)
            .field("Python", platform.python_version(), True)
            .field("Discord.py", discord.__version__, True)
            .field("Database", "🟢 Online" if await self.bot.db.is_healthy() else "🔴 Offline", True)
        )

        if interaction.guild is not None:
            tickets = self.bot.db.tickets
            open_count = await tickets.count(interaction.guild.id, status=TicketStatus.OPEN)
            total = await tickets.count(interaction.guild.id)
            embed.field("Tickets (this server)", f"**Open:** {open_count}\n**Total:** {total}", True)

        await interaction.followup.send(embed=embed.build())
