"""
Ticket System Cog
Ticket panel, category selection, submission modal and staff controls
"""

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from distrack.cogs.base import DisTrackCog, DisTrackModal, DisTrackView, send_error
from distrack.config import (
    TICKET_CATEGORIES,
    TICKET_DESCRIPTION_MAX,
    TICKET_SUBJECT_MAX,
    Emojis,
    find_category,
)
from distrack.errors import InvalidInput, notify_best_effort, translate_discord_errors
from distrack.interactions import SEPARATOR, CustomId, ticket_custom_id
from distrack.models.ticket import TicketStatus
from distrack.utils.embed_builder import EmbedBuilder, EmbedColor


class TicketModal(DisTrackModal):
    subject = discord.ui.TextInput(
        label="Subject",
        placeholder="Brief summary of your issue",
        max_length=TICKET_SUBJECT_MAX
    )
    description = discord.ui.TextInput(
        label="Description",
        placeholder="Describe your issue in detail",
        style=discord.TextStyle.paragraph,
        max_length=TICKET_DESCRIPTION_MAX
    )

    def __init__(self, bot: commands.Bot, category: str):
        custom_id = ticket_custom_id('submit', category)
        info = find_category(category)
        super().__init__(title=f"{info.emoji} {info.name}", custom_id=custom_id)
        self.bot = bot

    async def on_submit(self, interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True, thinking=True)

        category = CustomId.parse(self.custom_id).category
        ticket, channel = await self.bot.tickets.create_ticket(
            interaction.guild,
            interaction.user,
            category,
            self.subject.value,
            self.description.value
        )

        await notify_best_effort(
            channel.send(
                content=interaction.user.mention,
                embed=EmbedBuilder.ticket_opened(ticket, interaction.user, self.description.value),
                view=TicketControlView(self.bot)
            ),
            f"opening message for {ticket.ticket_id}"
        )

        await interaction.followup.send(
            embed=EmbedBuilder.success("Ticket Created", f"Your ticket has been created: {channel.mention}"),
            ephemeral=True
        )


class CategorySelect(discord.ui.Select):
    def __init__(self, bot: commands.Bot):
        options = [
            discord.SelectOption(
                label=category.name,
                value=category.value,
                emoji=category.emoji,
                description=category.description
            )
            for category in TICKET_CATEGORIES
        ]
        super().__init__(
            placeholder="Choose a ticket category...",
            options=options,
            custom_id=ticket_custom_id('category')
        )
        self.bot = bot

    async def callback(self, interaction: discord.Interaction):
        await interaction.response.send_modal(TicketModal(self.bot, self.values[0]))


class CategorySelectView(DisTrackView):
    def __init__(self, bot: commands.Bot):
        super().__init__(timeout=180)
        self.add_item(CategorySelect(bot))


class TicketPanelView(DisTrackView):
    def __init__(self, bot: commands.Bot):
        super().__init__(timeout=None)
        self.bot = bot

    @discord.ui.button(label="Create Ticket", style=discord.ButtonStyle.success, emoji="🎫",
                       custom_id=ticket_custom_id('create'))
    async def create_ticket(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.bot.tickets.ensure_can_open(interaction.guild.id, interaction.user.id)
        await interaction.response.send_message(
            embed=EmbedBuilder.info("Select a Category", "Choose the category that best fits your issue."),
            view=CategorySelectView(self.bot),
            ephemeral=True
        )


class TicketControlView(DisTrackView):
    def __init__(self, bot: commands.Bot):
        super().__init__(timeout=None)
        self.bot = bot

    @discord.ui.button(label="Close Ticket", style=discord.ButtonStyle.danger, emoji="🔒",
                       custom_id=ticket_custom_id('close'))
    async def close_ticket(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.defer()
        ticket = await self.bot.tickets.close_ticket(interaction.channel, interaction.user, "Closed via button")
        await interaction.followup.send(
            embed=closed_embed(ticket.ticket_id, interaction.user),
            view=ClosedTicketView(self.bot)
        )


class ClosedTicketView(DisTrackView):
    def __init__(self, bot: commands.Bot):
        super().__init__(timeout=None)
        self.bot = bot

    @discord.ui.button(label="Reopen", style=discord.ButtonStyle.success, emoji="🔓",
                       custom_id=ticket_custom_id('reopen'))
    async def reopen_ticket(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.defer()
        ticket = await self.bot.tickets.reopen_ticket(interaction.channel, interaction.user)
        await interaction.followup.send(
            embed=reopened_embed(ticket.ticket_id, interaction.user),
            view=TicketControlView(self.bot)
        )

    @discord.ui.button(label="Delete", style=discord.ButtonStyle.secondary, emoji="🗑️",
                       custom_id=ticket_custom_id('delete'))
    async def delete_ticket(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.bot.tickets.archive_and_delete(interaction.channel, interaction.user, "Deleted via button")
        await interaction.response.send_message(embed=deleting_embed(self.bot.tickets.delete_delay))


def closed_embed(ticket_id: str, user: discord.abc.User) -> discord.Embed:
    return (
        EmbedBuilder(title=f"{Emojis.LOCK} Ticket Closed", description=f"**{ticket_id}** was closed by {user.mention}.")
        .color(EmbedColor.WARNING)
        .footer("Use the buttons below to reopen or delete this ticket")
        .build()
    )


def reopened_embed(ticket_id: str, user: discord.abc.User) -> discord.Embed:
    return EmbedBuilder.success("Ticket Reopened", f"**{ticket_id}** was reopened by {user.mention}.")


def deleting_embed(delay: float) -> discord.Embed:
    return EmbedBuilder.warning("Deleting Ticket", f"This channel will be deleted in {int(delay)} seconds.")


class TicketsCog(DisTrackCog, name="Tickets"):
    ticket = app_commands.Group(name="ticket", description="Ticket system commands", guild_only=True)

    def __init__(self, bot: commands.Bot):
        super().__init__(bot)
        self.bot.add_view(TicketPanelView(bot))
        self.bot.add_view(TicketControlView(bot))
        self.bot.add_view(ClosedTicketView(bot))

    @commands.Cog.listener()
    async def on_interaction(self, interaction: discord.Interaction):
        if interaction.type not in (discord.InteractionType.component, discord.InteractionType.modal_submit):
            return

        custom_id = (interaction.data or {}).get('custom_id', '')
        if not custom_id.startswith('ticket' + SEPARATOR):
            return

        try:
            CustomId.parse(custom_id)
        except InvalidInput as e:
            await send_error(interaction, e)

    @ticket.command(name="panel", description="Post the ticket creation panel")
    @app_commands.describe(channel="Channel to post the panel in (defaults to this one)")
    async def ticket_panel(self, interaction: discord.Interaction, channel: Optional[discord.TextChannel] = None):
        self.bot.permissions.require_admin(interaction.user)
        target = channel or interaction.channel

        async with translate_discord_errors(f"post in {target.mention}"):
            await target.send(embed=EmbedBuilder.ticket_panel(), view=TicketPanelView(self.bot))
        await interaction.response.send_message(
            embed=EmbedBuilder.success("Panel Posted", f"Ticket panel posted in {target.mention}."),
            ephemeral=True
        )

    @ticket.command(name="close", description="Close the current ticket")
    @app_commands.describe(reason="Reason for closing")
    async def ticket_close(self, interaction: discord.Interaction, reason: Optional[str] = None):
        await interaction.response.defer()
        ticket = await self.bot.tickets.close_ticket(interaction.channel, interaction.user, reason)
        await interaction.followup.send(
            embed=closed_embed(ticket.ticket_id, interaction.user),
            view=ClosedTicketView(self.bot)
        )

    @ticket.command(name="reopen", description="Reopen the current ticket")
    async def ticket_reopen(self, interaction: discord.Interaction):
        await interaction.response.defer()
        ticket = await self.bot.tickets.reopen_ticket(interaction.channel, interaction.user)
        await interaction.followup.send(
            embed=reopened_embed(ticket.ticket_id, interaction.user),
            view=TicketControlView(self.bot)
        )

    @ticket.command(name="delete", description="Archive the current ticket and delete its channel")
    @app_commands.describe(reason="Reason for deleting")
    async def ticket_delete(self, interaction: discord.Interaction, reason: Optional[str] = None):
        await self.bot.tickets.archive_and_delete(interaction.channel, interaction.user, reason)
        await interaction.response.send_message(embed=deleting_embed(self.bot.tickets.delete_delay))

    @ticket.command(name="list", description="List tickets in this server")
    @app_commands.describe(status="Only show tickets with this status", user="Only show tickets opened by this user")
    @app_commands.choices(status=[
        app_commands.Choice(name=s.value.title(), value=s.value) for s in TicketStatus
    ])
    async def ticket_list(
        self,
        interaction: discord.Interaction,
        status: Optional[app_commands.Choice[str]] = None,
        user: Optional[discord.Member] = None
    ):
        self.bot.permissions.require_admin(interaction.user)
        await interaction.response.defer(ephemeral=True)

        tickets = await self.bot.tickets.list_tickets(
            interaction.guild.id,
            status=TicketStatus(status.value) if status else None,
            user_id=user.id if user else None
        )

        if not tickets:
            return await interaction.followup.send(
                embed=EmbedBuilder.info("No Tickets", "No tickets found matching the criteria."),
                ephemeral=True
            )

        filters = []
        if status:
            filters.append(f"**Status:** {status.name}")
        if user:
            filters.append(f"**User:** {user.mention}")

        await interaction.followup.send(
            embed=EmbedBuilder.ticket_list(tickets, "\n".join(filters) or None),
            ephemeral=True
        )

    @ticket.command(name="note", description="Add a staff note to the current ticket")
    @app_commands.describe(note="The note to add")
    async def ticket_note(self, interaction: discord.Interaction, note: str):
        ticket = await self.bot.tickets.add_note(interaction.channel, interaction.user, note)
        await interaction.response.send_message(
            embed=EmbedBuilder.success("Note Added", f"Note added to **{ticket.ticket_id}** ({len(ticket.notes)} total)."),
            ephemeral=True
        )
