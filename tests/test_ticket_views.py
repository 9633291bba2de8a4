from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from distrack.cogs.tickets import CategorySelectView, TicketControlView, TicketModal, TicketPanelView, TicketsCog
from distrack.errors import LimitExceeded
from distrack.models.ticket import TicketStatus
from distrack.services.tickets import TicketService

from conftest import make_member


@pytest.fixture()
def bot(db, permissions):
    bot = MagicMock()
    bot.db = db
    bot.permissions = permissions
    bot.tickets = TicketService(db, permissions, max_open=3, delete_delay=0)
    return bot


def make_interaction(guild, user, custom_id=None, kind=discord.InteractionType.component):
    interaction = MagicMock()
    interaction.type = kind
    interaction.guild = guild
    interaction.user = user
    interaction.command = None
    interaction.data = {'custom_id': custom_id} if custom_id else {}
    interaction.response.is_done = MagicMock(return_value=False)
    interaction.response.send_message = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


@pytest.mark.asyncio
async def test_panel_button_offers_categories(bot, guild):
    view = TicketPanelView(bot)
    interaction = make_interaction(guild, make_member())

    await view.create_ticket.callback(interaction)

    kwargs = interaction.response.send_message.await_args.kwargs
    assert kwargs['ephemeral'] is True
    assert isinstance(kwargs['view'], CategorySelectView)


@pytest.mark.asyncio
async def test_panel_button_at_open_limit(bot, guild):
    user = make_member()
    for _ in range(3):
        await bot.tickets.create_ticket(guild, user, "general_support", "Help", "Details")
    view = TicketPanelView(bot)
    interaction = make_interaction(guild, user)

    with pytest.raises(LimitExceeded) as excinfo:
        await view.create_ticket.callback(interaction)
    interaction.response.send_message.assert_not_awaited()

    await view.on_error(interaction, excinfo.value, view.create_ticket)
    kwargs = interaction.response.send_message.await_args.kwargs
    assert kwargs['ephemeral'] is True
    assert "3 open tickets" in kwargs['embed'].description


@pytest.mark.asyncio
async def test_modal_submit_opens_ticket(bot, db, guild):
    user = make_member()
    modal = TicketModal(bot, "bug_report")
    modal.subject = MagicMock(value="Crash on start")
    modal.description = MagicMock(value="The app closes right away")
    interaction = make_interaction(guild, user, kind=discord.InteractionType.modal_submit)

    await modal.on_submit(interaction)

    interaction.response.defer.assert_awaited_once_with(ephemeral=True, thinking=True)
    tickets = await db.tickets.find(guild.id, status=TicketStatus.OPEN)
    assert [t.subject for t in tickets] == ["Crash on start"]
    assert tickets[0].category == "Bug Report"

    opened = guild.create_text_channel.await_args
    assert opened.kwargs['name'] == tickets[0].ticket_id

    followup = interaction.followup.send.await_args.kwargs
    assert followup['ephemeral'] is True
    assert "Ticket Created" in followup['embed'].title


@pytest.mark.asyncio
async def test_modal_submit_survives_failed_opening_message(bot, db, guild):
    response = MagicMock(status=403, reason="Forbidden")
    sent = []

    original = guild.create_text_channel.side_effect

    def new_channel(**kwargs):
        channel = original(**kwargs)
        channel.send = AsyncMock(side_effect=discord.Forbidden(response, "Missing Access"))
        sent.append(channel)
        return channel

    guild.create_text_channel.side_effect = new_channel
    modal = TicketModal(bot, "general_support")
    modal.subject = MagicMock(value="Billing")
    modal.description = MagicMock(value="Charged twice")
    interaction = make_interaction(guild, make_member(), kind=discord.InteractionType.modal_submit)

    await modal.on_submit(interaction)

    sent[0].send.assert_awaited_once()
    assert isinstance(sent[0].send.await_args.kwargs['view'], TicketControlView)
    assert await db.tickets.count(guild.id) == 1
    interaction.followup.send.assert_awaited_once()


@pytest.mark.asyncio
async def test_unknown_ticket_interaction_is_rejected(bot, guild):
    cog = TicketsCog(bot)
    assert bot.add_view.call_count == 3

    interaction = make_interaction(guild, make_member(), custom_id="ticket:explode")
    await cog.on_interaction(interaction)

    kwargs = interaction.response.send_message.await_args.kwargs
    assert kwargs['ephemeral'] is True
    assert "ticket:explode" in kwargs['embed'].description


@pytest.mark.asyncio
async def test_known_and_foreign_interactions_are_ignored(bot, guild):
    cog = TicketsCog(bot)

    for custom_id, kind in (
        ("ticket:close", discord.InteractionType.component),
        ("ticket:submit:bug_report", discord.InteractionType.modal_submit),
        ("other:thing", discord.InteractionType.component),
        ("ticket:explode", discord.InteractionType.application_command),
    ):
        interaction = make_interaction(guild, make_member(), custom_id=custom_id, kind=kind)
        await cog.on_interaction(interaction)
        interaction.response.send_message.assert_not_awaited()
