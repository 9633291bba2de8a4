from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from discord import app_commands

from distrack.cogs.general import GeneralCog, help_embed
from distrack.errors import InvalidInput, PermissionDenied

from conftest import make_member


def test_overview_hides_admin_categories():
    member_view = help_embed(None, is_admin=False).description
    admin_view = help_embed(None, is_admin=True).description

    assert "/help category:general" in member_view
    assert "/help category:moderation" not in member_view
    assert "/help category:tickets" in admin_view
    assert "administrator permissions" in admin_view


def test_category_pages():
    tickets = help_embed('tickets', is_admin=True)
    names = [f.name for f in tickets.fields]

    assert "/ticket close" in names
    assert names[-1] == "Creating Tickets"
    assert "/ping" in [f.name for f in help_embed('general', is_admin=False).fields]


def test_admin_categories_require_admin():
    with pytest.raises(PermissionDenied):
        help_embed('moderation', is_admin=False)
    with pytest.raises(PermissionDenied):
        help_embed('tickets', is_admin=False)
    with pytest.raises(InvalidInput):
        help_embed('music', is_admin=True)


@pytest.mark.asyncio
async def test_help_command_replies_ephemeral(permissions):
    bot = MagicMock()
    bot.permissions = permissions
    cog = GeneralCog(bot)
    interaction = MagicMock()
    interaction.user = make_member(admin=True)
    interaction.response.send_message = AsyncMock()

    await GeneralCog.help_command.callback(cog, interaction, app_commands.Choice(name="Moderation", value="moderation"))

    kwargs = interaction.response.send_message.await_args.kwargs
    assert kwargs['ephemeral'] is True
    assert kwargs['embed'].title == "🛡️ Moderation Commands"
