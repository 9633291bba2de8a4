"""
Command Boundary
Shared cog base that turns domain errors into user-visible replies
"""

import logging

import discord
from discord import app_commands
from discord.ext import commands

from distrack.database.engine import DatabaseError
from distrack.errors import DisTrackError, ExternalFailure
from distrack.utils.embed_builder import EmbedBuilder

logger = logging.getLogger('distrack.bot')


def classify(error: BaseException) -> DisTrackError:
    if isinstance(error, app_commands.CommandInvokeError):
        error = error.original

    if isinstance(error, DisTrackError):
        return error
    if isinstance(error, (DatabaseError, ConnectionError, TimeoutError)):
        return ExternalFailure(f"storage: {error}")
    if isinstance(error, discord.HTTPException):
        return ExternalFailure(f"discord: {error}")
    return ExternalFailure(f"unexpected: {error!r}")


async def send_error(interaction: discord.Interaction, error: BaseException):
    """Reply to ``interaction`` with the classified error; only ExternalFailure is logged."""
    failure = classify(error)
    if isinstance(failure, ExternalFailure):
        command = interaction.command.qualified_name if interaction.command else (interaction.data or {}).get('custom_id')
        logger.error(f"Interaction {command} failed: {failure}", exc_info=error)

    embed = EmbedBuilder.error(failure.title, failure.user_message)
    try:
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=True)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=True)
    except discord.HTTPException as e:
        logger.warning(f"Could not deliver error reply: {e}")


class DisTrackView(discord.ui.View):
    async def on_error(self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item):
        await send_error(interaction, error)


class DisTrackModal(discord.ui.Modal):
    async def on_error(self, interaction: discord.Interaction, error: Exception):
        await send_error(interaction, error)


class DisTrackCog(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def cog_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        await send_error(interaction, error)
