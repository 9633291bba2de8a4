"""
DisTrack Discord Bot
Main entry point: tickets, moderation, audit logs and reporting
"""

import asyncio
import logging
import os
import sys
from datetime import datetime

import discord
from discord.ext import commands
from dotenv import load_dotenv

from distrack import __version__
from distrack.cogs import AutoRoleCog, GeneralCog, LogsCog, ModerationCog, StatsCog, TicketsCog
from distrack.config import Settings
from distrack.database import LocalDatabaseClient
from distrack.db_manager import DatabaseManager
from distrack.services.moderation import ModerationService
from distrack.services.reporting import ReportingService
from distrack.services.tickets import TicketService
from distrack.utils.helpers import utcnow
from distrack.utils.permissions import PermissionChecker

load_dotenv()

settings = Settings.from_env()

os.makedirs(settings.log_dir, exist_ok=True)

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(os.path.join(settings.log_dir, 'bot.log'), mode='a', encoding='utf-8')
    ]
)
logger = logging.getLogger('distrack.bot')


def build_database(settings: Settings) -> DatabaseManager:
    if settings.db_api_uri == 'local':
        data_dir = os.getenv('DB_DATA_DIR', 'data/db')
        os.makedirs(data_dir, exist_ok=True)
        client = LocalDatabaseClient(snapshot_path=os.path.join(data_dir, 'snapshot.json'))
        return DatabaseManager(client=client)
    return DatabaseManager(db_api_uri=settings.db_api_uri)


class DisTrackBot(commands.AutoShardedBot):
    def __init__(self, settings: Settings):
        intents = discord.Intents.default()
        intents.members = True
        intents.message_content = True
        intents.presences = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None
        )

        self.settings = settings
        self.db: DatabaseManager = build_database(settings)
        self.permissions = PermissionChecker([settings.owner_id] if settings.owner_id else None)

        self.tickets = TicketService(self.db, self.permissions)
        self.moderation = ModerationService(self.db, self.permissions)
        self.reporting = ReportingService(self.db)

        self.start_time: datetime = utcnow()
        self.version: str = __version__

    async def setup_hook(self):
        logger.info("Initializing database connection...")
        await self.db.initialize()

        logger.info("Loading cogs...")
        cogs = [
            TicketsCog(self),
            ModerationCog(self),
            LogsCog(self),
            StatsCog(self),
            AutoRoleCog(self),
            GeneralCog(self)
        ]

        for cog in cogs:
            await self.add_cog(cog)
            logger.info(f"Loaded cog: {cog.__class__.__name__}")

        logger.info("Syncing slash commands...")
        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash command(s) globally")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync commands: {e}")

    async def on_ready(self):
        logger.info("Bot is ready!")
        if self.user:
            logger.info(f"Logged in as: {self.user} (ID: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guild(s)")
        logger.info(f"Discord.py version: {discord.__version__}")

        await self.change_presence(
            activity=discord.Activity(
                type=discord.ActivityType.watching,
                name=f"{len(self.guilds)} servers | /ticket"
            ),
            status=discord.Status.online
        )

    async def on_guild_join(self, guild: discord.Guild):
        logger.info(f"Joined guild: {guild.name} (ID: {guild.id})")
        await self.db.guilds.get_or_create(guild.id)

    async def on_guild_remove(self, guild: discord.Guild):
        logger.info(f"Left guild: {guild.name} (ID: {guild.id})")

    async def close(self):
        logger.info("Shutting down bot...")
        await self.db.close()
        await super().close()


async def main():
    if not settings.token:
        logger.error("DISCORD_TOKEN not found in environment variables!")
        sys.exit(1)

    bot = DisTrackBot(settings)

    try:
        logger.info("Starting bot...")
        await bot.start(settings.token)
    except discord.LoginFailure:
        logger.error("Invalid Discord token! Please check your DISCORD_TOKEN.")
        sys.exit(1)
    finally:
        if not bot.is_closed():
            await bot.close()


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
