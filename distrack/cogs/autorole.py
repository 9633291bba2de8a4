"""
Auto Role Cog
Assigns a configured role to members when they join
"""

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from distrack.cogs.base import DisTrackCog
from distrack.errors import ForbiddenTarget, InvalidInput, InvalidState, translate_discord_errors
from distrack.models.audit import AuditAction, TargetType
from distrack.models.guild import AutoRoleSettings
from distrack.utils.embed_builder import EmbedBuilder, EmbedColor

logger = logging.getLogger('distrack.bot')


class AutoRoleCog(DisTrackCog, name="AutoRole"):
    autorole = app_commands.Group(name="autorole", description="Automatic role assignment", guild_only=True)

    def _check_assignable(self, guild: discord.Guild, actor: discord.Member, role: discord.Role):
        if role.is_default():
            raise InvalidInput("The @everyone role cannot be used as an auto role.")
        if role.managed:
            raise InvalidInput(f"{role.mention} is managed by an integration and cannot be assigned.")
        if guild.me.top_role <= role:
            raise ForbiddenTarget(f"I cannot assign {role.mention} because it is higher than or equal to my highest role.")
        if not self.bot.permissions.can_assign_role(actor, role):
            raise ForbiddenTarget(f"You cannot assign {role.mention} because it is higher than or equal to your highest role.")

    def _pick_role(self, member: discord.Member, settings: AutoRoleSettings) -> Optional[discord.Role]:
        role_id = settings.role_id
        if member.bot and settings.bot_role_id:
            role_id = settings.bot_role_id
        if not role_id:
            return None
        return member.guild.get_role(role_id)

    async def assign_role(self, member: discord.Member) -> Optional[discord.Role]:
        config = await self.bot.db.guilds.get(member.guild.id)
        if config is None or not config.autorole.enabled:
            return None

        role = self._pick_role(member, config.autorole)
        if role is None:
            logger.warning(f"Auto role for guild {member.guild.id} is missing")
            return None

        await member.add_roles(role, reason="Auto role")
        return role

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member):
        try:
            role = await self.assign_role(member)
        except discord.HTTPException as e:
            logger.error(f"Failed to assign auto role to {member} in {member.guild.id}: {e}")
            return

        if role is not None:
            logger.info(f"Assigned auto role {role.name} to {member} in {member.guild.id}")

    @autorole.command(name="set", description="Set the role given to new members")
    @app_commands.describe(role="Role for new members", bot_role="Role for new bots (optional)")
    async def autorole_set(
        self,
        interaction: discord.Interaction,
        role: discord.Role,
        bot_role: Optional[discord.Role] = None
    ):
        self.bot.permissions.require_admin(interaction.user)
        guild = interaction.guild

        self._check_assignable(guild, interaction.user, role)
        if bot_role is not None:
            self._check_assignable(guild, interaction.user, bot_role)

        config = await self.bot.db.guilds.get_or_create(guild.id)
        config.autorole.enabled = True
        config.autorole.role_id = role.id
        config.autorole.bot_role_id = bot_role.id if bot_role else None
        await self.bot.db.guilds.save(config)

        await self.bot.db.audit.log_action(
            guild_id=guild.id,
            action=AuditAction.AUTOROLE_SET,
            moderator_id=interaction.user.id,
            target_id=role.id,
            target_type=TargetType.ROLE,
            details={'roleId': role.id, 'botRoleId': config.autorole.bot_role_id}
        )

        description = f"New members will receive {role.mention}."
        if bot_role:
            description += f"\nNew bots will receive {bot_role.mention}."
        await interaction.response.send_message(embed=EmbedBuilder.success("Auto Role Set", description))

    async def _toggle(self, interaction: discord.Interaction, enabled: bool):
        self.bot.permissions.require_admin(interaction.user)

        config = await self.bot.db.guilds.get_or_create(interaction.guild.id)
        if enabled and not config.autorole.role_id:
            raise InvalidState("Set a role with `/autorole set` before enabling auto role.")

        config.autorole.enabled = enabled
        await self.bot.db.guilds.save(config)

        await self.bot.db.audit.log_action(
            guild_id=interaction.guild.id,
            action=AuditAction.CONFIG_UPDATE,
            moderator_id=interaction.user.id,
            target_id=interaction.guild.id,
            target_type=TargetType.GUILD,
            details={'setting': 'autorole.enabled', 'value': enabled}
        )

        state = "enabled" if enabled else "disabled"
        await interaction.response.send_message(embed=EmbedBuilder.success(f"Auto Role {state.title()}", f"Auto role is now {state}."))

    @autorole.command(name="enable", description="Enable auto role")
    async def autorole_enable(self, interaction: discord.Interaction):
        await self._toggle(interaction, True)

    @autorole.command(name="disable", description="Disable auto role")
    async def autorole_disable(self, interaction: discord.Interaction):
        await self._toggle(interaction, False)

    @autorole.command(name="status", description="Show the auto role configuration")
    async def autorole_status(self, interaction: discord.Interaction):
        self.bot.permissions.require_admin(interaction.user)
        config = await self.bot.db.guilds.get_or_create(interaction.guild.id)
        settings = config.autorole

        embed = (
            EmbedBuilder(title="🏷️ Auto Role")
            .color(EmbedColor.SUCCESS if settings.enabled else EmbedColor.ERROR)
            .field("Status", "Enabled" if settings.enabled else "Disabled", True)
            .field("Member Role", f"<@&{settings.role_id}>" if settings.role_id else "Not set", True)
            .field("Bot Role", f"<@&{settings.bot_role_id}>" if settings.bot_role_id else "Not set", True)
            .build()
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @autorole.command(name="test", description="Apply the auto role to a member now")
    @app_commands.describe(member="Member to test with")
    async def autorole_test(self, interaction: discord.Interaction, member: discord.Member):
        self.bot.permissions.require_admin(interaction.user)
        await interaction.response.defer(ephemeral=True)

        async with translate_discord_errors("assign the auto role"):
            role = await self.assign_role(member)

        if role is None:
            raise InvalidState("Auto role is disabled or its role no longer exists.")

        await interaction.followup.send(
            embed=EmbedBuilder.success("Auto Role Applied", f"Gave {role.mention} to {member.mention}."),
            ephemeral=True
        )
