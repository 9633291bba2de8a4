"""
Permission Checks for DisTrack
Admin gating and role-hierarchy predicates used by the services
"""

from typing import Iterable, Optional, Set, Union

import discord

from distrack.errors import PermissionDenied


class PermissionChecker:
    def __init__(self, owner_ids: Optional[Iterable[int]] = None):
        self._bot_owners: Set[int] = set(owner_ids or [])

    def is_bot_owner(self, user_id: int) -> bool:
        return user_id in self._bot_owners

    def has_admin_permissions(self, member: Union[discord.Member, discord.User]) -> bool:
        if self.is_bot_owner(member.id):
            return True
        permissions = getattr(member, 'guild_permissions', None)
        return bool(permissions and permissions.administrator)

    def require_admin(self, member: Union[discord.Member, discord.User], message: Optional[str] = None):
        if not self.has_admin_permissions(member):
            raise PermissionDenied(message or "You need Administrator permissions to use this command.")

    def is_protected(self, member: Union[discord.Member, discord.User]) -> bool:
        """Administrators are never valid moderation targets."""
        permissions = getattr(member, 'guild_permissions', None)
        return bool(permissions and permissions.administrator)

    def can_moderate(self, moderator: discord.Member, target: discord.Member) -> bool:
        if moderator.id == target.id:
            return False

        if target.id == target.guild.owner_id:
            return False

        if moderator.id == moderator.guild.owner_id:
            return True

        if self.is_bot_owner(moderator.id):
            return True

        if moderator.top_role <= target.top_role:
            return False

        return True

    def bot_outranks(self, guild: discord.Guild, target: discord.Member) -> bool:
        """Whether the bot's own role position allows it to act on ``target``."""
        me = guild.me
        if target.id == guild.owner_id:
            return False
        return me.top_role > target.top_role

    def can_assign_role(self, member: discord.Member, role: discord.Role) -> bool:
        if member.id == member.guild.owner_id:
            return True

        return member.top_role > role
