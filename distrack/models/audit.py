"""
Audit Log Models
Immutable records of moderation and lifecycle actions
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from distrack.utils.helpers import utcnow


class AuditAction(Enum):
    BAN = "ban"
    UNBAN = "unban"
    KICK = "kick"
    TIMEOUT = "timeout"
    REMOVE_TIMEOUT = "remove_timeout"
    WARN_ADD = "warn_add"
    WARN_REMOVE = "warn_remove"
    WARN_CLEAR = "warn_clear"
    PURGE = "purge"

    ROLE_ADD = "role_add"
    ROLE_REMOVE = "role_remove"
    AUTOROLE_SET = "autorole_set"

    TICKET_CREATE = "ticket_create"
    TICKET_CLOSE = "ticket_close"
    TICKET_REOPEN = "ticket_reopen"
    TICKET_DELETE = "ticket_delete"

    MESSAGE_DELETE = "message_delete"
    MESSAGE_BULK_DELETE = "message_bulk_delete"
    CHANNEL_CREATE = "channel_create"
    CHANNEL_DELETE = "channel_delete"
    CHANNEL_UPDATE = "channel_update"

    MEMBER_JOIN = "member_join"
    MEMBER_LEAVE = "member_leave"
    CONFIG_UPDATE = "config_update"
    BOT_COMMAND = "bot_command"

    @property
    def emoji(self) -> str:
        emojis = {
            AuditAction.BAN: "🔨",
            AuditAction.UNBAN: "🔓",
            AuditAction.KICK: "👢",
            AuditAction.TIMEOUT: "⏰",
            AuditAction.REMOVE_TIMEOUT: "🔊",
            AuditAction.WARN_ADD: "⚠️",
            AuditAction.WARN_REMOVE: "✅",
            AuditAction.WARN_CLEAR: "🧹",
            AuditAction.PURGE: "🗑️",
            AuditAction.TICKET_CREATE: "🎫",
            AuditAction.TICKET_CLOSE: "🔒",
            AuditAction.TICKET_REOPEN: "🔓",
            AuditAction.TICKET_DELETE: "❌",
            AuditAction.ROLE_ADD: "➕",
            AuditAction.ROLE_REMOVE: "➖"
        }
        return emojis.get(self, "📝")

    @property
    def display_name(self) -> str:
        names = {
            AuditAction.BAN: "Ban",
            AuditAction.UNBAN: "Unban",
            AuditAction.KICK: "Kick",
            AuditAction.TIMEOUT: "Timeout",
            AuditAction.REMOVE_TIMEOUT: "Remove Timeout",
            AuditAction.WARN_ADD: "Warning Added",
            AuditAction.WARN_REMOVE: "Warning Removed",
            AuditAction.WARN_CLEAR: "Warnings Cleared",
            AuditAction.PURGE: "Messages Purged",
            AuditAction.TICKET_CREATE: "Ticket Created",
            AuditAction.TICKET_CLOSE: "Ticket Closed",
            AuditAction.TICKET_REOPEN: "Ticket Reopened",
            AuditAction.TICKET_DELETE: "Ticket Deleted",
            AuditAction.ROLE_ADD: "Role Added",
            AuditAction.ROLE_REMOVE: "Role Removed"
        }
        return names.get(self, self.value.capitalize())


class TargetType(Enum):
    USER = "user"
    CHANNEL = "channel"
    ROLE = "role"
    MESSAGE = "message"
    GUILD = "guild"
    OTHER = "other"


@dataclass(frozen=True)
class AuditLogEntry:
    guild_id: int
    action: AuditAction
    moderator_id: int
    target_id: Optional[int] = None
    target_type: TargetType = TargetType.USER
    reason: str = "No reason provided"
    details: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    entry_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'guild_id': self.guild_id,
            'action': self.action.value,
            'moderator_id': self.moderator_id,
            'target_id': self.target_id,
            'target_type': self.target_type.value,
            'reason': self.reason,
            'details': self.details,
            'metadata': self.metadata,
            'created_at': self.created_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'AuditLogEntry':
        return cls(
            guild_id=data['guild_id'],
            action=AuditAction(data['action']),
            moderator_id=data['moderator_id'],
            target_id=data.get('target_id'),
            target_type=TargetType(data.get('target_type', 'user')),
            reason=data.get('reason') or "No reason provided",
            details=data.get('details', {}),
            metadata=data.get('metadata', {}),
            created_at=data['created_at'],
            entry_id=data.get('_id')
        )
