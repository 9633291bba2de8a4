"""
Data Models for DisTrack
Defines the data structures used throughout the bot
"""

from .audit import AuditAction, AuditLogEntry, TargetType
from .guild import AutoRoleSettings, GuildConfig, ModerationSettings, TicketSettings, WelcomeSettings
from .ticket import Ticket, TicketMessage, TicketNote, TicketPriority, TicketStatus
from .warning import ActionTaken, Severity, Warning

__all__ = [
    'AuditAction',
    'AuditLogEntry',
    'TargetType',
    'AutoRoleSettings',
    'GuildConfig',
    'ModerationSettings',
    'TicketSettings',
    'WelcomeSettings',
    'Ticket',
    'TicketMessage',
    'TicketNote',
    'TicketPriority',
    'TicketStatus',
    'ActionTaken',
    'Severity',
    'Warning'
]
