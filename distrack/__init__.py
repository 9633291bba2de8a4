"""
DisTrack
Discord server-management bot: tickets, moderation, audit logging and reporting
"""

__version__ = "1.0.0"
