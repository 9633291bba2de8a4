"""
DisTrack Cogs
Command modules for the Discord bot
"""

from .tickets import TicketsCog
from .moderation import ModerationCog
from .logs import LogsCog
from .stats import StatsCog
from .autorole import AutoRoleCog
from .general import GeneralCog

__all__ = [
    'TicketsCog',
    'ModerationCog',
    'LogsCog',
    'StatsCog',
    'AutoRoleCog',
    'GeneralCog'
]
