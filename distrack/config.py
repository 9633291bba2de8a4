"""
Bot Configuration
Environment-backed settings and static constants for DisTrack
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional


@dataclass(frozen=True)
class TicketCategoryInfo:
    name: str
    emoji: str
    description: str

    @property
    def value(self) -> str:
        return category_value(self.name)


TICKET_CATEGORIES: List[TicketCategoryInfo] = [
    TicketCategoryInfo("General Support", "🎫", "General help and support"),
    TicketCategoryInfo("Bug Report", "🐛", "Report bugs or issues"),
    TicketCategoryInfo("Feature Request", "💡", "Suggest new features"),
    TicketCategoryInfo("Moderation Appeal", "⚖️", "Appeal moderation actions"),
]

MAX_TICKETS_PER_USER = 3
TICKET_DELETE_DELAY = 10
TICKET_SUBJECT_MAX = 100
TICKET_DESCRIPTION_MAX = 1000
TICKET_LIST_LIMIT = 20

MAX_TIMEOUT = timedelta(days=28)
WARNING_REASON_MAX = 1000
PURGE_MAX = 100
PURGE_NOTICE_SECONDS = 5
BULK_DELETE_MAX_AGE = timedelta(days=14)
AUDIT_RETENTION_DAYS = 90


class Colors:
    SUCCESS = 0x00FF00
    ERROR = 0xFF0000
    WARNING = 0xFFFF00
    INFO = 0x0099FF
    PRIMARY = 0x7289DA


class Emojis:
    SUCCESS = "✅"
    ERROR = "❌"
    WARNING = "⚠️"
    INFO = "ℹ️"
    LOADING = "⏳"
    TICKET = "🎫"
    LOCK = "🔒"
    UNLOCK = "🔓"
    DELETE = "🗑️"


def category_value(name: str) -> str:
    return "_".join(name.lower().split())


def category_display(value: str) -> str:
    return value.replace("_", " ").title()


def find_category(value: str) -> Optional[TicketCategoryInfo]:
    for category in TICKET_CATEGORIES:
        if category.value == value:
            return category
    return None


@dataclass
class Settings:
    token: Optional[str] = None
    db_api_uri: str = "ws://localhost:8080"
    owner_id: Optional[int] = None
    log_level: str = "INFO"
    log_dir: str = "data/logs"

    @classmethod
    def from_env(cls) -> 'Settings':
        owner_id = os.getenv('OWNER_ID')
        return cls(
            token=os.getenv('DISCORD_TOKEN'),
            db_api_uri=os.getenv('DB_API_URI', 'ws://localhost:8080'),
            owner_id=int(owner_id) if owner_id else None,
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            log_dir=os.getenv('LOG_DIR', 'data/logs')
        )
