"""
Guild Configuration Models
Stores per-guild settings and counters
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from distrack.utils.helpers import utcnow


@dataclass
class TicketSettings:
    ticket_category_id: Optional[int] = None
    ticket_channel_id: Optional[int] = None
    staff_role_id: Optional[int] = None
    transcript_channel_id: Optional[int] = None


@dataclass
class ModerationSettings:
    mod_log_channel_id: Optional[int] = None
    mute_role_id: Optional[int] = None


@dataclass
class AutoRoleSettings:
    enabled: bool = False
    role_id: Optional[int] = None
    bot_role_id: Optional[int] = None


@dataclass
class WelcomeSettings:
    enabled: bool = False
    channel_id: Optional[int] = None
    message: str = "Welcome {user} to {guild}!"


@dataclass
class GuildConfig:
    guild_id: int
    ticket: TicketSettings = field(default_factory=TicketSettings)
    moderation: ModerationSettings = field(default_factory=ModerationSettings)
    autorole: AutoRoleSettings = field(default_factory=AutoRoleSettings)
    welcome: WelcomeSettings = field(default_factory=WelcomeSettings)

    # Only ever advanced through the store's atomic increment.
    ticket_counter: int = 0
    warning_counter: int = 0

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            'guild_id': self.guild_id,
            'ticket': dict(self.ticket.__dict__),
            'moderation': dict(self.moderation.__dict__),
            'autorole': dict(self.autorole.__dict__),
            'welcome': dict(self.welcome.__dict__),
            'ticket_counter': self.ticket_counter,
            'warning_counter': self.warning_counter,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }

    def settings_dict(self) -> dict:
        """Everything except the counters, so saving settings never rewinds them."""
        data = self.to_dict()
        data.pop('ticket_counter')
        data.pop('warning_counter')
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'GuildConfig':
        config = cls(guild_id=data['guild_id'])

        config.ticket = cls._dict_to_dataclass(TicketSettings, data.get('ticket'))
        config.moderation = cls._dict_to_dataclass(ModerationSettings, data.get('moderation'))
        config.autorole = cls._dict_to_dataclass(AutoRoleSettings, data.get('autorole'))
        config.welcome = cls._dict_to_dataclass(WelcomeSettings, data.get('welcome'))

        config.ticket_counter = data.get('ticket_counter', 0)
        config.warning_counter = data.get('warning_counter', 0)

        for field_name in ['created_at', 'updated_at']:
            if data.get(field_name):
                setattr(config, field_name, data[field_name])

        return config

    @staticmethod
    def _dict_to_dataclass(cls, data: Optional[dict]):
        if not data:
            return cls()

        valid_fields = set(cls.__dataclass_fields__)
        return cls(**{k: v for k, v in data.items() if k in valid_fields})
