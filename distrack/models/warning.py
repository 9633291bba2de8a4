"""
Warning Models
Disciplinary records with severity, expiry and removal metadata
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from distrack.errors import AlreadyInState
from distrack.utils.helpers import utcnow


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def emoji(self) -> str:
        emojis = {
            Severity.LOW: "🟢",
            Severity.MEDIUM: "🟡",
            Severity.HIGH: "🟠",
            Severity.CRITICAL: "🔴"
        }
        return emojis.get(self, "⚪")

    @property
    def label(self) -> str:
        return f"{self.emoji} {self.value.title()}"

    @property
    def color(self) -> int:
        colors = {
            Severity.LOW: 0x2ECC71,
            Severity.MEDIUM: 0xF1C40F,
            Severity.HIGH: 0xE67E22,
            Severity.CRITICAL: 0xE74C3C
        }
        return colors.get(self, 0x99AAB5)


class ActionTaken(Enum):
    NONE = "none"
    TIMEOUT = "timeout"
    KICK = "kick"
    BAN = "ban"


@dataclass
class Warning:
    warning_id: str
    guild_id: int
    user_id: int
    moderator_id: int
    reason: str

    severity: Severity = Severity.MEDIUM
    active: bool = True

    created_at: datetime = field(default_factory=utcnow)
    expires_at: Optional[datetime] = None

    removed_by: Optional[int] = None
    removed_at: Optional[datetime] = None
    removed_reason: Optional[str] = None

    action_taken: ActionTaken = ActionTaken.NONE
    evidence: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'warning_id': self.warning_id,
            'guild_id': self.guild_id,
            'user_id': self.user_id,
            'moderator_id': self.moderator_id,
            'reason': self.reason,
            'severity': self.severity.value,
            'active': self.active,
            'created_at': self.created_at,
            'expires_at': self.expires_at,
            'removed_by': self.removed_by,
            'removed_at': self.removed_at,
            'removed_reason': self.removed_reason,
            'action_taken': self.action_taken.value,
            'evidence': self.evidence
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Warning':
        warning = cls(
            warning_id=data['warning_id'],
            guild_id=data['guild_id'],
            user_id=data['user_id'],
            moderator_id=data['moderator_id'],
            reason=data['reason']
        )

        warning.severity = Severity(data.get('severity', 'medium'))
        warning.active = data.get('active', True)
        if data.get('created_at'):
            warning.created_at = data['created_at']
        warning.expires_at = data.get('expires_at')
        warning.removed_by = data.get('removed_by')
        warning.removed_at = data.get('removed_at')
        warning.removed_reason = data.get('removed_reason')
        warning.action_taken = ActionTaken(data.get('action_taken', 'none'))
        warning.evidence = data.get('evidence', [])

        return warning

    @property
    def is_expired(self) -> bool:
        # Derived only; an expired warning keeps its active flag until removed.
        return self.expires_at is not None and self.expires_at < utcnow()

    def remove(self, removed_by: int, reason: str):
        if not self.active:
            raise AlreadyInState(f"Warning `{self.warning_id}` has already been removed.")
        self.active = False
        self.removed_by = removed_by
        self.removed_at = utcnow()
        self.removed_reason = reason
