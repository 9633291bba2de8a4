"""
Ticket System Models
Data structures for the ticket lifecycle
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from distrack.errors import InvalidState
from distrack.utils.helpers import utcnow


class TicketStatus(Enum):
    OPEN = "open"
    CLOSED = "closed"
    ARCHIVED = "archived"

    @property
    def emoji(self) -> str:
        emojis = {
            TicketStatus.OPEN: "🟢",
            TicketStatus.CLOSED: "🟡",
            TicketStatus.ARCHIVED: "🔴"
        }
        return emojis.get(self, "⚪")


class TicketPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def emoji(self) -> str:
        emojis = {
            TicketPriority.LOW: "🟢",
            TicketPriority.MEDIUM: "🟡",
            TicketPriority.HIGH: "🟠",
            TicketPriority.URGENT: "🔴"
        }
        return emojis.get(self, "⚪")


@dataclass
class TicketMessage:
    user_id: int
    username: str
    content: str
    timestamp: datetime = field(default_factory=utcnow)
    attachments: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'user_id': self.user_id,
            'username': self.username,
            'content': self.content,
            'timestamp': self.timestamp,
            'attachments': self.attachments
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TicketMessage':
        return cls(
            user_id=data['user_id'],
            username=data.get('username', ''),
            content=data.get('content', ''),
            timestamp=data['timestamp'],
            attachments=data.get('attachments', [])
        )


@dataclass
class TicketNote:
    staff_id: int
    staff_username: str
    note: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            'staff_id': self.staff_id,
            'staff_username': self.staff_username,
            'note': self.note,
            'timestamp': self.timestamp
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TicketNote':
        return cls(
            staff_id=data['staff_id'],
            staff_username=data.get('staff_username', ''),
            note=data['note'],
            timestamp=data['timestamp']
        )


@dataclass
class Ticket:
    ticket_id: str
    guild_id: int
    channel_id: int
    user_id: int

    category: str = "General Support"
    subject: str = ""
    status: TicketStatus = TicketStatus.OPEN
    priority: TicketPriority = TicketPriority.MEDIUM
    assigned_to: Optional[int] = None

    messages: List[TicketMessage] = field(default_factory=list)
    notes: List[TicketNote] = field(default_factory=list)

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    closed_at: Optional[datetime] = None
    closed_by: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'ticket_id': self.ticket_id,
            'guild_id': self.guild_id,
            'channel_id': self.channel_id,
            'user_id': self.user_id,
            'category': self.category,
            'subject': self.subject,
            'status': self.status.value,
            'priority': self.priority.value,
            'assigned_to': self.assigned_to,
            'messages': [m.to_dict() for m in self.messages],
            'notes': [n.to_dict() for n in self.notes],
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'closed_at': self.closed_at,
            'closed_by': self.closed_by
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Ticket':
        ticket = cls(
            ticket_id=data['ticket_id'],
            guild_id=data['guild_id'],
            channel_id=data['channel_id'],
            user_id=data['user_id']
        )

        ticket.category = data.get('category', 'General Support')
        ticket.subject = data.get('subject', '')
        ticket.status = TicketStatus(data.get('status', 'open'))
        ticket.priority = TicketPriority(data.get('priority', 'medium'))
        ticket.assigned_to = data.get('assigned_to')
        ticket.messages = [TicketMessage.from_dict(m) for m in data.get('messages', [])]
        ticket.notes = [TicketNote.from_dict(n) for n in data.get('notes', [])]

        for field_name in ['created_at', 'updated_at']:
            if data.get(field_name):
                setattr(ticket, field_name, data[field_name])

        ticket.closed_at = data.get('closed_at')
        ticket.closed_by = data.get('closed_by')

        return ticket

    @property
    def is_open(self) -> bool:
        return self.status == TicketStatus.OPEN

    @property
    def resolution_time(self) -> Optional[int]:
        if self.closed_at and self.created_at:
            return int((self.closed_at - self.created_at).total_seconds())
        return None

    def close(self, closed_by: int):
        if self.status != TicketStatus.OPEN:
            raise InvalidState(f"Ticket {self.ticket_id} is not open.")
        self.closed_by = closed_by
        self.closed_at = utcnow()
        self.status = TicketStatus.CLOSED
        self.updated_at = utcnow()

    def reopen(self):
        if self.status != TicketStatus.CLOSED:
            raise InvalidState(f"Ticket {self.ticket_id} is not closed.")
        self.closed_by = None
        self.closed_at = None
        self.status = TicketStatus.OPEN
        self.updated_at = utcnow()

    def archive(self, archived_by: int):
        if self.status == TicketStatus.ARCHIVED:
            raise InvalidState(f"Ticket {self.ticket_id} is already archived.")
        if not self.closed_at:
            self.closed_at = utcnow()
            self.closed_by = archived_by
        self.status = TicketStatus.ARCHIVED
        self.updated_at = utcnow()

    def add_note(self, staff_id: int, staff_username: str, note: str):
        self.notes.append(TicketNote(staff_id=staff_id, staff_username=staff_username, note=note))
        self.updated_at = utcnow()

    def add_message(self, user_id: int, username: str, content: str, attachments: Optional[List[str]] = None):
        self.messages.append(TicketMessage(
            user_id=user_id,
            username=username,
            content=content,
            attachments=attachments or []
        ))
        self.updated_at = utcnow()
