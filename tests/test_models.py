from __future__ import annotations

from datetime import timedelta

import pytest

from distrack.errors import AlreadyInState, InvalidState
from distrack.models.audit import AuditAction, AuditLogEntry, TargetType
from distrack.models.guild import GuildConfig
from distrack.models.ticket import Ticket, TicketStatus
from distrack.models.warning import Severity, Warning
from distrack.utils.helpers import utcnow


def make_ticket() -> Ticket:
    return Ticket(ticket_id="ticket-0001", guild_id=1, channel_id=2, user_id=3, subject="Help")


def test_close_then_reopen_clears_closing_fields():
    ticket = make_ticket()

    ticket.close(closed_by=42)
    assert ticket.status == TicketStatus.CLOSED
    assert ticket.closed_by == 42
    assert ticket.resolution_time is not None

    ticket.reopen()
    assert ticket.status == TicketStatus.OPEN
    assert ticket.closed_by is None
    assert ticket.closed_at is None
    assert ticket.resolution_time is None


def test_ticket_transitions_reject_wrong_state():
    ticket = make_ticket()

    with pytest.raises(InvalidState):
        ticket.reopen()

    ticket.close(closed_by=42)
    with pytest.raises(InvalidState):
        ticket.close(closed_by=42)

    ticket.archive(archived_by=42)
    assert ticket.status == TicketStatus.ARCHIVED
    with pytest.raises(InvalidState):
        ticket.archive(archived_by=42)


def test_archiving_open_ticket_records_closer():
    ticket = make_ticket()
    ticket.archive(archived_by=7)

    assert ticket.closed_by == 7
    assert ticket.closed_at is not None


def test_ticket_dict_roundtrip_keeps_notes_and_messages():
    ticket = make_ticket()
    ticket.add_message(3, "user", "it is broken")
    ticket.add_note(9, "staff", "looking into it")

    restored = Ticket.from_dict(ticket.to_dict())

    assert restored.messages[0].content == "it is broken"
    assert restored.notes[0].note == "looking into it"
    assert restored.status == TicketStatus.OPEN


def test_expired_warning_stays_active():
    warning = Warning(
        warning_id="warn-0001", guild_id=1, user_id=2, moderator_id=3, reason="spam",
        expires_at=utcnow() - timedelta(days=1)
    )

    assert warning.is_expired
    assert warning.active


def test_warning_remove_twice():
    warning = Warning(warning_id="warn-0001", guild_id=1, user_id=2, moderator_id=3, reason="spam",
                      severity=Severity.HIGH)
    warning.remove(removed_by=3, reason="appeal")

    assert not warning.active
    assert warning.removed_reason == "appeal"
    with pytest.raises(AlreadyInState):
        warning.remove(removed_by=3, reason="again")


def test_audit_entry_from_dict_defaults_reason():
    entry = AuditLogEntry(guild_id=1, action=AuditAction.BAN, moderator_id=2, target_id=3)
    data = entry.to_dict()
    data['reason'] = None

    restored = AuditLogEntry.from_dict(data)

    assert restored.reason == "No reason provided"
    assert restored.target_type == TargetType.USER


def test_guild_settings_dict_excludes_counters():
    config = GuildConfig(guild_id=1)
    config.ticket_counter = 5

    assert 'ticket_counter' not in config.settings_dict()
    assert GuildConfig.from_dict(config.to_dict()).ticket_counter == 5
