from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import discord
import pytest

from distrack.errors import (
    ExternalFailure,
    InvalidInput,
    InvalidState,
    LimitExceeded,
    NotFound,
    PermissionDenied,
)
from distrack.models.audit import AuditAction
from distrack.models.ticket import TicketStatus
from distrack.services.tickets import TicketService

from conftest import make_member


@pytest.fixture()
def service(db, permissions):
    return TicketService(db, permissions, max_open=3, delete_delay=0)


async def open_ticket(service, guild, user, subject="Login issue"):
    return await service.create_ticket(guild, user, "general_support", subject, "I cannot log in")


@pytest.mark.asyncio
async def test_ticket_ids_increase(service, guild):
    user = make_member()

    ids = [(await open_ticket(service, guild, user))[0].ticket_id for _ in range(3)]

    assert ids == ["ticket-0001", "ticket-0002", "ticket-0003"]
    channel_kwargs = guild.create_text_channel.await_args.kwargs
    assert channel_kwargs['name'] == "ticket-0003"


@pytest.mark.asyncio
async def test_open_limit_does_not_consume_number(service, db, guild):
    user = make_member()
    for _ in range(3):
        await open_ticket(service, guild, user)

    with pytest.raises(LimitExceeded):
        await open_ticket(service, guild, user)

    ticket, _ = await open_ticket(service, guild, make_member())
    assert ticket.ticket_id == "ticket-0004"
    assert await db.tickets.count(guild.id) == 4


@pytest.mark.asyncio
async def test_create_records_ticket_and_audit(service, db, guild):
    user = make_member()
    ticket, channel = await open_ticket(service, guild, user)

    stored = await db.tickets.find_by_channel(channel.id)
    assert stored.ticket_id == ticket.ticket_id
    assert stored.category == "General Support"
    assert stored.messages[0].content == "I cannot log in"

    entries = await db.audit.find(guild.id, action=AuditAction.TICKET_CREATE)
    assert len(entries) == 1
    assert entries[0].details['ticketId'] == "ticket-0001"


@pytest.mark.asyncio
async def test_create_rejects_bad_input(service, guild):
    user = make_member()

    with pytest.raises(InvalidInput):
        await service.create_ticket(guild, user, "nope", "subject", "description")
    with pytest.raises(InvalidInput):
        await service.create_ticket(guild, user, "bug_report", "   ", "description")
    with pytest.raises(InvalidInput):
        await service.create_ticket(guild, user, "bug_report", "x" * 101, "description")

    guild.create_text_channel.assert_not_awaited()


@pytest.mark.asyncio
async def test_close_and_reopen(service, db, guild, admin):
    user = make_member()
    guild.get_member.return_value = user
    ticket, channel = await open_ticket(service, guild, user)

    closed = await service.close_ticket(channel, admin, "resolved")
    assert closed.status == TicketStatus.CLOSED
    channel.set_permissions.assert_awaited_with(user, send_messages=False, reason=f"Ticket closed by {admin}")
    channel.edit.assert_awaited_with(name="closed-ticket-0001")
    user.send.assert_awaited()

    with pytest.raises(InvalidState):
        await service.close_ticket(channel, admin)

    reopened = await service.reopen_ticket(channel, admin)
    assert reopened.status == TicketStatus.OPEN
    stored = await db.tickets.find_one(guild.id, ticket.ticket_id)
    assert stored.closed_at is None


@pytest.mark.asyncio
async def test_close_requires_admin(service, guild):
    user = make_member()
    _, channel = await open_ticket(service, guild, user)

    with pytest.raises(PermissionDenied):
        await service.close_ticket(channel, user)


@pytest.mark.asyncio
async def test_close_outside_ticket_channel(service, guild, admin):
    channel = await guild.create_text_channel(name="general")

    with pytest.raises(NotFound):
        await service.close_ticket(channel, admin)


@pytest.mark.asyncio
async def test_archive_deletes_channel(service, db, guild, admin):
    user = make_member()
    ticket, channel = await open_ticket(service, guild, user)

    archived = await service.archive_and_delete(channel, admin)
    await asyncio.gather(*service._pending_deletes)

    assert archived.status == TicketStatus.ARCHIVED
    channel.delete.assert_awaited_once()
    stored = await db.tickets.find_one(guild.id, ticket.ticket_id)
    assert stored.status == TicketStatus.ARCHIVED
    assert await db.audit.count(guild.id, action=AuditAction.TICKET_DELETE) == 1


@pytest.mark.asyncio
async def test_add_note_and_list(service, guild, admin):
    user = make_member()
    _, channel = await open_ticket(service, guild, user)

    ticket = await service.add_note(channel, admin, "  checked logs  ")
    assert ticket.notes[0].note == "checked logs"

    with pytest.raises(InvalidInput):
        await service.add_note(channel, admin, "")

    tickets = await service.list_tickets(guild.id, status=TicketStatus.OPEN, user_id=user.id)
    assert [t.ticket_id for t in tickets] == ["ticket-0001"]


@pytest.mark.asyncio
async def test_close_without_channel_permission_keeps_ticket_open(service, db, guild, admin):
    user = make_member()
    guild.get_member.return_value = user
    ticket, channel = await open_ticket(service, guild, user)
    channel.set_permissions.side_effect = discord.Forbidden(MagicMock(status=403, reason="Forbidden"), "Missing Access")

    with pytest.raises(PermissionDenied):
        await service.close_ticket(channel, admin)

    stored = await db.tickets.find_one(guild.id, ticket.ticket_id)
    assert stored.status == TicketStatus.OPEN
    assert await db.audit.count(guild.id, action=AuditAction.TICKET_CLOSE) == 0

    channel.set_permissions.side_effect = None
    closed = await service.close_ticket(channel, admin)
    assert closed.status == TicketStatus.CLOSED
    assert await db.audit.count(guild.id, action=AuditAction.TICKET_CLOSE) == 1


@pytest.mark.asyncio
async def test_reopen_failure_keeps_ticket_closed(service, db, guild, admin):
    user = make_member()
    _, channel = await open_ticket(service, guild, user)
    await service.close_ticket(channel, admin)
    channel.edit.side_effect = discord.HTTPException(MagicMock(status=500, reason="Server Error"), "oops")

    with pytest.raises(ExternalFailure):
        await service.reopen_ticket(channel, admin)

    stored = await db.tickets.find_by_channel(channel.id)
    assert stored.status == TicketStatus.CLOSED
    assert await db.audit.count(guild.id, action=AuditAction.TICKET_REOPEN) == 0


@pytest.mark.asyncio
async def test_guild_lock_released_after_create(service, guild):
    await open_ticket(service, guild, make_member())

    assert guild.id not in service._guild_locks
