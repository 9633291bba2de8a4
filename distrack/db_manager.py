"""
Database Manager
Typed stores for tickets, warnings, audit logs and guild configuration,
on top of a document client (WebSocket or in-process)
"""

import os
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from distrack.database.schema import AUDIT_LOGS, GUILD_CONFIGS, TICKETS, WARNINGS
from distrack.database.ws_client import DatabaseClient
from distrack.models.audit import AuditAction, AuditLogEntry, TargetType
from distrack.models.guild import GuildConfig
from distrack.models.ticket import Ticket, TicketStatus
from distrack.models.warning import Warning
from distrack.utils.helpers import utcnow


def _created_range(since: Optional[datetime] = None, until: Optional[datetime] = None) -> Dict[str, Any]:
    window: Dict[str, Any] = {}
    if since:
        window['$gte'] = since
    if until:
        window['$lt'] = until
    return {'created_at': window} if window else {}


class AuditLogStore:
    """Append-only ledger; entries are never updated."""

    def __init__(self, client):
        self.client = client

    async def create(self, entry: AuditLogEntry) -> int:
        return await self.client.insert(AUDIT_LOGS, entry.to_dict())

    async def log_action(
        self,
        guild_id: int,
        action: AuditAction,
        moderator_id: int,
        target_id: Optional[int] = None,
        target_type: TargetType = TargetType.USER,
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            guild_id=guild_id,
            action=action,
            moderator_id=moderator_id,
            target_id=target_id,
            target_type=target_type,
            reason=reason or "No reason provided",
            details=details or {},
            metadata=metadata or {}
        )
        entry_id = await self.create(entry)
        return replace(entry, entry_id=entry_id)

    @staticmethod
    def _conditions(
        guild_id: int,
        action: Optional[AuditAction] = None,
        moderator_id: Optional[int] = None,
        target_id: Optional[int] = None,
        since: Optional[datetime] = None
    ) -> Dict[str, Any]:
        conditions: Dict[str, Any] = {'guild_id': guild_id, **_created_range(since)}
        if action:
            conditions['action'] = action.value
        if moderator_id:
            conditions['moderator_id'] = moderator_id
        if target_id:
            conditions['target_id'] = target_id
        return conditions

    async def find(
        self,
        guild_id: int,
        action: Optional[AuditAction] = None,
        moderator_id: Optional[int] = None,
        target_id: Optional[int] = None,
        since: Optional[datetime] = None,
        limit: int = 50
    ) -> List[AuditLogEntry]:
        rows = await self.client.select(
            AUDIT_LOGS,
            conditions=self._conditions(guild_id, action, moderator_id, target_id, since),
            order_by=[('created_at', 'DESC'), ('_id', 'DESC')],
            limit=limit
        )
        return [AuditLogEntry.from_dict(row) for row in rows]

    async def count(
        self,
        guild_id: int,
        action: Optional[AuditAction] = None,
        since: Optional[datetime] = None
    ) -> int:
        return await self.client.count(AUDIT_LOGS, self._conditions(guild_id, action, since=since))

    async def group_count(self, guild_id: int, field: str, since: Optional[datetime] = None) -> Dict[Any, int]:
        groups = await self.client.group_count(AUDIT_LOGS, field, self._conditions(guild_id, since=since))
        return {g['value']: g['count'] for g in groups}

    async def delete_older_than(self, days: int = 90) -> int:
        cutoff = utcnow() - timedelta(days=days)
        return await self.client.delete(AUDIT_LOGS, {'created_at': {'$lt': cutoff}})


class WarningStore:
    def __init__(self, client):
        self.client = client

    async def create(self, warning: Warning) -> int:
        return await self.client.insert(WARNINGS, warning.to_dict())

    async def find_one(self, guild_id: int, warning_id: str) -> Optional[Warning]:
        row = await self.client.find_one(WARNINGS, {'guild_id': guild_id, 'warning_id': warning_id})
        return Warning.from_dict(row) if row else None

    async def find(
        self,
        guild_id: int,
        user_id: Optional[int] = None,
        active_only: bool = True,
        limit: Optional[int] = 10
    ) -> List[Warning]:
        conditions: Dict[str, Any] = {'guild_id': guild_id}
        if user_id:
            conditions['user_id'] = user_id
        if active_only:
            conditions['active'] = True

        rows = await self.client.select(
            WARNINGS,
            conditions=conditions,
            order_by=[('created_at', 'DESC'), ('_id', 'DESC')],
            limit=limit
        )
        return [Warning.from_dict(row) for row in rows]

    async def count(
        self,
        guild_id: int,
        user_id: Optional[int] = None,
        active: Optional[bool] = None,
        since: Optional[datetime] = None
    ) -> int:
        conditions: Dict[str, Any] = {'guild_id': guild_id, **_created_range(since)}
        if user_id:
            conditions['user_id'] = user_id
        if active is not None:
            conditions['active'] = active
        return await self.client.count(WARNINGS, conditions)

    async def update(self, warning: Warning) -> int:
        data = warning.to_dict()
        return await self.client.update(
            WARNINGS,
            data,
            {'guild_id': warning.guild_id, 'warning_id': warning.warning_id}
        )

    async def deactivate_all(self, guild_id: int, user_id: int, removed_by: int, reason: str) -> int:
        return await self.client.update(
            WARNINGS,
            {
                'active': False,
                'removed_by': removed_by,
                'removed_at': utcnow(),
                'removed_reason': reason
            },
            {'guild_id': guild_id, 'user_id': user_id, 'active': True}
        )

    async def group_count(self, guild_id: int, field: str, since: Optional[datetime] = None) -> Dict[Any, int]:
        groups = await self.client.group_count(WARNINGS, field, {'guild_id': guild_id, **_created_range(since)})
        return {g['value']: g['count'] for g in groups}


class TicketStore:
    def __init__(self, client):
        self.client = client

    async def create(self, ticket: Ticket) -> int:
        return await self.client.insert(TICKETS, ticket.to_dict())

    async def find_by_channel(self, channel_id: int) -> Optional[Ticket]:
        row = await self.client.find_one(TICKETS, {'channel_id': channel_id})
        return Ticket.from_dict(row) if row else None

    async def find_one(self, guild_id: int, ticket_id: str) -> Optional[Ticket]:
        row = await self.client.find_one(TICKETS, {'guild_id': guild_id, 'ticket_id': ticket_id})
        return Ticket.from_dict(row) if row else None

    async def find(
        self,
        guild_id: int,
        status: Optional[TicketStatus] = None,
        user_id: Optional[int] = None,
        limit: Optional[int] = 20
    ) -> List[Ticket]:
        conditions: Dict[str, Any] = {'guild_id': guild_id}
        if status:
            conditions['status'] = status.value
        if user_id:
            conditions['user_id'] = user_id

        rows = await self.client.select(
            TICKETS,
            conditions=conditions,
            order_by=[('created_at', 'DESC'), ('_id', 'DESC')],
            limit=limit
        )
        return [Ticket.from_dict(row) for row in rows]

    async def count_open(self, guild_id: int, user_id: int) -> int:
        return await self.client.count(TICKETS, {
            'guild_id': guild_id,
            'user_id': user_id,
            'status': TicketStatus.OPEN.value
        })

    async def count(
        self,
        guild_id: int,
        status: Optional[TicketStatus] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> int:
        conditions: Dict[str, Any] = {'guild_id': guild_id, **_created_range(since, until)}
        if status:
            conditions['status'] = status.value
        return await self.client.count(TICKETS, conditions)

    async def find_recent_closed(self, guild_id: int, limit: int = 10) -> List[Ticket]:
        rows = await self.client.select(
            TICKETS,
            conditions={
                'guild_id': guild_id,
                'status': TicketStatus.CLOSED.value,
                'closed_at': {'$exists': True}
            },
            order_by=[('created_at', 'DESC'), ('_id', 'DESC')],
            limit=limit
        )
        return [Ticket.from_dict(row) for row in rows]

    async def update(self, ticket: Ticket) -> int:
        return await self.client.update(
            TICKETS,
            ticket.to_dict(),
            {'guild_id': ticket.guild_id, 'ticket_id': ticket.ticket_id}
        )

    async def group_count(self, guild_id: int, field: str) -> Dict[Any, int]:
        groups = await self.client.group_count(TICKETS, field, {'guild_id': guild_id})
        return {g['value']: g['count'] for g in groups}


class GuildConfigStore:
    def __init__(self, client):
        self.client = client
        self._cache: Dict[int, GuildConfig] = {}

    async def get(self, guild_id: int) -> Optional[GuildConfig]:
        if guild_id in self._cache:
            return self._cache[guild_id]

        row = await self.client.find_one(GUILD_CONFIGS, {'guild_id': guild_id})
        if not row:
            return None

        config = GuildConfig.from_dict(row)
        self._cache[guild_id] = config
        return config

    async def get_or_create(self, guild_id: int) -> GuildConfig:
        config = await self.get(guild_id)
        if config:
            return config

        config = GuildConfig(guild_id=guild_id)
        await self.save(config)
        return config

    async def save(self, config: GuildConfig):
        config.updated_at = utcnow()
        data = config.settings_dict()

        existing = await self.client.find_one(GUILD_CONFIGS, {'guild_id': config.guild_id})
        if existing:
            await self.client.update(GUILD_CONFIGS, data, {'guild_id': config.guild_id})
        else:
            await self.client.insert(GUILD_CONFIGS, config.to_dict())

        self._cache[config.guild_id] = config

    async def _next(self, guild_id: int, column: str) -> int:
        defaults = GuildConfig(guild_id=guild_id).to_dict()
        row = await self.client.increment(GUILD_CONFIGS, {'guild_id': guild_id}, column, 1, defaults)

        cached = self._cache.get(guild_id)
        if cached:
            setattr(cached, column, row[column])
        return row[column]

    async def next_ticket_number(self, guild_id: int) -> int:
        return await self._next(guild_id, 'ticket_counter')

    async def next_warning_number(self, guild_id: int) -> int:
        return await self._next(guild_id, 'warning_counter')


class DatabaseManager:
    def __init__(self, client=None, db_api_uri: Optional[str] = None):
        if client is None:
            uri = db_api_uri or os.getenv('DB_API_URI', 'ws://localhost:8080')
            client = DatabaseClient(uri=uri)
        self.client = client

        self.audit = AuditLogStore(client)
        self.warnings = WarningStore(client)
        self.tickets = TicketStore(client)
        self.guilds = GuildConfigStore(client)

    async def initialize(self):
        await self.client.connect()

    async def close(self):
        await self.client.disconnect()

    async def is_healthy(self) -> bool:
        return await self.client.ping()
