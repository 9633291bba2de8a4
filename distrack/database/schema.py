"""
Collection Schema
Collections and unique indexes shared by the API server and the local client
"""

from distrack.database.engine import DocumentEngine

TICKETS = 'tickets'
WARNINGS = 'warnings'
AUDIT_LOGS = 'audit_logs'
GUILD_CONFIGS = 'guild_configs'

COLLECTIONS = {
    TICKETS: [('guild_id', 'ticket_id'), ('channel_id',)],
    WARNINGS: [('guild_id', 'warning_id')],
    AUDIT_LOGS: [],
    GUILD_CONFIGS: [('guild_id',)],
}


def create_collections(engine: DocumentEngine) -> DocumentEngine:
    for name, unique in COLLECTIONS.items():
        engine.create_collection(name, unique=unique, if_not_exists=True)
    return engine
