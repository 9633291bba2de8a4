"""
Document store layer: engine, wire codec and clients
"""

from .engine import DatabaseError, DocumentEngine, DuplicateKeyError
from .local_client import LocalDatabaseClient
from .ws_client import DatabaseClient

__all__ = [
    'DatabaseClient',
    'DatabaseError',
    'DocumentEngine',
    'DuplicateKeyError',
    'LocalDatabaseClient'
]
