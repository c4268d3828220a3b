"""
Trust store implementations for TrustCircle.

Provides the abstract base and concrete implementations for persisting
users, invites and connections.

Available backends:
- SQLiteTrustStore: Local SQLite database via aiosqlite
"""

from trustcircle.core.trust_store.base import TrustStore, TrustStoreSession
from trustcircle.core.trust_store.sqlite_store import SQLiteTrustSession, SQLiteTrustStore

__all__ = [
    "TrustStore",
    "TrustStoreSession",
    "SQLiteTrustStore",
    "SQLiteTrustSession",
]
