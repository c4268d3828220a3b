"""
SQLite trust store implementation using aiosqlite.

One connection per store, guarded by an asyncio.Lock so that units of work
never interleave on it. Write transactions start with BEGIN IMMEDIATE to
take SQLite's write lock up front, which also serializes writers from other
processes sharing the database file. A partial unique index on the ordered
user pair of active connections backstops the single-active-connection rule.
"""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

import aiosqlite

from trustcircle.core.trust_store.base import TrustStore, TrustStoreSession
from trustcircle.models.connection import Connection, ConnectionSide
from trustcircle.models.invite import Invite, InviteStatus, normalize_email
from trustcircle.models.permissions import PermissionSet
from trustcircle.models.user import LifeStatus, UserProfile
from trustcircle.utils.exceptions import ConflictError, StoreError
from trustcircle.utils.logger import get_logger
from trustcircle.utils.timestamps import from_iso, to_iso

logger = get_logger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        avatar TEXT,
        life_status TEXT NOT NULL DEFAULT 'living'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS invites (
        id TEXT PRIMARY KEY,
        token TEXT NOT NULL UNIQUE,
        sender_id TEXT NOT NULL,
        invitee_email TEXT NOT NULL,
        invitee_name TEXT NOT NULL,
        relationship_to_sender TEXT NOT NULL,
        proposed_permissions TEXT NOT NULL DEFAULT '{}',
        message TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        responded_at TEXT,
        connection_id TEXT,
        FOREIGN KEY (sender_id) REFERENCES users(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS connections (
        id TEXT PRIMARY KEY,
        user_a_id TEXT NOT NULL,
        user_b_id TEXT NOT NULL,
        pair_low TEXT NOT NULL,
        pair_high TEXT NOT NULL,
        relationship_a_to_b TEXT NOT NULL,
        relationship_b_to_a TEXT NOT NULL,
        access_a_to_b TEXT NOT NULL DEFAULT '{}',
        access_b_to_a TEXT NOT NULL DEFAULT '{}',
        is_active INTEGER NOT NULL DEFAULT 1,
        connected_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        origin TEXT NOT NULL DEFAULT 'invite',
        origin_invite_id TEXT,
        CHECK (user_a_id <> user_b_id),
        FOREIGN KEY (origin_invite_id) REFERENCES invites(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_invites_sender ON invites(sender_id, status)",
    "CREATE INDEX IF NOT EXISTS idx_invites_email ON invites(invitee_email, status)",
    "CREATE INDEX IF NOT EXISTS idx_invites_expiry ON invites(status, expires_at)",
    "CREATE INDEX IF NOT EXISTS idx_connections_user_a ON connections(user_a_id, is_active)",
    "CREATE INDEX IF NOT EXISTS idx_connections_user_b ON connections(user_b_id, is_active)",
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ux_connections_active_pair
    ON connections(pair_low, pair_high) WHERE is_active = 1
    """,
]


def _is_active_pair_violation(error: aiosqlite.IntegrityError) -> bool:
    # SQLite names the indexed columns, not the index, in the message
    return "UNIQUE constraint failed: connections.pair_low, connections.pair_high" in str(error)


class SQLiteTrustSession(TrustStoreSession):
    """Data operations bound to an open SQLite transaction."""

    def __init__(self, connection: aiosqlite.Connection):
        self.connection = connection

    async def _fetchone(self, query: str, params: tuple = ()) -> aiosqlite.Row | None:
        cursor = await self.connection.execute(query, params)
        return await cursor.fetchone()

    async def _fetchall(self, query: str, params: tuple = ()) -> list[aiosqlite.Row]:
        cursor = await self.connection.execute(query, params)
        return list(await cursor.fetchall())

    # ═══════════════════════════════════════════════════════════
    # USER DIRECTORY
    # ═══════════════════════════════════════════════════════════

    async def upsert_user(self, profile: UserProfile) -> None:
        try:
            await self.connection.execute(
                """
                INSERT INTO users (id, name, email, avatar, life_status)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    email = excluded.email,
                    avatar = excluded.avatar,
                    life_status = excluded.life_status
                """,
                (
                    profile.id,
                    profile.name,
                    profile.email,
                    profile.avatar,
                    profile.life_status.value,
                ),
            )
        except aiosqlite.IntegrityError as e:
            raise ConflictError(
                "Email already belongs to another user",
                context={"user_id": profile.id, "email": profile.email},
            ) from e

    async def get_user(self, user_id: str) -> UserProfile | None:
        row = await self._fetchone("SELECT * FROM users WHERE id = ?", (user_id,))
        return self._row_to_user(row) if row else None

    async def get_user_by_email(self, email: str) -> UserProfile | None:
        row = await self._fetchone(
            "SELECT * FROM users WHERE email = ?", (normalize_email(email),)
        )
        return self._row_to_user(row) if row else None

    async def get_users(self, user_ids: list[str]) -> dict[str, UserProfile]:
        if not user_ids:
            return {}
        unique_ids = list(dict.fromkeys(user_ids))
        placeholders = ",".join("?" * len(unique_ids))
        rows = await self._fetchall(
            f"SELECT * FROM users WHERE id IN ({placeholders})", tuple(unique_ids)
        )
        return {row["id"]: self._row_to_user(row) for row in rows}

    # ═══════════════════════════════════════════════════════════
    # INVITES
    # ═══════════════════════════════════════════════════════════

    async def insert_invite(self, invite: Invite) -> None:
        await self.connection.execute(
            """
            INSERT INTO invites (
                id, token, sender_id, invitee_email, invitee_name,
                relationship_to_sender, proposed_permissions, message, status,
                created_at, expires_at, responded_at, connection_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                invite.id,
                invite.token,
                invite.sender_id,
                invite.invitee_email,
                invite.invitee_name,
                invite.relationship_to_sender,
                json.dumps(invite.proposed_permissions.to_stored()),
                invite.message,
                invite.status.value,
                to_iso(invite.created_at),
                to_iso(invite.expires_at),
                to_iso(invite.responded_at) if invite.responded_at else None,
                invite.connection_id,
            ),
        )

    async def get_invite(self, invite_id: str) -> Invite | None:
        row = await self._fetchone("SELECT * FROM invites WHERE id = ?", (invite_id,))
        return self._row_to_invite(row) if row else None

    async def get_invite_by_token(self, token: str) -> Invite | None:
        row = await self._fetchone("SELECT * FROM invites WHERE token = ?", (token,))
        return self._row_to_invite(row) if row else None

    async def find_pending_invite(self, sender_id: str, invitee_email: str) -> Invite | None:
        row = await self._fetchone(
            """
            SELECT * FROM invites
            WHERE sender_id = ? AND invitee_email = ? AND status = ?
            LIMIT 1
            """,
            (sender_id, normalize_email(invitee_email), InviteStatus.PENDING.value),
        )
        return self._row_to_invite(row) if row else None

    async def list_invites_by_sender(
        self, sender_id: str, status: InviteStatus | None = None
    ) -> list[Invite]:
        query = "SELECT * FROM invites WHERE sender_id = ?"
        params: list = [sender_id]

        if status:
            query += " AND status = ?"
            params.append(status.value)

        query += " ORDER BY created_at DESC"

        rows = await self._fetchall(query, tuple(params))
        return [self._row_to_invite(row) for row in rows]

    async def list_invites_for_email(
        self, invitee_email: str, pending_at: datetime | None = None
    ) -> list[Invite]:
        query = "SELECT * FROM invites WHERE invitee_email = ?"
        params: list = [normalize_email(invitee_email)]

        if pending_at is not None:
            query += " AND status = ? AND expires_at > ?"
            params.extend([InviteStatus.PENDING.value, to_iso(pending_at)])

        query += " ORDER BY created_at DESC"

        rows = await self._fetchall(query, tuple(params))
        return [self._row_to_invite(row) for row in rows]

    async def count_pending_invites(self, invitee_email: str, now: datetime) -> int:
        row = await self._fetchone(
            """
            SELECT COUNT(*) FROM invites
            WHERE invitee_email = ? AND status = ? AND expires_at > ?
            """,
            (normalize_email(invitee_email), InviteStatus.PENDING.value, to_iso(now)),
        )
        return row[0] if row else 0

    async def transition_invite(
        self,
        invite_id: str,
        status: InviteStatus,
        responded_at: datetime | None = None,
        connection_id: str | None = None,
    ) -> bool:
        cursor = await self.connection.execute(
            """
            UPDATE invites
            SET status = ?, responded_at = COALESCE(?, responded_at),
                connection_id = COALESCE(?, connection_id)
            WHERE id = ? AND status = ?
            """,
            (
                status.value,
                to_iso(responded_at) if responded_at else None,
                connection_id,
                invite_id,
                InviteStatus.PENDING.value,
            ),
        )
        return cursor.rowcount == 1

    async def expire_invites(self, now: datetime) -> int:
        cursor = await self.connection.execute(
            "UPDATE invites SET status = ? WHERE status = ? AND expires_at <= ?",
            (InviteStatus.EXPIRED.value, InviteStatus.PENDING.value, to_iso(now)),
        )
        return cursor.rowcount

    # ═══════════════════════════════════════════════════════════
    # CONNECTIONS
    # ═══════════════════════════════════════════════════════════

    async def insert_connection(self, connection: Connection) -> None:
        pair_low, pair_high = sorted((connection.user_a_id, connection.user_b_id))
        try:
            await self.connection.execute(
                """
                INSERT INTO connections (
                    id, user_a_id, user_b_id, pair_low, pair_high,
                    relationship_a_to_b, relationship_b_to_a,
                    access_a_to_b, access_b_to_a, is_active,
                    connected_at, updated_at, origin, origin_invite_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    connection.id,
                    connection.user_a_id,
                    connection.user_b_id,
                    pair_low,
                    pair_high,
                    connection.relationship_a_to_b,
                    connection.relationship_b_to_a,
                    json.dumps(connection.access_a_to_b.to_stored()),
                    json.dumps(connection.access_b_to_a.to_stored()),
                    1 if connection.is_active else 0,
                    to_iso(connection.connected_at),
                    to_iso(connection.updated_at),
                    connection.origin,
                    connection.origin_invite_id,
                ),
            )
        except aiosqlite.IntegrityError as e:
            context = {"user_a_id": connection.user_a_id, "user_b_id": connection.user_b_id}
            if _is_active_pair_violation(e):
                raise ConflictError("Connection already exists", context=context) from e
            raise StoreError(f"Could not insert connection: {e}", context=context) from e

    async def get_connection(self, connection_id: str) -> Connection | None:
        row = await self._fetchone("SELECT * FROM connections WHERE id = ?", (connection_id,))
        return self._row_to_connection(row) if row else None

    async def get_active_connection_between(self, user_id: str, other_id: str) -> Connection | None:
        pair_low, pair_high = sorted((user_id, other_id))
        row = await self._fetchone(
            """
            SELECT * FROM connections
            WHERE pair_low = ? AND pair_high = ? AND is_active = 1
            LIMIT 1
            """,
            (pair_low, pair_high),
        )
        return self._row_to_connection(row) if row else None

    async def list_active_connections(self, user_id: str) -> list[Connection]:
        rows = await self._fetchall(
            """
            SELECT * FROM connections
            WHERE (user_a_id = ? OR user_b_id = ?) AND is_active = 1
            ORDER BY connected_at DESC
            """,
            (user_id, user_id),
        )
        return [self._row_to_connection(row) for row in rows]

    async def count_active_connections(self, user_id: str) -> int:
        row = await self._fetchone(
            """
            SELECT COUNT(*) FROM connections
            WHERE (user_a_id = ? OR user_b_id = ?) AND is_active = 1
            """,
            (user_id, user_id),
        )
        return row[0] if row else 0

    async def update_connection_grant(
        self,
        connection_id: str,
        side: ConnectionSide,
        permissions: PermissionSet,
        updated_at: datetime,
    ) -> bool:
        # Column name comes from the enum, never from caller input
        column = "access_a_to_b" if side is ConnectionSide.A else "access_b_to_a"
        cursor = await self.connection.execute(
            f"""
            UPDATE connections
            SET {column} = ?, updated_at = ?
            WHERE id = ? AND is_active = 1
            """,
            (json.dumps(permissions.to_stored()), to_iso(updated_at), connection_id),
        )
        return cursor.rowcount == 1

    async def deactivate_connection(self, connection_id: str, updated_at: datetime) -> bool:
        cursor = await self.connection.execute(
            """
            UPDATE connections SET is_active = 0, updated_at = ?
            WHERE id = ? AND is_active = 1
            """,
            (to_iso(updated_at), connection_id),
        )
        return cursor.rowcount == 1

    # ═══════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════

    def _row_to_user(self, row: aiosqlite.Row) -> UserProfile:
        """Convert database row to UserProfile."""
        return UserProfile(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            avatar=row["avatar"],
            life_status=LifeStatus(row["life_status"]),
        )

    def _row_to_invite(self, row: aiosqlite.Row) -> Invite:
        """Convert database row to Invite."""
        return Invite(
            id=row["id"],
            token=row["token"],
            sender_id=row["sender_id"],
            invitee_email=row["invitee_email"],
            invitee_name=row["invitee_name"],
            relationship_to_sender=row["relationship_to_sender"],
            proposed_permissions=PermissionSet.from_stored(_load_json(row["proposed_permissions"])),
            message=row["message"],
            status=InviteStatus(row["status"]),
            created_at=from_iso(row["created_at"]),
            expires_at=from_iso(row["expires_at"]),
            responded_at=from_iso(row["responded_at"]),
            connection_id=row["connection_id"],
        )

    def _row_to_connection(self, row: aiosqlite.Row) -> Connection:
        """Convert database row to Connection."""
        return Connection(
            id=row["id"],
            user_a_id=row["user_a_id"],
            user_b_id=row["user_b_id"],
            relationship_a_to_b=row["relationship_a_to_b"],
            relationship_b_to_a=row["relationship_b_to_a"],
            access_a_to_b=PermissionSet.from_stored(_load_json(row["access_a_to_b"])),
            access_b_to_a=PermissionSet.from_stored(_load_json(row["access_b_to_a"])),
            is_active=bool(row["is_active"]),
            connected_at=from_iso(row["connected_at"]),
            updated_at=from_iso(row["updated_at"]),
            origin=row["origin"],
            origin_invite_id=row["origin_invite_id"],
        )


def _load_json(value: str | None) -> dict:
    return json.loads(value) if value else {}


class SQLiteTrustStore(TrustStore):
    """
    SQLite-based trust store.

    Features:
    - Local file storage, WAL journal
    - Serialized units of work (BEGIN IMMEDIATE for writes)
    - Partial unique index: one active connection per user pair
    """

    def __init__(self, db_path: str = "data/trust_circle.db", busy_timeout: float = 5.0):
        """
        Initialize SQLite trust store.

        Args:
            db_path: Path to SQLite database file
            busy_timeout: Seconds to wait when another process holds the write lock
        """
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self.connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            # isolation_level=None: transactions are opened explicitly below
            self.connection = await aiosqlite.connect(
                self.db_path, timeout=self.busy_timeout, isolation_level=None
            )
            self.connection.row_factory = aiosqlite.Row
            await self.connection.execute("PRAGMA foreign_keys = ON")
            await self.connection.execute("PRAGMA journal_mode = WAL")

    async def initialize(self) -> None:
        """Initialize database schema."""
        async with self._lock:
            await self.connect()
            await self.connection.execute("BEGIN IMMEDIATE")
            try:
                for statement in SCHEMA:
                    await self.connection.execute(statement)
            except aiosqlite.Error as e:
                await self.connection.execute("ROLLBACK")
                raise StoreError(f"Failed to initialize schema: {e}") from e
            await self.connection.execute("COMMIT")

        logger.info(f"Trust store ready at {self.db_path}")

    @asynccontextmanager
    async def transaction(self, readonly: bool = False) -> AsyncIterator[SQLiteTrustSession]:
        """Open a unit of work; see TrustStore.transaction."""
        async with self._lock:
            await self.connect()
            try:
                await self.connection.execute("BEGIN" if readonly else "BEGIN IMMEDIATE")
            except aiosqlite.Error as e:
                raise StoreError(f"Could not start transaction: {e}") from e

            try:
                yield SQLiteTrustSession(self.connection)
            except aiosqlite.Error as e:
                await self._rollback()
                raise StoreError(f"Trust store operation failed: {e}") from e
            except BaseException:
                await self._rollback()
                raise

            try:
                await self.connection.execute("COMMIT")
            except aiosqlite.Error as e:
                await self._rollback()
                raise StoreError(f"Commit failed: {e}") from e

    async def _rollback(self) -> None:
        try:
            await self.connection.execute("ROLLBACK")
        except aiosqlite.Error as e:
            logger.warning(f"Rollback failed: {e}")

    async def close(self) -> None:
        """Close the connection."""
        if self.connection is not None:
            await self.connection.close()
            self.connection = None
