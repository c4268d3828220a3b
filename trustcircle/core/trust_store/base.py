"""
Base interface for trust storage.

The store is the only shared mutable resource. All reads and writes run
inside a unit of work obtained from `TrustStore.transaction()`, which
commits or rolls back as a whole.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime

from trustcircle.models.connection import Connection, ConnectionSide
from trustcircle.models.invite import Invite, InviteStatus
from trustcircle.models.permissions import PermissionSet
from trustcircle.models.user import UserProfile


class TrustStoreSession(ABC):
    """Data operations available inside one transaction."""

    # ═══════════════════════════════════════════════════════════
    # USER DIRECTORY
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def upsert_user(self, profile: UserProfile) -> None:
        """
        Insert or refresh a user profile.

        Args:
            profile: Profile supplied by the auth collaborator

        Raises:
            ConflictError: If another user already owns the e-mail
        """
        pass

    @abstractmethod
    async def get_user(self, user_id: str) -> UserProfile | None:
        """Retrieve a user profile by ID."""
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> UserProfile | None:
        """Retrieve a user profile by (case-insensitive) e-mail."""
        pass

    @abstractmethod
    async def get_users(self, user_ids: list[str]) -> dict[str, UserProfile]:
        """
        Retrieve several profiles at once.

        Returns:
            Mapping of user id to profile; unknown ids are omitted
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # INVITES
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def insert_invite(self, invite: Invite) -> None:
        """Persist a new invite."""
        pass

    @abstractmethod
    async def get_invite(self, invite_id: str) -> Invite | None:
        """Retrieve an invite by ID."""
        pass

    @abstractmethod
    async def get_invite_by_token(self, token: str) -> Invite | None:
        """Retrieve an invite by its out-of-band token."""
        pass

    @abstractmethod
    async def find_pending_invite(self, sender_id: str, invitee_email: str) -> Invite | None:
        """Find a pending invite from `sender_id` to `invitee_email`."""
        pass

    @abstractmethod
    async def list_invites_by_sender(
        self, sender_id: str, status: InviteStatus | None = None
    ) -> list[Invite]:
        """
        List invites sent by a user, newest first.

        Args:
            sender_id: Sender
            status: Optional status filter
        """
        pass

    @abstractmethod
    async def list_invites_for_email(
        self, invitee_email: str, pending_at: datetime | None = None
    ) -> list[Invite]:
        """
        List invites addressed to an e-mail, newest first.

        Args:
            invitee_email: Recipient address
            pending_at: If given, only invites still pending and unexpired at this instant
        """
        pass

    @abstractmethod
    async def count_pending_invites(self, invitee_email: str, now: datetime) -> int:
        """Count pending, unexpired invites for an e-mail."""
        pass

    @abstractmethod
    async def transition_invite(
        self,
        invite_id: str,
        status: InviteStatus,
        responded_at: datetime | None = None,
        connection_id: str | None = None,
    ) -> bool:
        """
        Move a pending invite to a terminal status.

        Single conditional write: nothing happens unless the invite is
        still pending.

        Returns:
            True if the invite was pending and is now `status`
        """
        pass

    @abstractmethod
    async def expire_invites(self, now: datetime) -> int:
        """
        Mark every pending invite with `expires_at < now` as expired.

        Returns:
            Number of invites expired
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # CONNECTIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def insert_connection(self, connection: Connection) -> None:
        """
        Persist a new connection.

        Raises:
            ConflictError: If an active connection already links the pair
        """
        pass

    @abstractmethod
    async def get_connection(self, connection_id: str) -> Connection | None:
        """Retrieve a connection by ID (active or not)."""
        pass

    @abstractmethod
    async def get_active_connection_between(self, user_id: str, other_id: str) -> Connection | None:
        """Find the active connection between two users, in either stored order."""
        pass

    @abstractmethod
    async def list_active_connections(self, user_id: str) -> list[Connection]:
        """List active connections touching `user_id`, newest first."""
        pass

    @abstractmethod
    async def count_active_connections(self, user_id: str) -> int:
        """Count active connections touching `user_id`."""
        pass

    @abstractmethod
    async def update_connection_grant(
        self,
        connection_id: str,
        side: ConnectionSide,
        permissions: PermissionSet,
        updated_at: datetime,
    ) -> bool:
        """
        Replace the set granted by the user on `side`. The other side's
        column is not written.

        Returns:
            True if an active connection was updated
        """
        pass

    @abstractmethod
    async def deactivate_connection(self, connection_id: str, updated_at: datetime) -> bool:
        """
        Soft-delete a connection.

        Returns:
            True if the connection was active and is now inactive
        """
        pass


class TrustStore(ABC):
    """Abstract base class for trust storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the store (create tables/indices)."""
        pass

    @abstractmethod
    def transaction(self, readonly: bool = False) -> AbstractAsyncContextManager[TrustStoreSession]:
        """
        Open a unit of work.

        Everything done through the yielded session is committed when the
        block exits normally and rolled back if it raises. Units of work
        are isolated from one another.

        Args:
            readonly: Hint that the block only reads
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the store."""
        pass
