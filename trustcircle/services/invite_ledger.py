"""
Invite Ledger - the state machine that gates connection creation.

pending --accept--> accepted   (creates exactly one Connection)
pending --reject--> rejected
pending --cancel--> cancelled
pending --sweep---> expired

Every non-pending status is terminal. Accepting is the one multi-step
operation; it runs as a single unit of work so a failed guard leaves
neither a Connection nor a half-flipped Invite behind.
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from trustcircle.config import InviteConfig
from trustcircle.core.trust_store.base import TrustStore, TrustStoreSession
from trustcircle.models.connection import Connection
from trustcircle.models.invite import Invite, InviteStatus, is_valid_email, normalize_email
from trustcircle.models.permissions import (
    AccessLevel,
    PatchLike,
    default_permissions,
    merge_permissions,
)
from trustcircle.utils.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from trustcircle.utils.id_generator import (
    generate_connection_id,
    generate_invite_id,
    generate_invite_token,
)
from trustcircle.utils.logger import get_logger
from trustcircle.utils.timestamps import utc_now

logger = get_logger(__name__)


class InviteLedger:
    """
    Creates invites and drives them through their lifecycle.
    """

    def __init__(
        self,
        store: TrustStore,
        config: InviteConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize invite ledger.

        Args:
            store: Trust store
            config: Invite settings (expiry, token size)
            clock: Source of the current time
        """
        self.store = store
        self.config = config or InviteConfig()
        self.clock = clock

    # ═══════════════════════════════════════════════════════════
    # CREATE
    # ═══════════════════════════════════════════════════════════

    async def create_invite(
        self,
        sender_id: str,
        invitee_email: str,
        invitee_name: str,
        relationship_to_sender: str,
        proposed_access_level: AccessLevel | str | None = None,
        proposed_permissions: PatchLike = None,
        message: str | None = None,
    ) -> Invite:
        """
        Create a pending invite.

        The proposed set is the default set overridden by the sender's
        choices, with the requested access level (viewer if omitted).

        Args:
            sender_id: Inviting user
            invitee_email: Address of the person invited (may not have an account yet)
            invitee_name: Display name for the invitee
            relationship_to_sender: What the sender calls the invitee (e.g. "son")
            proposed_access_level: Coarse role offered
            proposed_permissions: Overrides on top of the default set
            message: Optional personal note

        Returns:
            The new invite

        Raises:
            ValidationError: Malformed e-mail or empty name/relationship
            NotFoundError: Sender unknown
            InvalidStateError: Sender invites their own e-mail
            ConflictError: Already connected, or a pending invite exists
        """
        if not is_valid_email(invitee_email):
            raise ValidationError("Valid email is required", context={"email": invitee_email})
        if not invitee_name or not invitee_name.strip():
            raise ValidationError("Name is required")
        if not relationship_to_sender or not relationship_to_sender.strip():
            raise ValidationError("Relationship is required")

        email = normalize_email(invitee_email)
        access_level = AccessLevel(proposed_access_level or AccessLevel.VIEWER)
        permissions = merge_permissions(
            merge_permissions(default_permissions(), proposed_permissions),
            {"access_level": access_level},
        )
        now = self.clock()

        async with self.store.transaction() as session:
            sender = await session.get_user(sender_id)
            if sender is None:
                raise NotFoundError("User not found", context={"user_id": sender_id})

            if sender.email == email:
                raise InvalidStateError("Cannot send invite to yourself")

            invitee = await session.get_user_by_email(email)
            if invitee is not None:
                existing = await session.get_active_connection_between(sender_id, invitee.id)
                if existing is not None:
                    raise ConflictError(
                        "Already connected with this person",
                        context={"connection_id": existing.id},
                    )

            if await session.find_pending_invite(sender_id, email) is not None:
                raise ConflictError("Pending invite already exists for this email")

            invite = Invite(
                id=generate_invite_id(),
                token=generate_invite_token(self.config.token_bytes),
                sender_id=sender_id,
                invitee_email=email,
                invitee_name=invitee_name.strip(),
                relationship_to_sender=relationship_to_sender.strip(),
                proposed_permissions=permissions,
                message=message,
                status=InviteStatus.PENDING,
                created_at=now,
                expires_at=now + timedelta(days=self.config.expiry_days),
            )
            await session.insert_invite(invite)

        logger.bind(
            invite_id=invite.id, sender_id=sender_id, invitee_registered=invitee is not None
        ).info(f"Invite {invite.id} created by {sender_id}")
        return invite

    # ═══════════════════════════════════════════════════════════
    # TRANSITIONS
    # ═══════════════════════════════════════════════════════════

    async def accept_invite(
        self,
        invite_id: str,
        accepting_user_id: str,
        reciprocal_relationship: str,
        granted_permissions: PatchLike = None,
    ) -> Connection:
        """
        Accept an invite and create the two-sided connection.

        The sender becomes user A and keeps the set they offered as
        `access_a_to_b`; the acceptor's grant, merged onto the defaults,
        becomes `access_b_to_a`.

        Args:
            invite_id: Invite to accept
            accepting_user_id: User accepting
            reciprocal_relationship: What the acceptor calls the sender (e.g. "father")
            granted_permissions: What the acceptor grants the sender

        Returns:
            The new connection

        Raises:
            ValidationError: Empty reciprocal relationship
            NotFoundError: Invite or accepting user missing
            InvalidStateError: Not pending, expired, e-mail mismatch, self-accept
            ConflictError: The two users are already connected
        """
        if not reciprocal_relationship or not reciprocal_relationship.strip():
            raise ValidationError("Relationship is required")

        now = self.clock()

        async with self.store.transaction() as session:
            invite = await self._load_invite(session, invite_id)
            self._require_pending(invite, now)

            acceptor = await session.get_user(accepting_user_id)
            if acceptor is None:
                raise NotFoundError("User not found", context={"user_id": accepting_user_id})

            if not invite.is_addressed_to(acceptor.email):
                self._reject_guard(invite, "Email mismatch - invite was sent to a different email")

            if invite.sender_id == accepting_user_id:
                self._reject_guard(invite, "Cannot accept your own invite")

            existing = await session.get_active_connection_between(invite.sender_id, accepting_user_id)
            if existing is not None:
                raise ConflictError(
                    "Connection already exists",
                    context={"invite_id": invite.id, "connection_id": existing.id},
                )

            connection = Connection(
                id=generate_connection_id(),
                user_a_id=invite.sender_id,
                user_b_id=accepting_user_id,
                relationship_a_to_b=invite.relationship_to_sender,
                relationship_b_to_a=reciprocal_relationship.strip(),
                access_a_to_b=invite.proposed_permissions,
                access_b_to_a=merge_permissions(default_permissions(), granted_permissions),
                is_active=True,
                connected_at=now,
                updated_at=now,
                origin="invite",
                origin_invite_id=invite.id,
            )
            await session.insert_connection(connection)

            if not await session.transition_invite(
                invite.id, InviteStatus.ACCEPTED, responded_at=now, connection_id=connection.id
            ):
                raise InvalidStateError("Invite is no longer pending", context={"invite_id": invite.id})

        logger.bind(
            invite_id=invite.id,
            connection_id=connection.id,
            user_a_id=connection.user_a_id,
            user_b_id=connection.user_b_id,
        ).info(f"Invite {invite.id} accepted, connection {connection.id} created")
        return connection

    async def reject_invite(self, invite_id: str, rejecting_email: str) -> Invite:
        """
        Reject an invite addressed to `rejecting_email`.

        Raises:
            NotFoundError: Invite missing
            InvalidStateError: Addressed to someone else, or no longer pending
        """
        now = self.clock()

        async with self.store.transaction() as session:
            invite = await self._load_invite(session, invite_id)

            if not invite.is_addressed_to(rejecting_email):
                self._reject_guard(invite, "You can only reject invites sent to you")

            if not await session.transition_invite(invite.id, InviteStatus.REJECTED, responded_at=now):
                self._reject_guard(invite, "Invite is no longer pending")

            rejected = await session.get_invite(invite.id)

        logger.bind(invite_id=invite_id).info(f"Invite {invite_id} rejected")
        return rejected

    async def cancel_invite(self, invite_id: str, sender_id: str) -> bool:
        """
        Cancel a pending invite the caller sent.

        Returns:
            True once cancelled

        Raises:
            NotFoundError: Invite missing or not sent by the caller
            InvalidStateError: No longer pending
        """
        async with self.store.transaction() as session:
            invite = await session.get_invite(invite_id)
            if invite is None or invite.sender_id != sender_id:
                raise NotFoundError("Invite not found", context={"invite_id": invite_id})

            if not await session.transition_invite(invite.id, InviteStatus.CANCELLED):
                self._reject_guard(invite, f"Cannot cancel an invite that is already {invite.status.value}")

        logger.bind(invite_id=invite_id).info(f"Invite {invite_id} cancelled by sender")
        return True

    async def expire_old_invites(self) -> int:
        """
        Expire every pending invite past its deadline.

        Single conditional bulk update, safe to run concurrently with
        anything else. Never raises domain errors.

        Returns:
            Number of invites expired
        """
        now = self.clock()
        async with self.store.transaction() as session:
            count = await session.expire_invites(now)

        logger.bind(expired=count).info(f"Expired {count} overdue invites")
        return count

    # ═══════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════

    async def get_invite(self, invite_id: str) -> Invite:
        """Get invite by ID; raises NotFoundError if missing."""
        async with self.store.transaction(readonly=True) as session:
            return await self._load_invite(session, invite_id)

    async def get_invite_by_token(self, token: str) -> Invite:
        """Get invite by its out-of-band token; raises NotFoundError if missing."""
        async with self.store.transaction(readonly=True) as session:
            invite = await session.get_invite_by_token(token)
        if invite is None:
            raise NotFoundError("Invite not found")
        return invite

    async def get_invite_for_user(self, invite_id: str, user_id: str) -> Invite:
        """
        Get an invite the caller sent or received.

        Anyone else gets NotFoundError, same as for a missing invite.
        """
        async with self.store.transaction(readonly=True) as session:
            invite = await session.get_invite(invite_id)
            user = await session.get_user(user_id)

        if invite is None or user is None:
            raise NotFoundError("Invite not found", context={"invite_id": invite_id})
        if invite.sender_id != user_id and not invite.is_addressed_to(user.email):
            raise NotFoundError("Invite not found", context={"invite_id": invite_id})
        return invite

    async def find_pending_invite(self, sender_id: str, invitee_email: str) -> Invite | None:
        """Pending invite from `sender_id` to `invitee_email`, if any."""
        async with self.store.transaction(readonly=True) as session:
            return await session.find_pending_invite(sender_id, invitee_email)

    async def list_sent_invites(self, user_id: str, status: InviteStatus | str | None = None) -> list[Invite]:
        """All invites sent by a user, newest first, optionally filtered by status."""
        status = InviteStatus(status) if status else None
        async with self.store.transaction(readonly=True) as session:
            return await session.list_invites_by_sender(user_id, status)

    async def list_received_invites(self, email: str, include_all: bool = False) -> list[Invite]:
        """Invites addressed to `email`; only pending, unexpired ones unless `include_all`."""
        pending_at = None if include_all else self.clock()
        async with self.store.transaction(readonly=True) as session:
            return await session.list_invites_for_email(email, pending_at=pending_at)

    async def count_pending_invites(self, email: str) -> int:
        """Number of pending, unexpired invites addressed to `email`."""
        async with self.store.transaction(readonly=True) as session:
            return await session.count_pending_invites(email, self.clock())

    # ═══════════════════════════════════════════════════════════
    # GUARDS
    # ═══════════════════════════════════════════════════════════

    async def _load_invite(self, session: TrustStoreSession, invite_id: str) -> Invite:
        invite = await session.get_invite(invite_id)
        if invite is None:
            raise NotFoundError("Invite not found", context={"invite_id": invite_id})
        return invite

    def _require_pending(self, invite: Invite, now: datetime) -> None:
        if not invite.is_pending:
            self._reject_guard(invite, "Invite is no longer pending")
        if invite.is_expired(now):
            self._reject_guard(invite, "Invite has expired")

    def _reject_guard(self, invite: Invite, message: str, **context: Any) -> None:
        logger.bind(invite_id=invite.id, status=invite.status.value, **context).warning(
            f"Invite {invite.id}: {message}"
        )
        raise InvalidStateError(
            message, context={"invite_id": invite.id, "status": invite.status.value, **context}
        )
