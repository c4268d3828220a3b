"""
Tests for the invite ledger.

Tests cover:
1. Invite creation guards
2. Accepting (connection shape, guards, atomicity)
3. Rejecting and cancelling
4. Terminal-state immutability
5. Expiry and the bulk sweep
6. Concurrent cross-invite accepts
"""

import asyncio
from datetime import timedelta

import pytest

from trustcircle.models.invite import InviteStatus
from trustcircle.models.permissions import AccessLevel, default_permissions
from trustcircle.utils.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


async def invite_bob(circle, users, **kwargs):
    params = {
        "sender_id": users["alice"].id,
        "invitee_email": users["bob"].email,
        "invitee_name": "Bob",
        "relationship_to_sender": "son",
    }
    params.update(kwargs)
    return await circle.create_invite(**params)


class TestCreateInvite:
    """Tests for invite creation."""

    @pytest.mark.asyncio
    async def test_create_pending_invite(self, circle, users, clock):
        invite = await invite_bob(circle, users, message="Join my circle")

        assert invite.id.startswith("inv_")
        assert invite.token
        assert invite.status == InviteStatus.PENDING
        assert invite.sender_id == users["alice"].id
        assert invite.created_at == clock.now
        assert invite.expires_at == clock.now + timedelta(days=30)
        assert invite.proposed_permissions == default_permissions()
        assert invite.message == "Join my circle"

    @pytest.mark.asyncio
    async def test_email_normalized(self, circle, users):
        invite = await invite_bob(circle, users, invitee_email="  BOB@Example.com ")
        assert invite.invitee_email == "bob@example.com"

    @pytest.mark.asyncio
    async def test_proposed_permissions_merged_on_defaults(self, circle, users):
        invite = await invite_bob(
            circle,
            users,
            proposed_access_level=AccessLevel.EDITOR,
            proposed_permissions={"can_access_vault": True},
        )

        assert invite.proposed_permissions.access_level == AccessLevel.EDITOR
        assert invite.proposed_permissions.can_access_vault is True
        assert invite.proposed_permissions.can_access_memories is True
        assert invite.proposed_permissions.can_access_legacy is False

    @pytest.mark.asyncio
    async def test_unregistered_invitee_allowed(self, circle, users):
        invite = await invite_bob(circle, users, invitee_email="newcomer@example.com", invitee_name="Newcomer")
        assert invite.invitee_email == "newcomer@example.com"

    @pytest.mark.asyncio
    async def test_invalid_input(self, circle, users):
        with pytest.raises(ValidationError):
            await invite_bob(circle, users, invitee_email="not-an-email")
        with pytest.raises(ValidationError):
            await invite_bob(circle, users, relationship_to_sender="   ")
        with pytest.raises(ValidationError):
            await invite_bob(circle, users, invitee_name="")

    @pytest.mark.asyncio
    async def test_unknown_sender(self, circle, users):
        with pytest.raises(NotFoundError):
            await invite_bob(circle, users, sender_id="usr_nobody")

    @pytest.mark.asyncio
    async def test_cannot_invite_yourself(self, circle, users):
        with pytest.raises(InvalidStateError, match="Cannot send invite to yourself"):
            await invite_bob(circle, users, invitee_email="Alice@example.com")

    @pytest.mark.asyncio
    async def test_duplicate_pending_invite(self, circle, users):
        await invite_bob(circle, users)
        with pytest.raises(ConflictError, match="Pending invite already exists"):
            await invite_bob(circle, users)

    @pytest.mark.asyncio
    async def test_already_connected(self, circle, users, connect):
        await connect(users["alice"], users["bob"])
        with pytest.raises(ConflictError, match="Already connected"):
            await invite_bob(circle, users)


class TestAcceptInvite:
    """Tests for accepting invites."""

    @pytest.mark.asyncio
    async def test_accept_creates_connection(self, circle, users, clock):
        invite = await invite_bob(circle, users, proposed_permissions={"can_access_stories": False})
        clock.advance(days=1)

        connection = await circle.accept_invite(invite.id, users["bob"].id, "mother", {"can_access_vault": True})

        assert connection.user_a_id == users["alice"].id
        assert connection.user_b_id == users["bob"].id
        assert connection.relationship_a_to_b == "son"
        assert connection.relationship_b_to_a == "mother"
        assert connection.access_a_to_b == invite.proposed_permissions
        assert connection.access_b_to_a.can_access_vault is True
        assert connection.access_b_to_a.can_access_voice is True
        assert connection.is_active is True
        assert connection.connected_at == clock.now
        assert connection.origin_invite_id == invite.id

        stored = await circle.invites.get_invite(invite.id)
        assert stored.status == InviteStatus.ACCEPTED
        assert stored.responded_at == clock.now
        assert stored.connection_id == connection.id

    @pytest.mark.asyncio
    async def test_accept_without_grant_uses_defaults(self, circle, users):
        invite = await invite_bob(circle, users)
        connection = await circle.accept_invite(invite.id, users["bob"].id, "mother")
        assert connection.access_b_to_a == default_permissions()

    @pytest.mark.asyncio
    async def test_email_match_ignores_case(self, circle, users):
        invite = await invite_bob(circle, users, invitee_email="BOB@EXAMPLE.COM")
        connection = await circle.accept_invite(invite.id, users["bob"].id, "mother")
        assert connection.user_b_id == users["bob"].id

    @pytest.mark.asyncio
    async def test_unknown_invite(self, circle, users):
        with pytest.raises(NotFoundError):
            await circle.accept_invite("inv_missing", users["bob"].id, "mother")

    @pytest.mark.asyncio
    async def test_email_mismatch(self, circle, users):
        invite = await invite_bob(circle, users)
        with pytest.raises(InvalidStateError, match="Email mismatch"):
            await circle.accept_invite(invite.id, users["carol"].id, "mother")

        stored = await circle.invites.get_invite(invite.id)
        assert stored.status == InviteStatus.PENDING

    @pytest.mark.asyncio
    async def test_empty_reciprocal_relationship(self, circle, users):
        invite = await invite_bob(circle, users)
        with pytest.raises(ValidationError):
            await circle.accept_invite(invite.id, users["bob"].id, "  ")

    @pytest.mark.asyncio
    async def test_expired_invite(self, circle, users, clock):
        invite = await invite_bob(circle, users)
        clock.advance(days=30)

        with pytest.raises(InvalidStateError, match="Invite has expired"):
            await circle.accept_invite(invite.id, users["bob"].id, "mother")

        assert await circle.connection_count(users["alice"].id) == 0

    @pytest.mark.asyncio
    async def test_existing_connection_leaves_invite_pending(self, circle, users, connect):
        """Test that a failed accept rolls back completely."""
        invite = await invite_bob(circle, users)
        # Bob connects to Alice through his own invite first
        await connect(users["bob"], users["alice"], relationship="mother", reciprocal="son")

        with pytest.raises(ConflictError, match="Connection already exists"):
            await circle.accept_invite(invite.id, users["bob"].id, "mother")

        stored = await circle.invites.get_invite(invite.id)
        assert stored.status == InviteStatus.PENDING
        assert stored.connection_id is None
        assert await circle.connection_count(users["alice"].id) == 1


class TestRejectAndCancel:
    """Tests for rejecting and cancelling invites."""

    @pytest.mark.asyncio
    async def test_reject(self, circle, users, clock):
        invite = await invite_bob(circle, users)
        rejected = await circle.reject_invite(invite.id, "Bob@Example.com")

        assert rejected.status == InviteStatus.REJECTED
        assert rejected.responded_at == clock.now

    @pytest.mark.asyncio
    async def test_reject_by_someone_else(self, circle, users):
        invite = await invite_bob(circle, users)
        with pytest.raises(InvalidStateError, match="You can only reject invites sent to you"):
            await circle.reject_invite(invite.id, users["carol"].email)

    @pytest.mark.asyncio
    async def test_cancel(self, circle, users):
        invite = await invite_bob(circle, users)

        assert await circle.cancel_invite(invite.id, users["alice"].id) is True
        stored = await circle.invites.get_invite(invite.id)
        assert stored.status == InviteStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_by_non_sender_looks_missing(self, circle, users):
        invite = await invite_bob(circle, users)
        with pytest.raises(NotFoundError):
            await circle.cancel_invite(invite.id, users["bob"].id)

    @pytest.mark.asyncio
    async def test_cancel_then_accept(self, circle, users):
        invite = await invite_bob(circle, users)
        await circle.cancel_invite(invite.id, users["alice"].id)

        with pytest.raises(InvalidStateError):
            await circle.accept_invite(invite.id, users["bob"].id, "mother")

    @pytest.mark.asyncio
    async def test_cancel_allows_new_invite(self, circle, users):
        invite = await invite_bob(circle, users)
        await circle.cancel_invite(invite.id, users["alice"].id)

        again = await invite_bob(circle, users)
        assert again.id != invite.id


class TestTerminalStates:
    """Once an invite leaves pending, nothing moves it again."""

    async def _terminal_invite(self, circle, users, clock, status):
        invite = await invite_bob(circle, users)
        if status == InviteStatus.ACCEPTED:
            await circle.accept_invite(invite.id, users["bob"].id, "mother")
        elif status == InviteStatus.REJECTED:
            await circle.reject_invite(invite.id, users["bob"].email)
        elif status == InviteStatus.CANCELLED:
            await circle.cancel_invite(invite.id, users["alice"].id)
        else:
            clock.advance(days=31)
            await circle.expire_old_invites()
            clock.advance(days=-31)
        return invite

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [InviteStatus.ACCEPTED, InviteStatus.REJECTED, InviteStatus.CANCELLED, InviteStatus.EXPIRED],
    )
    async def test_every_transition_fails(self, circle, users, clock, status):
        invite = await self._terminal_invite(circle, users, clock, status)

        with pytest.raises(InvalidStateError):
            await circle.accept_invite(invite.id, users["bob"].id, "mother")
        with pytest.raises(InvalidStateError):
            await circle.reject_invite(invite.id, users["bob"].email)
        with pytest.raises(InvalidStateError):
            await circle.cancel_invite(invite.id, users["alice"].id)

        stored = await circle.invites.get_invite(invite.id)
        assert stored.status == status


class TestExpiry:
    """Tests for the bulk expiry sweep."""

    @pytest.mark.asyncio
    async def test_expire_old_invites(self, circle, users, clock):
        old = await invite_bob(circle, users)
        clock.advance(days=10)
        fresh = await invite_bob(circle, users, invitee_email=users["carol"].email, invitee_name="Carol")
        clock.advance(days=20)

        assert await circle.expire_old_invites() == 1
        assert (await circle.invites.get_invite(old.id)).status == InviteStatus.EXPIRED
        assert (await circle.invites.get_invite(fresh.id)).status == InviteStatus.PENDING

        # Idempotent
        assert await circle.expire_old_invites() == 0

    @pytest.mark.asyncio
    async def test_received_invites_hide_expired(self, circle, users, clock):
        await invite_bob(circle, users)
        assert await circle.count_pending_invites(users["bob"].id) == 1

        clock.advance(days=30)

        assert await circle.count_pending_invites(users["bob"].id) == 0
        assert await circle.list_received_invites(users["bob"].id) == []
        assert len(await circle.list_received_invites(users["bob"].id, include_all=True)) == 1


class TestInviteReads:
    """Tests for invite lookups."""

    @pytest.mark.asyncio
    async def test_visible_to_sender_and_recipient_only(self, circle, users):
        invite = await invite_bob(circle, users)

        assert (await circle.get_invite_for_user(invite.id, users["alice"].id)).id == invite.id
        assert (await circle.get_invite_for_user(invite.id, users["bob"].id)).id == invite.id
        with pytest.raises(NotFoundError):
            await circle.get_invite_for_user(invite.id, users["carol"].id)

    @pytest.mark.asyncio
    async def test_by_token(self, circle, users):
        invite = await invite_bob(circle, users)

        assert (await circle.get_invite_by_token(invite.token)).id == invite.id
        with pytest.raises(NotFoundError):
            await circle.get_invite_by_token("bogus")

    @pytest.mark.asyncio
    async def test_list_sent_with_status(self, circle, users):
        first = await invite_bob(circle, users)
        await invite_bob(circle, users, invitee_email=users["carol"].email, invitee_name="Carol")
        await circle.cancel_invite(first.id, users["alice"].id)

        assert len(await circle.list_sent_invites(users["alice"].id)) == 2
        pending = await circle.list_sent_invites(users["alice"].id, "pending")
        assert [i.invitee_email for i in pending] == [users["carol"].email]


class TestConcurrentAccept:
    """Two cross-invites accepted at once must yield exactly one connection."""

    @pytest.mark.asyncio
    async def test_cross_invites(self, circle, users):
        to_bob = await invite_bob(circle, users)
        to_alice = await circle.create_invite(
            sender_id=users["bob"].id,
            invitee_email=users["alice"].email,
            invitee_name="Alice",
            relationship_to_sender="mother",
        )

        results = await asyncio.gather(
            circle.accept_invite(to_bob.id, users["bob"].id, "mother"),
            circle.accept_invite(to_alice.id, users["alice"].id, "son"),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        connections = [r for r in results if not isinstance(r, Exception)]

        assert len(connections) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], ConflictError)
        assert await circle.connection_count(users["alice"].id) == 1
        assert await circle.connection_count(users["bob"].id) == 1
