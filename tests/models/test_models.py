"""
Tests for invite, connection and network models.

Tests cover:
1. Invite status and expiry helpers
2. Connection side resolution
3. me/them normalization from both stored sides
4. Network graph helpers
"""

from datetime import UTC, datetime, timedelta

import pytest

from trustcircle.models import (
    ConnectionSide,
    ContentCategory,
    Invite,
    InviteStatus,
    NetworkGraph,
    NetworkNode,
    UserProfile,
    default_permissions,
    is_valid_email,
    merge_permissions,
    normalize_connection,
)
from trustcircle.models.connection import Connection

NOW = datetime(2025, 3, 1, tzinfo=UTC)


@pytest.fixture
def connection() -> Connection:
    """Alice (A) calls Bob her "son"; Bob (B) calls Alice his "mother"."""
    return Connection(
        id="conn_1",
        user_a_id="usr_alice",
        user_b_id="usr_bob",
        relationship_a_to_b="son",
        relationship_b_to_a="mother",
        access_a_to_b=default_permissions(),
        access_b_to_a=merge_permissions(default_permissions(), {"can_access_vault": True}),
        connected_at=NOW,
        updated_at=NOW,
    )


def make_invite(**overrides) -> Invite:
    data = {
        "id": "inv_1",
        "token": "tok",
        "sender_id": "usr_alice",
        "invitee_email": "Bob@Example.com",
        "invitee_name": "Bob",
        "relationship_to_sender": "son",
        "created_at": NOW,
        "expires_at": NOW + timedelta(days=30),
    }
    data.update(overrides)
    return Invite(**data)


class TestInvite:
    """Tests for Invite helpers."""

    def test_email_is_lower_cased(self):
        assert make_invite().invitee_email == "bob@example.com"

    def test_is_addressed_to_ignores_case(self):
        invite = make_invite()
        assert invite.is_addressed_to("BOB@example.COM")
        assert not invite.is_addressed_to("carol@example.com")

    def test_expiry_boundary(self):
        """Test that an invite is expired from its expiry instant onwards."""
        invite = make_invite()

        assert not invite.is_expired(NOW + timedelta(days=30) - timedelta(microseconds=1))
        assert invite.is_expired(NOW + timedelta(days=30))

    def test_terminal_statuses(self):
        assert not InviteStatus.PENDING.is_terminal
        for status in (InviteStatus.ACCEPTED, InviteStatus.REJECTED, InviteStatus.CANCELLED, InviteStatus.EXPIRED):
            assert status.is_terminal

    def test_default_proposal(self):
        assert make_invite().proposed_permissions == default_permissions()

    def test_email_validation(self):
        assert is_valid_email("bob@example.com")
        assert not is_valid_email("bob")
        assert not is_valid_email("bob@example")
        assert not is_valid_email("")


class TestConnectionSides:
    """Tests for resolving which stored side a user occupies."""

    def test_side_of(self, connection):
        assert connection.side_of("usr_alice") is ConnectionSide.A
        assert connection.side_of("usr_bob") is ConnectionSide.B
        assert connection.side_of("usr_carol") is None
        assert ConnectionSide.A.other is ConnectionSide.B

    def test_other_user(self, connection):
        assert connection.other_user("usr_alice") == "usr_bob"
        assert connection.other_user("usr_bob") == "usr_alice"

    def test_grants(self, connection):
        assert connection.granted_by("usr_alice") == connection.access_a_to_b
        assert connection.granted_by("usr_bob") == connection.access_b_to_a
        assert connection.granted_to("usr_alice") == connection.access_b_to_a
        assert connection.granted_to("usr_bob") == connection.access_a_to_b

    def test_non_party_rejected(self, connection):
        with pytest.raises(ValueError):
            connection.granted_by("usr_carol")

    def test_with_grant_touches_one_side(self, connection):
        later = NOW + timedelta(hours=1)
        updated = connection.with_grant("usr_bob", default_permissions(), later)

        assert updated.access_b_to_a == default_permissions()
        assert updated.access_a_to_b == connection.access_a_to_b
        assert updated.updated_at == later
        # Original untouched
        assert connection.access_b_to_a.can_access_vault is True


class TestNormalization:
    """me/them views must invert correctly depending on the stored side."""

    def test_normalize_as_user_a(self, connection):
        view = normalize_connection(connection, "usr_alice")

        assert view.connected_user.id == "usr_bob"
        assert view.my_relationship_to_them == "son"
        assert view.their_relationship_to_me == "mother"
        assert view.my_permissions_to_them == connection.access_a_to_b
        assert view.their_permissions_to_me == connection.access_b_to_a

    def test_normalize_as_user_b(self, connection):
        view = normalize_connection(connection, "usr_bob")

        assert view.connected_user.id == "usr_alice"
        assert view.my_relationship_to_them == "mother"
        assert view.their_relationship_to_me == "son"
        assert view.my_permissions_to_them == connection.access_b_to_a
        assert view.their_permissions_to_me == connection.access_a_to_b

    def test_profile_decoration(self, connection):
        profiles = {"usr_bob": UserProfile(id="usr_bob", name="Bob", email="bob@example.com")}

        view = normalize_connection(connection, "usr_alice", profiles)

        assert view.connected_user.name == "Bob"
        assert view.connected_user.email == "bob@example.com"
        assert view.connected_user.life_status == "living"

    def test_non_party_rejected(self, connection):
        with pytest.raises(ValueError):
            normalize_connection(connection, "usr_carol")


class TestNetworkGraph:
    """Tests for graph lookup helpers."""

    def test_node_lookup(self):
        graph = NetworkGraph(
            nodes=[
                NetworkNode(id="usr_alice", connection_degree=0, is_current_user=True),
                NetworkNode(id="usr_bob", connection_degree=1),
            ]
        )

        assert graph.has_node("usr_bob")
        assert not graph.has_node("usr_carol")
        assert graph.get_node("usr_bob").connection_degree == 1
        assert graph.get_node("usr_carol") is None
        assert graph.truncated is False


class TestContentCategory:
    def test_permission_field_and_label(self):
        assert ContentCategory.VAULT.permission_field == "can_access_vault"
        assert ContentCategory.VAULT.label == "Vault"
        assert ContentCategory("memories") is ContentCategory.MEMORIES
