"""
Connection model and the me/them normalization layer.

A Connection is stored with a fixed (user_a, user_b) order, but callers
always reason from their own side. Every read or write that touches the
asymmetric fields goes through `side_of` first.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from trustcircle.models.permissions import PermissionSet, default_permissions
from trustcircle.models.user import UserProfile


class ConnectionSide(str, Enum):
    """Which stored column a user occupies."""

    A = "a"
    B = "b"

    @property
    def other(self) -> "ConnectionSide":
        return ConnectionSide.B if self is ConnectionSide.A else ConnectionSide.A


class Connection(BaseModel):
    """
    Bidirectional, soft-deletable link between two users.

    `access_a_to_b` is what A grants B (what B may do to A's content);
    `access_b_to_a` is what B grants A. The two sets are never shared:
    each is only changed by its granting party.
    """

    id: str
    user_a_id: str
    user_b_id: str
    relationship_a_to_b: str
    relationship_b_to_a: str
    access_a_to_b: PermissionSet = Field(default_factory=default_permissions)
    access_b_to_a: PermissionSet = Field(default_factory=default_permissions)
    is_active: bool = True
    connected_at: datetime
    updated_at: datetime
    origin: str = "invite"
    origin_invite_id: str | None = None

    def side_of(self, user_id: str) -> ConnectionSide | None:
        """Stored side occupied by `user_id`, or None if not a party."""
        if user_id == self.user_a_id:
            return ConnectionSide.A
        if user_id == self.user_b_id:
            return ConnectionSide.B
        return None

    def involves(self, user_id: str) -> bool:
        return self.side_of(user_id) is not None

    def user_on(self, side: ConnectionSide) -> str:
        return self.user_a_id if side is ConnectionSide.A else self.user_b_id

    def other_user(self, user_id: str) -> str:
        side = self._require_side(user_id)
        return self.user_on(side.other)

    def granted_by(self, user_id: str) -> PermissionSet:
        """Permissions `user_id` grants the other party."""
        side = self._require_side(user_id)
        return self.access_a_to_b if side is ConnectionSide.A else self.access_b_to_a

    def granted_to(self, user_id: str) -> PermissionSet:
        """Permissions the other party grants `user_id`."""
        side = self._require_side(user_id)
        return self.access_b_to_a if side is ConnectionSide.A else self.access_a_to_b

    def relationship_from(self, user_id: str) -> str:
        """Label `user_id` uses for the other party."""
        side = self._require_side(user_id)
        return self.relationship_a_to_b if side is ConnectionSide.A else self.relationship_b_to_a

    def relationship_to(self, user_id: str) -> str:
        """Label the other party uses for `user_id`."""
        side = self._require_side(user_id)
        return self.relationship_b_to_a if side is ConnectionSide.A else self.relationship_a_to_b

    def with_grant(self, user_id: str, permissions: PermissionSet, updated_at: datetime) -> "Connection":
        """Copy with the set granted by `user_id` replaced; the other side is untouched."""
        side = self._require_side(user_id)
        field = "access_a_to_b" if side is ConnectionSide.A else "access_b_to_a"
        return self.model_copy(update={field: permissions, "updated_at": updated_at})

    def _require_side(self, user_id: str) -> ConnectionSide:
        side = self.side_of(user_id)
        if side is None:
            raise ValueError(f"User {user_id} is not a party to connection {self.id}")
        return side


class ConnectedUser(BaseModel):
    """The other party as seen in a normalized connection."""

    id: str
    name: str | None = None
    email: str | None = None
    avatar: str | None = None
    life_status: str | None = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "ConnectedUser":
        return cls(
            id=profile.id,
            name=profile.name,
            email=profile.email,
            avatar=profile.avatar,
            life_status=profile.life_status.value,
        )


class NormalizedConnection(BaseModel):
    """A connection viewed from one party ("me") towards the other ("them")."""

    id: str
    connected_user: ConnectedUser
    my_relationship_to_them: str
    their_relationship_to_me: str
    my_permissions_to_them: PermissionSet
    their_permissions_to_me: PermissionSet
    connected_at: datetime
    is_active: bool


def normalize_connection(
    connection: Connection,
    user_id: str,
    profiles: dict[str, UserProfile] | None = None,
) -> NormalizedConnection:
    """
    Project a stored connection into the me/them view for `user_id`.

    Args:
        connection: Stored connection
        user_id: The viewing party ("me")
        profiles: Optional profiles used to decorate the other party

    Raises:
        ValueError: If `user_id` is not a party to the connection
    """
    other_id = connection.other_user(user_id)
    profile = (profiles or {}).get(other_id)

    return NormalizedConnection(
        id=connection.id,
        connected_user=ConnectedUser.from_profile(profile) if profile else ConnectedUser(id=other_id),
        my_relationship_to_them=connection.relationship_from(user_id),
        their_relationship_to_me=connection.relationship_to(user_id),
        my_permissions_to_them=connection.granted_by(user_id),
        their_permissions_to_me=connection.granted_to(user_id),
        connected_at=connection.connected_at,
        is_active=connection.is_active,
    )
