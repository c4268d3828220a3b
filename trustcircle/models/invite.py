"""
Invite model and lifecycle status.
"""

import re
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from trustcircle.models.permissions import PermissionSet, default_permissions

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str) -> str:
    """Lower-case and trim an e-mail address."""
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    """Loose syntactic check; delivery is out of scope."""
    return bool(EMAIL_PATTERN.match(email.strip()))


class InviteStatus(str, Enum):
    """Invite lifecycle status. Every status except PENDING is terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not InviteStatus.PENDING


class Invite(BaseModel):
    """
    One-directional, time-bounded proposal to join the sender's circle.

    Accepting it produces exactly one Connection, whose id is recorded
    in `connection_id`.
    """

    id: str
    token: str
    sender_id: str
    invitee_email: str
    invitee_name: str
    relationship_to_sender: str
    proposed_permissions: PermissionSet = Field(default_factory=default_permissions)
    message: str | None = None
    status: InviteStatus = InviteStatus.PENDING
    created_at: datetime
    expires_at: datetime
    responded_at: datetime | None = None
    connection_id: str | None = None

    @field_validator("invitee_email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return normalize_email(value)

    @property
    def is_pending(self) -> bool:
        return self.status == InviteStatus.PENDING

    def is_expired(self, now: datetime) -> bool:
        """True once `now` has reached the expiry instant."""
        return now >= self.expires_at

    def is_addressed_to(self, email: str) -> bool:
        return normalize_email(email) == self.invitee_email
