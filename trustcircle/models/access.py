"""
Results of cross-user access checks.
"""

from enum import Enum

from pydantic import BaseModel

from trustcircle.models.connection import ConnectedUser
from trustcircle.models.permissions import PermissionSet


class ContentCategory(str, Enum):
    """Content categories gated by a PermissionSet."""

    VOICE = "voice"
    MEMORIES = "memories"
    STORIES = "stories"
    VAULT = "vault"
    LEGACY = "legacy"

    @property
    def permission_field(self) -> str:
        return f"can_access_{self.value}"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class VaultAccessResult(BaseModel):
    """Outcome of an access check; `reason` is set only on denial."""

    can_access: bool
    permissions: PermissionSet | None = None
    reason: str | None = None


class AccessibleVault(BaseModel):
    """An owner whose vault the requester may open."""

    user: ConnectedUser
    permissions: PermissionSet
