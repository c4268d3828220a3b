"""
Permission sets granted across a trusted connection.

A PermissionSet describes what one party may see of another. It is an
immutable value: updates always build a new set by merging a patch.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class AccessLevel(str, Enum):
    """Coarse role attached to a permission set (informational)."""

    VIEWER = "viewer"
    EDITOR = "editor"
    EXECUTOR = "executor"


# Stored JSON from the web client uses camelCase keys
_CAMEL_KEYS = {
    "accessLevel": "access_level",
    "canAccessVoice": "can_access_voice",
    "canAccessMemories": "can_access_memories",
    "canAccessStories": "can_access_stories",
    "canAccessVault": "can_access_vault",
    "canAccessLegacy": "can_access_legacy",
}


def _to_snake(data: dict[str, Any]) -> dict[str, Any]:
    return {_CAMEL_KEYS.get(key, key): value for key, value in data.items()}


class PermissionSet(BaseModel):
    """
    What the grantee may access of the grantor's content.

    Every field is always present; see `from_stored` for how partially
    stored sets are completed.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_level: AccessLevel = AccessLevel.VIEWER
    can_access_voice: bool = True
    can_access_memories: bool = True
    can_access_stories: bool = True
    can_access_vault: bool = False
    can_access_legacy: bool = False

    @classmethod
    def from_stored(cls, data: dict[str, Any] | None) -> "PermissionSet":
        """Materialize a stored set; missing or null keys take default values."""
        if not data:
            return default_permissions()
        values = {key: value for key, value in _to_snake(data).items() if value is not None}
        return cls(**values)

    def to_stored(self) -> dict[str, Any]:
        """Serialize for storage (JSON-safe, snake_case)."""
        return self.model_dump(mode="json")


class PermissionPatch(BaseModel):
    """Partial update of a PermissionSet; None means "leave unchanged"."""

    model_config = ConfigDict(extra="forbid")

    access_level: AccessLevel | None = None
    can_access_voice: bool | None = None
    can_access_memories: bool | None = None
    can_access_stories: bool | None = None
    can_access_vault: bool | None = None
    can_access_legacy: bool | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PermissionPatch":
        """Build a patch from snake_case or camelCase keys."""
        return cls(**_to_snake(data))

    def changes(self) -> dict[str, Any]:
        """Fields explicitly set by the caller."""
        return self.model_dump(exclude_none=True)


def default_permissions() -> PermissionSet:
    """Baseline set offered when nothing else is specified."""
    return PermissionSet(
        access_level=AccessLevel.VIEWER,
        can_access_voice=True,
        can_access_memories=True,
        can_access_stories=True,
        can_access_vault=False,
        can_access_legacy=False,
    )


def full_access_permissions() -> PermissionSet:
    """Implicit set a user holds over their own content."""
    return PermissionSet(
        access_level=AccessLevel.EXECUTOR,
        can_access_voice=True,
        can_access_memories=True,
        can_access_stories=True,
        can_access_vault=True,
        can_access_legacy=True,
    )


PatchLike = PermissionPatch | PermissionSet | dict[str, Any] | None


def merge_permissions(base: PermissionSet, patch: PatchLike = None) -> PermissionSet:
    """
    Field-wise override of `base` by `patch`.

    Fields the patch leaves out keep the base value; they are never reset
    to defaults.
    """
    if patch is None:
        return base
    if isinstance(patch, PermissionSet):
        changes = patch.model_dump()
    elif isinstance(patch, PermissionPatch):
        changes = patch.changes()
    else:
        changes = PermissionPatch.from_dict(patch).changes()

    if not changes:
        return base
    return base.model_copy(update=changes)

