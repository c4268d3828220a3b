"""
User profile as supplied by the user/auth collaborator.
"""

from enum import Enum

from pydantic import BaseModel, field_validator


class LifeStatus(str, Enum):
    """Life status of a user, shown on network nodes."""

    LIVING = "living"
    INCAPACITATED = "incapacitated"
    DECEASED = "deceased"


class UserProfile(BaseModel):
    """Read-only decoration for a stable user id."""

    id: str
    name: str
    email: str
    avatar: str | None = None
    life_status: LifeStatus = LifeStatus.LIVING

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        """E-mails are compared case-insensitively everywhere."""
        return value.strip().lower()
