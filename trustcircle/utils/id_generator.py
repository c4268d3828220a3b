"""
ID generation utilities for TrustCircle.

Provides consistent ID generation for all entity types:
- Users: usr_xxx
- Invites: inv_xxx
- Connections: conn_xxx
- Invite tokens: unguessable URL-safe strings for out-of-band links
"""

import secrets
from uuid import uuid4


def generate_user_id() -> str:
    """
    Generate unique User ID.

    Returns:
        ID in format "usr_xxx" where xxx is 12 hex characters
    """
    return f"usr_{uuid4().hex[:12]}"


def generate_invite_id() -> str:
    """
    Generate unique Invite ID.

    Returns:
        ID in format "inv_xxx" where xxx is 12 hex characters
    """
    return f"inv_{uuid4().hex[:12]}"


def generate_connection_id() -> str:
    """
    Generate unique Connection ID.

    Returns:
        ID in format "conn_xxx" where xxx is 12 hex characters
    """
    return f"conn_{uuid4().hex[:12]}"


def generate_invite_token(nbytes: int = 32) -> str:
    """
    Generate an invite token.

    Args:
        nbytes: Bytes of randomness (the token is ~1.3x longer)

    Returns:
        URL-safe token drawn from the OS CSPRNG
    """
    return secrets.token_urlsafe(nbytes)
