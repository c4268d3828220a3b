"""
Data models for TrustCircle.

Core models:
- PermissionSet, PermissionPatch, AccessLevel: what one party may see of another
- Invite, InviteStatus: the invite state machine
- Connection, NormalizedConnection: the two-sided trust link and its me/them view
- UserProfile, LifeStatus: decoration supplied by the auth collaborator
- NetworkGraph, NetworkNode, NetworkEdge: derived reachability graph
- VaultAccessResult, AccessibleVault, ContentCategory: access check results
"""

from trustcircle.models.access import AccessibleVault, ContentCategory, VaultAccessResult
from trustcircle.models.connection import (
    ConnectedUser,
    Connection,
    ConnectionSide,
    NormalizedConnection,
    normalize_connection,
)
from trustcircle.models.invite import Invite, InviteStatus, is_valid_email, normalize_email
from trustcircle.models.network import NetworkEdge, NetworkGraph, NetworkNode
from trustcircle.models.permissions import (
    AccessLevel,
    PermissionPatch,
    PermissionSet,
    default_permissions,
    full_access_permissions,
    merge_permissions,
)
from trustcircle.models.user import LifeStatus, UserProfile

__all__ = [
    # Permission models
    "AccessLevel",
    "PermissionSet",
    "PermissionPatch",
    "default_permissions",
    "full_access_permissions",
    "merge_permissions",
    # Invite models
    "Invite",
    "InviteStatus",
    "normalize_email",
    "is_valid_email",
    # Connection models
    "Connection",
    "ConnectionSide",
    "ConnectedUser",
    "NormalizedConnection",
    "normalize_connection",
    # User models
    "UserProfile",
    "LifeStatus",
    # Network models
    "NetworkGraph",
    "NetworkNode",
    "NetworkEdge",
    # Access models
    "ContentCategory",
    "VaultAccessResult",
    "AccessibleVault",
]
