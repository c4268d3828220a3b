"""Services for TrustCircle."""

from trustcircle.services.access_authorizer import AccessAuthorizer
from trustcircle.services.connection_service import ConnectionService
from trustcircle.services.invite_ledger import InviteLedger
from trustcircle.services.invite_sweeper import InviteExpirySweeper
from trustcircle.services.network_graph import NetworkGraphBuilder
from trustcircle.services.trust_circle import TrustCircle

__all__ = [
    "AccessAuthorizer",
    "ConnectionService",
    "InviteLedger",
    "InviteExpirySweeper",
    "NetworkGraphBuilder",
    "TrustCircle",
]
