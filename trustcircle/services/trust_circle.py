"""
TrustCircle - unified entry point for the trust-relationship subsystem.

Brings together:
- Trust store (users, invites, connections)
- Invite ledger and its expiry sweeper
- Connection service (normalized me/them views)
- Network graph builder
- Access authorizer
"""

from collections.abc import Callable
from datetime import datetime

from trustcircle.config import Config
from trustcircle.core.factory import TrustStoreFactory
from trustcircle.core.trust_store.base import TrustStore
from trustcircle.models.access import AccessibleVault, ContentCategory, VaultAccessResult
from trustcircle.models.connection import Connection, NormalizedConnection
from trustcircle.models.invite import Invite, InviteStatus
from trustcircle.models.network import NetworkGraph
from trustcircle.models.permissions import AccessLevel, PatchLike
from trustcircle.models.user import UserProfile
from trustcircle.services.access_authorizer import AccessAuthorizer
from trustcircle.services.connection_service import ConnectionService
from trustcircle.services.invite_ledger import InviteLedger
from trustcircle.services.invite_sweeper import InviteExpirySweeper
from trustcircle.services.network_graph import NetworkGraphBuilder
from trustcircle.utils.exceptions import NotFoundError
from trustcircle.utils.logger import get_logger
from trustcircle.utils.timestamps import utc_now

logger = get_logger(__name__)


class TrustCircle:
    """
    Trusted-circle service integrating all components.

    Features:
    - Invite lifecycle (create, accept, reject, cancel, expire)
    - Two-sided connections with independent permission grants
    - Bounded network graph
    - Vault and content access checks
    - Background invite expiry
    """

    def __init__(
        self,
        config: Config | None = None,
        store: TrustStore | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize TrustCircle.

        Args:
            config: Configuration object (defaults if None)
            store: Trust store (created from config if None)
            clock: Source of the current time
        """
        self.config = config or Config()
        self.store = store or TrustStoreFactory.create(self.config)

        self.invites = InviteLedger(self.store, self.config.invites, clock=clock)
        self.connections = ConnectionService(self.store, clock=clock)
        self.network = NetworkGraphBuilder(self.store, self.config.network)
        self.authorizer = AccessAuthorizer(self.store, self.connections)
        self.sweeper = InviteExpirySweeper(self.invites, self.config.sweep.interval_seconds)

    async def initialize(self) -> None:
        """Initialize the store."""
        logger.info("Initializing TrustCircle")
        await self.store.initialize()
        logger.info("TrustCircle ready")

    async def close(self) -> None:
        """Stop background work and close the store."""
        await self.sweeper.stop()
        await self.store.close()

    def start_sweeper(self) -> None:
        """Start periodic invite expiry."""
        self.sweeper.start()

    async def stop_sweeper(self) -> None:
        """Stop periodic invite expiry."""
        await self.sweeper.stop()

    # ═══════════════════════════════════════════════════════════
    # USER DIRECTORY
    # ═══════════════════════════════════════════════════════════

    async def upsert_user(self, profile: UserProfile) -> UserProfile:
        """Record or refresh a profile pushed by the auth collaborator."""
        async with self.store.transaction() as session:
            await session.upsert_user(profile)
        return profile

    async def get_user(self, user_id: str) -> UserProfile:
        """Get a user profile; raises NotFoundError if unknown."""
        async with self.store.transaction(readonly=True) as session:
            profile = await session.get_user(user_id)
        if profile is None:
            raise NotFoundError("User not found", context={"user_id": user_id})
        return profile

    # ═══════════════════════════════════════════════════════════
    # INVITES
    # ═══════════════════════════════════════════════════════════

    async def create_invite(
        self,
        sender_id: str,
        invitee_email: str,
        invitee_name: str,
        relationship_to_sender: str,
        proposed_access_level: AccessLevel | str | None = None,
        proposed_permissions: PatchLike = None,
        message: str | None = None,
    ) -> Invite:
        return await self.invites.create_invite(
            sender_id=sender_id,
            invitee_email=invitee_email,
            invitee_name=invitee_name,
            relationship_to_sender=relationship_to_sender,
            proposed_access_level=proposed_access_level,
            proposed_permissions=proposed_permissions,
            message=message,
        )

    async def accept_invite(
        self,
        invite_id: str,
        accepting_user_id: str,
        reciprocal_relationship: str,
        granted_permissions: PatchLike = None,
    ) -> Connection:
        return await self.invites.accept_invite(
            invite_id, accepting_user_id, reciprocal_relationship, granted_permissions
        )

    async def reject_invite(self, invite_id: str, rejecting_email: str) -> Invite:
        return await self.invites.reject_invite(invite_id, rejecting_email)

    async def cancel_invite(self, invite_id: str, sender_id: str) -> bool:
        return await self.invites.cancel_invite(invite_id, sender_id)

    async def expire_old_invites(self) -> int:
        return await self.invites.expire_old_invites()

    async def get_invite_for_user(self, invite_id: str, user_id: str) -> Invite:
        return await self.invites.get_invite_for_user(invite_id, user_id)

    async def get_invite_by_token(self, token: str) -> Invite:
        return await self.invites.get_invite_by_token(token)

    async def list_sent_invites(self, user_id: str, status: InviteStatus | str | None = None) -> list[Invite]:
        return await self.invites.list_sent_invites(user_id, status)

    async def list_received_invites(self, user_id: str, include_all: bool = False) -> list[Invite]:
        """Invites addressed to the e-mail of `user_id`."""
        user = await self.get_user(user_id)
        return await self.invites.list_received_invites(user.email, include_all=include_all)

    async def count_pending_invites(self, user_id: str) -> int:
        user = await self.get_user(user_id)
        return await self.invites.count_pending_invites(user.email)

    # ═══════════════════════════════════════════════════════════
    # CONNECTIONS
    # ═══════════════════════════════════════════════════════════

    async def get_connections(self, user_id: str) -> list[NormalizedConnection]:
        return await self.connections.list_for_user(user_id)

    async def get_connection(self, connection_id: str, user_id: str) -> NormalizedConnection:
        return await self.connections.get_connection_for_user(connection_id, user_id)

    async def get_connection_between(self, user_id: str, other_id: str) -> Connection | None:
        return await self.connections.get_between(user_id, other_id)

    async def connection_count(self, user_id: str) -> int:
        return await self.connections.count_for_user(user_id)

    async def update_connection_permissions(
        self, connection_id: str, user_id: str, patch: PatchLike
    ) -> Connection:
        return await self.connections.update_permissions(connection_id, user_id, patch)

    async def remove_connection(self, connection_id: str, user_id: str) -> bool:
        return await self.connections.remove(connection_id, user_id)

    # ═══════════════════════════════════════════════════════════
    # NETWORK & ACCESS
    # ═══════════════════════════════════════════════════════════

    async def get_full_network(self, user_id: str, max_depth: int | None = None) -> NetworkGraph:
        return await self.network.build(user_id, max_depth=max_depth)

    async def are_connected(self, user_id: str, other_id: str, max_depth: int = 3) -> bool:
        return await self.network.are_connected(user_id, other_id, max_depth=max_depth)

    async def check_vault_access(self, requester_id: str, owner_id: str) -> VaultAccessResult:
        return await self.authorizer.check_vault_access(requester_id, owner_id)

    async def check_content_access(
        self, requester_id: str, owner_id: str, category: ContentCategory | str
    ) -> VaultAccessResult:
        return await self.authorizer.check_content_access(requester_id, owner_id, category)

    async def get_accessible_vaults(self, user_id: str) -> list[AccessibleVault]:
        return await self.authorizer.get_accessible_vaults(user_id)
