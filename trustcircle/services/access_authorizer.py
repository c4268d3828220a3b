"""
Access Authorizer - answers "may X see Y's content, and with what rights?".

Content modules (vault, memories, stories, voice, legacy) call this before
serving another user's data. A connection is necessary but not sufficient:
the owner must also have granted the category to the requester.
"""

from trustcircle.core.trust_store.base import TrustStore
from trustcircle.models.access import AccessibleVault, ContentCategory, VaultAccessResult
from trustcircle.models.permissions import full_access_permissions
from trustcircle.services.connection_service import ConnectionService
from trustcircle.utils.logger import get_logger

logger = get_logger(__name__)

NO_CONNECTION_REASON = "No trusted connection exists"


class AccessAuthorizer:
    """Cross-user access checks backed by the connection store."""

    def __init__(self, store: TrustStore, connections: ConnectionService | None = None):
        """
        Initialize authorizer.

        Args:
            store: Trust store
            connections: Connection service used for the reverse view
        """
        self.store = store
        self.connections = connections or ConnectionService(store)

    async def check_vault_access(self, requester_id: str, owner_id: str) -> VaultAccessResult:
        """
        Decide whether `requester_id` may open `owner_id`'s vault.

        Returns:
            Result carrying the permissions the owner granted the requester
            (full access for self), or a denial reason
        """
        return await self.check_content_access(requester_id, owner_id, ContentCategory.VAULT)

    async def check_content_access(
        self, requester_id: str, owner_id: str, category: ContentCategory | str
    ) -> VaultAccessResult:
        """
        Decide whether `requester_id` may see `owner_id`'s content of `category`.

        Self-access is always allowed with full permissions and never
        touches the store.
        """
        category = ContentCategory(category)

        if requester_id == owner_id:
            return VaultAccessResult(can_access=True, permissions=full_access_permissions())

        async with self.store.transaction(readonly=True) as session:
            connection = await session.get_active_connection_between(requester_id, owner_id)

        if connection is None:
            logger.bind(requester_id=requester_id, owner_id=owner_id).debug(
                f"{category.value} access denied: no connection"
            )
            return VaultAccessResult(can_access=False, permissions=None, reason=NO_CONNECTION_REASON)

        # What the owner grants the requester
        permissions = connection.granted_by(owner_id)

        if not getattr(permissions, category.permission_field):
            logger.bind(requester_id=requester_id, owner_id=owner_id, connection_id=connection.id).debug(
                f"{category.value} access denied: not granted"
            )
            return VaultAccessResult(
                can_access=False,
                permissions=permissions,
                reason=f"{category.label} access not granted",
            )

        return VaultAccessResult(can_access=True, permissions=permissions)

    async def get_accessible_vaults(self, user_id: str) -> list[AccessibleVault]:
        """Owners whose vault `user_id` may open, with what each granted."""
        connections = await self.connections.list_for_user(user_id)

        return [
            AccessibleVault(user=c.connected_user, permissions=c.their_permissions_to_me)
            for c in connections
            if c.their_permissions_to_me.can_access_vault
        ]
