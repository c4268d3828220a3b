"""
Connection Service - normalized reads and grant updates over the trust store.

Callers never see the stored A/B order. Every operation resolves "which
side am I" through the Connection model before touching the asymmetric
fields.
"""

from collections.abc import Callable
from datetime import datetime

from trustcircle.core.trust_store.base import TrustStore
from trustcircle.models.connection import Connection, NormalizedConnection, normalize_connection
from trustcircle.models.permissions import PatchLike, merge_permissions
from trustcircle.utils.exceptions import ForbiddenError, NotFoundError
from trustcircle.utils.logger import get_logger
from trustcircle.utils.timestamps import utc_now

logger = get_logger(__name__)


class ConnectionService:
    """Lookup, permission updates and soft removal of connections."""

    def __init__(self, store: TrustStore, clock: Callable[[], datetime] = utc_now):
        """
        Initialize connection service.

        Args:
            store: Trust store
            clock: Source of the current time
        """
        self.store = store
        self.clock = clock

    async def get_between(self, user_id: str, other_id: str) -> Connection | None:
        """The single active connection between two users, in either order."""
        async with self.store.transaction(readonly=True) as session:
            return await session.get_active_connection_between(user_id, other_id)

    async def list_for_user(self, user_id: str) -> list[NormalizedConnection]:
        """
        Every active connection touching `user_id`, as me/them views,
        newest first.
        """
        async with self.store.transaction(readonly=True) as session:
            connections = await session.list_active_connections(user_id)
            profiles = await session.get_users([c.other_user(user_id) for c in connections])

        return [normalize_connection(c, user_id, profiles) for c in connections]

    async def get_connection_for_user(self, connection_id: str, user_id: str) -> NormalizedConnection:
        """
        One connection as seen by `user_id`.

        Raises:
            NotFoundError: Connection missing
            ForbiddenError: Caller is not a party
        """
        async with self.store.transaction(readonly=True) as session:
            connection = await session.get_connection(connection_id)
            if connection is None:
                raise NotFoundError("Connection not found", context={"connection_id": connection_id})
            if not connection.involves(user_id):
                raise ForbiddenError(
                    "Not authorized to view this connection",
                    context={"connection_id": connection_id},
                )
            profiles = await session.get_users([connection.other_user(user_id)])

        return normalize_connection(connection, user_id, profiles)

    async def count_for_user(self, user_id: str) -> int:
        """Size of the user's trusted circle."""
        async with self.store.transaction(readonly=True) as session:
            return await session.count_active_connections(user_id)

    async def update_permissions(
        self, connection_id: str, granting_user_id: str, patch: PatchLike
    ) -> Connection:
        """
        Merge `patch` onto the set `granting_user_id` grants the other party.

        Only the caller's own grant changes; fields the patch omits keep
        their current values.

        Raises:
            NotFoundError: Connection missing or inactive
            ForbiddenError: Caller is not a party
        """
        now = self.clock()

        async with self.store.transaction() as session:
            connection = await session.get_connection(connection_id)
            if connection is None or not connection.is_active:
                raise NotFoundError("Connection not found", context={"connection_id": connection_id})

            side = connection.side_of(granting_user_id)
            if side is None:
                raise ForbiddenError(
                    "Not authorized to update this connection",
                    context={"connection_id": connection_id},
                )

            permissions = merge_permissions(connection.granted_by(granting_user_id), patch)
            await session.update_connection_grant(connection_id, side, permissions, now)

        logger.bind(connection_id=connection_id, side=side.value).info(
            f"Connection {connection_id}: grant from {granting_user_id} updated"
        )
        return connection.with_grant(granting_user_id, permissions, now)

    async def remove(self, connection_id: str, caller_id: str) -> bool:
        """
        Soft-delete a connection.

        Removing an already inactive connection succeeds without change.

        Raises:
            NotFoundError: Connection missing
            ForbiddenError: Caller is not a party
        """
        now = self.clock()

        async with self.store.transaction() as session:
            connection = await session.get_connection(connection_id)
            if connection is None:
                raise NotFoundError("Connection not found", context={"connection_id": connection_id})
            if not connection.involves(caller_id):
                raise ForbiddenError(
                    "Not authorized to remove this connection",
                    context={"connection_id": connection_id},
                )
            changed = await session.deactivate_connection(connection_id, now)

        if changed:
            logger.bind(connection_id=connection_id).info(f"Connection {connection_id} removed by {caller_id}")
        else:
            logger.debug(f"Connection {connection_id} was already inactive")
        return True
