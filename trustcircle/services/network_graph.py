"""
Network Graph Builder - bounded breadth-first traversal of the trusted circle.

The relationship graph is undirected and may contain cycles (A-B-C-A).
Nodes are never re-expanded once visited, so traversal always terminates,
and BFS order guarantees each node's `connection_degree` is its minimum
hop count from the root.

Each expanded user costs one store round trip (O(depth x average degree)
queries overall). The result is advisory: a connection created mid-walk
may or may not appear.
"""

import time
from collections import deque

from trustcircle.config import NetworkConfig
from trustcircle.core.trust_store.base import TrustStore
from trustcircle.models.network import NetworkEdge, NetworkGraph, NetworkNode
from trustcircle.utils.logger import get_logger

logger = get_logger(__name__)


class NetworkGraphBuilder:
    """Materializes the reachability graph around one user."""

    def __init__(self, store: TrustStore, config: NetworkConfig | None = None):
        """
        Initialize graph builder.

        Args:
            store: Trust store
            config: Depth and size bounds
        """
        self.store = store
        self.config = config or NetworkConfig()

    async def build(
        self,
        user_id: str,
        max_depth: int | None = None,
        max_nodes: int | None = None,
        timeout: float | None = None,
    ) -> NetworkGraph:
        """
        Build the graph of users within `max_depth` hops of `user_id`.

        Edges are directed "as seen from the root": expanding a user adds
        one edge per active connection, labelled with what that user calls
        the other. A connection between two expanded users therefore
        appears once per direction.

        Args:
            user_id: Traversal root
            max_depth: Hop bound (config default if None)
            max_nodes: Node bound (config default if None)
            timeout: Seconds bound (config default if None; 0 disables)

        Returns:
            The graph; `truncated` is set if a node or time bound stopped
            the walk early. An unknown root yields an empty graph.
        """
        max_depth = self.config.default_depth if max_depth is None else max_depth
        max_nodes = self.config.max_nodes if max_nodes is None else max_nodes
        timeout = self.config.timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout if timeout else None

        async with self.store.transaction(readonly=True) as session:
            root = await session.get_user(user_id)

        if root is None:
            return NetworkGraph()

        nodes: dict[str, NetworkNode] = {
            user_id: NetworkNode.from_profile(root, degree=0, is_current_user=True)
        }
        edges: list[NetworkEdge] = []
        visited: set[str] = set()
        queue: deque[tuple[str, int]] = deque([(user_id, 0)])
        truncated = False

        while queue:
            current_id, depth = queue.popleft()

            if current_id in visited:
                continue
            visited.add(current_id)

            if depth >= max_depth:
                continue

            if deadline is not None and time.monotonic() > deadline:
                truncated = True
                break

            async with self.store.transaction(readonly=True) as session:
                connections = await session.list_active_connections(current_id)
                others = [c.other_user(current_id) for c in connections]
                profiles = await session.get_users([uid for uid in others if uid not in nodes])

            for connection in connections:
                other_id = connection.other_user(current_id)

                if other_id not in nodes:
                    if len(nodes) >= max_nodes:
                        truncated = True
                        continue

                    profile = profiles.get(other_id)
                    nodes[other_id] = (
                        NetworkNode.from_profile(profile, degree=depth + 1)
                        if profile
                        else NetworkNode(id=other_id, connection_degree=depth + 1)
                    )
                    queue.append((other_id, depth + 1))

                edges.append(
                    NetworkEdge(
                        from_user=current_id,
                        to_user=other_id,
                        relationship=connection.relationship_from(current_id),
                        connection_id=connection.id,
                    )
                )

        if truncated:
            logger.bind(user_id=user_id, max_nodes=max_nodes, timeout=timeout).warning(
                f"Network traversal for {user_id} truncated at {len(nodes)} nodes"
            )

        return NetworkGraph(nodes=list(nodes.values()), edges=edges, truncated=truncated)

    async def are_connected(self, user_id: str, other_id: str, max_depth: int = 3) -> bool:
        """True if `other_id` is within `max_depth` hops of `user_id`."""
        graph = await self.build(user_id, max_depth=max_depth)
        return graph.has_node(other_id)
