"""
Network graph models (derived, never persisted).
"""

from pydantic import BaseModel, Field

from trustcircle.models.user import UserProfile


class NetworkNode(BaseModel):
    """A user reachable from the traversal root."""

    id: str
    name: str | None = None
    email: str | None = None
    avatar: str | None = None
    life_status: str | None = None
    is_current_user: bool = False
    connection_degree: int  # hop count from the root

    @classmethod
    def from_profile(
        cls, profile: UserProfile, degree: int, is_current_user: bool = False
    ) -> "NetworkNode":
        return cls(
            id=profile.id,
            name=profile.name,
            email=profile.email,
            avatar=profile.avatar,
            life_status=profile.life_status.value,
            is_current_user=is_current_user,
            connection_degree=degree,
        )


class NetworkEdge(BaseModel):
    """Directed edge as seen from the traversal root, labelled in its direction."""

    from_user: str
    to_user: str
    relationship: str
    connection_id: str


class NetworkGraph(BaseModel):
    """
    Bounded-depth reachability graph for one user.

    Edges reflect traversal order: a connection between two expanded users
    appears once per direction, a connection to a leaf only once.
    """

    nodes: list[NetworkNode] = Field(default_factory=list)
    edges: list[NetworkEdge] = Field(default_factory=list)
    truncated: bool = False

    def has_node(self, user_id: str) -> bool:
        return any(node.id == user_id for node in self.nodes)

    def get_node(self, user_id: str) -> NetworkNode | None:
        return next((node for node in self.nodes if node.id == user_id), None)
