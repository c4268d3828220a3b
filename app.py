"""
TrustCircle FastAPI Application

A REST API server for the trusted-circle subsystem.
Provides endpoints for invites, connections, the circle network and
cross-user vault access checks. Caller identity arrives in the
X-User-Id header, set by the authentication layer in front of this service.
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from trustcircle.config import Config
from trustcircle.models.access import AccessibleVault, VaultAccessResult
from trustcircle.models.connection import Connection, NormalizedConnection
from trustcircle.models.invite import Invite, InviteStatus
from trustcircle.models.network import NetworkGraph
from trustcircle.models.permissions import AccessLevel, PermissionPatch
from trustcircle.models.user import LifeStatus, UserProfile
from trustcircle.services.trust_circle import TrustCircle
from trustcircle.utils.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    StoreError,
    TrustCircleError,
    ValidationError,
)
from trustcircle.utils.logger import get_logger, setup_logging

# Global service instance
circle: TrustCircle | None = None
logger = get_logger(__name__)

# Most specific first; anything else is a 500
ERROR_STATUS_CODES: list[tuple[type[TrustCircleError], int]] = [
    (NotFoundError, 404),
    (InvalidStateError, 400),
    (ConflictError, 409),
    (ForbiddenError, 403),
    (ValidationError, 422),
    (StoreError, 500),
]


# Pydantic models for API
class UpsertUserRequest(BaseModel):
    """Request model for syncing a user profile."""

    name: str = Field(..., min_length=1)
    email: str = Field(..., description="Account e-mail")
    avatar: str | None = None
    life_status: LifeStatus = LifeStatus.LIVING


class CreateInviteRequest(BaseModel):
    """Request model for creating an invite."""

    invitee_email: str = Field(..., description="Address of the person invited")
    invitee_name: str = Field(..., min_length=1, max_length=100)
    relationship_to_sender: str = Field(..., min_length=1, max_length=50)
    proposed_access_level: AccessLevel = AccessLevel.VIEWER
    proposed_permissions: PermissionPatch | None = None
    message: str | None = Field(default=None, max_length=500)


class AcceptInviteRequest(BaseModel):
    """Request model for accepting an invite."""

    reciprocal_relationship: str = Field(..., min_length=1, max_length=50)
    granted_permissions: PermissionPatch | None = None


class InviteActionResponse(BaseModel):
    """Response model for invite transitions."""

    success: bool
    message: str
    invite: Invite | None = None
    connection: Connection | None = None


class InviteListResponse(BaseModel):
    """Sent and received invites for the caller."""

    sent: list[Invite]
    received: list[Invite]
    pending_count: int


class ConnectionListResponse(BaseModel):
    """The caller's trusted circle."""

    connections: list[NormalizedConnection]
    count: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service_initialized: bool
    store_backend: str
    sweeper_running: bool


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    global circle

    # Load configuration from environment or use defaults
    config = Config.from_env()

    # Initialize logging with config
    setup_logging(
        level=config.logging.level,
        log_to_file=config.logging.log_to_file,
        log_dir=config.logging.log_dir,
        file_rotation=config.logging.file_rotation,
        file_retention=config.logging.file_retention,
        compression=config.logging.compression,
        serialize=config.logging.serialize,
    )

    logger.info("Starting TrustCircle server")
    logger.info(
        f"Configuration: store={config.store.backend}:{config.store.db_path}, "
        f"invite_expiry={config.invites.expiry_days}d, "
        f"network_depth={config.network.min_depth}..{config.network.max_depth}"
    )

    circle = TrustCircle(config=config)
    await circle.initialize()

    if config.sweep.enabled:
        circle.start_sweeper()

    yield

    # Cleanup
    logger.info("Shutting down TrustCircle server")
    await circle.close()
    circle = None
    logger.info("Cleanup complete")


# Create FastAPI app
app = FastAPI(
    title="TrustCircle API",
    description="Trusted-circle invites, connections and cross-user access checks",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TrustCircleError)
async def trust_circle_error_handler(request: Request, exc: TrustCircleError) -> JSONResponse:
    """Map domain errors to HTTP status codes with their specific message."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES if isinstance(exc, error_type)), 500
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content={"error": exc.message})


def get_circle() -> TrustCircle:
    if not circle:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return circle


def current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity set by the authentication layer."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


# Health check endpoint
@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy" if circle else "initializing",
        service_initialized=circle is not None,
        store_backend=circle.config.store.backend if circle else "unknown",
        sweeper_running=circle.sweeper.is_running if circle else False,
    )


# User directory
@app.put("/users/{user_id}", response_model=UserProfile)
async def upsert_user(user_id: str, request: UpsertUserRequest, tc: TrustCircle = Depends(get_circle)):
    """
    Record or refresh a user profile.

    Called by the authentication service whenever an account is created or
    its name, e-mail, avatar or life status changes.
    """
    profile = UserProfile(id=user_id, **request.model_dump())
    return await tc.upsert_user(profile)


# Invite endpoints
@app.post("/trusted-circle/invites", response_model=Invite, status_code=201)
async def create_invite(
    request: CreateInviteRequest,
    user_id: str = Depends(current_user_id),
    tc: TrustCircle = Depends(get_circle),
):
    """
    Invite someone into the caller's trusted circle.

    The invitee does not need an account yet. The returned token is what
    the out-of-band invite link should carry.
    """
    return await tc.create_invite(
        sender_id=user_id,
        invitee_email=request.invitee_email,
        invitee_name=request.invitee_name,
        relationship_to_sender=request.relationship_to_sender,
        proposed_access_level=request.proposed_access_level,
        proposed_permissions=request.proposed_permissions,
        message=request.message,
    )


@app.get("/trusted-circle/invites", response_model=InviteListResponse)
async def list_invites(
    invite_type: str = Query(default="all", alias="type", pattern="^(sent|received|all)$"),
    status: InviteStatus | None = Query(default=None),
    user_id: str = Depends(current_user_id),
    tc: TrustCircle = Depends(get_circle),
):
    """
    List the caller's invites.

    `type=sent` returns sent invites (optionally filtered by `status`),
    `type=received` the full history of invites addressed to the caller,
    `type=all` both, with received invites limited to pending ones.
    """
    sent: list[Invite] = []
    received: list[Invite] = []
    pending_count = 0

    if invite_type in ("sent", "all"):
        sent = await tc.list_sent_invites(user_id, status)

    if invite_type in ("received", "all"):
        received = await tc.list_received_invites(user_id, include_all=invite_type == "received")
        pending_count = await tc.count_pending_invites(user_id)

    return InviteListResponse(sent=sent, received=received, pending_count=pending_count)


@app.get("/trusted-circle/invites/token/{token}", response_model=Invite)
async def get_invite_by_token(token: str, tc: TrustCircle = Depends(get_circle)):
    """Look up an invite from its link token (landing page for new users)."""
    return await tc.get_invite_by_token(token)


@app.get("/trusted-circle/invites/{invite_id}", response_model=Invite)
async def get_invite(
    invite_id: str,
    user_id: str = Depends(current_user_id),
    tc: TrustCircle = Depends(get_circle),
):
    """View an invite; only its sender or recipient can see it."""
    return await tc.get_invite_for_user(invite_id, user_id)


@app.delete("/trusted-circle/invites/{invite_id}", response_model=InviteActionResponse)
async def cancel_invite(
    invite_id: str,
    user_id: str = Depends(current_user_id),
    tc: TrustCircle = Depends(get_circle),
):
    """Cancel a pending invite the caller sent."""
    await tc.cancel_invite(invite_id, user_id)
    return InviteActionResponse(success=True, message="Invite cancelled")


@app.post("/trusted-circle/invites/{invite_id}/accept", response_model=InviteActionResponse)
async def accept_invite(
    invite_id: str,
    request: AcceptInviteRequest,
    user_id: str = Depends(current_user_id),
    tc: TrustCircle = Depends(get_circle),
):
    """
    Accept an invite addressed to the caller.

    Creates the two-sided connection: the sender keeps the permissions they
    proposed, the caller grants `granted_permissions` (merged onto the
    defaults) back to the sender.
    """
    connection = await tc.accept_invite(
        invite_id,
        user_id,
        request.reciprocal_relationship,
        request.granted_permissions,
    )
    sender = await tc.get_user(connection.user_a_id)
    return InviteActionResponse(
        success=True,
        message=f"You are now connected with {sender.name}!",
        connection=connection,
    )


@app.post("/trusted-circle/invites/{invite_id}/reject", response_model=InviteActionResponse)
async def reject_invite(
    invite_id: str,
    user_id: str = Depends(current_user_id),
    tc: TrustCircle = Depends(get_circle),
):
    """Reject an invite addressed to the caller."""
    user = await tc.get_user(user_id)
    invite = await tc.reject_invite(invite_id, user.email)
    return InviteActionResponse(success=True, message="Invite declined", invite=invite)


# Connection endpoints
@app.get("/trusted-circle/connections", response_model=ConnectionListResponse)
async def list_connections(user_id: str = Depends(current_user_id), tc: TrustCircle = Depends(get_circle)):
    """The caller's active connections, each seen from the caller's side."""
    connections = await tc.get_connections(user_id)
    return ConnectionListResponse(connections=connections, count=len(connections))


@app.get("/trusted-circle/connections/{connection_id}", response_model=NormalizedConnection)
async def get_connection(
    connection_id: str,
    user_id: str = Depends(current_user_id),
    tc: TrustCircle = Depends(get_circle),
):
    """A single connection seen from the caller's side."""
    return await tc.get_connection(connection_id, user_id)


@app.patch("/trusted-circle/connections/{connection_id}", response_model=NormalizedConnection)
async def update_connection(
    connection_id: str,
    patch: PermissionPatch,
    user_id: str = Depends(current_user_id),
    tc: TrustCircle = Depends(get_circle),
):
    """
    Change what the caller grants the other party.

    Only the caller's own grant is touched; omitted fields keep their
    current values.
    """
    await tc.update_connection_permissions(connection_id, user_id, patch)
    return await tc.get_connection(connection_id, user_id)


@app.delete("/trusted-circle/connections/{connection_id}")
async def remove_connection(
    connection_id: str,
    user_id: str = Depends(current_user_id),
    tc: TrustCircle = Depends(get_circle),
) -> dict[str, Any]:
    """Remove a connection from the caller's circle (either party may do this)."""
    await tc.remove_connection(connection_id, user_id)
    return {"id": connection_id, "removed": True}


@app.get("/trusted-circle/network", response_model=NetworkGraph)
async def get_network(
    depth: int | None = Query(default=None),
    user_id: str = Depends(current_user_id),
    tc: TrustCircle = Depends(get_circle),
):
    """Users reachable from the caller, `depth` clamped to the configured range."""
    return await tc.get_full_network(user_id, max_depth=tc.config.network.clamp_depth(depth))


# Vault access endpoints
@app.get("/vault/access/{owner_id}", response_model=VaultAccessResult)
async def check_vault_access(
    owner_id: str,
    user_id: str = Depends(current_user_id),
    tc: TrustCircle = Depends(get_circle),
):
    """
    May the caller open `owner_id`'s vault?

    Denials come back as 403 with the reason and, where a connection
    exists, the permissions the owner did grant.
    """
    result = await tc.check_vault_access(user_id, owner_id)
    if not result.can_access:
        return JSONResponse(status_code=403, content=result.model_dump(mode="json"))
    return result


@app.get("/vault/accessible", response_model=list[AccessibleVault])
async def list_accessible_vaults(user_id: str = Depends(current_user_id), tc: TrustCircle = Depends(get_circle)):
    """Owners whose vault the caller may open."""
    return await tc.get_accessible_vaults(user_id)


# Maintenance
@app.post("/maintenance/expire-invites")
async def expire_invites(tc: TrustCircle = Depends(get_circle)) -> dict[str, Any]:
    """Run the invite expiry sweep once."""
    expired = await tc.expire_old_invites()
    return {"expired": expired}


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "TrustCircle API",
        "version": "1.0.0",
        "description": "Trusted-circle invites, connections and cross-user access checks",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
