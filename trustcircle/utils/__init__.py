"""Utility modules for TrustCircle."""

from trustcircle.utils.exceptions import (
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    StoreError,
    TrustCircleError,
    ValidationError,
)
from trustcircle.utils.id_generator import (
    generate_connection_id,
    generate_invite_id,
    generate_invite_token,
    generate_user_id,
)
from trustcircle.utils.logger import get_logger, setup_logging
from trustcircle.utils.timestamps import from_iso, to_iso, utc_now

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # ID Generators
    "generate_user_id",
    "generate_invite_id",
    "generate_connection_id",
    "generate_invite_token",
    # Time
    "utc_now",
    "to_iso",
    "from_iso",
    # Exceptions
    "TrustCircleError",
    "StoreError",
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
    "ConflictError",
    "ForbiddenError",
    "ConfigurationError",
]
