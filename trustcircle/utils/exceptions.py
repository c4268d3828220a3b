"""
Custom exception hierarchy for TrustCircle.

Provides structured error types for the invite ledger, connection store and
access checks. All exceptions inherit from TrustCircleError for easy catching.
"""


class TrustCircleError(Exception):
    """
    Base exception for all TrustCircle errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize TrustCircle error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class StoreError(TrustCircleError):
    """
    Base exception for store operations.
    Raised when the underlying database fails.
    """

    pass


class ValidationError(TrustCircleError):
    """
    Validation errors.
    Raised when input is malformed (bad e-mail, empty relationship label).
    """

    pass


class NotFoundError(TrustCircleError):
    """
    Resource not found errors.
    Raised when an invite, connection or user doesn't exist, or exists but
    is not visible to the caller.
    """

    pass


class InvalidStateError(TrustCircleError):
    """
    State-machine guard violations.
    Raised when an invite is no longer pending, has expired, is being
    accepted by its own sender or by a user with a different e-mail.
    """

    pass


class ConflictError(TrustCircleError):
    """
    Duplicate relationship errors.
    Raised when an active connection (or pending invite) already exists.
    """

    pass


class ForbiddenError(TrustCircleError):
    """
    Authorization errors.
    Raised when the caller is not a party to the connection being changed.
    """

    pass


class ConfigurationError(TrustCircleError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    pass
