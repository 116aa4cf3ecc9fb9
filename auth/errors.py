"""
auth/errors.py -- Exception taxonomy for the authentication core.

Every error a route handler may need to translate into an HTTP response
derives from AuthError. `message` is short and safe to show to the user;
`code` is the machine-readable identifier used in the API error envelope.

StorageError wraps unexpected persistence failures. Its message is generic.
The SQLAlchemy exception is chained (raise ... from exc) and logged by the
boundary layer, never returned to the client.

TransportError is raised inside auth/notifier.py only and is always caught
there -- a failed email never fails the request that triggered it.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for errors surfaced by the authentication core."""

    code = "auth_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AuthError):
    """Malformed input, rejected before any storage access."""

    code = "validation_error"


class ConflictError(AuthError):
    """Signup with an email that is already registered."""

    code = "conflict"


class AuthenticationError(AuthError):
    """Login failure. The message distinguishes unknown email from wrong password."""

    code = "authentication_failed"


class VerificationError(AuthError):
    """Missing, wrong, expired or already-consumed code, or no signed-in user."""

    code = "verification_failed"


class StorageError(AuthError):
    """An underlying database operation failed."""

    code = "storage_error"
    status_code = 500

    def __init__(self, message: str = "Something went wrong") -> None:
        super().__init__(message)


class TransportError(Exception):
    """Outbound email delivery failed."""
