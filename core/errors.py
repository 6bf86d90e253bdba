"""
core/errors.py -- Service error taxonomy for CareShop.

Every failure a client can observe is one of these classes. Each carries the
HTTP status it maps to, a stable machine-readable code, and a default
human-readable message. api/main.py renders all of them through a single
exception handler into the {"error": {"code", "message"}} envelope, so route
handlers and stores raise domain errors and never build responses for them.

5xx errors (StorageIOError) keep their internal detail on the exception for
logging; the client only ever sees the class-level message.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
handshake/, shop/, or storage/.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for all errors that map to an HTTP response."""

    status_code: int = 400
    code: str = "bad_request"
    message: str = "The request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Credentials and registration
# ---------------------------------------------------------------------------


class InvalidCredentials(ServiceError):
    status_code = 401
    code = "invalid_credentials"
    message = "Invalid email or password."


class MissingCredentials(ServiceError):
    code = "missing_credentials"
    message = "Email and password are required."


class PasswordTooLong(ServiceError):
    code = "password_too_long"
    message = "Password must be at most 72 bytes."


class EmailAlreadyRegistered(ServiceError):
    code = "email_already_registered"
    message = "This email address is already registered."


class RoleNotPermitted(ServiceError):
    code = "role_not_permitted"
    message = "Registration with this role is not permitted."


class InvalidRegistration(ServiceError):
    code = "invalid_registration"
    message = "Name, email, and password must be text of reasonable length."


# ---------------------------------------------------------------------------
# Sessions and authorization
# ---------------------------------------------------------------------------


class TokenMissing(ServiceError):
    status_code = 401
    code = "token_missing"
    message = "Authentication required."


class SessionInvalid(ServiceError):
    """A presented token did not resolve to a live user.

    The soft authenticator treats every subclass as anonymous.
    """

    status_code = 401
    code = "session_invalid"
    message = "Session is not valid."


class TokenUnknown(SessionInvalid):
    code = "token_unknown"
    message = "Session token is not valid."


class TokenExpired(SessionInvalid):
    code = "token_expired"
    message = "Session has expired."


class UserNotFound(SessionInvalid):
    status_code = 404
    code = "user_not_found"
    message = "User not found."


class Forbidden(ServiceError):
    status_code = 403
    code = "forbidden"
    message = "Access denied."


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


# ---------------------------------------------------------------------------
# Handshake
# ---------------------------------------------------------------------------


class NonceMissing(ServiceError):
    code = "nonce_missing"
    message = "echoNonce is required."


class NonceInvalidOrExpired(ServiceError):
    code = "nonce_invalid_or_expired"
    message = "Handshake nonce is unknown, already used, or expired."


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class StorageIOError(ServiceError):
    """A document could not be read or written.

    document and detail are for server-side logs only.
    """

    status_code = 500
    code = "storage_error"
    message = "Storage is temporarily unavailable."

    def __init__(self, document: str, detail: str = "") -> None:
        super().__init__()
        self.document = document
        self.detail = detail

    def __str__(self) -> str:
        return f"document {self.document!r}: {self.detail}"


class OriginRejected(ServiceError):
    status_code = 403
    code = "origin_rejected"
    message = "Cross-origin request blocked."
