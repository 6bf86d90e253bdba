"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The bearer token is read from:
  1. Authorization: Bearer <token> header -- the normal path for API clients.
  2. ?token=<token> query parameter -- fallback for clients that cannot set
     headers (e.g. a plain link to GET /api/me).

try_get_current_user() is the soft variant: no token, an unknown token, an
expired token, or a session whose user vanished all come back as None
(anonymous). An expired session is deleted on the way, via
SessionManager.validate().

get_current_user() is the hard variant and raises the specific error
(TokenMissing / TokenUnknown / TokenExpired -> 401, UserNotFound -> 404).

check_role() is the single role gate. require_role() wraps it as a
dependency so every endpoint expresses its policy the same way:

    @router.post("/inventory")
    def add(user: User = Depends(require_role("worker", "admin"))): ...

These are sync functions: session validation reads documents
from disk, so FastAPI runs them in its thread pool instead of on the event
loop.

Layer rule: may import from fastapi (for Request) because this module is
part of the FastAPI dependency injection system. No imports from api/,
handshake/, or shop/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from fastapi import Request

from auth.models import User
from auth.sessions import SessionManager
from core.errors import Forbidden, SessionInvalid, TokenMissing

logger = logging.getLogger("careshop.auth")


def extract_bearer_token(request: Request, allow_query: bool = True) -> str:
    """Return the bearer token carried by the request, or "" if there is none."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    if allow_query:
        return request.query_params.get("token", "").strip()
    return ""


def try_get_current_user(request: Request) -> User | None:
    """Resolve the request to a User, or None for anonymous.

    Never raises for authentication problems -- callers that need a hard 401
    should use get_current_user(). Storage failures still propagate.
    """
    token = extract_bearer_token(request)
    if not token:
        return None
    sessions: SessionManager = request.app.state.session_manager
    try:
        return sessions.validate(token)
    except SessionInvalid:
        return None


def get_current_user(request: Request) -> User:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = extract_bearer_token(request)
    if not token:
        raise TokenMissing()
    sessions: SessionManager = request.app.state.session_manager
    return sessions.validate(token)


def check_role(user: User, allowed_roles: Iterable[str]) -> None:
    """Raise Forbidden unless user.role is one of allowed_roles. No I/O."""
    allowed = frozenset(allowed_roles)
    if user.role not in allowed:
        logger.warning("User %s (role=%s) denied; requires one of %s", user.id, user.role, sorted(allowed))
        raise Forbidden()


def require_role(*roles: str) -> Callable[[Request], User]:
    """Build a dependency that authenticates the request and enforces roles.

    Raises 401 if unauthenticated, 403 if the role is not allowed.
    """
    allowed = frozenset(roles)

    def dependency(request: Request) -> User:
        user = get_current_user(request)
        check_role(user, allowed)
        return user

    return dependency
