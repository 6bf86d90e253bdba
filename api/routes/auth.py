"""
api/routes/auth.py -- Registration, login, logout, and identity endpoints.

Routes:
  POST /api/register  -- create a client or worker account (public)
  POST /api/login     -- email + password -> bearer session token
  POST /api/logout    -- revoke the presented token; always {ok: true}
  GET  /api/me        -- the current user (Bearer header or ?token=)

Security:
  [H2] POST /login and POST /register are rate-limited per client address
       (LOGIN_RATE_LIMIT, default 10/minute).
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on login responses.
  [M8] Self-registration as admin is refused before any other validation.
       Admins come from the CLI or the first-run bootstrap only.

Handlers are sync defs: bcrypt and document I/O block, so FastAPI runs them
in its thread pool.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import auth_rate_limit, limiter
from api.models import LoginRequest, LoginResponse, OkResponse, RegisterRequest, UserResponse
from auth.credentials import authenticate_user, hash_password, obfuscate_email
from auth.dependencies import extract_bearer_token, get_current_user
from auth.models import SELF_REGISTRATION_ROLES, User
from auth.sessions import SessionManager
from auth.store import UserStore, normalize_email
from core.errors import (
    EmailAlreadyRegistered,
    InvalidCredentials,
    InvalidRegistration,
    MissingCredentials,
    RoleNotPermitted,
)

logger = logging.getLogger("careshop.auth")

# Auth policy:
# - POST /api/register: public -- role restricted to SELF_REGISTRATION_ROLES
# - POST /api/login:    public
# - POST /api/logout:   token optional -- logging out twice is not an error
# - GET  /api/me:       requires auth (get_current_user)
router = APIRouter()


def _registration_text(value: Any, max_length: int) -> str:
    """Return value as a string, "" for null; InvalidRegistration otherwise."""
    if value is None:
        return ""
    if not isinstance(value, str) or len(value) > max_length:
        raise InvalidRegistration()
    return value


# [H2] @limiter.limit sits directly on the function, below @router, so the
# router registers slowapi's wrapper and the limit runs on every call.
@router.post("/register", response_model=UserResponse)
@limiter.limit(auth_rate_limit)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create an account. role defaults to client; admin is never accepted [M8].

    The role is checked before any other field, so role=admin gets
    role_not_permitted whatever else the body contains.
    """
    role = body.role if body.role not in (None, "") else "client"
    if not isinstance(role, str) or role.strip().lower() not in SELF_REGISTRATION_ROLES:
        logger.warning("Refused self-registration with role %r", str(role)[:20])
        raise RoleNotPermitted()
    role = role.strip().lower()

    name = _registration_text(body.name, 200)
    email = normalize_email(_registration_text(body.email, 254))
    password = _registration_text(body.password, 1024)
    if not email or not password:
        raise MissingCredentials()

    user_store: UserStore = request.app.state.user_store
    # Cheap early exit; create_user() re-checks inside the critical section.
    if user_store.get_by_email(email) is not None:
        raise EmailAlreadyRegistered()

    user = user_store.create_user(name, email, hash_password(password), role)
    return UserResponse.from_user(user)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(auth_rate_limit)  # [H2]
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Exchange email + password for a session token.

    Uses authenticate_user() which includes timing equalization [C1]. Wrong
    email and wrong password produce the same invalid_credentials error.
    """
    user_store: UserStore = request.app.state.user_store
    sessions: SessionManager = request.app.state.session_manager

    email = normalize_email(body.email or "")
    user = authenticate_user(user_store, email, body.password or "")
    if user is None:
        logger.info("Failed login for %s", obfuscate_email(email))
        raise InvalidCredentials()

    session = sessions.issue(user.id)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return LoginResponse(
        token=session.token,
        expires_in=sessions.lifetime_seconds,
        user=UserResponse.from_user(user),
    )


@router.post("/logout", response_model=OkResponse)
def logout(request: Request) -> OkResponse:
    """Revoke the session named by the Authorization header, if any.

    The ?token= query fallback is not honoured here.
    """
    token = extract_bearer_token(request, allow_query=False)
    if token:
        sessions: SessionManager = request.app.state.session_manager
        sessions.revoke(token)
    return OkResponse()


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)) -> UserResponse:
    """Return the authenticated user's public profile."""
    return UserResponse.from_user(user)
