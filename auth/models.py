"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores own the
mapping to and from the persisted JSON documents; routes map these to the
API response models.

Layer rule: no imports from api/, handshake/, shop/, or storage/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLES: frozenset[str] = frozenset({"client", "worker", "admin"})

# Roles a visitor may choose for themselves at registration. Admins are only
# created by the CLI or the first-run bootstrap.
SELF_REGISTRATION_ROLES: frozenset[str] = frozenset({"client", "worker"})

STAFF_ROLES: frozenset[str] = frozenset({"worker", "admin"})


@dataclass
class User:
    """A registered identity.

    email is stored trimmed and lower-cased; uniqueness is case-insensitive.
    password_hash is a bcrypt hash and never leaves the auth layer.
    """

    id: str
    name: str
    email: str
    password_hash: str
    role: str  # "client" | "worker" | "admin"


@dataclass
class Session:
    """A bearer session. Timestamps are Unix epoch milliseconds.

    user_id is a weak reference: the user is looked up on every validation
    and a missing user makes the session invalid without deleting it.
    """

    token: str
    user_id: str
    created_at: int
    expires_at: int
