"""
auth/store.py -- User repository over the `users` document.

Pattern: Repository + Data Mapper. UserStore is the repository;
_record_to_user / _user_to_record are the mappers between the persisted JSON
shape ({"id", "name", "email", "passwordHash", "role"}) and the User
dataclass. Route and dependency code never touches the document directly.

Email uniqueness is checked inside the users document's critical section,
so two concurrent registrations for the same address cannot both succeed.
Password hashing happens before the store is called -- bcrypt is slow and
must never run while the document lock is held.

Layer rule: no imports from api/, handshake/, or shop/.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from auth.credentials import obfuscate_email
from auth.models import ROLES, User
from core.errors import EmailAlreadyRegistered
from storage.documents import DocumentStore

logger = logging.getLogger("careshop.auth")

USERS_DOCUMENT = "users"
DEFAULT_NAME = "Gebruiker"


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(documents)
        user = store.create_user("Ann", "ann@example.com", hash_password("secret"), "client")
        store.get_by_email("ANN@example.com")
    """

    def __init__(self, documents: DocumentStore) -> None:
        self.documents = documents

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        return bool(self.documents.read(USERS_DOCUMENT, []))

    def list_users(self) -> list[User]:
        """Return all users in registration order."""
        return [_record_to_user(r) for r in self.documents.read(USERS_DOCUMENT, [])]

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        wanted = normalize_email(email)
        for record in self.documents.read(USERS_DOCUMENT, []):
            if normalize_email(record.get("email", "")) == wanted:
                return _record_to_user(record)
        return None

    def get_by_id(self, user_id: str) -> User | None:
        for record in self.documents.read(USERS_DOCUMENT, []):
            if record.get("id") == user_id:
                return _record_to_user(record)
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, name: str, email: str, password_hash: str, role: str) -> User:
        """Insert a new user and return it.

        Raises EmailAlreadyRegistered if the (normalized) email is taken and
        ValueError for a role outside ROLES. Role policy (who may create an
        admin) is the caller's responsibility.
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        user = User(
            id=str(uuid4()),
            name=name.strip() or DEFAULT_NAME,
            email=normalize_email(email),
            password_hash=password_hash,
            role=role,
        )
        with self.documents.edit(USERS_DOCUMENT, []) as users:
            if any(normalize_email(r.get("email", "")) == user.email for r in users):
                raise EmailAlreadyRegistered()
            users.append(_user_to_record(user))
        logger.info("Created user %s (%s, role=%s)", user.id, obfuscate_email(user.email), user.role)
        return user


# ---------------------------------------------------------------------------
# Record mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _record_to_user(record: dict) -> User:
    return User(
        id=record["id"],
        name=record.get("name", ""),
        email=record.get("email", ""),
        password_hash=record.get("passwordHash", ""),
        role=record.get("role", "client"),
    )


def _user_to_record(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "passwordHash": user.password_hash,
        "role": user.role,
    }
