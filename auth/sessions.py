"""
auth/sessions.py -- Opaque bearer sessions over the `sessions` document.

The sessions document is a JSON object keyed by token:

    {"<token>": {"userId": "...", "createdAt": 1718000000000, "expiresAt": 1718086400000}}

Timestamps are Unix epoch milliseconds. A session is valid iff it exists and
now < expiresAt. Records written before expiresAt existed are given
createdAt + lifetime.

Expiry is enforced lazily: validate() deletes an expired session the first
time it is presented ("touch-to-expire"). That makes validation a write for
expired tokens. The deletion runs inside the sessions document's critical
section, so it cannot interleave with a concurrent login or logout rewriting
the same document. purge_expired() is the explicit sweep, run from the CLI;
there is no background task.

Tokens are secrets.token_hex(32): 256 bits from the OS CSPRNG. They are never
logged.

Layer rule: no imports from api/, handshake/, or shop/.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable

from auth.models import Session, User
from auth.store import UserStore
from core.errors import TokenExpired, TokenMissing, TokenUnknown, UserNotFound
from storage.documents import DocumentStore

logger = logging.getLogger("careshop.auth")

SESSIONS_DOCUMENT = "sessions"
DEFAULT_LIFETIME_SECONDS = 24 * 60 * 60


class SessionManager:
    """Issues, validates, and revokes session tokens.

    clock returns the current time in epoch seconds; tests inject a fake one.
    """

    def __init__(
        self,
        documents: DocumentStore,
        users: UserStore,
        lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.documents = documents
        self.users = users
        self.lifetime_seconds = lifetime_seconds
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _expires_at(self, record: dict) -> int:
        if "expiresAt" in record:
            return int(record["expiresAt"])
        return int(record.get("createdAt", 0)) + self.lifetime_seconds * 1000

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def issue(self, user_id: str) -> Session:
        """Create and persist a new session for user_id."""
        now = self._now_ms()
        session = Session(
            token=secrets.token_hex(32),
            user_id=user_id,
            created_at=now,
            expires_at=now + self.lifetime_seconds * 1000,
        )
        with self.documents.edit(SESSIONS_DOCUMENT, {}) as sessions:
            sessions[session.token] = {
                "userId": session.user_id,
                "createdAt": session.created_at,
                "expiresAt": session.expires_at,
            }
        logger.info("Issued session for user %s", user_id)
        return session

    def validate(self, token: str) -> User:
        """Resolve a token to its User.

        Raises:
            TokenMissing:  token is empty.
            TokenUnknown:  no such session.
            TokenExpired:  session past expiresAt (it is deleted).
            UserNotFound:  session refers to a user that no longer exists.
        """
        if not token:
            raise TokenMissing()
        record = self.documents.read(SESSIONS_DOCUMENT, {}).get(token)
        if record is None:
            raise TokenUnknown()
        now = self._now_ms()
        if now >= self._expires_at(record):
            self._delete_if_expired(token, now)
            logger.info("Session for user %s expired", record.get("userId"))
            raise TokenExpired()
        user = self.users.get_by_id(record.get("userId", ""))
        if user is None:
            logger.warning("Session refers to missing user %s", record.get("userId"))
            raise UserNotFound()
        return user

    def revoke(self, token: str) -> bool:
        """Delete a session. Idempotent; returns True if a session was removed."""
        if not token:
            return False
        with self.documents.edit(SESSIONS_DOCUMENT, {}) as sessions:
            record = sessions.pop(token, None)
        if record is not None:
            logger.info("Revoked session for user %s", record.get("userId"))
        return record is not None

    def purge_expired(self) -> int:
        """Delete every expired session. Returns the number removed."""
        now = self._now_ms()
        with self.documents.edit(SESSIONS_DOCUMENT, {}) as sessions:
            expired = [t for t, r in sessions.items() if now >= self._expires_at(r)]
            for token in expired:
                del sessions[token]
        if expired:
            logger.info("Purged %d expired sessions", len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _delete_if_expired(self, token: str, now: int) -> None:
        with self.documents.edit(SESSIONS_DOCUMENT, {}) as sessions:
            record = sessions.get(token)
            if record is not None and now >= self._expires_at(record):
                del sessions[token]
