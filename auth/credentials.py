"""
auth/credentials.py -- Password hashing, credential checks, and log-safe identifiers.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). Each hash_password()
       call draws a fresh salt from bcrypt.gensalt(), so two hashes of the
       same password never compare equal as strings. bcrypt's cost factor
       makes brute-force expensive for low-entropy secrets. The _DUMMY_HASH
       constant enables timing equalization in authenticate_user() so
       response time does not reveal whether an email is registered [C1].

  72-byte limit: bcrypt only looks at the first 72 bytes of a password and
       current releases refuse longer input outright. hash_password() raises
       PasswordTooLong rather than hashing a silently truncated secret.

  Log identifiers: emails are personal data and must not appear in logs in
       clear. obfuscate_email() returns HMAC-SHA256(SECRET_KEY, email), cut to
       a short prefix -- stable enough to correlate log lines for one account,
       useless to anyone without SECRET_KEY.

Layer rule: no imports from api/, handshake/, shop/, or storage/. Import from
core/ is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import TYPE_CHECKING

import bcrypt

from core.config import get_settings
from core.errors import PasswordTooLong

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

_BCRYPT_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises PasswordTooLong if the UTF-8 encoding exceeds bcrypt's 72-byte input.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > _BCRYPT_MAX_BYTES:
        raise PasswordTooLong()
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Never raises: a malformed or empty hash string is simply a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("careshop_timing_dummy")


# ---------------------------------------------------------------------------
# User authentication (constant-time) [C1]
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email) if email else None
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


# ---------------------------------------------------------------------------
# Log-safe identifiers
# ---------------------------------------------------------------------------


def obfuscate_email(email: str) -> str:
    """Return a keyed, non-reversible stand-in for an email address in logs."""
    digest = hmac.new(
        get_settings().secret_key.encode(),
        email.strip().lower().encode(),
        hashlib.sha256,
    ).hexdigest()
    return f"email:{digest[:12]}"
