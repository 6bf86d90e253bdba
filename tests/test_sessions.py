"""Unit tests for auth/sessions.py -- SessionManager with an injected clock.

Covers:
- a session issued at T is valid for every check before T+24h and invalid from T+24h
- expired sessions are deleted when presented (touch-to-expire)
- unknown / empty tokens, sessions whose user vanished
- revoke() is idempotent
- legacy records without expiresAt expire at createdAt + lifetime
- purge_expired() sweeps everything past its expiry
"""

from __future__ import annotations

import pytest

from auth.sessions import SESSIONS_DOCUMENT, SessionManager
from auth.store import UserStore
from core.errors import SessionInvalid, TokenExpired, TokenMissing, TokenUnknown, UserNotFound

DAY = 24 * 60 * 60
T0 = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sessions(user_store: UserStore, clock: FakeClock) -> SessionManager:
    return SessionManager(user_store.documents, user_store, lifetime_seconds=DAY, clock=clock)


@pytest.fixture
def user(user_store: UserStore):
    return user_store.create_user("Ann", "ann@example.com", "hash", "client")


class TestIssueAndValidate:
    def test_issue_persists_record(self, sessions: SessionManager, user) -> None:
        session = sessions.issue(user.id)
        stored = sessions.documents.read(SESSIONS_DOCUMENT, {})
        assert stored[session.token] == {
            "userId": user.id,
            "createdAt": int(T0 * 1000),
            "expiresAt": int(T0 * 1000) + DAY * 1000,
        }

    def test_tokens_are_long_and_unique(self, sessions: SessionManager, user) -> None:
        tokens = {sessions.issue(user.id).token for _ in range(20)}
        assert len(tokens) == 20
        assert all(len(t) == 64 for t in tokens)

    def test_validate_returns_user(self, sessions: SessionManager, user) -> None:
        token = sessions.issue(user.id).token
        assert sessions.validate(token).id == user.id

    @pytest.mark.parametrize("offset", [0, 1, 3600, DAY - 1, DAY - 0.01])
    def test_valid_before_expiry(self, sessions: SessionManager, clock: FakeClock, user, offset: float) -> None:
        token = sessions.issue(user.id).token
        clock.now = T0 + offset
        assert sessions.validate(token).id == user.id

    @pytest.mark.parametrize("offset", [DAY, DAY + 0.5, 7 * DAY])
    def test_invalid_from_expiry(self, sessions: SessionManager, clock: FakeClock, user, offset: float) -> None:
        token = sessions.issue(user.id).token
        clock.now = T0 + offset
        with pytest.raises(TokenExpired):
            sessions.validate(token)

    def test_expired_session_is_deleted(self, sessions: SessionManager, clock: FakeClock, user) -> None:
        token = sessions.issue(user.id).token
        clock.now = T0 + DAY
        with pytest.raises(TokenExpired):
            sessions.validate(token)
        assert token not in sessions.documents.read(SESSIONS_DOCUMENT, {})
        # Second presentation: the record is gone, so it is simply unknown.
        with pytest.raises(TokenUnknown):
            sessions.validate(token)

    def test_expiry_leaves_other_sessions(self, sessions: SessionManager, clock: FakeClock, user) -> None:
        old = sessions.issue(user.id).token
        clock.now = T0 + DAY / 2
        fresh = sessions.issue(user.id).token
        clock.now = T0 + DAY
        with pytest.raises(TokenExpired):
            sessions.validate(old)
        assert sessions.validate(fresh).id == user.id

    def test_empty_token(self, sessions: SessionManager) -> None:
        with pytest.raises(TokenMissing):
            sessions.validate("")

    def test_unknown_token(self, sessions: SessionManager) -> None:
        with pytest.raises(TokenUnknown):
            sessions.validate("deadbeef" * 8)

    def test_missing_user(self, sessions: SessionManager, user_store: UserStore, user) -> None:
        token = sessions.issue(user.id).token
        user_store.documents.write("users", [])
        with pytest.raises(UserNotFound) as exc_info:
            sessions.validate(token)
        assert exc_info.value.status_code == 404

    def test_validation_errors_share_soft_fail_base(self) -> None:
        """The soft authenticator catches SessionInvalid for all three outcomes."""
        for exc_type in (TokenUnknown, TokenExpired, UserNotFound):
            assert issubclass(exc_type, SessionInvalid)
        assert not issubclass(TokenMissing, SessionInvalid)


class TestRevoke:
    def test_revoke_then_validate(self, sessions: SessionManager, user) -> None:
        token = sessions.issue(user.id).token
        assert sessions.revoke(token) is True
        with pytest.raises(TokenUnknown):
            sessions.validate(token)

    def test_revoke_is_idempotent(self, sessions: SessionManager, user) -> None:
        token = sessions.issue(user.id).token
        assert sessions.revoke(token) is True
        assert sessions.revoke(token) is False
        assert sessions.revoke("") is False

    def test_revoke_only_named_session(self, sessions: SessionManager, user) -> None:
        keep = sessions.issue(user.id).token
        drop = sessions.issue(user.id).token
        sessions.revoke(drop)
        assert sessions.validate(keep).id == user.id


class TestLegacyAndPurge:
    def test_legacy_record_uses_created_at_plus_lifetime(
        self, sessions: SessionManager, clock: FakeClock, user
    ) -> None:
        sessions.documents.write(SESSIONS_DOCUMENT, {"legacy": {"userId": user.id, "createdAt": int(T0 * 1000)}})
        clock.now = T0 + DAY - 1
        assert sessions.validate("legacy").id == user.id
        clock.now = T0 + DAY
        with pytest.raises(TokenExpired):
            sessions.validate("legacy")

    def test_purge_expired(self, sessions: SessionManager, clock: FakeClock, user) -> None:
        first = sessions.issue(user.id).token
        second = sessions.issue(user.id).token
        clock.now = T0 + DAY / 2
        live = sessions.issue(user.id).token
        clock.now = T0 + DAY
        assert sessions.purge_expired() == 2
        remaining = sessions.documents.read(SESSIONS_DOCUMENT, {})
        assert set(remaining) == {live}
        assert first not in remaining and second not in remaining
        assert sessions.purge_expired() == 0
