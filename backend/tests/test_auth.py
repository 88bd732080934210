"""
Tests for auth.py - registration, sign in/out and session notifications.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from auth import SIGNED_IN, SIGNED_OUT, AuthError, IdentityService


@pytest.fixture
def identity(test_db):
    return IdentityService()


class TestIdentityService:
    """Sign up, sign in and sign out against the store."""

    def test_sign_up_opens_session(self, identity):
        """Registration returns a live session with a normalized email."""
        session = identity.sign_up("  Ada@Example.com ", "correct-horse")
        assert session.email == "ada@example.com"
        assert identity.get_session(session.token) == session

    def test_password_not_stored_plain(self, identity):
        """Only a salted hash string is stored."""
        identity.sign_up("ada@example.com", "correct-horse")
        identity.sign_up("bob@example.com", "correct-horse")
        ada = database.find_user_by_email("ada@example.com")["password_hash"]
        bob = database.find_user_by_email("bob@example.com")["password_hash"]
        assert "correct-horse" not in ada
        assert ada != bob

    def test_duplicate_sign_up(self, identity):
        identity.sign_up("ada@example.com", "correct-horse")
        with pytest.raises(AuthError, match="already registered"):
            identity.sign_up("ADA@example.com", "another-pass")

    def test_concurrent_duplicate_sign_up(self, identity, monkeypatch):
        """A sign-up that passes the lookup but collides on insert is still a duplicate."""
        identity.sign_up("ada@example.com", "correct-horse")
        monkeypatch.setattr(database, "find_user_by_email", lambda email: None)
        with pytest.raises(AuthError, match="already registered"):
            identity.sign_up("ada@example.com", "another-pass")

    def test_sign_in(self, identity):
        """Signing in issues a new token for the same user."""
        first = identity.sign_up("ada@example.com", "correct-horse")
        second = identity.sign_in("ada@example.com", "correct-horse")
        assert second.user_id == first.user_id
        assert second.token != first.token

    @pytest.mark.parametrize("email,password", [
        ("ada@example.com", "wrong-horse"),
        ("bob@example.com", "correct-horse"),
    ])
    def test_bad_credentials(self, identity, email, password):
        """Wrong password and unknown email give the same error."""
        identity.sign_up("ada@example.com", "correct-horse")
        with pytest.raises(AuthError, match="Invalid login credentials"):
            identity.sign_in(email, password)

    def test_sign_out(self, identity):
        session = identity.sign_up("ada@example.com", "correct-horse")
        assert identity.sign_out(session.token) is True
        assert identity.get_session(session.token) is None
        assert identity.sign_out(session.token) is False

    def test_unknown_token(self, identity):
        assert identity.get_session("nope") is None


class TestAuthStateListeners:
    """Listeners see every sign-in and sign-out."""

    def test_events_delivered(self, identity):
        events = []
        identity.on_auth_state_change(lambda event, session: events.append((event, session.email)))
        session = identity.sign_up("ada@example.com", "correct-horse")
        identity.sign_out(session.token)
        assert events == [(SIGNED_IN, "ada@example.com"), (SIGNED_OUT, "ada@example.com")]

    def test_unsubscribe(self, identity):
        """After unsubscribing no further events arrive."""
        events = []
        unsubscribe = identity.on_auth_state_change(lambda event, session: events.append(event))
        identity.sign_up("ada@example.com", "correct-horse")
        unsubscribe()
        unsubscribe()
        identity.sign_in("ada@example.com", "correct-horse")
        assert events == [SIGNED_IN]
