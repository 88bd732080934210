"""
Session-based identity: sign up, sign in, sign out, session lookup, and a
notification channel for session-state changes.
"""
import logging
import secrets
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from werkzeug.security import check_password_hash, generate_password_hash

import database

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


class AuthError(Exception):
    pass


@dataclass(frozen=True)
class Session:
    token: str
    user_id: str
    email: str


AuthListener = Callable[[str, Session], None]


class IdentityService:
    def __init__(self):
        self._listeners: list[AuthListener] = []

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, event: str, session: Session) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    def _open_session(self, user_id: str, email: str) -> Session:
        session = Session(token=secrets.token_urlsafe(32), user_id=user_id, email=email)
        database.create_session(session.token, user_id)
        self._notify(SIGNED_IN, session)
        return session

    def sign_up(self, email: str, password: str) -> Session:
        email = email.strip().lower()
        if database.find_user_by_email(email):
            raise AuthError("User already registered")
        user_id = str(uuid.uuid4())
        try:
            database.create_user(user_id, email, generate_password_hash(password))
        except database.DuplicateRecord:
            # Lost a race with a concurrent sign-up for the same address
            raise AuthError("User already registered")
        logger.info("Registered user %s", user_id)
        return self._open_session(user_id, email)

    def sign_in(self, email: str, password: str) -> Session:
        email = email.strip().lower()
        user = database.find_user_by_email(email)
        if not user or not check_password_hash(user["password_hash"], password):
            raise AuthError("Invalid login credentials")
        return self._open_session(user["id"], email)

    def get_session(self, token: str) -> Optional[Session]:
        row = database.find_session(token)
        if not row:
            return None
        return Session(token=row["token"], user_id=row["user_id"], email=row["email"])

    def sign_out(self, token: str) -> bool:
        session = self.get_session(token)
        if session is None:
            return False
        database.delete_session(token)
        self._notify(SIGNED_OUT, session)
        return True
