from __future__ import annotations

import uuid
from typing import Callable, List, Optional

from flask import session
from loguru import logger

from .models import User


SESSION_USER_KEY = "user"

# Called with (new user or None, previous user or None).
AuthListener = Callable[[Optional[User], Optional[User]], None]


class SessionAuthenticator:
    """Email sign-in backed by the Flask session.

    Listeners registered with :meth:`subscribe` are told about every
    sign-in and sign-out.
    """

    def __init__(self) -> None:
        self._listeners: List[AuthListener] = []

    def current_user(self) -> Optional[User]:
        data = session.get(SESSION_USER_KEY)
        if not data:
            return None
        return User(id=data["id"], email=data["email"])

    def sign_in(self, email: str) -> User:
        email = email.strip().lower()
        if not email:
            raise ValueError("An email address is required to sign in.")

        previous = self.current_user()
        user = User(id=uuid.uuid5(uuid.NAMESPACE_URL, f"mailto:{email}").hex, email=email)
        session.clear()
        session[SESSION_USER_KEY] = {"id": user.id, "email": user.email}
        logger.info("User {} signed in", user.id)
        self._notify(user, previous)
        return user

    def sign_out(self) -> None:
        previous = self.current_user()
        session.clear()
        if previous is not None:
            logger.info("User {} signed out", previous.id)
        self._notify(None, previous)

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, user: Optional[User], previous: Optional[User]) -> None:
        for listener in list(self._listeners):
            listener(user, previous)


__all__ = ["AuthListener", "SESSION_USER_KEY", "SessionAuthenticator"]
