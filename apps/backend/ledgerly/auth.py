from __future__ import annotations

import threading
from typing import Optional

from .backend import TableBackend
from .core.logging_config import get_logger
from .errors import NotAuthenticatedError, NotFoundError
from .schemas import UserOut

logger = get_logger(__name__)


class AuthContext:
    """Holds the signed-in user for one store.

    The store asks for ``require_user()`` at the start of every operation;
    there is no session expiry or token refresh.
    """

    def __init__(self, backend: TableBackend, user: Optional[UserOut] = None) -> None:
        self._backend = backend
        self._user = user
        self._lock = threading.Lock()

    @property
    def current_user(self) -> Optional[UserOut]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def sign_in(self, user_id: int) -> UserOut:
        row = self._backend.get_user(user_id)
        if row is None or not row.get("is_active", True):
            raise NotFoundError(f"User {user_id} not found")
        return self._set(UserOut.model_validate(row))

    def sign_in_email(self, email: str, full_name: Optional[str] = None, create: bool = False) -> UserOut:
        """Sign in by e-mail, registering the user first when ``create`` is set."""
        row = self._backend.find_user(email)
        if row is None:
            if not create:
                raise NotFoundError(f"User {email} not found")
            row = self._backend.create_user({"email": email, "full_name": full_name, "is_active": True})
            logger.info("Registered user", extra={"user_id": row["id"]})
        return self._set(UserOut.model_validate(row))

    def sign_out(self) -> None:
        with self._lock:
            self._user = None

    def require_user(self) -> UserOut:
        user = self._user
        if user is None:
            raise NotAuthenticatedError()
        return user

    def _set(self, user: UserOut) -> UserOut:
        with self._lock:
            self._user = user
        logger.debug("Signed in user %s", user.id)
        return user
