from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from ..auth import AuthContext
from ..backend import SqlTableBackend, TableBackend
from ..errors import NotAuthenticatedError
from ..schemas import UserOut
from ..seed import DEMO_EMAIL
from ..store import FinanceStore
from .config import settings


@lru_cache(maxsize=1)
def get_backend() -> TableBackend:
    return SqlTableBackend()


def require_api_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    """Reject the request when an API key is configured and the header does not match it."""
    if settings.API_KEY and x_api_key != settings.API_KEY:
        raise NotAuthenticatedError("Invalid or missing API key")


def get_current_user(backend: TableBackend = Depends(get_backend)) -> UserOut:
    """Very lightweight current user resolver.

    Returns the demo user, creating it on first use. Tests may override this
    dependency to simulate different users.
    """
    row = backend.find_user(DEMO_EMAIL)
    if row is None:
        row = backend.create_user({"email": DEMO_EMAIL, "full_name": "Demo", "is_active": True})
    return UserOut.model_validate(row)


def get_store(
    user: UserOut = Depends(get_current_user),
    backend: TableBackend = Depends(get_backend),
) -> FinanceStore:
    return FinanceStore(backend, AuthContext(backend, user))
