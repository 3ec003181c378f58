"""Error taxonomy shared by the backend adapter, the store and the HTTP layer."""

from __future__ import annotations


class StoreError(Exception):
    """Base class for every failure surfaced by :class:`ledgerly.store.FinanceStore`."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotAuthenticatedError(StoreError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class NotFoundError(StoreError):
    status_code = 404


class ValidationFailedError(StoreError):
    """Business-rule rejection (same-account transfer, insufficient funds, ...)."""

    status_code = 400


class BackendError(StoreError):
    """The relational backend rejected a read or write."""

    status_code = 502


class ConstraintViolationError(BackendError):
    """Unique / foreign-key / check constraint rejected by the backend."""

    status_code = 409
