import logging

import pytest

from ledgerly.auth import AuthContext
from ledgerly.backend import ACCOUNT_BALANCES_VIEW
from ledgerly.errors import NotAuthenticatedError, NotFoundError, ValidationFailedError
from ledgerly.models import AccountType
from ledgerly.schemas import AccountCreate, TransferRequest
from ledgerly.store import FinanceStore


class _HookedBackend:
    """Delegates to a real backend, running ``hook`` inside the first matching select."""

    def __init__(self, inner, table, hook):
        self._inner = inner
        self._table = table
        self._hook = hook

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def select(self, table, user_id, filters=None, order_by=()):
        rows = self._inner.select(table, user_id, filters, order_by)
        if table == self._table and self._hook is not None:
            hook, self._hook = self._hook, None
            hook()
        return rows


def _open(store, name, initial=0):
    return store.add_account(AccountCreate(name=name, type=AccountType.CASH, initial_balance=initial, currency="USD"))


def test_operations_require_signed_in_user(backend):
    store = FinanceStore(backend, AuthContext(backend))

    with pytest.raises(NotAuthenticatedError):
        store.fetch_accounts()
    assert store.error == "Not authenticated"
    with pytest.raises(NotAuthenticatedError):
        _open(store, "Wallet")
    assert not store.loading


def test_sign_in_and_out(backend, demo_user):
    auth = AuthContext(backend)
    store = FinanceStore(backend, auth)

    assert auth.sign_in(demo_user.id).email == demo_user.email
    assert store.fetch_accounts() == ()

    auth.sign_out()
    assert not auth.is_authenticated
    with pytest.raises(NotAuthenticatedError):
        store.fetch_transactions()

    with pytest.raises(NotFoundError):
        auth.sign_in(9999)
    with pytest.raises(NotFoundError):
        auth.sign_in_email("new@example.com")
    user = auth.sign_in_email("new@example.com", full_name="New", create=True)
    assert auth.current_user == user
    assert user.full_name == "New"


def test_users_never_see_each_others_rows(backend, demo_user, make_store):
    mine = make_store()
    _open(mine, "Mine")

    auth = AuthContext(backend)
    auth.sign_in_email("other@example.com", create=True)
    theirs = FinanceStore(backend, auth)

    assert theirs.fetch_accounts() == ()
    assert [a.name for a in mine.fetch_accounts()] == ["Mine"]


def test_stale_fetch_is_discarded(backend, demo_user):
    holder = {}

    def refetch_with_new_account():
        # A newer fetch starts and completes while the first one is in flight
        _open(holder["store"], "Late")

    hooked = _HookedBackend(backend, ACCOUNT_BALANCES_VIEW, refetch_with_new_account)
    store = FinanceStore(hooked, AuthContext(hooked, demo_user))
    holder["store"] = store

    result = store.fetch_accounts()

    assert [a.name for a in store.accounts] == ["Late"]
    assert result == store.accounts


def test_collections_are_replaced_whole(store):
    _open(store, "First")
    before = store.accounts

    _open(store, "Second")

    assert [a.name for a in before] == ["First"]
    assert [a.name for a in store.accounts] == ["First", "Second"]
    assert isinstance(store.accounts, tuple)


def test_loading_flag_during_operation(backend, demo_user):
    seen = []
    store = None

    def record():
        seen.append(store.loading)

    hooked = _HookedBackend(backend, "transactions", record)
    store = FinanceStore(hooked, AuthContext(hooked, demo_user))

    assert not store.loading
    store.fetch_transactions()
    assert seen == [True]
    assert not store.loading


def test_subscribers_are_notified(store):
    events = []
    unsubscribe = store.subscribe(events.append)

    _open(store, "Wallet")
    assert "accounts" in events

    unsubscribe()
    events.clear()
    store.fetch_accounts()
    assert events == []


def test_failing_listener_does_not_break_the_store(store, caplog):
    def broken(name):
        raise RuntimeError("listener exploded")

    store.subscribe(broken)
    with caplog.at_level(logging.ERROR, logger="ledgerly"):
        assert store.fetch_accounts() == ()
    assert "Store listener failed" in caplog.text


def test_failures_set_error_and_log(store, caplog):
    account = _open(store, "Wallet", 10)

    with caplog.at_level(logging.WARNING, logger="ledgerly"):
        with pytest.raises(ValidationFailedError):
            store.transfer(TransferRequest(from_account_id=account.id, to_account_id=account.id, from_amount=1))

    assert store.error == "Source and destination accounts must be different"
    assert any(r.levelno == logging.WARNING and getattr(r, "operation", None) == "transfer" for r in caplog.records)

    store.fetch_accounts()
    assert store.error is None


def test_snapshot_lists_every_collection(store):
    _open(store, "Wallet")
    snap = store.snapshot()
    assert set(snap) >= {"accounts", "transactions", "purchases", "savings_goals", "dps_transfers"}
    assert snap["accounts"] is store.accounts
