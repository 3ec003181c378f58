"""Account handlers mounted by :mod:`ledgerly.routers.accounts`."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Query

from ledgerly.core.deps import get_store
from ledgerly.errors import NotFoundError
from ledgerly.schemas import AccountCreate, AccountOut, AccountUpdate, TransactionOut
from ledgerly.store import FinanceStore


def create_account(payload: AccountCreate, store: FinanceStore = Depends(get_store)) -> AccountOut:
    return store.add_account(payload)


def list_accounts(
    active_only: bool = Query(False, description="Only accounts flagged active"),
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    store: FinanceStore = Depends(get_store),
) -> list[AccountOut]:
    store.fetch_accounts()
    accounts = store.active_accounts() if active_only else list(store.accounts)
    if currency:
        accounts = [a for a in accounts if a.currency == currency.upper()]
    return accounts


def get_account(account_id: int, store: FinanceStore = Depends(get_store)) -> AccountOut:
    for account in store.fetch_accounts():
        if account.id == account_id:
            return account
    raise NotFoundError(f"Account {account_id} not found")


def update_account(account_id: int, payload: AccountUpdate, store: FinanceStore = Depends(get_store)) -> AccountOut:
    return store.update_account(account_id, payload)


def delete_account(account_id: int, store: FinanceStore = Depends(get_store)) -> None:
    store.delete_account(account_id)


def list_account_transactions(account_id: int, store: FinanceStore = Depends(get_store)) -> list[TransactionOut]:
    store.fetch_transactions()
    return store.transactions_by_account(account_id)
