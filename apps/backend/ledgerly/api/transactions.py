"""Transaction and transfer handlers mounted by :mod:`ledgerly.routers.transactions`."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Query

from ledgerly.core.deps import get_store
from ledgerly.schemas import (
    DpsTransferOut,
    DpsTransferRequest,
    TransactionCreate,
    TransactionCreateRequest,
    TransactionOut,
    TransactionRef,
    TransactionUpdate,
    TransactionUpdateRequest,
    TransferRequest,
    TransferResult,
)
from ledgerly.store import FinanceStore


def list_transactions(
    account_id: Optional[int] = Query(None, ge=1),
    category: Optional[str] = Query(None),
    active_only: bool = Query(False, description="Skip transactions on inactive accounts"),
    store: FinanceStore = Depends(get_store),
) -> list[TransactionOut]:
    store.fetch_transactions()
    if active_only:
        store.fetch_accounts()
        items = store.active_transactions()
    else:
        items = list(store.transactions)
    if account_id is not None:
        items = [t for t in items if t.account_id == account_id]
    if category:
        items = [t for t in items if t.category == category]
    return items


def create_transaction(payload: TransactionCreateRequest, store: FinanceStore = Depends(get_store)) -> TransactionRef:
    data = TransactionCreate.model_validate(payload.model_dump(exclude={"purchase_details"}))
    return store.add_transaction(data, payload.purchase_details)


def update_transaction(
    txn_id: int,
    payload: TransactionUpdateRequest,
    store: FinanceStore = Depends(get_store),
) -> TransactionOut:
    # Re-validate only the fields the client sent so partial-update semantics survive
    data = TransactionUpdate.model_validate(payload.model_dump(exclude={"purchase_details"}, exclude_unset=True))
    return store.update_transaction(txn_id, data, payload.purchase_details)


def delete_transaction(txn_id: int, store: FinanceStore = Depends(get_store)) -> None:
    store.delete_transaction(txn_id)


def create_transfer(payload: TransferRequest, store: FinanceStore = Depends(get_store)) -> TransferResult:
    return store.transfer(payload)


def create_dps_transfer(payload: DpsTransferRequest, store: FinanceStore = Depends(get_store)) -> TransferResult:
    return store.transfer_dps(payload)


def list_dps_transfers(store: FinanceStore = Depends(get_store)) -> list[DpsTransferOut]:
    return list(store.fetch_dps_transfers())
