from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ledgerly.core.deps import get_store
from ledgerly.models import LendBorrowStatus
from ledgerly.schemas import (
    LendBorrowCreate,
    LendBorrowOut,
    LendBorrowReturnCreate,
    LendBorrowReturnOut,
    LendBorrowUpdate,
)
from ledgerly.store import FinanceStore

router = APIRouter(prefix="/lend-borrow", tags=["lend-borrow"])


@router.get("", response_model=list[LendBorrowOut])
def list_lend_borrow(
    status: Optional[LendBorrowStatus] = Query(None),
    store: FinanceStore = Depends(get_store),
):
    records = store.fetch_lend_borrow_records()
    if status is not None:
        return [r for r in records if r.status == status]
    return list(records)


@router.post("", response_model=LendBorrowOut, status_code=201)
def create_lend_borrow(payload: LendBorrowCreate, store: FinanceStore = Depends(get_store)):
    return store.add_lend_borrow_record(payload)


@router.post("/refresh-overdue")
def refresh_overdue(
    today: Optional[date] = Query(None, description="Defaults to the server's local date"),
    store: FinanceStore = Depends(get_store),
):
    return {"updated": store.refresh_overdue_statuses(today)}


@router.patch("/{record_id}", response_model=LendBorrowOut)
def update_lend_borrow(record_id: int, payload: LendBorrowUpdate, store: FinanceStore = Depends(get_store)):
    return store.update_lend_borrow_record(record_id, payload)


@router.delete("/{record_id}", status_code=204)
def delete_lend_borrow(record_id: int, store: FinanceStore = Depends(get_store)):
    store.delete_lend_borrow_record(record_id)


@router.get("/{record_id}/returns", response_model=list[LendBorrowReturnOut])
def list_returns(record_id: int, store: FinanceStore = Depends(get_store)):
    return list(store.fetch_lend_borrow_returns(record_id))


@router.post("/{record_id}/returns", response_model=LendBorrowReturnOut, status_code=201)
def record_return(record_id: int, payload: LendBorrowReturnCreate, store: FinanceStore = Depends(get_store)):
    return store.record_lend_borrow_return(record_id, payload.amount, payload.return_date)
