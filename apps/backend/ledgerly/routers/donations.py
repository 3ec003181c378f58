from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ledgerly.core.deps import get_store
from ledgerly.models import DonationSavingType
from ledgerly.schemas import DonationSavingRecordCreate, DonationSavingRecordOut, DonationSavingRecordUpdate
from ledgerly.store import FinanceStore

router = APIRouter(prefix="/donation-savings", tags=["donation-savings"])


@router.get("", response_model=list[DonationSavingRecordOut])
def list_records(
    type: Optional[DonationSavingType] = Query(None),
    month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$", description="YYYY-MM"),
    store: FinanceStore = Depends(get_store),
):
    store.fetch_donation_saving_records()
    items = store.donation_saving_records_by_month(month) if month else list(store.donation_saving_records)
    if type is not None:
        items = [r for r in items if r.type == type]
    return items


@router.post("", response_model=DonationSavingRecordOut, status_code=201)
def create_record(payload: DonationSavingRecordCreate, store: FinanceStore = Depends(get_store)):
    return store.add_donation_saving_record(payload)


@router.patch("/{record_id}", response_model=DonationSavingRecordOut)
def update_record(record_id: int, payload: DonationSavingRecordUpdate, store: FinanceStore = Depends(get_store)):
    return store.update_donation_saving_record(record_id, payload)


@router.delete("/{record_id}", status_code=204)
def delete_record(record_id: int, store: FinanceStore = Depends(get_store)):
    store.delete_donation_saving_record(record_id)
