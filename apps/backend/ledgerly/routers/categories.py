from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ledgerly.core.deps import get_store
from ledgerly.models import TxnType
from ledgerly.schemas import CategoryCreate, CategoryOut, CategoryUpdate
from ledgerly.store import FinanceStore

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=list[CategoryOut])
def list_categories(
    type: Optional[TxnType] = Query(None, description="income or expense"),
    store: FinanceStore = Depends(get_store),
):
    store.fetch_categories()
    if type is not None:
        return store.categories_by_type(type)
    return list(store.categories)


@router.post("", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryCreate, store: FinanceStore = Depends(get_store)):
    return store.add_category(payload)


@router.patch("/{category_id}", response_model=CategoryOut)
def update_category(category_id: int, payload: CategoryUpdate, store: FinanceStore = Depends(get_store)):
    return store.update_category(category_id, payload)


@router.delete("/{category_id}", status_code=204)
def delete_category(category_id: int, store: FinanceStore = Depends(get_store)):
    store.delete_category(category_id)
