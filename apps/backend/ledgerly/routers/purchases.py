from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ledgerly.core.deps import get_store
from ledgerly.models import PurchaseStatus
from ledgerly.schemas import (
    BulkPurchaseUpdate,
    PurchaseCategoryCreate,
    PurchaseCategoryOut,
    PurchaseCategoryUpdate,
    PurchaseCreate,
    PurchaseOut,
    PurchaseUpdate,
)
from ledgerly.store import FinanceStore

router = APIRouter(prefix="/purchases", tags=["purchases"])
categories_router = APIRouter(prefix="/purchase-categories", tags=["purchase-categories"])


@router.get("", response_model=list[PurchaseOut])
def list_purchases(
    category: Optional[str] = Query(None),
    status: Optional[PurchaseStatus] = Query(None),
    store: FinanceStore = Depends(get_store),
):
    store.fetch_purchases()
    items = list(store.purchases)
    if category:
        items = [p for p in items if p.category == category]
    if status is not None:
        items = [p for p in items if p.status == status]
    return items


@router.post("", response_model=PurchaseOut, status_code=201)
def create_purchase(payload: PurchaseCreate, store: FinanceStore = Depends(get_store)):
    return store.add_purchase(payload)


@router.post("/bulk-update", response_model=list[PurchaseOut])
def bulk_update_purchases(payload: BulkPurchaseUpdate, store: FinanceStore = Depends(get_store)):
    return store.bulk_update_purchases(payload.ids, payload.updates)


@router.patch("/{purchase_id}", response_model=PurchaseOut)
def update_purchase(purchase_id: int, payload: PurchaseUpdate, store: FinanceStore = Depends(get_store)):
    return store.update_purchase(purchase_id, payload)


@router.delete("/{purchase_id}", status_code=204)
def delete_purchase(purchase_id: int, store: FinanceStore = Depends(get_store)):
    store.delete_purchase(purchase_id)


@categories_router.get("", response_model=list[PurchaseCategoryOut])
def list_purchase_categories(store: FinanceStore = Depends(get_store)):
    return list(store.fetch_purchase_categories())


@categories_router.post("", response_model=PurchaseCategoryOut, status_code=201)
def create_purchase_category(payload: PurchaseCategoryCreate, store: FinanceStore = Depends(get_store)):
    return store.add_purchase_category(payload)


@categories_router.post("/sync")
def sync_purchase_categories(store: FinanceStore = Depends(get_store)):
    return {"created": store.sync_expense_categories_with_purchase_categories()}


# Registered before /{category_id} so "deleted" is not parsed as an id
@categories_router.delete("/deleted")
def clear_deleted_purchase_categories(store: FinanceStore = Depends(get_store)):
    return {"removed": store.clear_deleted_categories()}


@categories_router.patch("/{category_id}", response_model=PurchaseCategoryOut)
def update_purchase_category(
    category_id: int,
    payload: PurchaseCategoryUpdate,
    store: FinanceStore = Depends(get_store),
):
    return store.update_purchase_category(category_id, payload)


@categories_router.delete("/{category_id}", status_code=204)
def delete_purchase_category(category_id: int, store: FinanceStore = Depends(get_store)):
    store.delete_purchase_category(category_id)
