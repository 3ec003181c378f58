from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query

from ledgerly.core.deps import get_store
from ledgerly.schemas import (
    ActivityOut,
    DashboardStats,
    DonationSavingAnalytics,
    LendBorrowAnalytics,
    MultiCurrencyPurchaseAnalytics,
    PeriodOverview,
    PurchaseAnalytics,
)
from ledgerly.store import FinanceStore

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/dashboard", response_model=DashboardStats)
def dashboard(store: FinanceStore = Depends(get_store)):
    store.fetch_accounts()
    store.fetch_transactions()
    return store.dashboard_stats()


@router.get("/overview", response_model=PeriodOverview)
def currency_overview(
    currency: str = Query(..., min_length=3, max_length=3),
    period: Literal["1m", "3m", "6m", "1y"] = Query("1m"),
    store: FinanceStore = Depends(get_store),
):
    store.fetch_accounts()
    store.fetch_transactions()
    return store.currency_period_overview(currency.upper(), period)


@router.get("/purchases", response_model=PurchaseAnalytics)
def purchases(store: FinanceStore = Depends(get_store)):
    store.fetch_purchases()
    return store.purchase_analytics()


@router.get("/purchases/by-currency", response_model=MultiCurrencyPurchaseAnalytics)
def purchases_by_currency(store: FinanceStore = Depends(get_store)):
    store.fetch_purchases()
    return store.multi_currency_purchase_analytics()


@router.get("/lend-borrow", response_model=LendBorrowAnalytics)
def lend_borrow(store: FinanceStore = Depends(get_store)):
    store.fetch_lend_borrow_records()
    store.fetch_lend_borrow_returns()
    return store.lend_borrow_analytics()


@router.get("/donation-savings", response_model=DonationSavingAnalytics)
def donation_savings(store: FinanceStore = Depends(get_store)):
    store.fetch_donation_saving_records()
    return store.donation_saving_analytics()


@router.get("/activity", response_model=list[ActivityOut])
def activity(limit: int = Query(50, ge=1, le=500), store: FinanceStore = Depends(get_store)):
    return store.fetch_activity(limit)
