"""Pure aggregations over in-memory snapshots.

Nothing here touches the backend; every function is recomputed from the
collections it is given so callers can run them on any snapshot.
"""

from __future__ import annotations

import calendar
from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from ..models import (
    DonationSavingMode,
    DonationSavingType,
    LendBorrowStatus,
    LendBorrowType,
    PurchaseStatus,
    TxnType,
)
from ..schemas import (
    AccountOut,
    CategorySpend,
    CurrencyDashboardStats,
    DashboardStats,
    DonationSavingAnalytics,
    DonationSavingModeBreakdown,
    DonationSavingRecordOut,
    DonationSavingTypeBreakdown,
    LendBorrowAnalytics,
    LendBorrowCurrencyBreakdown,
    LendBorrowOut,
    LendBorrowReturnOut,
    MonthlyDonationSaving,
    MultiCurrencyPurchaseAnalytics,
    PartialReturnStats,
    PeriodOverview,
    PurchaseAnalytics,
    PurchaseOut,
    TransactionOut,
)
from .transaction_ids import is_transfer

DEFAULT_CURRENCY = "USD"

# Months covered by each overview period
PERIOD_MONTHS = {"1m": 1, "3m": 3, "6m": 6, "1y": 12}

COMPARE_LABELS = {
    "1m": "Compared to previous month",
    "3m": "Compared to previous 3 months",
    "6m": "Compared to previous 6 months",
    "1y": "Compared to previous year",
}

OUTSTANDING_STATUSES = (LendBorrowStatus.ACTIVE, LendBorrowStatus.OVERDUE)


def percent_change(current: float, previous: float) -> Optional[float]:
    """Relative change from ``previous`` to ``current`` in percent.

    ``None`` when both are zero; a jump from zero counts as +100%.
    """
    if previous == 0 and current == 0:
        return None
    if previous == 0:
        return 100.0 if current > 0 else -100.0
    return (current - previous) / abs(previous) * 100


def _shift_month(day: date, months: int) -> date:
    """First day of the month ``months`` away from ``day``'s month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def _same_month(day: date, today: date) -> bool:
    return day.year == today.year and day.month == today.month


def active_accounts(accounts: Iterable[AccountOut]) -> list[AccountOut]:
    return [a for a in accounts if a.is_active]


def active_transactions(accounts: Iterable[AccountOut], transactions: Iterable[TransactionOut]) -> list[TransactionOut]:
    active_ids = {a.id for a in accounts if a.is_active}
    return [t for t in transactions if t.account_id in active_ids]


def income_expense(transactions: Iterable[TransactionOut]) -> tuple[float, float]:
    """Sum income and expenses, skipping both legs of every transfer."""
    income = expenses = 0.0
    for txn in transactions:
        if is_transfer(txn.tags):
            continue
        if txn.type == TxnType.INCOME:
            income += txn.amount
        else:
            expenses += txn.amount
    return income, expenses


# ---- Dashboard -----------------------------------------------------------------------

def dashboard_stats(
    accounts: Sequence[AccountOut],
    transactions: Sequence[TransactionOut],
    today: date,
) -> DashboardStats:
    active = active_accounts(accounts)
    currency_of = {a.id: a.currency for a in active}

    balances: dict[str, float] = {}
    for account in active:
        balances[account.currency] = balances.get(account.currency, 0.0) + (account.calculated_balance or 0.0)

    monthly: dict[str, list[TransactionOut]] = defaultdict(list)
    for txn in transactions:
        currency = currency_of.get(txn.account_id)
        if currency is not None and _same_month(txn.date, today):
            monthly[currency].append(txn)

    groups = []
    for currency, balance in balances.items():
        income, expenses = income_expense(monthly[currency])
        savings_rate = (income - expenses) / income * 100 if income > 0 else 0.0
        groups.append(
            CurrencyDashboardStats(
                currency=currency,
                total_balance=balance,
                monthly_income=income,
                monthly_expenses=expenses,
                savings_rate=savings_rate,
            )
        )
    return DashboardStats(
        by_currency=groups,
        accounts_count=len(active),
        transactions_count=len(transactions),
    )


def period_window(period: str, today: date) -> tuple[date, date, date, date]:
    """Return ``(start, end, previous_start, previous_end)`` for a period key.

    The current window starts on the first day of the month ``n - 1`` months
    back and ends today; the previous window is the ``n`` whole months before
    it.
    """
    try:
        months = PERIOD_MONTHS[period]
    except KeyError:
        raise ValueError(f"Unknown period {period!r}; expected one of {', '.join(PERIOD_MONTHS)}") from None
    start = _shift_month(today, -(months - 1))
    previous_start = _shift_month(start, -months)
    previous_end = start - timedelta(days=1)
    return start, today, previous_start, previous_end


def currency_period_overview(
    accounts: Sequence[AccountOut],
    transactions: Sequence[TransactionOut],
    currency: str,
    period: str,
    today: date,
) -> PeriodOverview:
    start, end, previous_start, previous_end = period_window(period, today)
    currency_accounts = [a for a in active_accounts(accounts) if a.currency == currency]
    account_ids = {a.id for a in currency_accounts}
    currency_txns = [t for t in transactions if t.account_id in account_ids]

    # Balance as of the window end, rebuilt from opening balances
    total_balance = sum(a.initial_balance for a in currency_accounts)
    for txn in currency_txns:
        if txn.date <= end:
            total_balance += txn.amount if txn.type == TxnType.INCOME else -txn.amount

    income, expenses = income_expense(t for t in currency_txns if start <= t.date <= end)
    previous_income, previous_expenses = income_expense(
        t for t in currency_txns if previous_start <= t.date <= previous_end
    )
    return PeriodOverview(
        currency=currency,
        period=period,
        start=start,
        end=end,
        total_balance=total_balance,
        income=income,
        expenses=expenses,
        previous_income=previous_income,
        previous_expenses=previous_expenses,
        income_change=percent_change(income, previous_income),
        expenses_change=percent_change(expenses, previous_expenses),
        compare_label=COMPARE_LABELS[period],
    )


# ---- Purchases -----------------------------------------------------------------------

def purchase_analytics(
    purchases: Sequence[PurchaseOut],
    today: date,
    currency: str = DEFAULT_CURRENCY,
) -> PurchaseAnalytics:
    purchased = [p for p in purchases if p.status == PurchaseStatus.PURCHASED]
    total_spent = sum(p.price for p in purchased)
    monthly_spent = sum(p.price for p in purchased if _same_month(p.purchase_date, today))

    per_category: dict[str, list[float]] = defaultdict(list)
    for purchase in purchased:
        per_category[purchase.category].append(purchase.price)

    breakdown = [
        CategorySpend(
            category=category,
            total_spent=sum(prices),
            item_count=len(prices),
            percentage=sum(prices) / total_spent * 100 if total_spent > 0 else 0.0,
        )
        for category, prices in per_category.items()
    ]
    breakdown.sort(key=lambda c: c.total_spent, reverse=True)

    return PurchaseAnalytics(
        currency=currency,
        total_spent=total_spent,
        monthly_spent=monthly_spent,
        planned_count=sum(1 for p in purchases if p.status == PurchaseStatus.PLANNED),
        purchased_count=len(purchased),
        cancelled_count=sum(1 for p in purchases if p.status == PurchaseStatus.CANCELLED),
        top_category=breakdown[0].category if breakdown else None,
        category_breakdown=breakdown,
    )


def multi_currency_purchase_analytics(purchases: Sequence[PurchaseOut], today: date) -> MultiCurrencyPurchaseAnalytics:
    by_currency: dict[str, list[PurchaseOut]] = defaultdict(list)
    for purchase in purchases:
        by_currency[purchase.currency or DEFAULT_CURRENCY].append(purchase)
    results = [purchase_analytics(items, today, currency) for currency, items in by_currency.items()]
    return MultiCurrencyPurchaseAnalytics(by_currency=results, total_currencies=len(results))


# ---- Lend & borrow -------------------------------------------------------------------

def remaining_amount(record: LendBorrowOut, returns: Iterable[LendBorrowReturnOut]) -> float:
    returned = sum(r.amount for r in returns if r.lend_borrow_id == record.id)
    return max(record.amount - returned, 0.0)


def lend_borrow_analytics(
    records: Sequence[LendBorrowOut],
    returns: Sequence[LendBorrowReturnOut] = (),
) -> LendBorrowAnalytics:
    returned_by_record: dict[int, float] = defaultdict(float)
    for ret in returns:
        returned_by_record[ret.lend_borrow_id] += ret.amount

    totals = {LendBorrowType.LEND: 0.0, LendBorrowType.BORROW: 0.0}
    outstanding = {LendBorrowType.LEND: 0.0, LendBorrowType.BORROW: 0.0}
    per_currency: dict[str, LendBorrowCurrencyBreakdown] = {}
    per_person: dict[str, float] = defaultdict(float)

    for record in records:
        totals[record.type] += record.amount
        per_person[record.person_name] += record.amount
        bucket = per_currency.setdefault(record.currency, LendBorrowCurrencyBreakdown(currency=record.currency))
        lent = record.type == LendBorrowType.LEND
        if lent:
            bucket.total_lent += record.amount
        else:
            bucket.total_borrowed += record.amount

        if record.status in OUTSTANDING_STATUSES:
            remaining = max(record.amount - returned_by_record.get(record.id, 0.0), 0.0)
            outstanding[record.type] += remaining
            if lent:
                bucket.outstanding_lent += remaining
            else:
                bucket.outstanding_borrowed += remaining

    partial = None
    if returns:
        total_returned = sum(r.amount for r in returns)
        partial = PartialReturnStats(
            total_partial_returns=len(returns),
            total_partial_return_amount=total_returned,
            average_partial_return_amount=total_returned / len(returns),
        )

    return LendBorrowAnalytics(
        total_lent=totals[LendBorrowType.LEND],
        total_borrowed=totals[LendBorrowType.BORROW],
        outstanding_lent=outstanding[LendBorrowType.LEND],
        outstanding_borrowed=outstanding[LendBorrowType.BORROW],
        overdue_count=sum(1 for r in records if r.status == LendBorrowStatus.OVERDUE),
        active_count=sum(1 for r in records if r.status == LendBorrowStatus.ACTIVE),
        settled_count=sum(1 for r in records if r.status == LendBorrowStatus.SETTLED),
        top_person=max(per_person, key=per_person.__getitem__) if per_person else None,
        currency_breakdown=sorted(per_currency.values(), key=lambda b: b.currency),
        partial_return_stats=partial,
    )


def overdue_ids(records: Iterable[LendBorrowOut], today: date) -> list[int]:
    """Ids of active records whose due date has passed."""
    return [
        r.id
        for r in records
        if r.status == LendBorrowStatus.ACTIVE and r.due_date is not None and r.due_date < today
    ]


# ---- Donations & savings -------------------------------------------------------------

def donation_saving_analytics(records: Sequence[DonationSavingRecordOut]) -> DonationSavingAnalytics:
    total_saved = sum(r.amount for r in records if r.type == DonationSavingType.SAVING)
    total_donated = sum(r.amount for r in records if r.type == DonationSavingType.DONATION)
    grand_total = total_saved + total_donated

    def share(amount: float) -> float:
        return amount / grand_total * 100 if grand_total > 0 else 0.0

    months: dict[str, dict[str, float]] = defaultdict(lambda: {"saved": 0.0, "donated": 0.0})
    for record in records:
        key = record.created_at.strftime("%Y-%m")
        bucket = "saved" if record.type == DonationSavingType.SAVING else "donated"
        months[key][bucket] += record.amount

    monthly = [
        MonthlyDonationSaving(month=month, saved=v["saved"], donated=v["donated"], total=v["saved"] + v["donated"])
        for month, v in months.items()
    ]
    # Newest first; the top month is the most recent one with activity
    monthly.sort(key=lambda m: m.month, reverse=True)

    type_breakdown = []
    for kind, total in ((DonationSavingType.SAVING, total_saved), (DonationSavingType.DONATION, total_donated)):
        type_breakdown.append(
            DonationSavingTypeBreakdown(
                type=kind,
                total=total,
                count=sum(1 for r in records if r.type == kind),
                percentage=share(total),
            )
        )

    mode_breakdown = []
    for mode in (DonationSavingMode.FIXED, DonationSavingMode.PERCENT):
        matching = [r for r in records if r.mode == mode]
        total = sum(r.amount for r in matching)
        mode_breakdown.append(
            DonationSavingModeBreakdown(mode=mode, total=total, count=len(matching), percentage=share(total))
        )

    return DonationSavingAnalytics(
        total_saved=total_saved,
        total_donated=total_donated,
        top_month=monthly[0].month if monthly else None,
        monthly_breakdown=monthly,
        type_breakdown=type_breakdown,
        mode_breakdown=mode_breakdown,
    )
