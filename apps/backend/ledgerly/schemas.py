from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field

from .models import (
    AccountType,
    DonationSavingMode,
    DonationSavingStatus,
    DonationSavingType,
    DpsAmountType,
    DpsType,
    LendBorrowStatus,
    LendBorrowType,
    Priority,
    PurchaseStatus,
    TxnType,
)


class Snapshot(BaseModel):
    """Immutable row snapshot held by the store."""

    model_config = ConfigDict(frozen=True, from_attributes=True)


def _upper_currency(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().upper()
    if len(value) != 3:
        raise ValueError("currency must be a 3-letter ISO code")
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


Currency = Annotated[str, AfterValidator(_upper_currency)]
OptionalCurrency = Annotated[Optional[str], AfterValidator(_upper_currency)]
# Forms submit "" for an empty date input
OptionalDate = Annotated[Optional[date], BeforeValidator(_blank_to_none)]


# ---- Users -----------------------------------------------------------------

class UserOut(Snapshot):
    id: int
    email: str
    full_name: Optional[str] = None
    local_currency: Optional[str] = None


# ---- Accounts ----------------------------------------------------------------

class AccountOut(Snapshot):
    id: int
    user_id: int
    name: str
    type: AccountType
    initial_balance: float = 0.0
    calculated_balance: float = 0.0
    currency: str
    is_active: bool = True
    description: Optional[str] = None
    has_dps: bool = False
    dps_type: Optional[DpsType] = None
    dps_amount_type: Optional[DpsAmountType] = None
    dps_fixed_amount: Optional[float] = None
    dps_savings_account_id: Optional[int] = None
    donation_preference: Optional[float] = None
    transaction_id: Optional[str] = None
    created_at: datetime


class AccountCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: AccountType
    initial_balance: float = 0.0
    currency: Currency
    description: Optional[str] = None
    has_dps: bool = False
    dps_type: Optional[DpsType] = None
    dps_amount_type: Optional[DpsAmountType] = None
    dps_fixed_amount: Optional[float] = Field(default=None, ge=0)
    # Opening balance of the linked DPS savings account; never stored on this account
    dps_initial_balance: float = Field(default=0.0, ge=0)
    donation_preference: Optional[float] = None
    transaction_id: Optional[str] = None


class AccountUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[AccountType] = None
    initial_balance: Optional[float] = None
    currency: OptionalCurrency = None
    is_active: Optional[bool] = None
    description: Optional[str] = None
    has_dps: Optional[bool] = None
    dps_type: Optional[DpsType] = None
    dps_amount_type: Optional[DpsAmountType] = None
    dps_fixed_amount: Optional[float] = Field(default=None, ge=0)
    dps_initial_balance: Optional[float] = Field(default=None, ge=0)
    donation_preference: Optional[float] = None


# ---- Transactions --------------------------------------------------------------

class TransactionOut(Snapshot):
    id: int
    user_id: int
    account_id: int
    type: TxnType
    amount: float
    description: Optional[str] = None
    date: dt.date
    category: str
    tags: list[str] = Field(default_factory=list)
    is_recurring: bool = False
    recurring_frequency: Optional[str] = None
    saving_amount: Optional[float] = None
    donation_amount: Optional[float] = None
    transaction_id: Optional[str] = None
    created_at: datetime


class TransactionCreate(BaseModel):
    account_id: int
    type: TxnType
    amount: float = Field(gt=0)
    description: Optional[str] = None
    date: Optional[dt.date] = None
    category: str = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)
    is_recurring: bool = False
    recurring_frequency: Optional[str] = None
    saving_amount: Optional[float] = Field(default=None, ge=0)
    donation_amount: Optional[float] = Field(default=None, ge=0)
    transaction_id: Optional[str] = None


class TransactionUpdate(BaseModel):
    account_id: Optional[int] = None
    type: Optional[TxnType] = None
    amount: Optional[float] = Field(default=None, gt=0)
    description: Optional[str] = None
    date: Optional[dt.date] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    is_recurring: Optional[bool] = None
    recurring_frequency: Optional[str] = None
    saving_amount: Optional[float] = Field(default=None, ge=0)
    donation_amount: Optional[float] = Field(default=None, ge=0)


class PurchaseDetails(BaseModel):
    """Extra purchase fields captured alongside an expense transaction."""

    priority: Priority = Priority.MEDIUM
    notes: str = ""


class TransactionCreateRequest(TransactionCreate):
    purchase_details: Optional[PurchaseDetails] = None


class TransactionUpdateRequest(TransactionUpdate):
    purchase_details: Optional[PurchaseDetails] = None


class TransactionRef(BaseModel):
    id: int
    transaction_id: str


# ---- Categories ----------------------------------------------------------------

class CategoryOut(Snapshot):
    id: int
    name: str
    type: TxnType
    color: str
    icon: str
    description: Optional[str] = None
    currency: Optional[str] = None


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: TxnType
    color: str = "#3B82F6"
    icon: str = "Tag"
    description: Optional[str] = None
    currency: OptionalCurrency = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[TxnType] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None
    currency: OptionalCurrency = None


# ---- Purchases -----------------------------------------------------------------

class PurchaseOut(Snapshot):
    id: int
    user_id: int
    item_name: str
    category: str
    price: float
    currency: str
    purchase_date: date
    status: PurchaseStatus
    priority: Priority
    notes: Optional[str] = None
    transaction_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PurchaseCreate(BaseModel):
    item_name: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1)
    price: float = Field(ge=0)
    currency: Currency
    purchase_date: Optional[date] = None
    status: PurchaseStatus = PurchaseStatus.PLANNED
    priority: Priority = Priority.MEDIUM
    notes: Optional[str] = None
    transaction_id: Optional[str] = None


class PurchaseUpdate(BaseModel):
    item_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    currency: OptionalCurrency = None
    purchase_date: Optional[date] = None
    status: Optional[PurchaseStatus] = None
    priority: Optional[Priority] = None
    notes: Optional[str] = None


class BulkPurchaseUpdate(BaseModel):
    ids: list[int] = Field(min_length=1)
    updates: PurchaseUpdate


class PurchaseCategoryOut(Snapshot):
    id: int
    user_id: int
    category_name: str
    description: Optional[str] = None
    monthly_budget: float = 0.0
    currency: str
    category_color: str
    created_at: datetime
    updated_at: datetime


class PurchaseCategoryCreate(BaseModel):
    category_name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    monthly_budget: float = Field(default=0.0, ge=0)
    currency: Currency
    category_color: str = "#3B82F6"


class PurchaseCategoryUpdate(BaseModel):
    category_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    monthly_budget: Optional[float] = Field(default=None, ge=0)
    currency: OptionalCurrency = None
    category_color: Optional[str] = None


# ---- Lend & borrow ----------------------------------------------------------------

class LendBorrowOut(Snapshot):
    id: int
    user_id: int
    type: LendBorrowType
    person_name: str
    amount: float
    currency: str
    due_date: Optional[date] = None
    status: LendBorrowStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class LendBorrowCreate(BaseModel):
    type: LendBorrowType
    person_name: str = Field(min_length=1, max_length=120)
    amount: float = Field(gt=0)
    currency: Currency
    due_date: OptionalDate = None
    status: LendBorrowStatus = LendBorrowStatus.ACTIVE
    notes: Optional[str] = None


class LendBorrowUpdate(BaseModel):
    type: Optional[LendBorrowType] = None
    person_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    amount: Optional[float] = Field(default=None, gt=0)
    currency: OptionalCurrency = None
    due_date: OptionalDate = None
    status: Optional[LendBorrowStatus] = None
    notes: Optional[str] = None


class LendBorrowReturnOut(Snapshot):
    id: int
    lend_borrow_id: int
    amount: float
    return_date: date
    created_at: datetime


class LendBorrowReturnCreate(BaseModel):
    amount: float = Field(gt=0)
    return_date: Optional[date] = None


# ---- Donations & savings -------------------------------------------------------------

class DonationSavingRecordOut(Snapshot):
    id: int
    user_id: int
    transaction_id: Optional[str] = None
    custom_transaction_id: Optional[str] = None
    type: DonationSavingType
    amount: float
    mode: DonationSavingMode
    mode_value: Optional[float] = None
    note: Optional[str] = None
    status: DonationSavingStatus
    created_at: datetime
    updated_at: datetime


class DonationSavingRecordCreate(BaseModel):
    type: DonationSavingType
    amount: float = Field(gt=0)
    mode: DonationSavingMode = DonationSavingMode.FIXED
    mode_value: Optional[float] = Field(default=None, ge=0)
    note: Optional[str] = None
    status: DonationSavingStatus = DonationSavingStatus.PENDING
    transaction_id: Optional[str] = None
    custom_transaction_id: Optional[str] = None


class DonationSavingRecordUpdate(BaseModel):
    type: Optional[DonationSavingType] = None
    amount: Optional[float] = Field(default=None, gt=0)
    mode: Optional[DonationSavingMode] = None
    mode_value: Optional[float] = Field(default=None, ge=0)
    note: Optional[str] = None
    status: Optional[DonationSavingStatus] = None


# ---- Savings goals ---------------------------------------------------------------

class SavingsGoalOut(Snapshot):
    id: int
    name: str
    description: Optional[str] = None
    target_amount: float
    current_amount: float = 0.0
    source_account_id: Optional[int] = None
    savings_account_id: Optional[int] = None
    created_at: datetime


class SavingsGoalCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    target_amount: float = Field(gt=0)
    source_account_id: int


class SavingsGoalUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    target_amount: Optional[float] = Field(default=None, gt=0)
    source_account_id: Optional[int] = None


class SaveToGoalRequest(BaseModel):
    amount: float = Field(gt=0)


# ---- Transfers ---------------------------------------------------------------------

class TransferRequest(BaseModel):
    from_account_id: int
    to_account_id: int
    from_amount: float = Field(gt=0)
    exchange_rate: float = Field(default=1.0, gt=0)
    note: Optional[str] = None
    transaction_id: Optional[str] = None


class DpsTransferRequest(BaseModel):
    from_account_id: int
    amount: float = Field(gt=0)
    transaction_id: Optional[str] = None


class TransferResult(BaseModel):
    transfer_id: str
    transaction_id: str
    from_amount: float
    to_amount: float


class DpsTransferOut(Snapshot):
    id: int
    from_account_id: int
    to_account_id: int
    amount: float
    date: dt.date
    transaction_id: Optional[str] = None


class ActivityOut(Snapshot):
    id: int
    activity_type: str
    entity_type: str
    entity_id: Optional[str] = None
    description: Optional[str] = None
    changes: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


# ---- Analytics ---------------------------------------------------------------------

class CurrencyDashboardStats(BaseModel):
    currency: str
    total_balance: float
    monthly_income: float
    monthly_expenses: float
    savings_rate: float


class DashboardStats(BaseModel):
    by_currency: list[CurrencyDashboardStats]
    accounts_count: int
    transactions_count: int


class PeriodOverview(BaseModel):
    currency: str
    period: str
    start: date
    end: date
    total_balance: float
    income: float
    expenses: float
    previous_income: float
    previous_expenses: float
    income_change: Optional[float] = None
    expenses_change: Optional[float] = None
    compare_label: str


class CategorySpend(BaseModel):
    category: str
    total_spent: float
    item_count: int
    percentage: float


class PurchaseAnalytics(BaseModel):
    currency: str
    total_spent: float
    monthly_spent: float
    planned_count: int
    purchased_count: int
    cancelled_count: int
    top_category: Optional[str] = None
    category_breakdown: list[CategorySpend]


class MultiCurrencyPurchaseAnalytics(BaseModel):
    by_currency: list[PurchaseAnalytics]
    total_currencies: int


class LendBorrowCurrencyBreakdown(BaseModel):
    currency: str
    total_lent: float = 0.0
    total_borrowed: float = 0.0
    outstanding_lent: float = 0.0
    outstanding_borrowed: float = 0.0


class PartialReturnStats(BaseModel):
    total_partial_returns: int
    total_partial_return_amount: float
    average_partial_return_amount: float


class LendBorrowAnalytics(BaseModel):
    total_lent: float
    total_borrowed: float
    outstanding_lent: float
    outstanding_borrowed: float
    overdue_count: int
    active_count: int
    settled_count: int
    top_person: Optional[str] = None
    currency_breakdown: list[LendBorrowCurrencyBreakdown]
    partial_return_stats: Optional[PartialReturnStats] = None


class MonthlyDonationSaving(BaseModel):
    month: str
    saved: float
    donated: float
    total: float


class DonationSavingTypeBreakdown(BaseModel):
    type: DonationSavingType
    total: float
    count: int
    percentage: float


class DonationSavingModeBreakdown(BaseModel):
    mode: DonationSavingMode
    total: float
    count: int
    percentage: float


class DonationSavingAnalytics(BaseModel):
    total_saved: float
    total_donated: float
    top_month: Optional[str] = None
    monthly_breakdown: list[MonthlyDonationSaving]
    type_breakdown: list[DonationSavingTypeBreakdown]
    mode_breakdown: list[DonationSavingModeBreakdown]
