from __future__ import annotations

import datetime as dt
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Boolean,
    JSON,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from .core.database import Base


def now_utc_naive() -> datetime:
    """Return naive UTC datetime (SQLite stores no offset)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


def _enum(enum_cls: type[Enum], name: str) -> SAEnum:
    # Persist the lowercase wire values rather than member names
    return SAEnum(enum_cls, name=name, values_callable=_values, validate_strings=True)


def _money() -> Numeric:
    return Numeric(18, 4, asdecimal=False)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_utc_naive, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=now_utc_naive, onupdate=now_utc_naive, nullable=False)


class AccountType(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    INVESTMENT = "investment"
    CASH = "cash"


class DpsType(str, Enum):
    MONTHLY = "monthly"
    FLEXIBLE = "flexible"


class DpsAmountType(str, Enum):
    FIXED = "fixed"
    CUSTOM = "custom"


class TxnType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class PurchaseStatus(str, Enum):
    PLANNED = "planned"
    PURCHASED = "purchased"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LendBorrowType(str, Enum):
    LEND = "lend"
    BORROW = "borrow"


class LendBorrowStatus(str, Enum):
    ACTIVE = "active"
    SETTLED = "settled"
    OVERDUE = "overdue"


class DonationSavingType(str, Enum):
    SAVING = "saving"
    DONATION = "donation"


class DonationSavingMode(str, Enum):
    FIXED = "fixed"
    PERCENT = "percent"


class DonationSavingStatus(str, Enum):
    PENDING = "pending"
    DONATED = "donated"


class User(Base, TimestampMixin):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(100))
    local_currency: Mapped[str | None] = mapped_column(String(3))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Account(Base, TimestampMixin):
    """A source or destination of money. ``initial_balance`` is user-entered;
    the running balance comes from the ``account_balances`` view."""

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[AccountType] = mapped_column(_enum(AccountType, "account_type"), nullable=False)
    initial_balance: Mapped[float] = mapped_column(_money(), default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    has_dps: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    dps_type: Mapped[DpsType | None] = mapped_column(_enum(DpsType, "dps_type"))
    dps_amount_type: Mapped[DpsAmountType | None] = mapped_column(_enum(DpsAmountType, "dps_amount_type"))
    dps_fixed_amount: Mapped[float | None] = mapped_column(_money())
    dps_savings_account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id", ondelete="SET NULL"))
    donation_preference: Mapped[float | None] = mapped_column(_money())
    transaction_id: Mapped[str | None] = mapped_column(String(16))

    __table_args__ = (
        CheckConstraint(
            "dps_savings_account_id IS NULL OR dps_savings_account_id != id",
            name="ck_account_dps_not_self",
        ),
        Index("ix_accounts_user", "user_id"),
        {"sqlite_autoincrement": True},
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[TxnType] = mapped_column(_enum(TxnType, "txn_type"), nullable=False)
    amount: Mapped[float] = mapped_column(_money(), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_frequency: Mapped[str | None] = mapped_column(String(20))
    saving_amount: Mapped[float | None] = mapped_column(_money())
    donation_amount: Mapped[float | None] = mapped_column(_money())
    # Human-readable correlation id (F + 7 digits); shared by both legs of a transfer
    transaction_id: Mapped[str | None] = mapped_column(String(16))

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_account", "account_id"),
        Index("ix_transactions_txn_id", "transaction_id"),
        {"sqlite_autoincrement": True},
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[TxnType] = mapped_column(_enum(TxnType, "category_type"), nullable=False)
    color: Mapped[str] = mapped_column(String(16), default="#3B82F6", nullable=False)
    icon: Mapped[str] = mapped_column(String(50), default="Tag", nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    currency: Mapped[str | None] = mapped_column(String(3))


class Purchase(Base, TimestampMixin):
    __tablename__ = "purchases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[float] = mapped_column(_money(), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[PurchaseStatus] = mapped_column(
        _enum(PurchaseStatus, "purchase_status"), default=PurchaseStatus.PLANNED, nullable=False
    )
    priority: Mapped[Priority] = mapped_column(_enum(Priority, "purchase_priority"), default=Priority.MEDIUM, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    transaction_id: Mapped[str | None] = mapped_column(String(16))

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_purchase_price_non_negative"),
        Index("ix_purchases_txn_id", "transaction_id"),
        {"sqlite_autoincrement": True},
    )


class PurchaseCategory(Base, TimestampMixin):
    __tablename__ = "purchase_categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    monthly_budget: Mapped[float] = mapped_column(_money(), default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    category_color: Mapped[str] = mapped_column(String(16), default="#3B82F6", nullable=False)
    # Tombstone: an intentionally deleted category is never recreated by the expense-category sync
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class LendBorrow(Base, TimestampMixin):
    __tablename__ = "lend_borrow"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[LendBorrowType] = mapped_column(_enum(LendBorrowType, "lend_borrow_type"), nullable=False)
    person_name: Mapped[str] = mapped_column(String(120), nullable=False)
    amount: Mapped[float] = mapped_column(_money(), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[LendBorrowStatus] = mapped_column(
        _enum(LendBorrowStatus, "lend_borrow_status"), default=LendBorrowStatus.ACTIVE, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_lend_borrow_amount_positive"),
        {"sqlite_autoincrement": True},
    )


class LendBorrowReturn(Base, TimestampMixin):
    __tablename__ = "lend_borrow_returns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    lend_borrow_id: Mapped[int] = mapped_column(ForeignKey("lend_borrow.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[float] = mapped_column(_money(), nullable=False)
    return_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_lend_borrow_return_amount_positive"),
        {"sqlite_autoincrement": True},
    )


class DonationSavingRecord(Base, TimestampMixin):
    __tablename__ = "donation_saving_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # Null for manual donations that are not backed by a transaction
    transaction_id: Mapped[str | None] = mapped_column(String(16))
    custom_transaction_id: Mapped[str | None] = mapped_column(String(32))
    type: Mapped[DonationSavingType] = mapped_column(_enum(DonationSavingType, "donation_saving_type"), nullable=False)
    amount: Mapped[float] = mapped_column(_money(), nullable=False)
    mode: Mapped[DonationSavingMode] = mapped_column(_enum(DonationSavingMode, "donation_saving_mode"), nullable=False)
    mode_value: Mapped[float | None] = mapped_column(_money())
    note: Mapped[str | None] = mapped_column(Text)
    status: Mapped[DonationSavingStatus] = mapped_column(
        _enum(DonationSavingStatus, "donation_saving_status"), default=DonationSavingStatus.PENDING, nullable=False
    )


class SavingsGoal(Base, TimestampMixin):
    __tablename__ = "savings_goals"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    target_amount: Mapped[float] = mapped_column(_money(), nullable=False)
    current_amount: Mapped[float] = mapped_column(_money(), default=0, nullable=False)
    source_account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id", ondelete="SET NULL"))
    savings_account_id: Mapped[int | None] = mapped_column(ForeignKey("accounts.id", ondelete="SET NULL"))


class DpsTransfer(Base, TimestampMixin):
    __tablename__ = "dps_transfers"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    from_account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    to_account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[float] = mapped_column(_money(), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    transaction_id: Mapped[str | None] = mapped_column(String(16))


class ActivityHistory(Base, TimestampMixin):
    __tablename__ = "activity_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64))
    description: Mapped[str | None] = mapped_column(Text)
    changes: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
