from __future__ import annotations

import itertools
import math
import threading
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Callable, Iterator, Optional, Sequence, TypeVar
from zoneinfo import ZoneInfo

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from .auth import AuthContext
from .backend import ACCOUNT_BALANCES_VIEW, Row, TableBackend
from .core.config import settings
from .core.logging_config import get_logger
from .errors import NotFoundError, StoreError, ValidationFailedError
from .models import (
    AccountType,
    DonationSavingType,
    DpsAmountType,
    LendBorrowStatus,
    PurchaseStatus,
    TxnType,
)
from .schemas import (
    AccountCreate,
    AccountOut,
    AccountUpdate,
    ActivityOut,
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    DashboardStats,
    DonationSavingAnalytics,
    DonationSavingRecordCreate,
    DonationSavingRecordOut,
    DonationSavingRecordUpdate,
    DpsTransferOut,
    DpsTransferRequest,
    LendBorrowAnalytics,
    LendBorrowCreate,
    LendBorrowOut,
    LendBorrowReturnOut,
    LendBorrowUpdate,
    MultiCurrencyPurchaseAnalytics,
    PeriodOverview,
    PurchaseAnalytics,
    PurchaseCategoryCreate,
    PurchaseCategoryOut,
    PurchaseCategoryUpdate,
    PurchaseCreate,
    PurchaseDetails,
    PurchaseOut,
    PurchaseUpdate,
    SavingsGoalCreate,
    SavingsGoalOut,
    SavingsGoalUpdate,
    Snapshot,
    TransactionCreate,
    TransactionOut,
    TransactionRef,
    TransactionUpdate,
    TransferRequest,
    TransferResult,
)
from .seed import DEFAULT_CATEGORIES
from .services import analytics
from .services.transaction_ids import (
    DPS_CATEGORY,
    SAVINGS_TAG,
    TRANSFER_CATEGORY,
    dps_transfer_tags,
    generate_transaction_id,
    generate_transfer_id,
    transfer_tags,
)

logger = get_logger(__name__)

S = TypeVar("S", bound=Snapshot)
Listener = Callable[[str], None]

CASH_WALLET_NAME = "Cash Wallet"
DPS_FIELDS = ("has_dps", "dps_type", "dps_amount_type", "dps_fixed_amount")


def _normalize_name(name: str) -> str:
    return name.strip().lower()


def _amount_tag(value: float) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def _dps_fields(
    has_dps: bool,
    dps_type: Any,
    dps_amount_type: Any,
    dps_fixed_amount: Optional[float],
) -> dict[str, Any]:
    """DPS columns are null unless DPS is on; a fixed amount only applies in fixed mode."""
    if not has_dps:
        return {"has_dps": False, "dps_type": None, "dps_amount_type": None, "dps_fixed_amount": None}
    return {
        "has_dps": True,
        "dps_type": dps_type,
        "dps_amount_type": dps_amount_type,
        "dps_fixed_amount": dps_fixed_amount if dps_amount_type == DpsAmountType.FIXED else None,
    }


def _local_today() -> date:
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


class FinanceStore:
    """In-memory mirror of one user's finance tables.

    Each collection is a tuple of frozen snapshots that is only ever replaced
    whole, after a successful re-fetch. Fetches are numbered; a response that
    arrives after a newer fetch of the same collection has been applied is
    dropped, so the last-initiated fetch wins.
    """

    def __init__(
        self,
        backend: TableBackend,
        auth: AuthContext,
        clock: Optional[Callable[[], date]] = None,
        default_currency: Optional[str] = None,
    ) -> None:
        self._backend = backend
        self._auth = auth
        self._clock = clock or _local_today
        self._default_currency = default_currency or settings.DEFAULT_CURRENCY

        self._lock = threading.Lock()
        self._seq = itertools.count(1)
        self._applied: dict[str, int] = {}
        self._in_flight = 0
        self._listeners: list[Listener] = []

        self.error: Optional[str] = None
        self.accounts: tuple[AccountOut, ...] = ()
        self.transactions: tuple[TransactionOut, ...] = ()
        self.categories: tuple[CategoryOut, ...] = ()
        self.purchases: tuple[PurchaseOut, ...] = ()
        self.purchase_categories: tuple[PurchaseCategoryOut, ...] = ()
        self.lend_borrow_records: tuple[LendBorrowOut, ...] = ()
        self.lend_borrow_returns: tuple[LendBorrowReturnOut, ...] = ()
        self.donation_saving_records: tuple[DonationSavingRecordOut, ...] = ()
        self.savings_goals: tuple[SavingsGoalOut, ...] = ()
        self.dps_transfers: tuple[DpsTransferOut, ...] = ()

    # ---- plumbing ------------------------------------------------------------

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    def today(self) -> date:
        return self._clock()

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Register ``callback(collection_name)``; returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, name: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(name)
            except Exception:
                logger.exception("Store listener failed for %s", name)

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        with self._lock:
            self._in_flight += 1
            self.error = None
        try:
            yield
        except StoreError as exc:
            self.error = str(exc)
            logger.warning("%s failed: %s", name, exc, extra={"operation": name})
            raise
        except Exception as exc:
            self.error = str(exc)
            logger.exception("%s failed", name, extra={"operation": name})
            raise
        finally:
            with self._lock:
                self._in_flight -= 1

    def _user_id(self) -> int:
        return self._auth.require_user().id

    def _next_seq(self) -> int:
        with self._lock:
            return next(self._seq)

    def _apply(self, name: str, seq: int, snapshot: tuple) -> bool:
        with self._lock:
            if seq < self._applied.get(name, 0):
                logger.debug("Discarding stale %s response (seq %d)", name, seq)
                return False
            self._applied[name] = seq
            setattr(self, name, snapshot)
        self._notify(name)
        return True

    def _fetch(
        self,
        name: str,
        table: str,
        model: type[S],
        order_by: Sequence[str] = ("-created_at",),
        filters: Optional[dict[str, Any]] = None,
    ) -> tuple[S, ...]:
        user_id = self._user_id()
        seq = self._next_seq()
        rows = self._backend.select(table, user_id, filters, order_by)
        self._apply(name, seq, tuple(model.model_validate(row) for row in rows))
        return getattr(self, name)

    def _refresh(self, *names: str) -> None:
        for name in names:
            getattr(self, f"fetch_{name}")()

    def _require_row(self, table: str, user_id: int, row_id: int, label: str) -> Row:
        rows = self._backend.select(table, user_id, {"id": row_id})
        if not rows:
            raise NotFoundError(f"{label} {row_id} not found")
        return rows[0]

    def _update_row(self, table: str, user_id: int, row_id: int, values: dict[str, Any], label: str) -> Row:
        if not values:
            return self._require_row(table, user_id, row_id, label)
        rows = self._backend.update(table, user_id, {"id": row_id}, values)
        if not rows:
            raise NotFoundError(f"{label} {row_id} not found")
        return rows[0]

    def _delete_row(self, table: str, user_id: int, row_id: int, label: str) -> None:
        if not self._backend.delete(table, user_id, {"id": row_id}):
            raise NotFoundError(f"{label} {row_id} not found")

    def _account(self, user_id: int, account_id: int) -> AccountOut:
        rows = self._backend.select(ACCOUNT_BALANCES_VIEW, user_id, {"id": account_id})
        if not rows:
            raise NotFoundError(f"Account {account_id} not found")
        return AccountOut.model_validate(rows[0])

    def _log_activity(
        self,
        user_id: int,
        activity_type: str,
        entity_type: str,
        entity_id: Any,
        description: str,
        changes: dict[str, Any],
    ) -> None:
        self._backend.insert(
            "activity_history",
            user_id,
            {
                "activity_type": activity_type,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "description": description,
                "changes": to_jsonable_python(changes),
            },
        )

    # ---- accounts ------------------------------------------------------------

    def fetch_accounts(self) -> tuple[AccountOut, ...]:
        with self._operation("fetch_accounts"):
            return self._fetch("accounts", ACCOUNT_BALANCES_VIEW, AccountOut, order_by=("created_at",))

    def _create_dps_account(self, user_id: int, owner_name: str, currency: str, initial_balance: float) -> Row:
        return self._backend.insert(
            "accounts",
            user_id,
            {
                "name": f"{owner_name} (DPS)",
                "type": AccountType.SAVINGS,
                "initial_balance": initial_balance,
                "currency": currency,
                "is_active": True,
                "description": f"DPS account for {owner_name}",
            },
        )

    def add_account(self, data: AccountCreate) -> AccountOut:
        with self._operation("add_account"):
            user_id = self._user_id()
            values = data.model_dump(exclude={"dps_initial_balance", "transaction_id"})
            values.update(_dps_fields(data.has_dps, data.dps_type, data.dps_amount_type, data.dps_fixed_amount))
            values["is_active"] = True
            values["transaction_id"] = data.transaction_id or generate_transaction_id()

            with self._backend.atomic():
                has_cash = bool(self._backend.select("accounts", user_id, {"type": AccountType.CASH}))
                main = self._backend.insert("accounts", user_id, values)
                self._log_activity(
                    user_id,
                    "ACCOUNT_CREATED",
                    "account",
                    main["id"],
                    f"New account created: {main['name']} ({main['currency']})",
                    {"new": main},
                )
                if data.has_dps:
                    savings = self._create_dps_account(user_id, data.name, data.currency, data.dps_initial_balance)
                    self._backend.update(
                        "accounts", user_id, {"id": main["id"]}, {"dps_savings_account_id": savings["id"]}
                    )
                if not has_cash and data.type != AccountType.CASH:
                    cash = self._backend.insert(
                        "accounts",
                        user_id,
                        {
                            "name": CASH_WALLET_NAME,
                            "type": AccountType.CASH,
                            "initial_balance": 0,
                            "currency": data.currency,
                            "description": "Default cash account for tracking physical money",
                            "is_active": True,
                        },
                    )
                    self._log_activity(
                        user_id,
                        "ACCOUNT_CREATED",
                        "account",
                        cash["id"],
                        f"Default cash account created: {cash['name']} ({cash['currency']})",
                        {"new": cash},
                    )

            logger.info("Account created", extra={"account_id": main["id"], "has_dps": data.has_dps})
            self.fetch_accounts()
            return self._account(user_id, main["id"])

    def update_account(self, account_id: int, data: AccountUpdate) -> AccountOut:
        with self._operation("update_account"):
            user_id = self._user_id()
            updates = data.model_dump(exclude_unset=True)
            dps_initial = updates.pop("dps_initial_balance", None) or 0.0
            reset_transactions = False

            with self._backend.atomic():
                current = self._require_row("accounts", user_id, account_id, "Account")
                if any(field in updates for field in DPS_FIELDS):
                    merged = {field: updates.get(field, current[field]) for field in DPS_FIELDS}
                    updates.update(_dps_fields(**merged))
                    if merged["has_dps"] and not current["has_dps"]:
                        linked = current["dps_savings_account_id"]
                        if linked:
                            # Re-enabling starts the existing DPS account over from the new opening balance
                            self._backend.delete("transactions", user_id, {"account_id": linked})
                            self._backend.update("accounts", user_id, {"id": linked}, {"initial_balance": dps_initial})
                            reset_transactions = True
                        else:
                            linked = self._create_dps_account(
                                user_id,
                                updates.get("name", current["name"]),
                                current["currency"],
                                dps_initial,
                            )["id"]
                        updates["dps_savings_account_id"] = linked
                self._update_row("accounts", user_id, account_id, updates, "Account")

            self.fetch_accounts()
            if reset_transactions:
                self.fetch_transactions()
            return self._account(user_id, account_id)

    def delete_account(self, account_id: int) -> None:
        with self._operation("delete_account"):
            user_id = self._user_id()
            with self._backend.atomic():
                self._require_row("accounts", user_id, account_id, "Account")
                self._backend.update(
                    "accounts", user_id, {"dps_savings_account_id": account_id}, {"dps_savings_account_id": None}
                )
                self._backend.delete("dps_transfers", user_id, {"from_account_id": account_id})
                self._backend.delete("dps_transfers", user_id, {"to_account_id": account_id})
                self._backend.delete("accounts", user_id, {"id": account_id})
            logger.info("Account deleted", extra={"account_id": account_id})
            self._refresh("accounts", "transactions")

    # ---- transactions --------------------------------------------------------

    def fetch_transactions(self) -> tuple[TransactionOut, ...]:
        with self._operation("fetch_transactions"):
            return self._fetch("transactions", "transactions", TransactionOut, order_by=("-date", "-created_at"))

    def _is_purchase_category(self, user_id: int, name: str) -> bool:
        rows = self._backend.select("purchase_categories", user_id, {"category_name": name, "is_deleted": False})
        return bool(rows)

    def add_transaction(
        self,
        data: TransactionCreate,
        purchase_details: Optional[PurchaseDetails] = None,
    ) -> TransactionRef:
        """Insert a transaction; expenses in a purchase category with details also record a purchase."""
        with self._operation("add_transaction"):
            user_id = self._user_id()
            values = data.model_dump()
            values["transaction_id"] = data.transaction_id or generate_transaction_id()
            values["date"] = data.date or self.today()

            with self._backend.atomic():
                account = self._require_row("accounts", user_id, data.account_id, "Account")
                row = self._backend.insert("transactions", user_id, values)
                if (
                    data.type == TxnType.EXPENSE
                    and purchase_details is not None
                    and self._is_purchase_category(user_id, data.category)
                ):
                    self._backend.insert(
                        "purchases",
                        user_id,
                        {
                            "transaction_id": row["transaction_id"],
                            "item_name": data.description or "Purchase",
                            "category": data.category,
                            "price": data.amount,
                            "currency": account["currency"] or self._default_currency,
                            "purchase_date": values["date"],
                            "status": PurchaseStatus.PURCHASED,
                            "priority": purchase_details.priority,
                            "notes": purchase_details.notes,
                        },
                    )

            self._refresh("transactions", "accounts", "purchases")
            return TransactionRef(id=row["id"], transaction_id=row["transaction_id"])

    def update_transaction(
        self,
        txn_id: int,
        data: TransactionUpdate,
        purchase_details: Optional[PurchaseDetails] = None,
    ) -> TransactionOut:
        with self._operation("update_transaction"):
            user_id = self._user_id()
            updates = data.model_dump(exclude_unset=True)
            with self._backend.atomic():
                current = self._require_row("transactions", user_id, txn_id, "Transaction")
                if "account_id" in updates:
                    self._require_row("accounts", user_id, updates["account_id"], "Account")
                row = self._update_row("transactions", user_id, txn_id, updates, "Transaction")
                if current["transaction_id"] and row["type"] == TxnType.EXPENSE:
                    linked: dict[str, Any] = {
                        "item_name": row["description"] or "Purchase",
                        "price": row["amount"],
                        "category": row["category"],
                    }
                    if purchase_details is not None:
                        linked["priority"] = purchase_details.priority
                        linked["notes"] = purchase_details.notes
                    self._backend.update("purchases", user_id, {"transaction_id": current["transaction_id"]}, linked)

            self._refresh("transactions", "accounts", "purchases")
            return TransactionOut.model_validate(row)

    def delete_transaction(self, txn_id: int) -> None:
        with self._operation("delete_transaction"):
            user_id = self._user_id()
            with self._backend.atomic():
                current = self._require_row("transactions", user_id, txn_id, "Transaction")
                if current["transaction_id"]:
                    self._backend.delete("purchases", user_id, {"transaction_id": current["transaction_id"]})
                self._backend.delete("transactions", user_id, {"id": txn_id})
            self._refresh("transactions", "accounts", "purchases")

    def transactions_by_account(self, account_id: int) -> list[TransactionOut]:
        return [t for t in self.transactions if t.account_id == account_id]

    def transactions_by_category(self, category: str) -> list[TransactionOut]:
        return [t for t in self.transactions if t.category == category]

    def active_accounts(self) -> list[AccountOut]:
        return analytics.active_accounts(self.accounts)

    def active_transactions(self) -> list[TransactionOut]:
        return analytics.active_transactions(self.accounts, self.transactions)

    # ---- transfers -----------------------------------------------------------

    def transfer(self, request: TransferRequest) -> TransferResult:
        """Move money between two accounts as a tagged expense/income pair."""
        with self._operation("transfer"):
            user_id = self._user_id()
            if request.from_account_id == request.to_account_id:
                raise ValidationFailedError("Source and destination accounts must be different")

            to_amount = request.from_amount * request.exchange_rate
            transfer_id = generate_transfer_id()
            txn_ref = request.transaction_id or generate_transaction_id()
            today = self.today()

            with self._backend.atomic():
                rows = self._backend.select(
                    ACCOUNT_BALANCES_VIEW, user_id, {"id": [request.from_account_id, request.to_account_id]}
                )
                by_id = {row["id"]: row for row in rows}
                source = by_id.get(request.from_account_id)
                dest = by_id.get(request.to_account_id)
                if source is None or dest is None:
                    raise NotFoundError("Invalid account selection")
                if source["calculated_balance"] < request.from_amount:
                    raise ValidationFailedError("Insufficient funds")

                self._backend.insert(
                    "transactions",
                    user_id,
                    {
                        "account_id": source["id"],
                        "type": TxnType.EXPENSE,
                        "amount": request.from_amount,
                        "description": request.note or f"Transfer to {dest['name']}",
                        "date": today,
                        "category": TRANSFER_CATEGORY,
                        "tags": transfer_tags(transfer_id, dest["id"], _amount_tag(to_amount)),
                        "transaction_id": txn_ref,
                    },
                )
                self._backend.insert(
                    "transactions",
                    user_id,
                    {
                        "account_id": dest["id"],
                        "type": TxnType.INCOME,
                        "amount": to_amount,
                        "description": request.note or f"Transfer from {source['name']}",
                        "date": today,
                        "category": TRANSFER_CATEGORY,
                        "tags": transfer_tags(transfer_id, source["id"], _amount_tag(request.from_amount)),
                        "transaction_id": txn_ref,
                    },
                )
                self._log_activity(
                    user_id,
                    "TRANSFER_CREATED",
                    "transfer",
                    transfer_id,
                    f"Transfer created: {source['name']} -> {dest['name']}",
                    {
                        "new": {
                            "from_account_id": source["id"],
                            "to_account_id": dest["id"],
                            "from_amount": request.from_amount,
                            "to_amount": to_amount,
                            "exchange_rate": request.exchange_rate,
                            "note": request.note,
                            "transfer_id": transfer_id,
                            "transaction_id": txn_ref,
                            "date": today,
                        }
                    },
                )

            logger.info(
                "Transfer recorded",
                extra={"transfer_id": transfer_id, "from_account_id": source["id"], "to_account_id": dest["id"]},
            )
            self._refresh("transactions", "accounts")
            return TransferResult(
                transfer_id=transfer_id,
                transaction_id=txn_ref,
                from_amount=request.from_amount,
                to_amount=to_amount,
            )

    def fetch_dps_transfers(self) -> tuple[DpsTransferOut, ...]:
        with self._operation("fetch_dps_transfers"):
            return self._fetch("dps_transfers", "dps_transfers", DpsTransferOut, order_by=("-date", "-created_at"))

    def transfer_dps(self, request: DpsTransferRequest) -> TransferResult:
        """Move money from an account into its linked DPS savings account."""
        with self._operation("transfer_dps"):
            user_id = self._user_id()
            transfer_id = generate_transfer_id()
            txn_ref = request.transaction_id or generate_transaction_id()
            today = self.today()

            with self._backend.atomic():
                rows = self._backend.select(ACCOUNT_BALANCES_VIEW, user_id, {"id": request.from_account_id})
                if not rows:
                    raise NotFoundError("Source account not found")
                source = rows[0]
                if not source["has_dps"]:
                    raise ValidationFailedError("Account does not have DPS enabled")
                if not source["dps_savings_account_id"]:
                    raise ValidationFailedError("DPS savings account not found")
                dest_rows = self._backend.select("accounts", user_id, {"id": source["dps_savings_account_id"]})
                if not dest_rows:
                    raise NotFoundError("DPS savings account not found")
                dest = dest_rows[0]
                if source["calculated_balance"] < request.amount:
                    raise ValidationFailedError("Insufficient funds")

                tags = dps_transfer_tags(transfer_id)
                for account_id, kind, description in (
                    (source["id"], TxnType.EXPENSE, f"DPS Transfer to {dest['name']}"),
                    (dest["id"], TxnType.INCOME, f"DPS Transfer from {source['name']}"),
                ):
                    self._backend.insert(
                        "transactions",
                        user_id,
                        {
                            "account_id": account_id,
                            "type": kind,
                            "amount": request.amount,
                            "description": description,
                            "date": today,
                            "category": DPS_CATEGORY,
                            "tags": list(tags),
                            "transaction_id": txn_ref,
                        },
                    )
                self._backend.insert(
                    "dps_transfers",
                    user_id,
                    {
                        "from_account_id": source["id"],
                        "to_account_id": dest["id"],
                        "amount": request.amount,
                        "date": today,
                        "transaction_id": txn_ref,
                    },
                )

            logger.info("DPS transfer recorded", extra={"transfer_id": transfer_id, "from_account_id": source["id"]})
            self._refresh("transactions", "accounts", "dps_transfers")
            return TransferResult(
                transfer_id=transfer_id,
                transaction_id=txn_ref,
                from_amount=request.amount,
                to_amount=request.amount,
            )

    # ---- categories ----------------------------------------------------------

    def fetch_categories(self) -> tuple[CategoryOut, ...]:
        """Fetch categories, seeding the default set for a user who has none."""
        with self._operation("fetch_categories"):
            user_id = self._user_id()
            seq = self._next_seq()
            rows = self._backend.select("categories", user_id, None, ("-created_at",))
            if not rows:
                logger.info("Seeding default categories", extra={"user_id": user_id})
                with self._backend.atomic():
                    for category in DEFAULT_CATEGORIES:
                        self._backend.insert(
                            "categories",
                            user_id,
                            {**category, "description": f"Default {category['type'].value} category"},
                        )
                rows = self._backend.select("categories", user_id, None, ("-created_at",))
            self._apply("categories", seq, tuple(CategoryOut.model_validate(row) for row in rows))
            return self.categories

    def add_category(self, data: CategoryCreate) -> CategoryOut:
        """Add a category; expense categories also get a matching purchase category."""
        with self._operation("add_category"):
            user_id = self._user_id()
            with self._backend.atomic():
                row = self._backend.insert("categories", user_id, data.model_dump())
                if data.type == TxnType.EXPENSE:
                    existing = self._backend.select("purchase_categories", user_id, {"is_deleted": False})
                    if _normalize_name(data.name) not in {_normalize_name(pc["category_name"]) for pc in existing}:
                        self._backend.insert(
                            "purchase_categories",
                            user_id,
                            {
                                "category_name": data.name,
                                "description": f"Category for {data.name}",
                                "monthly_budget": 0,
                                "currency": data.currency or self._default_currency,
                                "category_color": data.color,
                            },
                        )
            self._refresh("categories", "purchase_categories")
            return CategoryOut.model_validate(row)

    def update_category(self, category_id: int, data: CategoryUpdate) -> CategoryOut:
        with self._operation("update_category"):
            user_id = self._user_id()
            row = self._update_row("categories", user_id, category_id, data.model_dump(exclude_unset=True), "Category")
            self.fetch_categories()
            return CategoryOut.model_validate(row)

    def delete_category(self, category_id: int) -> None:
        with self._operation("delete_category"):
            self._delete_row("categories", self._user_id(), category_id, "Category")
            self.fetch_categories()

    def categories_by_type(self, kind: TxnType) -> list[CategoryOut]:
        return [c for c in self.categories if c.type == kind]

    # ---- purchases -----------------------------------------------------------

    def fetch_purchases(self) -> tuple[PurchaseOut, ...]:
        with self._operation("fetch_purchases"):
            return self._fetch("purchases", "purchases", PurchaseOut, order_by=("-purchase_date", "-created_at"))

    def add_purchase(self, data: PurchaseCreate) -> PurchaseOut:
        with self._operation("add_purchase"):
            values = data.model_dump()
            values["purchase_date"] = data.purchase_date or self.today()
            row = self._backend.insert("purchases", self._user_id(), values)
            self.fetch_purchases()
            return PurchaseOut.model_validate(row)

    def update_purchase(self, purchase_id: int, data: PurchaseUpdate) -> PurchaseOut:
        with self._operation("update_purchase"):
            user_id = self._user_id()
            row = self._update_row("purchases", user_id, purchase_id, data.model_dump(exclude_unset=True), "Purchase")
            self.fetch_purchases()
            return PurchaseOut.model_validate(row)

    def delete_purchase(self, purchase_id: int) -> None:
        with self._operation("delete_purchase"):
            self._delete_row("purchases", self._user_id(), purchase_id, "Purchase")
            self.fetch_purchases()

    def bulk_update_purchases(self, ids: Sequence[int], data: PurchaseUpdate) -> list[PurchaseOut]:
        with self._operation("bulk_update_purchases"):
            user_id = self._user_id()
            updates = data.model_dump(exclude_unset=True)
            if not ids or not updates:
                return []
            rows = self._backend.update("purchases", user_id, {"id": list(ids)}, updates)
            self._refresh("purchases", "accounts")
            return [PurchaseOut.model_validate(row) for row in rows]

    def purchases_by_category(self, category: str) -> list[PurchaseOut]:
        return [p for p in self.purchases if p.category == category]

    def purchases_by_status(self, status: PurchaseStatus) -> list[PurchaseOut]:
        return [p for p in self.purchases if p.status == status]

    # ---- purchase categories -------------------------------------------------

    def fetch_purchase_categories(self) -> tuple[PurchaseCategoryOut, ...]:
        with self._operation("fetch_purchase_categories"):
            return self._fetch(
                "purchase_categories",
                "purchase_categories",
                PurchaseCategoryOut,
                filters={"is_deleted": False},
            )

    def add_purchase_category(self, data: PurchaseCategoryCreate) -> PurchaseCategoryOut:
        with self._operation("add_purchase_category"):
            row = self._backend.insert("purchase_categories", self._user_id(), data.model_dump())
            self.fetch_purchase_categories()
            return PurchaseCategoryOut.model_validate(row)

    def update_purchase_category(self, category_id: int, data: PurchaseCategoryUpdate) -> PurchaseCategoryOut:
        with self._operation("update_purchase_category"):
            user_id = self._user_id()
            row = self._update_row(
                "purchase_categories", user_id, category_id, data.model_dump(exclude_unset=True), "Purchase category"
            )
            self.fetch_purchase_categories()
            return PurchaseCategoryOut.model_validate(row)

    def delete_purchase_category(self, category_id: int) -> None:
        """Tombstone the category so the expense-category sync leaves it deleted."""
        with self._operation("delete_purchase_category"):
            user_id = self._user_id()
            rows = self._backend.update(
                "purchase_categories", user_id, {"id": category_id, "is_deleted": False}, {"is_deleted": True}
            )
            if not rows:
                raise NotFoundError(f"Purchase category {category_id} not found")
            self.fetch_purchase_categories()

    def sync_expense_categories_with_purchase_categories(self) -> int:
        """Create a purchase category for every expense category that lacks one.

        Names are compared trimmed and case-insensitively; tombstoned names
        count as present. Returns the number created.
        """
        with self._operation("sync_expense_categories"):
            user_id = self._user_id()
            created = 0
            with self._backend.atomic():
                expense = self._backend.select("categories", user_id, {"type": TxnType.EXPENSE}, ("created_at",))
                known = {
                    _normalize_name(pc["category_name"])
                    for pc in self._backend.select("purchase_categories", user_id)
                }
                for category in expense:
                    key = _normalize_name(category["name"])
                    if key in known:
                        continue
                    self._backend.insert(
                        "purchase_categories",
                        user_id,
                        {
                            "category_name": category["name"],
                            "description": f"Category for {category['name']}",
                            "monthly_budget": 0,
                            "currency": category["currency"] or self._default_currency,
                            "category_color": category["color"],
                        },
                    )
                    known.add(key)
                    created += 1
            if created:
                logger.info("Synced purchase categories", extra={"created_count": created})
                self.fetch_purchase_categories()
            return created

    def clear_deleted_categories(self) -> int:
        """Purge purchase-category tombstones; returns how many were removed."""
        with self._operation("clear_deleted_categories"):
            return self._backend.delete("purchase_categories", self._user_id(), {"is_deleted": True})

    # ---- lend & borrow -------------------------------------------------------

    def fetch_lend_borrow_records(self) -> tuple[LendBorrowOut, ...]:
        with self._operation("fetch_lend_borrow_records"):
            return self._fetch("lend_borrow_records", "lend_borrow", LendBorrowOut)

    def add_lend_borrow_record(self, data: LendBorrowCreate) -> LendBorrowOut:
        with self._operation("add_lend_borrow_record"):
            row = self._backend.insert("lend_borrow", self._user_id(), data.model_dump())
            self.fetch_lend_borrow_records()
            return LendBorrowOut.model_validate(row)

    def update_lend_borrow_record(self, record_id: int, data: LendBorrowUpdate) -> LendBorrowOut:
        with self._operation("update_lend_borrow_record"):
            user_id = self._user_id()
            row = self._update_row("lend_borrow", user_id, record_id, data.model_dump(exclude_unset=True), "Record")
            self.fetch_lend_borrow_records()
            return LendBorrowOut.model_validate(row)

    def delete_lend_borrow_record(self, record_id: int) -> None:
        with self._operation("delete_lend_borrow_record"):
            self._delete_row("lend_borrow", self._user_id(), record_id, "Record")
            self._refresh("lend_borrow_records", "lend_borrow_returns")

    def fetch_lend_borrow_returns(self, record_id: Optional[int] = None) -> tuple[LendBorrowReturnOut, ...]:
        """Fetch every partial return; narrowed to one record when ``record_id`` is given."""
        with self._operation("fetch_lend_borrow_returns"):
            returns = self._fetch(
                "lend_borrow_returns", "lend_borrow_returns", LendBorrowReturnOut, order_by=("-return_date",)
            )
            if record_id is None:
                return returns
            return tuple(r for r in returns if r.lend_borrow_id == record_id)

    def record_lend_borrow_return(
        self,
        record_id: int,
        amount: float,
        return_date: Optional[date] = None,
    ) -> LendBorrowReturnOut:
        with self._operation("record_lend_borrow_return"):
            user_id = self._user_id()
            if amount <= 0:
                raise ValidationFailedError("Return amount must be positive")
            with self._backend.atomic():
                record = self._require_row("lend_borrow", user_id, record_id, "Record")
                if record["status"] == LendBorrowStatus.SETTLED:
                    raise ValidationFailedError("Record is already settled")
                returned = sum(r["amount"] for r in self._backend.select(
                    "lend_borrow_returns", user_id, {"lend_borrow_id": record_id}
                ))
                remaining = record["amount"] - returned
                if amount > remaining and not math.isclose(amount, remaining):
                    raise ValidationFailedError(
                        f"Return amount {amount:.2f} exceeds remaining balance {remaining:.2f}"
                    )
                row = self._backend.insert(
                    "lend_borrow_returns",
                    user_id,
                    {"lend_borrow_id": record_id, "amount": amount, "return_date": return_date or self.today()},
                )
                if math.isclose(amount, remaining):
                    self._backend.update("lend_borrow", user_id, {"id": record_id}, {"status": LendBorrowStatus.SETTLED})
                    logger.info("Record settled", extra={"record_id": record_id})
            self._refresh("lend_borrow_records", "lend_borrow_returns")
            return LendBorrowReturnOut.model_validate(row)

    def refresh_overdue_statuses(self, today: Optional[date] = None) -> int:
        """Mark active records past their due date as overdue; returns how many changed."""
        with self._operation("refresh_overdue_statuses"):
            user_id = self._user_id()
            rows = self._backend.select("lend_borrow", user_id, {"status": LendBorrowStatus.ACTIVE})
            ids = analytics.overdue_ids((LendBorrowOut.model_validate(r) for r in rows), today or self.today())
            if ids:
                self._backend.update("lend_borrow", user_id, {"id": ids}, {"status": LendBorrowStatus.OVERDUE})
                logger.info("Marked records overdue", extra={"count": len(ids)})
            self.fetch_lend_borrow_records()
            return len(ids)

    # ---- donations & savings -------------------------------------------------

    def fetch_donation_saving_records(self) -> tuple[DonationSavingRecordOut, ...]:
        with self._operation("fetch_donation_saving_records"):
            return self._fetch("donation_saving_records", "donation_saving_records", DonationSavingRecordOut)

    def add_donation_saving_record(self, data: DonationSavingRecordCreate) -> DonationSavingRecordOut:
        with self._operation("add_donation_saving_record"):
            row = self._backend.insert("donation_saving_records", self._user_id(), data.model_dump())
            self.fetch_donation_saving_records()
            return DonationSavingRecordOut.model_validate(row)

    def update_donation_saving_record(self, record_id: int, data: DonationSavingRecordUpdate) -> DonationSavingRecordOut:
        with self._operation("update_donation_saving_record"):
            user_id = self._user_id()
            row = self._update_row(
                "donation_saving_records", user_id, record_id, data.model_dump(exclude_unset=True), "Record"
            )
            self.fetch_donation_saving_records()
            return DonationSavingRecordOut.model_validate(row)

    def delete_donation_saving_record(self, record_id: int) -> None:
        with self._operation("delete_donation_saving_record"):
            self._delete_row("donation_saving_records", self._user_id(), record_id, "Record")
            self.fetch_donation_saving_records()

    def donation_saving_records_by_type(self, kind: DonationSavingType) -> list[DonationSavingRecordOut]:
        return [r for r in self.donation_saving_records if r.type == kind]

    def donation_saving_records_by_month(self, month: str) -> list[DonationSavingRecordOut]:
        """Records created in ``month`` (``YYYY-MM``)."""
        return [r for r in self.donation_saving_records if r.created_at.strftime("%Y-%m") == month]

    # ---- savings goals -------------------------------------------------------

    def fetch_savings_goals(self) -> tuple[SavingsGoalOut, ...]:
        with self._operation("fetch_savings_goals"):
            return self._fetch("savings_goals", "savings_goals", SavingsGoalOut)

    def create_savings_goal(self, data: SavingsGoalCreate) -> SavingsGoalOut:
        """Create a goal together with its dedicated ``<name> (Savings)`` account."""
        with self._operation("create_savings_goal"):
            user_id = self._user_id()
            with self._backend.atomic():
                source = self._require_row("accounts", user_id, data.source_account_id, "Account")
                account = self._backend.insert(
                    "accounts",
                    user_id,
                    {
                        "name": f"{data.name} (Savings)",
                        "type": AccountType.SAVINGS,
                        "initial_balance": 0,
                        "currency": source["currency"] or self._default_currency,
                        "description": data.description,
                        "is_active": True,
                    },
                )
                row = self._backend.insert(
                    "savings_goals",
                    user_id,
                    {**data.model_dump(), "savings_account_id": account["id"], "current_amount": 0},
                )
            self._refresh("savings_goals", "accounts")
            return SavingsGoalOut.model_validate(row)

    add_savings_goal = create_savings_goal

    def update_savings_goal(self, goal_id: int, data: SavingsGoalUpdate) -> SavingsGoalOut:
        with self._operation("update_savings_goal"):
            user_id = self._user_id()
            updates = data.model_dump(exclude_unset=True)
            if updates.get("source_account_id") is not None:
                self._require_row("accounts", user_id, updates["source_account_id"], "Account")
            row = self._update_row("savings_goals", user_id, goal_id, updates, "Savings goal")
            self.fetch_savings_goals()
            return SavingsGoalOut.model_validate(row)

    def delete_savings_goal(self, goal_id: int) -> None:
        with self._operation("delete_savings_goal"):
            self._delete_row("savings_goals", self._user_id(), goal_id, "Savings goal")
            self.fetch_savings_goals()

    def save_to_savings_goal(self, goal_id: int, amount: float) -> SavingsGoalOut:
        """Move ``amount`` from the goal's source account into its savings account."""
        with self._operation("save_to_savings_goal"):
            user_id = self._user_id()
            if amount <= 0:
                raise ValidationFailedError("Amount must be positive")
            transfer_id = generate_transfer_id()
            txn_ref = generate_transaction_id()
            today = self.today()

            with self._backend.atomic():
                goal = self._require_row("savings_goals", user_id, goal_id, "Savings goal")
                source_id, savings_id = goal["source_account_id"], goal["savings_account_id"]
                if not source_id or not savings_id:
                    raise ValidationFailedError("Savings goal is missing a linked account")
                source = self._account(user_id, source_id)
                self._require_row("accounts", user_id, savings_id, "Account")
                if source.calculated_balance < amount:
                    raise ValidationFailedError("Insufficient funds")

                for account_id, kind, counter_id in (
                    (source_id, TxnType.EXPENSE, savings_id),
                    (savings_id, TxnType.INCOME, source_id),
                ):
                    self._backend.insert(
                        "transactions",
                        user_id,
                        {
                            "account_id": account_id,
                            "type": kind,
                            "amount": amount,
                            "description": f"Savings: {goal['name']}",
                            "date": today,
                            "category": TRANSFER_CATEGORY,
                            "tags": transfer_tags(transfer_id, counter_id, SAVINGS_TAG),
                            "transaction_id": txn_ref,
                        },
                    )
                row = self._update_row(
                    "savings_goals",
                    user_id,
                    goal_id,
                    {"current_amount": (goal["current_amount"] or 0) + amount},
                    "Savings goal",
                )

            self._refresh("savings_goals", "accounts", "transactions")
            return SavingsGoalOut.model_validate(row)

    # ---- activity ------------------------------------------------------------

    def fetch_activity(self, limit: int = 50) -> list[ActivityOut]:
        with self._operation("fetch_activity"):
            rows = self._backend.select("activity_history", self._user_id(), None, ("-created_at", "-id"))
            return [ActivityOut.model_validate(row) for row in rows[:limit]]

    # ---- bulk ----------------------------------------------------------------

    def fetch_all_data(self) -> None:
        """Load the core collections, then make sure every expense category has a purchase category."""
        with self._operation("fetch_all_data"):
            self._refresh("categories", "accounts", "transactions", "purchases", "purchase_categories")
            self.sync_expense_categories_with_purchase_categories()

    # ---- aggregates ----------------------------------------------------------

    def dashboard_stats(self, today: Optional[date] = None) -> DashboardStats:
        return analytics.dashboard_stats(self.accounts, self.transactions, today or self.today())

    def currency_period_overview(self, currency: str, period: str = "1m", today: Optional[date] = None) -> PeriodOverview:
        return analytics.currency_period_overview(
            self.accounts, self.transactions, currency, period, today or self.today()
        )

    def purchase_analytics(self, today: Optional[date] = None) -> PurchaseAnalytics:
        return analytics.purchase_analytics(self.purchases, today or self.today(), self._default_currency)

    def multi_currency_purchase_analytics(self, today: Optional[date] = None) -> MultiCurrencyPurchaseAnalytics:
        return analytics.multi_currency_purchase_analytics(self.purchases, today or self.today())

    def lend_borrow_analytics(self) -> LendBorrowAnalytics:
        return analytics.lend_borrow_analytics(self.lend_borrow_records, self.lend_borrow_returns)

    def donation_saving_analytics(self) -> DonationSavingAnalytics:
        return analytics.donation_saving_analytics(self.donation_saving_records)

    def snapshot(self) -> dict[str, tuple[BaseModel, ...]]:
        """Current collections keyed by name."""
        with self._lock:
            return {
                "accounts": self.accounts,
                "transactions": self.transactions,
                "categories": self.categories,
                "purchases": self.purchases,
                "purchase_categories": self.purchase_categories,
                "lend_borrow_records": self.lend_borrow_records,
                "lend_borrow_returns": self.lend_borrow_returns,
                "donation_saving_records": self.donation_saving_records,
                "savings_goals": self.savings_goals,
                "dps_transfers": self.dps_transfers,
            }
