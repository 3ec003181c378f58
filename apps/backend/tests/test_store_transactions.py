from datetime import date

import pytest

from ledgerly.errors import NotFoundError, ValidationFailedError
from ledgerly.models import AccountType, DpsAmountType, DpsType, Priority, PurchaseStatus, TxnType
from ledgerly.schemas import (
    AccountCreate,
    CategoryCreate,
    DpsTransferRequest,
    PurchaseDetails,
    TransactionCreate,
    TransactionUpdate,
    TransferRequest,
)
from ledgerly.services.transaction_ids import is_transfer, is_valid_transaction_id, transfer_id_of


def _open(store, name, initial=0, currency="USD", **extra):
    return store.add_account(
        AccountCreate(name=name, type=AccountType.CHECKING, initial_balance=initial, currency=currency, **extra)
    )


def _balance(store, account_id):
    return next(a.calculated_balance for a in store.accounts if a.id == account_id)


def test_add_transaction_updates_balance(store):
    account = _open(store, "Checking", 100)

    ref = store.add_transaction(
        TransactionCreate(account_id=account.id, type=TxnType.EXPENSE, amount=30, category="Food & Dining")
    )

    assert is_valid_transaction_id(ref.transaction_id)
    assert _balance(store, account.id) == 70
    assert [t.id for t in store.transactions_by_category("Food & Dining")] == [ref.id]


def test_transaction_date_defaults_to_store_clock(store):
    account = _open(store, "Checking", 100)
    store.add_category(CategoryCreate(name="Books", type=TxnType.EXPENSE))

    store.add_transaction(
        TransactionCreate(account_id=account.id, type=TxnType.EXPENSE, amount=5, category="Books"),
        PurchaseDetails(),
    )

    assert store.transactions[0].date == store.today()
    assert store.purchases[0].purchase_date == store.today()


def test_add_transaction_unknown_account(store):
    with pytest.raises(NotFoundError):
        store.add_transaction(TransactionCreate(account_id=9999, type=TxnType.INCOME, amount=5, category="Salary"))
    assert store.transactions == ()


def test_expense_with_purchase_details_records_purchase(store):
    account = _open(store, "Card", 500, currency="EUR")
    store.add_category(CategoryCreate(name="Electronics", type=TxnType.EXPENSE, currency="EUR"))

    ref = store.add_transaction(
        TransactionCreate(
            account_id=account.id,
            type=TxnType.EXPENSE,
            amount=120,
            description="Headphones",
            date=date(2024, 6, 10),
            category="Electronics",
        ),
        PurchaseDetails(priority=Priority.HIGH, notes="gift"),
    )

    assert len(store.purchases) == 1
    purchase = store.purchases[0]
    assert purchase.transaction_id == ref.transaction_id
    assert purchase.item_name == "Headphones"
    assert purchase.status == PurchaseStatus.PURCHASED
    assert purchase.currency == "EUR"
    assert purchase.priority == Priority.HIGH
    assert purchase.purchase_date == date(2024, 6, 10)


def test_expense_without_details_skips_purchase(store):
    account = _open(store, "Card", 500)
    store.add_category(CategoryCreate(name="Electronics", type=TxnType.EXPENSE))

    store.add_transaction(
        TransactionCreate(account_id=account.id, type=TxnType.EXPENSE, amount=20, category="Electronics")
    )
    assert store.purchases == ()


def test_update_and_delete_follow_linked_purchase(store):
    account = _open(store, "Card", 500)
    store.add_category(CategoryCreate(name="Electronics", type=TxnType.EXPENSE))
    ref = store.add_transaction(
        TransactionCreate(
            account_id=account.id, type=TxnType.EXPENSE, amount=80, description="Mouse", category="Electronics"
        ),
        PurchaseDetails(),
    )

    updated = store.update_transaction(ref.id, TransactionUpdate(amount=95, description="Gaming mouse"))

    assert updated.amount == 95
    assert store.purchases[0].price == 95
    assert store.purchases[0].item_name == "Gaming mouse"
    assert _balance(store, account.id) == 405

    store.delete_transaction(ref.id)
    assert store.transactions == ()
    assert store.purchases == ()
    assert _balance(store, account.id) == 500


def test_update_transaction_to_unknown_account(store):
    account = _open(store, "Checking", 10)
    ref = store.add_transaction(TransactionCreate(account_id=account.id, type=TxnType.INCOME, amount=5, category="Salary"))

    with pytest.raises(NotFoundError):
        store.update_transaction(ref.id, TransactionUpdate(account_id=9999))
    assert store.transactions[0].account_id == account.id


def test_transfer_moves_money_between_accounts(store):
    source = _open(store, "A", 1000)
    dest = _open(store, "B", 0)

    result = store.transfer(TransferRequest(from_account_id=source.id, to_account_id=dest.id, from_amount=200))

    assert _balance(store, source.id) == 800
    assert _balance(store, dest.id) == 200
    assert result.to_amount == 200

    legs = sorted(store.transactions, key=lambda t: t.type.value)
    expense, income = legs
    assert expense.type == TxnType.EXPENSE and income.type == TxnType.INCOME
    assert expense.transaction_id == income.transaction_id == result.transaction_id
    assert transfer_id_of(expense.tags) == transfer_id_of(income.tags) == result.transfer_id
    assert expense.tags == ["transfer", result.transfer_id, str(dest.id), "200"]
    assert income.tags == ["transfer", result.transfer_id, str(source.id), "200"]
    assert expense.category == income.category == "Transfer"
    assert expense.date == store.today()


def test_transfer_with_exchange_rate(store):
    source = _open(store, "USD acct", 1000, currency="USD")
    dest = _open(store, "EUR acct", 0, currency="EUR")

    result = store.transfer(
        TransferRequest(from_account_id=source.id, to_account_id=dest.id, from_amount=100, exchange_rate=0.9, note="fx")
    )

    assert result.to_amount == pytest.approx(90)
    assert _balance(store, dest.id) == pytest.approx(90)
    assert all(t.description == "fx" for t in store.transactions)


def test_transfers_are_excluded_from_income_and_expenses(store):
    source = _open(store, "A", 1000)
    dest = _open(store, "B", 0)
    store.transfer(TransferRequest(from_account_id=source.id, to_account_id=dest.id, from_amount=300))

    stats = store.dashboard_stats()

    usd = stats.by_currency[0]
    assert usd.total_balance == 1000
    assert usd.monthly_income == 0
    assert usd.monthly_expenses == 0
    assert all(is_transfer(t.tags) for t in store.transactions)


def test_transfer_records_activity(store):
    source = _open(store, "A", 1000)
    dest = _open(store, "B", 0)
    result = store.transfer(TransferRequest(from_account_id=source.id, to_account_id=dest.id, from_amount=10))

    latest = store.fetch_activity(limit=1)[0]
    assert latest.activity_type == "TRANSFER_CREATED"
    assert latest.entity_id == result.transfer_id
    assert latest.changes["new"]["to_amount"] == 10


def test_transfer_rejections_write_nothing(store):
    source = _open(store, "A", 50)
    dest = _open(store, "B", 0)

    with pytest.raises(ValidationFailedError, match="different"):
        store.transfer(TransferRequest(from_account_id=source.id, to_account_id=source.id, from_amount=10))
    with pytest.raises(ValidationFailedError, match="Insufficient funds"):
        store.transfer(TransferRequest(from_account_id=source.id, to_account_id=dest.id, from_amount=51))
    with pytest.raises(NotFoundError, match="Invalid account selection"):
        store.transfer(TransferRequest(from_account_id=source.id, to_account_id=9999, from_amount=1))

    assert store.fetch_transactions() == ()
    assert _balance(store, source.id) == 50


def test_dps_transfer(store):
    account = _open(
        store,
        "Salary",
        500,
        has_dps=True,
        dps_type=DpsType.MONTHLY,
        dps_amount_type=DpsAmountType.FIXED,
        dps_fixed_amount=100,
    )

    result = store.transfer_dps(DpsTransferRequest(from_account_id=account.id, amount=100))

    assert _balance(store, account.id) == 400
    assert _balance(store, account.dps_savings_account_id) == 100
    assert len(store.dps_transfers) == 1
    record = store.dps_transfers[0]
    assert (record.from_account_id, record.to_account_id, record.amount) == (
        account.id,
        account.dps_savings_account_id,
        100,
    )
    assert record.transaction_id == result.transaction_id
    assert all(t.tags == [f"dps_transfer_{result.transfer_id}"] for t in store.transactions)
    assert all(t.category == "DPS" for t in store.transactions)


def test_dps_transfer_requires_dps(store):
    account = _open(store, "Plain", 500)
    with pytest.raises(ValidationFailedError, match="DPS"):
        store.transfer_dps(DpsTransferRequest(from_account_id=account.id, amount=10))
    with pytest.raises(NotFoundError):
        store.transfer_dps(DpsTransferRequest(from_account_id=9999, amount=10))


def test_dps_transfer_insufficient_funds(store):
    account = _open(
        store, "Salary", 5, has_dps=True, dps_type=DpsType.FLEXIBLE, dps_amount_type=DpsAmountType.CUSTOM
    )
    with pytest.raises(ValidationFailedError, match="Insufficient funds"):
        store.transfer_dps(DpsTransferRequest(from_account_id=account.id, amount=10))
    assert store.fetch_dps_transfers() == ()
