import pytest

from ledgerly.errors import NotFoundError
from ledgerly.models import AccountType, DpsAmountType, DpsType, TxnType
from ledgerly.schemas import AccountCreate, AccountUpdate, DpsTransferRequest, TransactionCreate
from ledgerly.services.transaction_ids import is_valid_transaction_id


def _dps_account(store, name="Salary", initial=1000, **extra):
    return store.add_account(
        AccountCreate(
            name=name,
            type=AccountType.CHECKING,
            initial_balance=initial,
            currency="USD",
            has_dps=True,
            dps_type=DpsType.MONTHLY,
            dps_amount_type=DpsAmountType.FIXED,
            dps_fixed_amount=100,
            **extra,
        )
    )


def test_first_account_also_creates_cash_wallet(store):
    account = store.add_account(
        AccountCreate(name="Checking", type=AccountType.CHECKING, initial_balance=1000, currency="usd")
    )

    assert account.currency == "USD"
    assert account.calculated_balance == 1000
    assert is_valid_transaction_id(account.transaction_id)
    names = {a.name: a for a in store.accounts}
    assert set(names) == {"Checking", "Cash Wallet"}
    assert names["Cash Wallet"].type == AccountType.CASH
    assert names["Cash Wallet"].currency == "USD"

    activity = store.fetch_activity()
    assert [a.activity_type for a in activity] == ["ACCOUNT_CREATED", "ACCOUNT_CREATED"]
    assert {a.entity_id for a in activity} == {str(a.id) for a in store.accounts}


def test_no_cash_wallet_when_cash_exists_or_account_is_cash(store):
    store.add_account(AccountCreate(name="Wallet", type=AccountType.CASH, currency="EUR"))
    assert [a.name for a in store.accounts] == ["Wallet"]

    store.add_account(AccountCreate(name="Checking", type=AccountType.CHECKING, currency="EUR"))
    assert sorted(a.name for a in store.accounts) == ["Checking", "Wallet"]


def test_dps_account_is_created_and_linked(store):
    account = _dps_account(store, dps_initial_balance=250)

    assert account.has_dps
    assert account.dps_savings_account_id is not None
    dps = next(a for a in store.accounts if a.id == account.dps_savings_account_id)
    assert dps.name == "Salary (DPS)"
    assert dps.type == AccountType.SAVINGS
    assert dps.calculated_balance == 250
    # Opening balance of the DPS account never lands on the owner
    assert account.initial_balance == 1000


def test_dps_fields_are_cleared_when_dps_is_off(store):
    account = store.add_account(
        AccountCreate(
            name="Plain",
            type=AccountType.CHECKING,
            currency="USD",
            dps_type=DpsType.MONTHLY,
            dps_fixed_amount=50,
        )
    )
    assert account.dps_type is None
    assert account.dps_fixed_amount is None
    assert account.dps_savings_account_id is None


def test_fixed_amount_dropped_for_custom_dps(store):
    account = store.add_account(
        AccountCreate(
            name="Flexible",
            type=AccountType.CHECKING,
            currency="USD",
            has_dps=True,
            dps_type=DpsType.FLEXIBLE,
            dps_amount_type=DpsAmountType.CUSTOM,
            dps_fixed_amount=75,
        )
    )
    assert account.dps_amount_type == DpsAmountType.CUSTOM
    assert account.dps_fixed_amount is None


def test_partial_update_keeps_dps_settings(store):
    account = _dps_account(store)

    updated = store.update_account(account.id, AccountUpdate(name="Salary Main", description="Payroll"))

    assert updated.name == "Salary Main"
    assert updated.has_dps
    assert updated.dps_fixed_amount == 100
    assert updated.dps_savings_account_id == account.dps_savings_account_id


def test_enabling_dps_on_update_creates_savings_account(store):
    account = store.add_account(AccountCreate(name="Checking", type=AccountType.CHECKING, currency="USD"))

    updated = store.update_account(
        account.id,
        AccountUpdate(has_dps=True, dps_type=DpsType.MONTHLY, dps_amount_type=DpsAmountType.FIXED, dps_fixed_amount=20),
    )

    assert updated.has_dps
    dps = next(a for a in store.accounts if a.id == updated.dps_savings_account_id)
    assert dps.name == "Checking (DPS)"


def test_reenabling_dps_resets_linked_account(store):
    account = _dps_account(store)
    store.transfer_dps(DpsTransferRequest(from_account_id=account.id, amount=100))
    dps_id = account.dps_savings_account_id

    disabled = store.update_account(account.id, AccountUpdate(has_dps=False))
    assert not disabled.has_dps
    assert disabled.dps_type is None

    enabled = store.update_account(
        account.id,
        AccountUpdate(
            has_dps=True,
            dps_type=DpsType.FLEXIBLE,
            dps_amount_type=DpsAmountType.CUSTOM,
            dps_initial_balance=50,
        ),
    )

    assert enabled.dps_savings_account_id == dps_id
    dps = next(a for a in store.accounts if a.id == dps_id)
    assert dps.calculated_balance == 50
    assert store.transactions_by_account(dps_id) == []


def test_delete_account_cascades(store):
    account = store.add_account(AccountCreate(name="Checking", type=AccountType.CHECKING, currency="USD"))
    store.add_transaction(
        TransactionCreate(account_id=account.id, type=TxnType.INCOME, amount=10, category="Salary")
    )
    assert store.transactions_by_account(account.id)

    store.delete_account(account.id)

    assert all(a.id != account.id for a in store.accounts)
    assert store.transactions_by_account(account.id) == []


def test_deleting_dps_account_unlinks_owner(store):
    account = _dps_account(store)
    store.transfer_dps(DpsTransferRequest(from_account_id=account.id, amount=100))
    assert len(store.dps_transfers) == 1

    store.delete_account(account.dps_savings_account_id)

    owner = next(a for a in store.accounts if a.id == account.id)
    assert owner.dps_savings_account_id is None
    assert store.fetch_dps_transfers() == ()


def test_missing_account_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.update_account(9999, AccountUpdate(name="Ghost"))
    assert store.error == "Account 9999 not found"

    with pytest.raises(NotFoundError):
        store.delete_account(9999)


def test_active_accounts_filter(store):
    account = store.add_account(AccountCreate(name="Old", type=AccountType.CHECKING, currency="USD"))
    store.update_account(account.id, AccountUpdate(is_active=False))

    assert [a.name for a in store.active_accounts()] == ["Cash Wallet"]
