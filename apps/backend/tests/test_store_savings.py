import pytest

from ledgerly.errors import NotFoundError, ValidationFailedError
from ledgerly.models import AccountType, DonationSavingMode, DonationSavingStatus, DonationSavingType
from ledgerly.schemas import (
    AccountCreate,
    DonationSavingRecordCreate,
    DonationSavingRecordUpdate,
    SavingsGoalCreate,
    SavingsGoalUpdate,
)
from ledgerly.services.transaction_ids import is_transfer


def _source(store, initial=1000, currency="GBP"):
    return store.add_account(
        AccountCreate(name="Checking", type=AccountType.CHECKING, initial_balance=initial, currency=currency)
    )


def _balance(store, account_id):
    return next(a.calculated_balance for a in store.accounts if a.id == account_id)


def test_create_savings_goal_opens_savings_account(store):
    source = _source(store)

    goal = store.create_savings_goal(
        SavingsGoalCreate(name="Holiday", target_amount=2000, source_account_id=source.id, description="Japan")
    )

    assert goal.current_amount == 0
    assert goal.source_account_id == source.id
    account = next(a for a in store.accounts if a.id == goal.savings_account_id)
    assert account.name == "Holiday (Savings)"
    assert account.type == AccountType.SAVINGS
    assert account.currency == "GBP"
    assert [g.id for g in store.savings_goals] == [goal.id]


def test_create_goal_for_unknown_source(store):
    with pytest.raises(NotFoundError):
        store.create_savings_goal(SavingsGoalCreate(name="Car", target_amount=10, source_account_id=9999))
    assert store.fetch_accounts() == ()


def test_save_to_goal_moves_money(store):
    source = _source(store)
    goal = store.create_savings_goal(SavingsGoalCreate(name="Holiday", target_amount=2000, source_account_id=source.id))

    goal = store.save_to_savings_goal(goal.id, 250)
    goal = store.save_to_savings_goal(goal.id, 50)

    assert goal.current_amount == 300
    assert _balance(store, source.id) == 700
    assert _balance(store, goal.savings_account_id) == 300
    assert len(store.transactions) == 4
    assert all(is_transfer(t.tags) and t.tags[-1] == "savings" for t in store.transactions)


def test_save_to_goal_rejections(store):
    source = _source(store, initial=100)
    goal = store.create_savings_goal(SavingsGoalCreate(name="Bike", target_amount=500, source_account_id=source.id))

    with pytest.raises(ValidationFailedError, match="Insufficient funds"):
        store.save_to_savings_goal(goal.id, 150)
    with pytest.raises(ValidationFailedError):
        store.save_to_savings_goal(goal.id, 0)
    with pytest.raises(NotFoundError):
        store.save_to_savings_goal(9999, 10)

    assert store.fetch_savings_goals()[0].current_amount == 0


def test_update_and_delete_goal(store):
    source = _source(store)
    goal = store.create_savings_goal(SavingsGoalCreate(name="Bike", target_amount=500, source_account_id=source.id))

    updated = store.update_savings_goal(goal.id, SavingsGoalUpdate(target_amount=800))
    assert updated.target_amount == 800
    with pytest.raises(NotFoundError):
        store.update_savings_goal(goal.id, SavingsGoalUpdate(source_account_id=9999))

    store.delete_savings_goal(goal.id)
    assert store.savings_goals == ()
    # The dedicated account outlives the goal
    assert any(a.id == goal.savings_account_id for a in store.fetch_accounts())


def test_donation_saving_records(store):
    saving = store.add_donation_saving_record(
        DonationSavingRecordCreate(type=DonationSavingType.SAVING, amount=100, transaction_id="F0000001")
    )
    donation = store.add_donation_saving_record(
        DonationSavingRecordCreate(
            type=DonationSavingType.DONATION,
            amount=25,
            mode=DonationSavingMode.PERCENT,
            mode_value=5,
            note="charity",
        )
    )

    assert saving.status == DonationSavingStatus.PENDING
    assert [r.id for r in store.donation_saving_records_by_type(DonationSavingType.DONATION)] == [donation.id]
    month = saving.created_at.strftime("%Y-%m")
    assert {r.id for r in store.donation_saving_records_by_month(month)} == {saving.id, donation.id}
    assert store.donation_saving_records_by_month("1999-01") == []

    updated = store.update_donation_saving_record(
        donation.id, DonationSavingRecordUpdate(status=DonationSavingStatus.DONATED)
    )
    assert updated.status == DonationSavingStatus.DONATED

    summary = store.donation_saving_analytics()
    assert summary.total_saved == 100
    assert summary.total_donated == 25
    assert summary.top_month == month

    store.delete_donation_saving_record(saving.id)
    assert [r.id for r in store.donation_saving_records] == [donation.id]
    with pytest.raises(NotFoundError):
        store.delete_donation_saving_record(saving.id)
