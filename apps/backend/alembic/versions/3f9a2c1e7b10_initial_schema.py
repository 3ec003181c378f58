"""
Initial ledger schema

Revision ID: 3f9a2c1e7b10
Revises:
Create Date: 2025-11-20 10:00:00
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3f9a2c1e7b10'
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(18, 4, asdecimal=False)

account_type = sa.Enum('checking', 'savings', 'credit', 'investment', 'cash', name='account_type')
dps_type = sa.Enum('monthly', 'flexible', name='dps_type')
dps_amount_type = sa.Enum('fixed', 'custom', name='dps_amount_type')
txn_type = sa.Enum('income', 'expense', name='txn_type')
category_type = sa.Enum('income', 'expense', name='category_type')
purchase_status = sa.Enum('planned', 'purchased', 'cancelled', name='purchase_status')
purchase_priority = sa.Enum('low', 'medium', 'high', name='purchase_priority')
lend_borrow_type = sa.Enum('lend', 'borrow', name='lend_borrow_type')
lend_borrow_status = sa.Enum('active', 'settled', 'overdue', name='lend_borrow_status')
donation_saving_type = sa.Enum('saving', 'donation', name='donation_saving_type')
donation_saving_mode = sa.Enum('fixed', 'percent', name='donation_saving_mode')
donation_saving_status = sa.Enum('pending', 'donated', name='donation_saving_status')

ENUMS = (
    account_type,
    dps_type,
    dps_amount_type,
    txn_type,
    category_type,
    purchase_status,
    purchase_priority,
    lend_borrow_type,
    lend_borrow_status,
    donation_saving_type,
    donation_saving_mode,
    donation_saving_status,
)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
    ]


def _owner():
    return sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False, unique=True),
        sa.Column('full_name', sa.String(length=100), nullable=True),
        sa.Column('local_currency', sa.String(length=3), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
        sqlite_autoincrement=True,
    )

    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('type', account_type, nullable=False),
        sa.Column('initial_balance', MONEY, nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('has_dps', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('dps_type', dps_type, nullable=True),
        sa.Column('dps_amount_type', dps_amount_type, nullable=True),
        sa.Column('dps_fixed_amount', MONEY, nullable=True),
        sa.Column(
            'dps_savings_account_id',
            sa.Integer(),
            sa.ForeignKey('accounts.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('donation_preference', MONEY, nullable=True),
        sa.Column('transaction_id', sa.String(length=16), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            'dps_savings_account_id IS NULL OR dps_savings_account_id != id',
            name='ck_account_dps_not_self',
        ),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_accounts_user', 'accounts', ['user_id'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', txn_type, nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('recurring_frequency', sa.String(length=20), nullable=True),
        sa.Column('saving_amount', MONEY, nullable=True),
        sa.Column('donation_amount', MONEY, nullable=True),
        sa.Column('transaction_id', sa.String(length=16), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='ck_transaction_amount_positive'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_transactions_user_date', 'transactions', ['user_id', 'date'])
    op.create_index('ix_transactions_account', 'transactions', ['account_id'])
    op.create_index('ix_transactions_txn_id', 'transactions', ['transaction_id'])

    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('type', category_type, nullable=False),
        sa.Column('color', sa.String(length=16), nullable=False, server_default='#3B82F6'),
        sa.Column('icon', sa.String(length=50), nullable=False, server_default='Tag'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=True),
        *_timestamps(),
        sqlite_autoincrement=True,
    )

    op.create_table(
        'purchases',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column('item_name', sa.String(length=200), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('price', MONEY, nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('purchase_date', sa.Date(), nullable=False),
        sa.Column('status', purchase_status, nullable=False, server_default='planned'),
        sa.Column('priority', purchase_priority, nullable=False, server_default='medium'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('transaction_id', sa.String(length=16), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('price >= 0', name='ck_purchase_price_non_negative'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_purchases_txn_id', 'purchases', ['transaction_id'])

    op.create_table(
        'purchase_categories',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column('category_name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('monthly_budget', MONEY, nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('category_color', sa.String(length=16), nullable=False, server_default='#3B82F6'),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        *_timestamps(),
        sqlite_autoincrement=True,
    )

    op.create_table(
        'lend_borrow',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column('type', lend_borrow_type, nullable=False),
        sa.Column('person_name', sa.String(length=120), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', lend_borrow_status, nullable=False, server_default='active'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='ck_lend_borrow_amount_positive'),
        sqlite_autoincrement=True,
    )

    op.create_table(
        'lend_borrow_returns',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column(
            'lend_borrow_id',
            sa.Integer(),
            sa.ForeignKey('lend_borrow.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('return_date', sa.Date(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='ck_lend_borrow_return_amount_positive'),
        sqlite_autoincrement=True,
    )

    op.create_table(
        'donation_saving_records',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column('transaction_id', sa.String(length=16), nullable=True),
        sa.Column('custom_transaction_id', sa.String(length=32), nullable=True),
        sa.Column('type', donation_saving_type, nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('mode', donation_saving_mode, nullable=False),
        sa.Column('mode_value', MONEY, nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('status', donation_saving_status, nullable=False, server_default='pending'),
        *_timestamps(),
        sqlite_autoincrement=True,
    )

    op.create_table(
        'savings_goals',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('target_amount', MONEY, nullable=False),
        sa.Column('current_amount', MONEY, nullable=False, server_default='0'),
        sa.Column(
            'source_account_id',
            sa.Integer(),
            sa.ForeignKey('accounts.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column(
            'savings_account_id',
            sa.Integer(),
            sa.ForeignKey('accounts.id', ondelete='SET NULL'),
            nullable=True,
        ),
        *_timestamps(),
        sqlite_autoincrement=True,
    )

    op.create_table(
        'dps_transfers',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column('from_account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('to_account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('transaction_id', sa.String(length=16), nullable=True),
        *_timestamps(),
        sqlite_autoincrement=True,
    )

    op.create_table(
        'activity_history',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column('activity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('changes', sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        *_timestamps(),
        sqlite_autoincrement=True,
    )


def downgrade() -> None:
    for table in (
        'activity_history',
        'dps_transfers',
        'savings_goals',
        'donation_saving_records',
        'lend_borrow_returns',
        'lend_borrow',
        'purchase_categories',
        'purchases',
        'categories',
        'transactions',
        'accounts',
        'users',
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum in ENUMS:
        enum.drop(bind, checkfirst=True)
