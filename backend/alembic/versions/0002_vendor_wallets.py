"""vendor wallets credited on booking completion

Revision ID: 0002_vendor_wallets
Revises: 0001_booking_ledger
Create Date: 2025-10-20 00:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '0002_vendor_wallets'
down_revision: Union[str, None] = '0001_booking_ledger'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'vendor_wallets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('vendor_id', sa.String(32), sa.ForeignKey('vendors.id'), nullable=False, unique=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='PHP'),
        sa.Column('total_earnings', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('available_balance', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('pending_balance', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('withdrawn_amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_vendor_wallets_id', 'vendor_wallets', ['id'])

    op.create_table(
        'wallet_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('transaction_id', sa.String(64), nullable=False),
        sa.Column('wallet_id', sa.Integer(), sa.ForeignKey('vendor_wallets.id'), nullable=False),
        sa.Column('vendor_id', sa.String(32), sa.ForeignKey('vendors.id'), nullable=False),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id'), nullable=False),
        sa.Column(
            'transaction_type',
            sa.Enum('earning', 'refund_debit', name='wallettransactiontype', native_enum=False),
            nullable=False,
        ),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='completed'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('payment_method', sa.String(200), nullable=True),
        sa.Column('payment_reference', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_wallet_transactions_id', 'wallet_transactions', ['id'])
    op.create_index(
        'ix_wallet_transactions_transaction_id', 'wallet_transactions', ['transaction_id'], unique=True
    )
    op.create_index('ix_wallet_transactions_wallet_id', 'wallet_transactions', ['wallet_id'])
    op.create_index('ix_wallet_transactions_vendor_id', 'wallet_transactions', ['vendor_id'])
    op.create_index('ix_wallet_transactions_booking_id', 'wallet_transactions', ['booking_id'])


def downgrade() -> None:
    op.drop_table('wallet_transactions')
    op.drop_table('vendor_wallets')
