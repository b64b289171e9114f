"""booking ledger schema

Revision ID: 0001_booking_ledger
Revises:
Create Date: 2025-10-01 00:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '0001_booking_ledger'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def _enum(name: str, *values: str) -> sa.Enum:
    # Stored as VARCHAR + CHECK, matching native_enum=False on the models
    return sa.Enum(*values, name=name, native_enum=False)


BOOKING_STATUSES = (
    'inquiry', 'vendor_reviewed', 'quote_sent', 'quote_accepted', 'quote_rejected',
    'downpayment_pending', 'downpayment_confirmed', 'final_payment_due',
    'completed', 'cancelled', 'disputed',
)
ACTOR_ROLES = ('client', 'vendor', 'system', 'admin')
PAYMENT_TYPES = ('deposit', 'balance', 'full', 'refund')


def upgrade() -> None:
    op.create_table(
        'vendors',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('legacy_code', sa.String(32), nullable=True),
        sa.Column('profile_id', sa.String(64), nullable=True),
        sa.Column('user_id', sa.String(64), nullable=True),
        sa.Column('business_name', sa.String(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_vendors_legacy_code', 'vendors', ['legacy_code'], unique=True)
    op.create_index('ix_vendors_profile_id', 'vendors', ['profile_id'], unique=True)
    op.create_index('ix_vendors_user_id', 'vendors', ['user_id'])

    op.create_table(
        'services',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('vendor_id', sa.String(32), sa.ForeignKey('vendors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('base_price', sa.BigInteger(), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='PHP'),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_services_vendor_id', 'services', ['vendor_id'])
    op.create_index('ix_services_title', 'services', ['title'])
    op.create_index('ix_services_category', 'services', ['category'])
    op.create_index('ix_services_deleted_at', 'services', ['deleted_at'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('vendor_id', sa.String(32), sa.ForeignKey('vendors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tier', _enum('plantier', 'free', 'basic', 'premium', 'pro', 'enterprise'), nullable=False),
        sa.Column('status', _enum('subscriptionstatus', 'active', 'expired', 'cancelled'), nullable=False),
        sa.Column('starts_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_subscriptions_vendor_id', 'subscriptions', ['vendor_id'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('reference', sa.String(32), nullable=False),
        sa.Column('client_id', sa.String(64), nullable=False),
        sa.Column('vendor_id', sa.String(32), sa.ForeignKey('vendors.id'), nullable=False),
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('event_date', sa.DateTime(), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('guest_count', sa.Integer(), nullable=True),
        sa.Column('status', _enum('bookingstatus', *BOOKING_STATUSES), nullable=False),
        sa.Column('status_reason', sa.Text(), nullable=True),
        sa.Column('status_changed_at', sa.DateTime(), nullable=True),
        sa.Column('last_activity_at', sa.DateTime(), nullable=True),
        sa.Column('quote_sent_at', sa.DateTime(), nullable=True),
        sa.Column('quote_accepted_at', sa.DateTime(), nullable=True),
        sa.Column('downpayment_confirmed_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='PHP'),
        sa.Column('total_amount', sa.BigInteger(), nullable=True),
        sa.Column('total_paid', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('remaining_balance', sa.BigInteger(), nullable=True),
        sa.Column('downpayment_amount', sa.BigInteger(), nullable=True),
        sa.Column('payment_progress', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('vendor_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('vendor_completed_at', sa.DateTime(), nullable=True),
        sa.Column('client_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('client_completed_at', sa.DateTime(), nullable=True),
        sa.Column('completion_notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_bookings_reference', 'bookings', ['reference'], unique=True)
    op.create_index('ix_bookings_client_id', 'bookings', ['client_id'])
    op.create_index('ix_bookings_vendor_id', 'bookings', ['vendor_id'])
    op.create_index('ix_bookings_event_date', 'bookings', ['event_date'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])

    op.create_table(
        'booking_status_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id'), nullable=False),
        sa.Column('kind', sa.String(16), nullable=False),
        sa.Column('from_status', _enum('bookingstatus', *BOOKING_STATUSES), nullable=True),
        sa.Column('to_status', _enum('bookingstatus', *BOOKING_STATUSES), nullable=False),
        sa.Column('actor_role', _enum('actorrole', *ACTOR_ROLES), nullable=False),
        sa.Column('actor_id', sa.String(64), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_booking_status_history_booking_id', 'booking_status_history', ['booking_id'])

    op.create_table(
        'quotes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.String(32), sa.ForeignKey('vendors.id'), nullable=False),
        sa.Column('line_items', sa.JSON(), nullable=False),
        sa.Column('total_amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('status', _enum('quotestatus', 'active', 'superseded', 'accepted', 'rejected'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('superseded_at', sa.DateTime(), nullable=True),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('booking_id', 'version', name='uq_quotes_booking_version'),
    )
    op.create_index('ix_quotes_booking_id', 'quotes', ['booking_id'])
    op.create_index('ix_quotes_status', 'quotes', ['status'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id'), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('payment_method', sa.String(32), nullable=False),
        sa.Column('payment_type', _enum('paymenttype', *PAYMENT_TYPES), nullable=False),
        sa.Column('external_ref', sa.String(200), nullable=False),
        sa.Column('refund_of_id', sa.Integer(), sa.ForeignKey('payments.id'), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_payments_booking_id', 'payments', ['booking_id'])
    op.create_index('ix_payments_external_ref', 'payments', ['external_ref'], unique=True)
    op.create_index('ix_payments_refund_of_id', 'payments', ['refund_of_id'])

    op.create_table(
        'receipts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('receipt_number', sa.String(40), nullable=False),
        sa.Column('payment_id', sa.Integer(), sa.ForeignKey('payments.id'), nullable=False, unique=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id'), nullable=False),
        sa.Column('payment_type', _enum('paymenttype', *PAYMENT_TYPES), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('payment_method', sa.String(32), nullable=False),
        sa.Column('total_paid', sa.BigInteger(), nullable=False),
        sa.Column('remaining_balance', sa.BigInteger(), nullable=True),
        sa.Column('issued_at', sa.DateTime(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_receipts_receipt_number', 'receipts', ['receipt_number'], unique=True)
    op.create_index('ix_receipts_booking_id', 'receipts', ['booking_id'])

    op.create_table(
        'reference_sequences',
        sa.Column('series_key', sa.String(64), primary_key=True),
        sa.Column('current_seq', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table(
        'outbox_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('topic', sa.String(100), nullable=False),
        sa.Column('payload_json', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('delivered_at', sa.DateTime(), nullable=True),
        sa.Column('attempt_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
    )
    op.create_index('ix_outbox_events_topic', 'outbox_events', ['topic'])
    op.create_index('ix_outbox_events_delivered_at', 'outbox_events', ['delivered_at'])


def downgrade() -> None:
    op.drop_table('outbox_events')
    op.drop_table('reference_sequences')
    op.drop_table('receipts')
    op.drop_table('payments')
    op.drop_table('quotes')
    op.drop_table('booking_status_history')
    op.drop_table('bookings')
    op.drop_table('subscriptions')
    op.drop_table('services')
    op.drop_table('vendors')
