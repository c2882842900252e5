"""Creator ledger tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Tables owned by the account, catalog and checkout subsystems
    op.create_table(
        'users',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('status', sa.String(50), nullable=True),
        sa.Column('user_role', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('idx_user_status', 'users', ['status'])
    op.create_index('idx_user_role', 'users', ['user_role'])

    op.create_table(
        'products',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sales_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('seller_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=True),
        sa.Column('seller_role', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_product_seller_id', 'products', ['seller_id'])

    op.create_table(
        'courses',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('instructor_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_course_instructor_id', 'courses', ['instructor_id'])

    op.create_table(
        'orders',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('buyer_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_order_buyer_id', 'orders', ['buyer_id'])
    op.create_index('idx_order_status', 'orders', ['status'])

    op.create_table(
        'order_items',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.uuid'), nullable=False),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.uuid'), nullable=True),
        sa.Column('course_id', sa.String(36), sa.ForeignKey('courses.uuid'), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
    )
    op.create_index('idx_order_item_order_id', 'order_items', ['order_id'])

    op.create_table(
        'payout_accounts',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('account_name', sa.String(255), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_payout_account_user_id', 'payout_accounts', ['user_id'])

    # Ledger tables
    op.create_table(
        'creator_earning_events',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('creator_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False),
        sa.Column('creator_role', sa.String(50), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('source_type', sa.String(50), nullable=False),
        sa.Column('source_id', sa.String(36), nullable=False),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.uuid'), nullable=True),
        sa.Column('gross_amount_cents', sa.Integer(), nullable=False),
        sa.Column('platform_commission_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('creator_amount_cents', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='USD'),
        sa.Column('status', sa.String(50), nullable=False, server_default='pending'),
        sa.Column('payout_request_id', sa.String(36), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('event_date', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('order_id', 'source_id', 'event_type', name='uniq_earning_order_source'),
    )
    op.create_index('idx_earning_events_creator', 'creator_earning_events', ['creator_id'])
    op.create_index('idx_earning_events_status', 'creator_earning_events', ['status'])
    op.create_index('idx_earning_events_date', 'creator_earning_events', ['event_date'])

    op.create_table(
        'creator_balances',
        sa.Column('creator_id', sa.String(36), sa.ForeignKey('users.uuid'), primary_key=True),
        sa.Column('available_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pending_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lifetime_earnings_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_withdrawn_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_payout_date', sa.DateTime(), nullable=True),
        sa.Column('next_payout_date', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'creator_payout_requests',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('creator_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False),
        sa.Column('amount_requested_cents', sa.Integer(), nullable=False),
        sa.Column('amount_approved_cents', sa.Integer(), nullable=True),
        sa.Column('payout_method', sa.String(50), nullable=False),
        sa.Column('payout_account_id', sa.String(36), sa.ForeignKey('payout_accounts.uuid'), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='awaiting_admin'),
        sa.Column('is_auto_generated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('settlement_date', sa.String(10), nullable=True),
        sa.Column('payment_reference', sa.String(255), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('processed_by', sa.String(36), sa.ForeignKey('users.uuid'), nullable=True),
        sa.Column('requested_at', sa.DateTime(), nullable=False),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('finalized_at', sa.DateTime(), nullable=True),
        sa.Column('payout_date', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_payout_requests_creator', 'creator_payout_requests', ['creator_id'])
    op.create_index('idx_payout_requests_status', 'creator_payout_requests', ['status'])
    op.create_index(
        'idx_payout_requests_auto', 'creator_payout_requests',
        ['creator_id', 'is_auto_generated', 'settlement_date'],
    )

    op.create_table(
        'settlement_runs',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('settlement_date', sa.String(10), nullable=False, unique=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='running'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('creators_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('creators_failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('auto_payouts_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_pending_moved_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed_creators', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('run_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
    )
    op.create_index('idx_settlement_runs_status', 'settlement_runs', ['status'])

    op.create_table(
        'product_download_stats',
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.uuid', ondelete='CASCADE'), primary_key=True),
        sa.Column('total_downloads', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('free_downloads', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('paid_downloads', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('subscription_downloads', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_milestone_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('downloads_this_week', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('downloads_this_month', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_download_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'product_download_events',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.uuid', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.uuid'), nullable=False),
        sa.Column('download_type', sa.String(50), nullable=False),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.uuid'), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.String(512), nullable=True),
        sa.Column('downloaded_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_download_events_product', 'product_download_events', ['product_id'])
    op.create_index('idx_download_events_user', 'product_download_events', ['user_id'])
    op.create_index('idx_download_events_date', 'product_download_events', ['downloaded_at'])

    op.create_table(
        'admin_notifications',
        sa.Column('uuid', sa.String(36), primary_key=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('related_id', sa.String(36), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_by', sa.String(36), sa.ForeignKey('users.uuid'), nullable=True),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_admin_notifications_type', 'admin_notifications', ['type'])
    op.create_index('idx_admin_notifications_is_read', 'admin_notifications', ['is_read'])


def downgrade():
    op.drop_table('admin_notifications')
    op.drop_table('product_download_events')
    op.drop_table('product_download_stats')
    op.drop_table('settlement_runs')
    op.drop_table('creator_payout_requests')
    op.drop_table('creator_balances')
    op.drop_table('creator_earning_events')
    op.drop_table('payout_accounts')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('courses')
    op.drop_table('products')
    op.drop_table('users')
