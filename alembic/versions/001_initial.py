"""Initial migration

Revision ID: 001
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_STATUSES = ('pending', 'confirmed', 'seated', 'preparing', 'ready')


def upgrade() -> None:
    # Needed for "table_id WITH =" inside a GiST exclusion constraint
    op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')

    # Create dining_tables table
    op.create_table(
        'dining_tables',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('position_x', sa.Float(), server_default='0'),
        sa.Column('position_y', sa.Float(), server_default='0'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )

    # Create menu_items table
    op.create_table(
        'menu_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(100)),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('is_available', sa.Boolean(), server_default=sa.true()),
        sa.Column('option_groups', postgresql.JSON(), server_default='[]'),
        sa.Column('sort_order', sa.Integer(), server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )

    # Create promotions table
    op.create_table(
        'promotions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('code', sa.String(50), unique=True, nullable=False),
        sa.Column('discount_type', sa.String(20), nullable=False),
        sa.Column('discount_value', sa.Integer(), nullable=False),
        sa.Column('min_subtotal', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('channels', postgresql.JSON(), server_default='["dine_in", "pickup"]'),
        sa.Column('starts_at', sa.DateTime(timezone=True)),
        sa.Column('ends_at', sa.DateTime(timezone=True)),
        sa.Column('usage_limit', sa.Integer()),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("discount_type IN ('percent', 'fixed')", name='ck_promotions_discount_type'),
        sa.CheckConstraint('discount_value >= 0', name='ck_promotions_discount_value'),
    )

    # Create blocked_dates table
    op.create_table(
        'blocked_dates',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('date', sa.Date(), unique=True, nullable=False),
        sa.Column('reason', sa.String(255)),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )

    # Create reservations table
    op.create_table(
        'reservations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('channel', sa.String(20), nullable=False),
        sa.Column('table_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('dining_tables.id')),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=True)),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('party_size', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('subtotal', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('promotion_code', sa.String(50)),
        sa.Column('customer_id', sa.String(255)),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(32), nullable=False),
        sa.Column('customer_email', sa.String(255)),
        sa.Column('customer_note', sa.Text()),
        sa.Column('proof_reference', sa.String(500)),
        sa.Column('tracking_token', sa.String(64), unique=True, nullable=False),
        sa.Column('token_expires_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("channel IN ('dine_in', 'pickup')", name='ck_reservations_channel'),
        sa.CheckConstraint('discount >= 0 AND discount <= subtotal', name='ck_reservations_discount'),
        sa.CheckConstraint('total = subtotal - discount', name='ck_reservations_total'),
    )

    # Two active bookings can never hold the same table over overlapping [start, end)
    active = ', '.join(f"'{status}'" for status in ACTIVE_STATUSES)
    op.execute(
        'ALTER TABLE reservations ADD CONSTRAINT ex_reservations_table_overlap '
        'EXCLUDE USING gist ('
        "table_id WITH =, tstzrange(start_at, end_at, '[)') WITH &&"
        f') WHERE (table_id IS NOT NULL AND status IN ({active}))'
    )

    # Create order_lines table
    op.create_table(
        'order_lines',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('reservation_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('reservations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('menu_item_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('menu_items.id')),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('selected_options', postgresql.JSON(), server_default='{}'),
        sa.CheckConstraint('quantity >= 1', name='ck_order_lines_quantity'),
    )

    # Create indexes
    op.create_index('ix_reservations_table_start', 'reservations', ['table_id', 'start_at'])
    op.create_index('ix_reservations_status_start', 'reservations', ['status', 'start_at'])
    op.create_index('ix_reservations_customer_id', 'reservations', ['customer_id'])
    op.create_index('ix_order_lines_reservation_id', 'order_lines', ['reservation_id'])


def downgrade() -> None:
    op.drop_table('order_lines')
    op.drop_table('reservations')
    op.drop_table('blocked_dates')
    op.drop_table('promotions')
    op.drop_table('menu_items')
    op.drop_table('dining_tables')
