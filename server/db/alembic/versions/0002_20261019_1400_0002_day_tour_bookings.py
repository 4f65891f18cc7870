"""Day tour bookings

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19 14:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: str | None = '0001'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

UUID = postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    """Upgrade database schema."""
    op.add_column('tenants', sa.Column(
        'day_tour_rate_adult', sa.Numeric(precision=12, scale=2), server_default='0', nullable=False
    ))
    op.add_column('tenants', sa.Column(
        'day_tour_rate_child', sa.Numeric(precision=12, scale=2), server_default='0', nullable=False
    ))
    op.add_column('tenants', sa.Column('day_tour_capacity', sa.Integer(), server_default='50', nullable=False))

    # Create day_tour_bookings table
    op.create_table('day_tour_bookings',
        sa.Column('id', UUID, server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('tenant_id', UUID, nullable=False),
        sa.Column('reference_number', sa.String(length=32), nullable=False),
        sa.Column('guest_id', UUID, nullable=True),
        sa.Column('guest_name', sa.String(length=255), nullable=False),
        sa.Column('guest_email', sa.String(length=255), nullable=False),
        sa.Column('guest_phone', sa.String(length=50), nullable=True),
        sa.Column('tour_date', sa.Date(), nullable=False),
        sa.Column('num_adults', sa.Integer(), nullable=False),
        sa.Column('num_children', sa.Integer(), server_default='0', nullable=False),
        sa.Column('base_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('addons_amount', sa.Numeric(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('voucher_id', UUID, nullable=True),
        sa.Column('voucher_code', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        sa.Column('payment_status', sa.String(length=30), server_default='unpaid', nullable=False),
        sa.Column('source', sa.String(length=20), server_default='online', nullable=False),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('num_adults >= 1', name='ck_day_tour_adults_positive'),
        sa.CheckConstraint('num_children >= 0', name='ck_day_tour_children_non_negative'),
        sa.CheckConstraint('total_amount >= 0', name='ck_day_tour_total_non_negative'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['guest_id'], ['guests.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['voucher_id'], ['vouchers.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'reference_number', name='uq_day_tour_tenant_reference')
    )
    op.create_index(op.f('ix_day_tour_bookings_tenant_id'), 'day_tour_bookings', ['tenant_id'], unique=False)
    op.create_index(
        op.f('ix_day_tour_bookings_reference_number'), 'day_tour_bookings', ['reference_number'], unique=False
    )
    op.create_index(op.f('ix_day_tour_bookings_guest_id'), 'day_tour_bookings', ['guest_id'], unique=False)
    op.create_index(op.f('ix_day_tour_bookings_tour_date'), 'day_tour_bookings', ['tour_date'], unique=False)
    op.create_index(op.f('ix_day_tour_bookings_status'), 'day_tour_bookings', ['status'], unique=False)

    # Create day_tour_booking_addons table
    op.create_table('day_tour_booking_addons',
        sa.Column('id', UUID, server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('booking_id', UUID, nullable=False),
        sa.Column('addon_id', UUID, nullable=False),
        sa.Column('addon_name', sa.String(length=255), nullable=False),
        sa.Column('pricing_model', sa.String(length=20), nullable=False),
        sa.Column('requested_quantity', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['day_tour_bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['addon_id'], ['addons.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        op.f('ix_day_tour_booking_addons_booking_id'), 'day_tour_booking_addons', ['booking_id'], unique=False
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('day_tour_booking_addons')
    op.drop_table('day_tour_bookings')
    op.drop_column('tenants', 'day_tour_capacity')
    op.drop_column('tenants', 'day_tour_rate_child')
    op.drop_column('tenants', 'day_tour_rate_adult')
