"""Initial resort booking schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

UUID = postgresql.UUID(as_uuid=True)


def _id() -> sa.Column:
    return sa.Column('id', UUID, server_default=sa.text('gen_random_uuid()'), nullable=False)


def _tenant_id() -> sa.Column:
    return sa.Column('tenant_id', UUID, nullable=False)


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)


def upgrade() -> None:
    """Upgrade database schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')

    # Create tenants table
    op.create_table('tenants',
        _id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('notification_email', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )
    op.create_index(op.f('ix_tenants_slug'), 'tenants', ['slug'], unique=False)

    # Create accommodation_types table
    op.create_table('accommodation_types',
        _id(),
        _tenant_id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('base_rate_weekday', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('base_rate_weekend', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('base_pax', sa.Integer(), server_default='2', nullable=False),
        sa.Column('max_pax', sa.Integer(), server_default='2', nullable=False),
        sa.Column('additional_pax_fee', sa.Numeric(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint('base_pax >= 1', name='ck_accommodation_type_base_pax_positive'),
        sa.CheckConstraint('base_pax <= max_pax', name='ck_accommodation_type_base_pax_lte_max'),
        sa.CheckConstraint('base_rate_weekday >= 0', name='ck_accommodation_type_weekday_rate_non_negative'),
        sa.CheckConstraint('base_rate_weekend >= 0', name='ck_accommodation_type_weekend_rate_non_negative'),
        sa.CheckConstraint('additional_pax_fee >= 0', name='ck_accommodation_type_pax_fee_non_negative'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_accommodation_types_tenant_id'), 'accommodation_types', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_accommodation_types_is_active'), 'accommodation_types', ['is_active'], unique=False)

    # Create rooms table
    op.create_table('rooms',
        _id(),
        _tenant_id(),
        sa.Column('accommodation_type_id', UUID, nullable=False),
        sa.Column('room_number', sa.String(length=50), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['accommodation_type_id'], ['accommodation_types.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'room_number', name='uq_room_tenant_number')
    )
    op.create_index(op.f('ix_rooms_tenant_id'), 'rooms', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_rooms_accommodation_type_id'), 'rooms', ['accommodation_type_id'], unique=False)
    op.create_index(op.f('ix_rooms_is_active'), 'rooms', ['is_active'], unique=False)

    # Create rate_adjustments table
    op.create_table('rate_adjustments',
        _id(),
        _tenant_id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('adjustment_type', sa.String(length=30), nullable=False),
        sa.Column('adjustment_value', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('applies_to', sa.String(length=20), server_default='all', nullable=False),
        sa.Column('accommodation_type_ids', sa.JSON(), server_default='[]', nullable=False),
        sa.Column('priority', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        _created_at(),
        sa.CheckConstraint('start_date <= end_date', name='ck_rate_adjustment_date_order'),
        sa.CheckConstraint('adjustment_value >= 0', name='ck_rate_adjustment_value_non_negative'),
        sa.CheckConstraint(
            "adjustment_type IN ('percentage_discount', 'percentage_surcharge', 'fixed_override')",
            name='ck_rate_adjustment_type'
        ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_rate_adjustments_tenant_id'), 'rate_adjustments', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_rate_adjustments_start_date'), 'rate_adjustments', ['start_date'], unique=False)
    op.create_index(op.f('ix_rate_adjustments_end_date'), 'rate_adjustments', ['end_date'], unique=False)
    op.create_index(op.f('ix_rate_adjustments_is_active'), 'rate_adjustments', ['is_active'], unique=False)

    # Create addons table
    op.create_table('addons',
        _id(),
        _tenant_id(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('pricing_model', sa.String(length=20), server_default='per_booking', nullable=False),
        sa.Column('applies_to', sa.String(length=20), server_default='both', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        _created_at(),
        sa.CheckConstraint('price >= 0', name='ck_addon_price_non_negative'),
        sa.CheckConstraint("pricing_model IN ('per_booking', 'per_person')", name='ck_addon_pricing_model'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_addons_tenant_id'), 'addons', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_addons_is_active'), 'addons', ['is_active'], unique=False)

    # Create vouchers table
    op.create_table('vouchers',
        _id(),
        _tenant_id(),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_type', sa.String(length=20), nullable=False),
        sa.Column('discount_value', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('max_discount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('min_booking_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('valid_from', sa.Date(), nullable=True),
        sa.Column('valid_until', sa.Date(), nullable=True),
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('times_used', sa.Integer(), server_default='0', nullable=False),
        sa.Column('applies_to', sa.String(length=20), server_default='both', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        _created_at(),
        sa.CheckConstraint('discount_value >= 0', name='ck_voucher_discount_value_non_negative'),
        sa.CheckConstraint('times_used >= 0', name='ck_voucher_times_used_non_negative'),
        sa.CheckConstraint('usage_limit IS NULL OR usage_limit >= 0', name='ck_voucher_usage_limit_non_negative'),
        sa.CheckConstraint('code = upper(code)', name='ck_voucher_code_upper'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'code', name='uq_voucher_tenant_code')
    )
    op.create_index(op.f('ix_vouchers_tenant_id'), 'vouchers', ['tenant_id'], unique=False)

    # Create guests table
    op.create_table('guests',
        _id(),
        _tenant_id(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('total_bookings', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_spent', sa.Numeric(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('first_visit', sa.Date(), nullable=True),
        sa.Column('last_visit', sa.Date(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_guest_tenant_email')
    )
    op.create_index(op.f('ix_guests_tenant_id'), 'guests', ['tenant_id'], unique=False)

    # Create booking_groups table
    op.create_table('booking_groups',
        _id(),
        _tenant_id(),
        sa.Column('reference_number', sa.String(length=32), nullable=False),
        sa.Column('guest_name', sa.String(length=255), nullable=False),
        sa.Column('guest_email', sa.String(length=255), nullable=False),
        sa.Column('guest_phone', sa.String(length=50), nullable=True),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('voucher_code', sa.String(length=50), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'reference_number', name='uq_booking_group_tenant_reference')
    )
    op.create_index(op.f('ix_booking_groups_tenant_id'), 'booking_groups', ['tenant_id'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        _id(),
        _tenant_id(),
        sa.Column('reference_number', sa.String(length=32), nullable=False),
        sa.Column('group_id', UUID, nullable=True),
        sa.Column('room_id', UUID, nullable=False),
        sa.Column('accommodation_type_id', UUID, nullable=False),
        sa.Column('guest_id', UUID, nullable=True),
        sa.Column('guest_name', sa.String(length=255), nullable=False),
        sa.Column('guest_email', sa.String(length=255), nullable=False),
        sa.Column('guest_phone', sa.String(length=50), nullable=True),
        sa.Column('check_in_date', sa.Date(), nullable=False),
        sa.Column('check_out_date', sa.Date(), nullable=False),
        sa.Column('num_adults', sa.Integer(), nullable=False),
        sa.Column('num_children', sa.Integer(), server_default='0', nullable=False),
        sa.Column('base_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('pax_surcharge', sa.Numeric(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('addons_amount', sa.Numeric(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('voucher_id', UUID, nullable=True),
        sa.Column('voucher_code', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        sa.Column('payment_status', sa.String(length=30), server_default='unpaid', nullable=False),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column('payment_reference', sa.String(length=255), nullable=True),
        sa.Column('source', sa.String(length=20), server_default='online', nullable=False),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=255), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('checked_in_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('checked_out_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint('check_in_date < check_out_date', name='ck_booking_date_order'),
        sa.CheckConstraint('num_adults >= 1', name='ck_booking_adults_positive'),
        sa.CheckConstraint('num_children >= 0', name='ck_booking_children_non_negative'),
        sa.CheckConstraint('total_amount >= 0', name='ck_booking_total_non_negative'),
        sa.CheckConstraint('discount_amount >= 0', name='ck_booking_discount_non_negative'),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'checked_in', 'checked_out', 'cancelled', 'expired', 'no_show')",
            name='ck_booking_status'
        ),
        sa.CheckConstraint(
            "payment_status IN ('unpaid', 'pending_verification', 'paid', 'refunded')",
            name='ck_booking_payment_status'
        ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['group_id'], ['booking_groups.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['accommodation_type_id'], ['accommodation_types.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['guest_id'], ['guests.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['voucher_id'], ['vouchers.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'reference_number', name='uq_booking_tenant_reference')
    )
    op.create_index(op.f('ix_bookings_tenant_id'), 'bookings', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_bookings_reference_number'), 'bookings', ['reference_number'], unique=False)
    op.create_index(op.f('ix_bookings_group_id'), 'bookings', ['group_id'], unique=False)
    op.create_index(op.f('ix_bookings_room_id'), 'bookings', ['room_id'], unique=False)
    op.create_index(op.f('ix_bookings_accommodation_type_id'), 'bookings', ['accommodation_type_id'], unique=False)
    op.create_index(op.f('ix_bookings_guest_id'), 'bookings', ['guest_id'], unique=False)
    op.create_index(op.f('ix_bookings_check_in_date'), 'bookings', ['check_in_date'], unique=False)
    op.create_index(op.f('ix_bookings_check_out_date'), 'bookings', ['check_out_date'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_payment_status'), 'bookings', ['payment_status'], unique=False)
    op.create_index(op.f('ix_bookings_created_at'), 'bookings', ['created_at'], unique=False)

    # No two room-holding bookings may share a night of the same room
    op.execute(
        """
        ALTER TABLE bookings ADD CONSTRAINT ex_booking_room_no_overlap
        EXCLUDE USING gist (
            room_id WITH =,
            daterange(check_in_date, check_out_date, '[)') WITH &&
        ) WHERE (status NOT IN ('cancelled', 'expired', 'no_show'))
        """
    )

    # Create booking_addons table
    op.create_table('booking_addons',
        _id(),
        sa.Column('booking_id', UUID, nullable=False),
        sa.Column('addon_id', UUID, nullable=False),
        sa.Column('addon_name', sa.String(length=255), nullable=False),
        sa.Column('pricing_model', sa.String(length=20), nullable=False),
        sa.Column('requested_quantity', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.CheckConstraint('requested_quantity > 0', name='ck_booking_addon_quantity_positive'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['addon_id'], ['addons.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_booking_addons_booking_id'), 'booking_addons', ['booking_id'], unique=False)

    # Create booking_status_logs table
    op.create_table('booking_status_logs',
        _id(),
        _tenant_id(),
        sa.Column('booking_id', UUID, nullable=False),
        sa.Column('field_changed', sa.String(length=50), nullable=False),
        sa.Column('old_value', sa.String(length=50), nullable=True),
        sa.Column('new_value', sa.String(length=50), nullable=False),
        sa.Column('changed_by', sa.String(length=255), nullable=False),
        sa.Column('change_source', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        sa.CheckConstraint("change_source IN ('admin', 'system')", name='ck_booking_status_log_source'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_booking_status_logs_tenant_id'), 'booking_status_logs', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_booking_status_logs_booking_id'), 'booking_status_logs', ['booking_id'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('booking_status_logs')
    op.drop_table('booking_addons')
    op.drop_table('bookings')
    op.drop_table('booking_groups')
    op.drop_table('guests')
    op.drop_table('vouchers')
    op.drop_table('addons')
    op.drop_table('rate_adjustments')
    op.drop_table('rooms')
    op.drop_table('accommodation_types')
    op.drop_table('tenants')
