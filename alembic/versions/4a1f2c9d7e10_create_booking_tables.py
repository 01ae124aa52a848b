"""create booking tables

Revision ID: 4a1f2c9d7e10
Revises:
Create Date: 2026-01-12 09:14:37.402118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '4a1f2c9d7e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_PREDICATE = sa.text("status IN ('pending', 'confirmed')")


def upgrade() -> None:
    """Upgrade schema."""

    # 1. Owners
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # 2. Weekly working hours
    op.create_table(
        'working_hour_rules',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('is_working', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('owner_id', 'day_of_week', name='uq_working_hour_rules_owner_day'),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_working_hour_rules_day')
    )
    op.create_index('ix_working_hour_rules_owner_id', 'working_hour_rules', ['owner_id'])

    # 3. Slot settings
    op.create_table(
        'availability_settings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('slot_duration_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('break_duration_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('advance_booking_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('time_format_12h', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('slot_duration_minutes > 0', name='ck_availability_settings_slot_positive'),
        sa.CheckConstraint('break_duration_minutes >= 0', name='ck_availability_settings_break_non_negative')
    )

    # 4. Per-date exceptions
    op.create_table(
        'date_exceptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('owner_id', 'date', name='uq_date_exceptions_owner_date')
    )
    op.create_index('ix_date_exceptions_owner_id', 'date_exceptions', ['owner_id'])

    # 5. Stored windows
    op.create_table(
        'time_slots',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_booked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('owner_id', 'date', 'start_time', 'end_time', name='uq_time_slots_owner_window')
    )
    op.create_index('ix_time_slots_owner_date', 'time_slots', ['owner_id', 'date'])

    # 6. Bookings
    op.create_table(
        'bookings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('client_name', sa.String(100), nullable=False),
        sa.Column('client_email', sa.String(100), nullable=False),
        sa.Column('client_phone', sa.String(32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('access_token', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed', 'no-show')",
            name='ck_bookings_status'
        )
    )
    op.create_index('ix_bookings_owner_date', 'bookings', ['owner_id', 'date'])
    op.create_index('ix_bookings_access_token', 'bookings', ['access_token'], unique=True)

    # At most one active booking per owner window
    op.create_index(
        'uq_bookings_active_window',
        'bookings',
        ['owner_id', 'date', 'start_time', 'end_time'],
        unique=True,
        postgresql_where=ACTIVE_PREDICATE,
        sqlite_where=ACTIVE_PREDICATE
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('uq_bookings_active_window', table_name='bookings')
    op.drop_index('ix_bookings_access_token', table_name='bookings')
    op.drop_index('ix_bookings_owner_date', table_name='bookings')
    op.drop_table('bookings')

    op.drop_index('ix_time_slots_owner_date', table_name='time_slots')
    op.drop_table('time_slots')

    op.drop_index('ix_date_exceptions_owner_id', table_name='date_exceptions')
    op.drop_table('date_exceptions')

    op.drop_table('availability_settings')

    op.drop_index('ix_working_hour_rules_owner_id', table_name='working_hour_rules')
    op.drop_table('working_hour_rules')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
