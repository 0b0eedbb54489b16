"""create booking engine tables and seed the weekly schedule

Revision ID: 20251019_090000
Revises:
Create Date: 2025-10-19 09:00:00.000000

"""
from datetime import time
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20251019_090000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BigId = sa.BigInteger().with_variant(sa.Integer, "sqlite")


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True))
    return cols


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', BigId, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('email', sa.String(255), nullable=True, unique=True),
        sa.Column('contact_number', sa.String(20), nullable=True),
        sa.Column('role', sa.String(16), nullable=False, server_default='patient'),
        *_timestamps(updated=False),
    )

    op.create_table(
        'patients',
        sa.Column('id', BigId, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('contact_number', sa.String(20), nullable=True),
        sa.Column('is_linked', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(updated=False),
    )
    op.create_index('ix_patients_user_id', 'patients', ['user_id'])

    op.create_table(
        'patient_hmos',
        sa.Column('id', BigId, primary_key=True, autoincrement=True),
        sa.Column('patient_id', sa.BigInteger(), sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('provider_name', sa.String(255), nullable=False),
        sa.Column('effective_date', sa.Date(), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(updated=False),
    )
    op.create_index('ix_patient_hmos_patient_id', 'patient_hmos', ['patient_id'])

    op.create_table(
        'services',
        sa.Column('id', BigId, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('estimated_minutes', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        'appointments',
        sa.Column('id', BigId, primary_key=True, autoincrement=True),
        sa.Column('patient_id', sa.BigInteger(), sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_id', sa.BigInteger(), sa.ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
        sa.Column('patient_hmo_id', sa.BigInteger(), sa.ForeignKey('patient_hmos.id', ondelete='SET NULL'), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time_slot', sa.String(20), nullable=False),
        sa.Column('reference_code', sa.String(8), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(16), nullable=False, server_default='cash'),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='unpaid'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reminded_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('reference_code', name='uq_appointments_reference_code'),
    )
    op.create_index('ix_appointments_date_status', 'appointments', ['date', 'status'])
    op.create_index('ix_appointments_patient_status_date', 'appointments', ['patient_id', 'status', 'date'])

    op.create_table(
        'clinic_weekly_schedules',
        sa.Column('id', BigId, primary_key=True, autoincrement=True),
        sa.Column('weekday', sa.SmallInteger(), nullable=False),
        sa.Column('is_open', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('open_time', sa.Time(), nullable=True),
        sa.Column('close_time', sa.Time(), nullable=True),
        sa.Column('note', sa.String(255), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('weekday', name='uq_clinic_weekly_schedules_weekday'),
        sa.CheckConstraint('weekday BETWEEN 0 AND 6', name='ck_clinic_weekly_schedules_weekday'),
    )

    op.create_table(
        'clinic_calendar',
        sa.Column('id', BigId, primary_key=True, autoincrement=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('is_open', sa.Boolean(), nullable=True),
        sa.Column('open_time', sa.Time(), nullable=True),
        sa.Column('close_time', sa.Time(), nullable=True),
        sa.Column('capacity_cap', sa.SmallInteger(), nullable=True),
        sa.Column('is_generated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('note', sa.String(2000), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('date', name='uq_clinic_calendar_date'),
    )

    op.create_table(
        'booking_day_locks',
        sa.Column('day', sa.Date(), primary_key=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table(
        'dentist_schedules',
        sa.Column('id', BigId, primary_key=True, autoincrement=True),
        sa.Column('dentist_code', sa.String(32), nullable=False),
        sa.Column('dentist_name', sa.String(120), nullable=True),
        sa.Column('is_pseudonymous', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('employment_type', sa.String(16), nullable=False, server_default='part_time'),
        sa.Column('contract_end_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        *[sa.Column(day, sa.Boolean(), nullable=False, server_default=sa.false())
          for day in ('sun', 'mon', 'tue', 'wed', 'thu', 'fri', 'sat')],
        *_timestamps(),
        sa.UniqueConstraint('dentist_code', name='uq_dentist_schedules_dentist_code'),
    )
    op.create_index('ix_dentist_schedules_status', 'dentist_schedules', ['status'])

    op.create_table(
        'notifications',
        sa.Column('id', BigId, primary_key=True, autoincrement=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('severity', sa.String(16), nullable=False, server_default='info'),
        sa.Column('scope', sa.String(16), nullable=False, server_default='targeted'),
        sa.Column('audience_roles', sa.JSON(), nullable=True),
        sa.Column('effective_from', sa.DateTime(timezone=True), nullable=True),
        sa.Column('effective_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('ix_notifications_scope_effective_from', 'notifications', ['scope', 'effective_from'])
    op.create_index('ix_notifications_scope_effective_until', 'notifications', ['scope', 'effective_until'])

    op.create_table(
        'notification_targets',
        sa.Column('id', BigId, primary_key=True, autoincrement=True),
        sa.Column('notification_id', sa.BigInteger(), sa.ForeignKey('notifications.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('seen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint('notification_id', 'user_id', name='uq_notification_targets_notification_user'),
    )
    op.create_index('ix_notification_targets_user_read', 'notification_targets', ['user_id', 'read_at'])

    # Every weekday open 08:00-17:00 until an admin says otherwise
    weekly = sa.table(
        'clinic_weekly_schedules',
        sa.column('weekday', sa.SmallInteger()),
        sa.column('is_open', sa.Boolean()),
        sa.column('open_time', sa.Time()),
        sa.column('close_time', sa.Time()),
        sa.column('note', sa.String()),
    )
    op.bulk_insert(weekly, [
        {'weekday': d, 'is_open': True, 'open_time': time(8, 0), 'close_time': time(17, 0), 'note': None}
        for d in range(7)
    ])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_notification_targets_user_read', table_name='notification_targets')
    op.drop_table('notification_targets')
    op.drop_index('ix_notifications_scope_effective_until', table_name='notifications')
    op.drop_index('ix_notifications_scope_effective_from', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_dentist_schedules_status', table_name='dentist_schedules')
    op.drop_table('dentist_schedules')
    op.drop_table('booking_day_locks')
    op.drop_table('clinic_calendar')
    op.drop_table('clinic_weekly_schedules')
    op.drop_index('ix_appointments_patient_status_date', table_name='appointments')
    op.drop_index('ix_appointments_date_status', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('services')
    op.drop_index('ix_patient_hmos_patient_id', table_name='patient_hmos')
    op.drop_table('patient_hmos')
    op.drop_index('ix_patients_user_id', table_name='patients')
    op.drop_table('patients')
    op.drop_table('users')
