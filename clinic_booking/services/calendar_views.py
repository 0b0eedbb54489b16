# clinic_booking/services/calendar_views.py
"""Read-only calendar projections for the admin and patient screens."""
from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.business import ClinicPolicy
from clinic_booking.crud import appointment as appointment_crud
from clinic_booking.crud.calendar import closed_days_between
from clinic_booking.db.models.user import User
from clinic_booking.schemas.calendar import (
    ClosureAlert,
    ClosureAlertsOut,
    ClosureImpact,
    ClosureImpactsOut,
    DailyRow,
    PreviewRow,
)
from clinic_booking.services.date_resolver import DateResolver

MAX_DAILY_DAYS = 31
MAX_PREVIEW_DAYS = 14


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


async def daily(db: AsyncSession, start: date, days: int = 14) -> list[DailyRow]:
    days = _clamp(days, 1, MAX_DAILY_DAYS)
    snapshots = await DateResolver(db).resolve_range(start, days)
    return [
        DailyRow(
            date=s.date,
            active_dentists=s.dentist_count,
            max_parallel=s.capacity_cap,
            is_closed=not s.is_open,
            note=s.note,
        )
        for s in snapshots
    ]


async def preview(db: AsyncSession, policy: ClinicPolicy, days: int = MAX_PREVIEW_DAYS) -> list[PreviewRow]:
    days = _clamp(days, 1, MAX_PREVIEW_DAYS)
    snapshots = await DateResolver(db).resolve_range(policy.today, days)
    rows = []
    for s in snapshots:
        data = s.to_dict()
        data.pop("note")
        rows.append(PreviewRow(**data, bookable_for_patients=policy.in_booking_window(s.date)))
    return rows


async def upcoming_closures(db: AsyncSession, policy: ClinicPolicy, within_days: int = 7) -> ClosureAlertsOut:
    until = policy.today + timedelta(days=max(1, within_days))
    rows = await closed_days_between(db, policy.today, until)
    return ClosureAlertsOut(
        today=policy.today,
        until=until,
        closures=[ClosureAlert(date=row.date, closure_message=row.note) for row in rows],
    )


async def closure_impacts(db: AsyncSession, user: User, policy: ClinicPolicy, days: int = 30) -> ClosureImpactsOut:
    until = policy.today + timedelta(days=max(1, days))
    rows = await appointment_crud.closure_impacts_for_user(db, user.id, policy.today, until)
    return ClosureImpactsOut(
        today=policy.today,
        until=until,
        impacts=[ClosureImpact(**row) for row in rows],
    )
