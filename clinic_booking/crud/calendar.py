# clinic_booking/crud/calendar.py

from __future__ import annotations
from datetime import date
from typing import Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.db.models.clinic_calendar import ClinicCalendar, ClinicWeeklySchedule

# ---------- weekly defaults ----------

async def list_weekly(db: AsyncSession) -> Sequence[ClinicWeeklySchedule]:
    res = await db.execute(sa.select(ClinicWeeklySchedule).order_by(ClinicWeeklySchedule.weekday))
    return res.scalars().all()

async def get_weekly(db: AsyncSession, weekday: int) -> Optional[ClinicWeeklySchedule]:
    res = await db.execute(sa.select(ClinicWeeklySchedule).where(ClinicWeeklySchedule.weekday == weekday))
    return res.scalar_one_or_none()

async def get_weekly_by_id(db: AsyncSession, row_id: int) -> Optional[ClinicWeeklySchedule]:
    return await db.get(ClinicWeeklySchedule, row_id)

# ---------- per-date overrides ----------

async def get_override(db: AsyncSession, day: date) -> Optional[ClinicCalendar]:
    res = await db.execute(sa.select(ClinicCalendar).where(ClinicCalendar.date == day))
    return res.scalar_one_or_none()

async def get_override_by_id(db: AsyncSession, row_id: int) -> Optional[ClinicCalendar]:
    return await db.get(ClinicCalendar, row_id)

async def overrides_between(db: AsyncSession, start: date, end: date) -> Sequence[ClinicCalendar]:
    res = await db.execute(
        sa.select(ClinicCalendar)
        .where(ClinicCalendar.date.between(start, end))
        .order_by(ClinicCalendar.date)
    )
    return res.scalars().all()

async def list_manual_overrides(db: AsyncSession) -> Sequence[ClinicCalendar]:
    """Human-entered rows only (holidays, special hours)."""
    res = await db.execute(
        sa.select(ClinicCalendar)
        .where(ClinicCalendar.is_generated.is_(False))
        .order_by(ClinicCalendar.date)
    )
    return res.scalars().all()

async def closed_days_between(db: AsyncSession, start: date, end: date) -> Sequence[ClinicCalendar]:
    res = await db.execute(
        sa.select(ClinicCalendar)
        .where(
            ClinicCalendar.date.between(start, end),
            ClinicCalendar.is_open.is_(False),
        )
        .order_by(ClinicCalendar.date)
    )
    return res.scalars().all()
