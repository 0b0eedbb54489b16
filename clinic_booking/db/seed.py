# clinic_booking/db/seed.py
"""Baseline rows a fresh database needs before anyone can book."""
from __future__ import annotations

from datetime import time

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.db.models.clinic_calendar import ClinicWeeklySchedule
from clinic_booking.db.models.service import Service

# 0=Sun .. 6=Sat, all open 08:00-17:00
WEEKLY_DEFAULTS = [
    {"weekday": d, "is_open": True, "open_time": time(8, 0), "close_time": time(17, 0)}
    for d in range(7)
]

DEFAULT_SERVICES = [
    {"name": "Dental Consultation", "estimated_minutes": 30},
    {"name": "Tooth Extraction", "estimated_minutes": 60},
    {"name": "Oral Prophylaxis", "estimated_minutes": 45},
    {"name": "Root Canal Treatment", "estimated_minutes": 90},
]


async def seed_weekly_schedule(db: AsyncSession) -> int:
    """Insert missing weekday rows; existing rows are left alone."""
    res = await db.execute(sa.select(ClinicWeeklySchedule.weekday))
    present = set(res.scalars().all())
    missing = [row for row in WEEKLY_DEFAULTS if row["weekday"] not in present]
    db.add_all(ClinicWeeklySchedule(**row) for row in missing)
    await db.flush()
    return len(missing)


async def seed_services(db: AsyncSession) -> int:
    res = await db.execute(sa.select(sa.func.count()).select_from(Service))
    if res.scalar_one():
        return 0
    db.add_all(Service(**row) for row in DEFAULT_SERVICES)
    await db.flush()
    return len(DEFAULT_SERVICES)


async def seed_defaults(db: AsyncSession) -> dict[str, int]:
    counts = {
        "weekly_schedule": await seed_weekly_schedule(db),
        "services": await seed_services(db),
    }
    await db.commit()
    return counts
