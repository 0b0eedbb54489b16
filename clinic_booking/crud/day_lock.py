# clinic_booking/crud/day_lock.py

from __future__ import annotations
from datetime import date

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.db.models.clinic_calendar import BookingDayLock

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

async def lock_booking_day(db: AsyncSession, day: date) -> int:
    """
    Take the write lock for `day` inside the session's current transaction.

    Must be the first write of the transaction: on PostgreSQL the UPDATE holds
    the row lock until commit/rollback, on SQLite the first DML statement opens
    the transaction and takes the database write lock. Either way a second
    writer for the same date blocks here until the first one finishes.
    Returns the new lock version.
    """
    dialect = db.get_bind().dialect.name
    try:
        insert = _UPSERT_DIALECTS[dialect]
    except KeyError:
        raise RuntimeError(f"Booking day lock is not supported on dialect {dialect!r}")

    await db.execute(
        insert(BookingDayLock)
        .values(day=day, version=0)
        .on_conflict_do_nothing(index_elements=["day"])
    )
    await db.execute(
        sa.update(BookingDayLock)
        .where(BookingDayLock.day == day)
        .values(version=BookingDayLock.version + 1)
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(sa.select(BookingDayLock.version).where(BookingDayLock.day == day))
    return res.scalar_one()
