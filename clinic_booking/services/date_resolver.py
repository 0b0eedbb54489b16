# clinic_booking/services/date_resolver.py
"""
Resolve a calendar date into one DaySchedule.

Three sources feed the decision, highest precedence first:

1. a manual calendar row (holiday, special hours) - authoritative for open/closed,
   its hours win when set and fall back to the weekday's hours otherwise
2. a generated calendar row - contributes only its capacity cap and note
3. the weekly default row for the weekday

The dentist headcount comes from the roster. A cap from any calendar row can
only lower the ceiling, never raise it above the headcount.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.business import WEEKDAY_COLUMNS, weekday_index
from clinic_booking.core.logging import get_logger
from clinic_booking.core.timeslots import SLOT_MINUTES, build_blocks, format_clock, parse_clock
from clinic_booking.crud import calendar as calendar_crud
from clinic_booking.db.models.clinic_calendar import ClinicCalendar, ClinicWeeklySchedule
from clinic_booking.db.models.dentist_schedule import DentistSchedule

logger = get_logger(__name__)


class ScheduleSource(str, Enum):
    MANUAL = "manual"
    GENERATED = "generated"
    WEEKLY_DEFAULT = "weekly_default"
    NONE = "none"


@dataclass(frozen=True)
class DaySchedule:
    date: date
    is_open: bool
    open_time: Optional[int]    # minute of day; None when closed
    close_time: Optional[int]
    dentist_count: int
    capacity_cap: Optional[int]
    source: ScheduleSource
    note: Optional[str] = None

    @property
    def effective_capacity(self) -> int:
        if not self.is_open:
            return 0
        cap = self.dentist_count if self.capacity_cap is None else self.capacity_cap
        return max(0, min(self.dentist_count, cap))

    def blocks(self, stride: int = SLOT_MINUTES) -> list[int]:
        if not self.is_open:
            return []
        return build_blocks(self.open_time, self.close_time, stride)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "is_open": self.is_open,
            "open_time": format_clock(self.open_time) if self.open_time is not None else None,
            "close_time": format_clock(self.close_time) if self.close_time is not None else None,
            "dentist_count": self.dentist_count,
            "capacity_cap": self.capacity_cap,
            "effective_capacity": self.effective_capacity,
            "source": self.source.value,
            "note": self.note,
        }


def counts_toward_capacity(dentist: DentistSchedule, d: date) -> bool:
    """Active, contract not ended before `d`, and working on that weekday."""
    if dentist.status != "active":
        return False
    if dentist.contract_end_date is not None and dentist.contract_end_date < d:
        return False
    return bool(getattr(dentist, WEEKDAY_COLUMNS[weekday_index(d)]))


def select_source(
    override: Optional[ClinicCalendar],
    weekly: Optional[ClinicWeeklySchedule],
) -> ScheduleSource:
    if override is not None and not override.is_generated:
        return ScheduleSource.MANUAL
    if override is not None:
        return ScheduleSource.GENERATED
    if weekly is not None:
        return ScheduleSource.WEEKLY_DEFAULT
    return ScheduleSource.NONE


def _clock(value) -> Optional[int]:
    return None if value is None else parse_clock(value)


def resolve_day(
    d: date,
    *,
    override: Optional[ClinicCalendar],
    weekly: Optional[ClinicWeeklySchedule],
    dentists: Iterable[DentistSchedule],
) -> DaySchedule:
    """Pure resolution from already-loaded rows."""
    source = select_source(override, weekly)
    dentist_count = sum(1 for row in dentists if counts_toward_capacity(row, d))
    capacity_cap = override.capacity_cap if override is not None else None

    weekly_open = bool(weekly.is_open) if weekly is not None else False
    weekly_hours = (
        (_clock(weekly.open_time), _clock(weekly.close_time)) if weekly is not None else (None, None)
    )

    if source is ScheduleSource.MANUAL:
        is_open = weekly_open if override.is_open is None else bool(override.is_open)
        open_time = _clock(override.open_time) if override.open_time is not None else weekly_hours[0]
        close_time = _clock(override.close_time) if override.close_time is not None else weekly_hours[1]
        note = override.note
    else:
        # Generated rows never carry open/hours; weekly defaults decide
        is_open = weekly_open
        open_time, close_time = weekly_hours
        note = (override.note if override is not None else None) or (weekly.note if weekly is not None else None)

    # Open with no usable hours degrades to closed
    if is_open and (open_time is None or close_time is None or close_time <= open_time):
        logger.warning("day_open_without_hours", date=d.isoformat(), source=source.value)
        is_open = False

    if not is_open:
        open_time = close_time = None

    return DaySchedule(
        date=d,
        is_open=is_open,
        open_time=open_time,
        close_time=close_time,
        dentist_count=dentist_count,
        capacity_cap=capacity_cap,
        source=source,
        note=note,
    )


class DateResolver:
    """Loads the rows a resolution needs and hands them to resolve_day."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _active_dentists(self) -> Sequence[DentistSchedule]:
        res = await self.db.execute(
            sa.select(DentistSchedule)
            .where(DentistSchedule.status == "active")
            .order_by(DentistSchedule.dentist_code)
        )
        return res.scalars().all()

    async def resolve(self, d: date) -> DaySchedule:
        override = await calendar_crud.get_override(self.db, d)
        weekly = await calendar_crud.get_weekly(self.db, weekday_index(d))
        dentists = await self._active_dentists()
        return resolve_day(d, override=override, weekly=weekly, dentists=dentists)

    async def resolve_range(self, start: date, days: int) -> list[DaySchedule]:
        end = start + timedelta(days=max(days, 1) - 1)
        overrides = {row.date: row for row in await calendar_crud.overrides_between(self.db, start, end)}
        weekly = {row.weekday: row for row in await calendar_crud.list_weekly(self.db)}
        dentists = await self._active_dentists()

        out = []
        for i in range(max(days, 1)):
            d = start + timedelta(days=i)
            out.append(resolve_day(
                d,
                override=overrides.get(d),
                weekly=weekly.get(weekday_index(d)),
                dentists=dentists,
            ))
        return out

    async def dentist_codes(self, d: date) -> list[str]:
        return [row.display_code for row in await self._active_dentists() if counts_toward_capacity(row, d)]
