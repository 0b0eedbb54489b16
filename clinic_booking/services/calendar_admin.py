# clinic_booking/services/calendar_admin.py
"""Manual calendar overrides, weekly defaults and the dentist roster."""
from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.business import ClinicPolicy
from clinic_booking.core.errors import NotFound, ValidationFailed
from clinic_booking.core.logging import get_logger
from clinic_booking.core.timeslots import to_time, parse_clock
from clinic_booking.crud import calendar as calendar_crud
from clinic_booking.crud import dentist as dentist_crud
from clinic_booking.crud.day_lock import lock_booking_day
from clinic_booking.db.models.clinic_calendar import ClinicCalendar, ClinicWeeklySchedule
from clinic_booking.db.models.dentist_schedule import DentistSchedule
from clinic_booking.db.models.user import User
from clinic_booking.schemas.calendar import OverrideCreate, OverrideUpdate
from clinic_booking.schemas.dentist import DentistCreate, DentistUpdate
from clinic_booking.schemas.weekly_schedule import WeeklyScheduleUpdate
from clinic_booking.services.closure import cascade_closure
from clinic_booking.services.date_resolver import DateResolver
from clinic_booking.services.notifications import NotificationSink

logger = get_logger(__name__)


def _as_time(value: Optional[str]):
    return None if value is None else to_time(parse_clock(value))


def _apply_override(row: ClinicCalendar, data: OverrideCreate | OverrideUpdate) -> None:
    row.is_generated = False
    row.is_open = data.is_open
    row.open_time = _as_time(data.open_time)
    row.close_time = _as_time(data.close_time)
    row.note = data.note
    # Keep a cap written by the capacity planner unless a new one is given
    if data.capacity_cap is not None:
        row.capacity_cap = data.capacity_cap


# ---------- manual overrides ----------

async def _cascade_if_closed(
    db: AsyncSession,
    row: ClinicCalendar,
    was_open: bool,
    *,
    policy: ClinicPolicy,
    actor: Optional[User],
    notifier: Optional[NotificationSink],
) -> int:
    """An override that leaves its date closed rejects whatever still occupies it."""
    if row.is_open is not False:
        return 0
    auto_rejected, _ = await cascade_closure(
        db, row.date, row.note,
        policy=policy,
        actor_id=actor.id if actor is not None else None,
        notifier=notifier,
        announce=was_open,
    )
    return auto_rejected


async def create_override(
    db: AsyncSession,
    data: OverrideCreate,
    *,
    policy: ClinicPolicy,
    actor: Optional[User] = None,
    notifier: Optional[NotificationSink] = None,
) -> ClinicCalendar:
    await lock_booking_day(db, data.date)
    try:
        row = await calendar_crud.get_override(db, data.date)
        if row is not None and not row.is_generated:
            raise ValidationFailed("The date has already been taken.", field="date")
        was_open = (await DateResolver(db).resolve(data.date)).is_open
        if row is None:
            row = ClinicCalendar(date=data.date)
            db.add(row)
        _apply_override(row, data)
        await db.flush()
        auto_rejected = await _cascade_if_closed(
            db, row, was_open, policy=policy, actor=actor, notifier=notifier,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info(
        "calendar_override_created",
        date=data.date.isoformat(),
        is_open=data.is_open,
        auto_rejected=auto_rejected,
    )
    return row


async def update_override(
    db: AsyncSession,
    row_id: int,
    data: OverrideUpdate,
    *,
    policy: ClinicPolicy,
    actor: Optional[User] = None,
    notifier: Optional[NotificationSink] = None,
) -> ClinicCalendar:
    row = await calendar_crud.get_override_by_id(db, row_id)
    if row is None:
        raise NotFound("Calendar entry not found.")
    day = row.date

    await lock_booking_day(db, day)
    try:
        await db.refresh(row)
        was_open = (await DateResolver(db).resolve(day)).is_open
        _apply_override(row, data)
        await db.flush()
        auto_rejected = await _cascade_if_closed(
            db, row, was_open, policy=policy, actor=actor, notifier=notifier,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info(
        "calendar_override_updated",
        date=day.isoformat(),
        is_open=data.is_open,
        auto_rejected=auto_rejected,
    )
    return row


async def delete_override(db: AsyncSession, row_id: int) -> None:
    row = await calendar_crud.get_override_by_id(db, row_id)
    if row is None:
        raise NotFound("Calendar entry not found.")
    day = row.date

    await lock_booking_day(db, day)
    try:
        await db.delete(row)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("calendar_override_deleted", date=day.isoformat())


# ---------- weekly defaults ----------

async def update_weekly(db: AsyncSession, row_id: int, data: WeeklyScheduleUpdate) -> ClinicWeeklySchedule:
    row = await calendar_crud.get_weekly_by_id(db, row_id)
    if row is None:
        raise NotFound("Weekly schedule not found.")

    if data.is_open and (not data.open_time or not data.close_time):
        raise ValidationFailed("Open days need both an open and a close time.", field="open_time")
    if data.is_open and parse_clock(data.close_time) <= parse_clock(data.open_time):
        raise ValidationFailed("The close time must be after the open time.", field="close_time")

    row.is_open = data.is_open
    # Closing a weekday clears its hours
    row.open_time = _as_time(data.open_time) if data.is_open else None
    row.close_time = _as_time(data.close_time) if data.is_open else None
    row.note = data.note
    await db.commit()
    logger.info("weekly_schedule_updated", weekday=row.weekday, is_open=row.is_open)
    return row


# ---------- dentist roster ----------

def _check_contract(data: DentistCreate | DentistUpdate, policy: ClinicPolicy) -> None:
    if data.contract_end_date is not None and data.contract_end_date < policy.today:
        raise ValidationFailed(
            "The contract end date must be a date after or equal to today.",
            field="contract_end_date",
        )


async def create_dentist(db: AsyncSession, data: DentistCreate, policy: ClinicPolicy) -> DentistSchedule:
    _check_contract(data, policy)
    if await dentist_crud.get_dentist_by_code(db, data.dentist_code) is not None:
        raise ValidationFailed("The dentist code has already been taken.", field="dentist_code")

    row = DentistSchedule(**data.model_dump())
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationFailed("The dentist code has already been taken.", field="dentist_code")
    logger.info("dentist_created", dentist_code=row.dentist_code)
    return row


async def update_dentist(
    db: AsyncSession,
    dentist_id: int,
    data: DentistUpdate,
    policy: ClinicPolicy,
) -> DentistSchedule:
    row = await dentist_crud.get_dentist(db, dentist_id)
    if row is None:
        raise NotFound("Dentist not found.")
    _check_contract(data, policy)
    other = await dentist_crud.get_dentist_by_code(db, data.dentist_code)
    if other is not None and other.id != row.id:
        raise ValidationFailed("The dentist code has already been taken.", field="dentist_code")

    for key, value in data.model_dump().items():
        setattr(row, key, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationFailed("The dentist code has already been taken.", field="dentist_code")
    logger.info("dentist_updated", dentist_code=row.dentist_code)
    return row


async def delete_dentist(db: AsyncSession, dentist_id: int) -> None:
    row = await dentist_crud.get_dentist(db, dentist_id)
    if row is None:
        raise NotFound("Dentist not found.")
    await db.delete(row)
    await db.commit()
    logger.info("dentist_deleted", dentist_code=row.dentist_code)
