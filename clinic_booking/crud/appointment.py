# clinic_booking/crud/appointment.py

from __future__ import annotations
import re
from datetime import date, datetime, timezone
from typing import Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.db.models.appointment import Appointment, OCCUPYING_STATUSES
from clinic_booking.db.models.clinic_calendar import ClinicCalendar
from clinic_booking.db.models.patient import Patient

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")

def normalize_reference(code: str) -> str:
    """Staff-typed codes: strip spaces/dashes, uppercase."""
    return _NON_ALNUM.sub("", code or "").upper()

async def get_appointment(db: AsyncSession, appointment_id: int) -> Optional[Appointment]:
    return await db.get(Appointment, appointment_id)

async def get_by_reference(
    db: AsyncSession,
    code: str,
    *,
    status: Optional[str] = None,
) -> Optional[Appointment]:
    q = sa.select(Appointment).where(sa.func.upper(Appointment.reference_code) == normalize_reference(code))
    if status is not None:
        q = q.where(Appointment.status == status)
    res = await db.execute(q.limit(1))
    return res.scalars().first()

async def reference_exists(db: AsyncSession, code: str) -> bool:
    res = await db.execute(sa.select(sa.literal(1)).where(Appointment.reference_code == code).limit(1))
    return res.scalar_one_or_none() is not None

async def occupying_time_slots(
    db: AsyncSession,
    day: date,
    *,
    exclude_id: Optional[int] = None,
) -> list[str]:
    """time_slot strings of every pending/approved booking on `day`."""
    q = sa.select(Appointment.time_slot).where(
        Appointment.date == day,
        Appointment.status.in_(OCCUPYING_STATUSES),
    )
    if exclude_id is not None:
        q = q.where(Appointment.id != exclude_id)
    res = await db.execute(q)
    return list(res.scalars().all())

async def list_appointments(
    db: AsyncSession,
    *,
    status: Optional[str] = None,
    patient_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = 200,
) -> Sequence[Appointment]:
    q = sa.select(Appointment)
    if status is not None:
        q = q.where(Appointment.status == status)
    if patient_id is not None:
        q = q.where(Appointment.patient_id == patient_id)
    if start_date is not None:
        q = q.where(Appointment.date >= start_date)
    if end_date is not None:
        q = q.where(Appointment.date <= end_date)
    if patient_id is not None:
        q = q.order_by(Appointment.date.desc(), Appointment.id.desc())
    else:
        q = q.order_by(Appointment.created_at.desc(), Appointment.id.desc())
    res = await db.execute(q.limit(limit))
    return res.scalars().all()

async def reject_occupying_for_day(db: AsyncSession, day: date, reason: str) -> list[int]:
    """
    Bulk-reject pending/approved bookings on `day`, appending `reason` to notes.
    Returns the ids of the rejected bookings. Callers hold the day lock, so the
    set read here is the set updated.
    """
    res = await db.execute(
        sa.select(Appointment.id)
        .where(Appointment.date == day, Appointment.status.in_(OCCUPYING_STATUSES))
        .order_by(Appointment.id)
    )
    ids = list(res.scalars().all())
    if not ids:
        return []

    notes = sa.case(
        (sa.or_(Appointment.notes.is_(None), Appointment.notes == ""), sa.literal(reason)),
        else_=Appointment.notes + sa.literal(" | ") + sa.literal(reason),
    )
    await db.execute(
        sa.update(Appointment)
        .where(Appointment.id.in_(ids))
        .values(status="rejected", notes=notes, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return ids

async def user_ids_for_appointments(db: AsyncSession, appointment_ids: Sequence[int]) -> list[int]:
    """Distinct accounts behind the patients of these bookings."""
    if not appointment_ids:
        return []
    res = await db.execute(
        sa.select(Patient.user_id)
        .join(Appointment, Appointment.patient_id == Patient.id)
        .where(Appointment.id.in_(list(appointment_ids)), Patient.user_id.is_not(None))
        .distinct()
        .order_by(Patient.user_id)
    )
    return list(res.scalars().all())

async def closure_impacts_for_user(
    db: AsyncSession,
    user_id: int,
    start: date,
    end: date,
) -> list[dict]:
    res = await db.execute(
        sa.select(
            Appointment.id.label("appointment_id"),
            Appointment.date,
            Appointment.time_slot,
            Appointment.service_id,
            Appointment.status,
            ClinicCalendar.note.label("closure_message"),
        )
        .join(Patient, Patient.id == Appointment.patient_id)
        .join(ClinicCalendar, ClinicCalendar.date == Appointment.date)
        .where(
            Patient.user_id == user_id,
            Appointment.status.in_(OCCUPYING_STATUSES),
            Appointment.date.between(start, end),
            ClinicCalendar.is_open.is_(False),
        )
        .order_by(Appointment.date.asc(), Appointment.id.asc())
    )
    return [dict(row._mapping) for row in res.all()]
