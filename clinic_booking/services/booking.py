# clinic_booking/services/booking.py
"""
Patient booking: candidate request -> Appointment(pending) or a rejection.

The request is validated twice. The first pass runs without locks and gives
fast, specific answers. The second pass runs after the per-date lock is
taken, so the capacity that is checked is the capacity that is committed.
A booking that passed the first pass but loses its block in the second is a
"slot just filled" conflict.
"""
from __future__ import annotations

import re
import secrets
import string
from collections import Counter
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.business import ClinicPolicy
from clinic_booking.core.errors import (
    CapacityFull,
    IdentityGap,
    NotFound,
    PolicyRejection,
    ReferenceConflict,
    RejectionReason,
    SlotJustFilled,
    ValidationFailed,
)
from clinic_booking.core.logging import get_logger
from clinic_booking.core.timeslots import blocks_needed, format_clock, format_time_slot, parse_clock
from clinic_booking.crud import appointment as appointment_crud
from clinic_booking.crud.day_lock import lock_booking_day
from clinic_booking.crud.patient import get_patient, get_patient_hmo, patient_for
from clinic_booking.crud.service import get_service
from clinic_booking.db.models.appointment import Appointment
from clinic_booking.db.models.patient import Patient
from clinic_booking.db.models.service import Service
from clinic_booking.db.models.user import User
from clinic_booking.schemas.appointment import AppointmentCreate, ResolvedAppointment
from clinic_booking.services.capacity import accumulate_usage, available_starts, check_capacity
from clinic_booking.services.date_resolver import DateResolver, DaySchedule
from clinic_booking.services.notifications import NotificationSink, new_appointment_notice

logger = get_logger(__name__)

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REFERENCE_LENGTH = 8

UNLINKED_MESSAGE = "Your account is not yet linked to a patient record. Please contact the clinic."

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_START_RE = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")


# ---------- input shape ----------

def parse_booking_date(raw: str) -> date:
    if not raw or not _DATE_RE.match(raw):
        raise ValidationFailed("The date field must match the format Y-m-d.", field="date")
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationFailed("The date field must be a valid date.", field="date")


def parse_start_time(raw: str) -> int:
    if not raw or not _START_RE.match(raw):
        raise ValidationFailed("The start time field format is invalid.", field="start_time")
    try:
        return parse_clock(raw)
    except ValueError:
        raise ValidationFailed("The start time field format is invalid.", field="start_time")


async def _service_or_invalid(db: AsyncSession, service_id: int) -> Service:
    service = await get_service(db, service_id)
    if service is None:
        raise ValidationFailed("The selected service id is invalid.", field="service_id")
    return service


def new_reference_code() -> str:
    return "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_LENGTH))


async def _allocate_reference(db: AsyncSession, attempts: int) -> str:
    for attempt in range(1, max(1, attempts) + 1):
        code = new_reference_code()
        if not await appointment_crud.reference_exists(db, code):
            return code
        logger.warning("reference_code_collision", attempt=attempt)
    raise ReferenceConflict("Could not allocate a unique reference code. Please try again.")


# ---------- rule checks ----------

def check_slot(
    snapshot: DaySchedule,
    start: int,
    service: Service,
    usage: Counter,
    policy: ClinicPolicy,
) -> None:
    """Day open, on grid, inside hours, capacity; raises on the first failure."""
    if not snapshot.is_open:
        raise PolicyRejection("Clinic is closed on this date.", reason=RejectionReason.DAY_CLOSED)

    grid = snapshot.blocks(policy.slot_minutes)
    if start not in grid:
        raise PolicyRejection(
            "Invalid start time (not on grid or outside hours).",
            reason=RejectionReason.OFF_GRID,
        )

    end = start + (service.estimated_minutes or 0)
    if start < snapshot.open_time or end > snapshot.close_time:
        raise PolicyRejection("Selected time is outside clinic hours.", reason=RejectionReason.OUTSIDE_HOURS)

    result = check_capacity(
        start,
        blocks_needed(service.estimated_minutes, policy.slot_minutes),
        usage,
        snapshot.effective_capacity,
        grid,
        policy.slot_minutes,
    )
    if not result.ok:
        full_at = result.full_at_label or format_clock(start)
        raise CapacityFull(f"Time slot starting at {full_at} is already full.", full_at=full_at)


async def _check_hmo(
    db: AsyncSession,
    patient: Patient,
    day: date,
    payment_method: str,
    patient_hmo_id: Optional[int],
) -> Optional[int]:
    """HMO id to store, or None. Only consulted for payment_method == 'hmo'."""
    if payment_method != "hmo":
        return None
    if not patient_hmo_id:
        raise PolicyRejection("Please select an HMO for this appointment.", reason=RejectionReason.HMO_REQUIRED)

    hmo = await get_patient_hmo(db, patient_hmo_id)
    if hmo is None or hmo.patient_id != patient.id:
        raise PolicyRejection("Selected HMO does not belong to this patient.", reason=RejectionReason.HMO_NOT_OWNED)
    if hmo.effective_date is not None and hmo.effective_date > day:
        raise PolicyRejection(
            "Selected HMO is not yet effective on the appointment date.",
            reason=RejectionReason.HMO_NOT_EFFECTIVE,
        )
    if hmo.expiry_date is not None and hmo.expiry_date < day:
        raise PolicyRejection("Selected HMO is expired on the appointment date.", reason=RejectionReason.HMO_EXPIRED)
    return hmo.id


async def _usage_for(db: AsyncSession, day: date, policy: ClinicPolicy, exclude_id: Optional[int] = None) -> Counter:
    slots = await appointment_crud.occupying_time_slots(db, day, exclude_id=exclude_id)
    return accumulate_usage(slots, policy.slot_minutes)


# ---------- operations ----------

async def book_appointment(
    db: AsyncSession,
    *,
    user: User,
    request: AppointmentCreate,
    policy: ClinicPolicy,
    notifier: Optional[NotificationSink] = None,
) -> Appointment:
    service = await _service_or_invalid(db, request.service_id)
    day = parse_booking_date(request.date)
    start = parse_start_time(request.start_time)

    if not policy.in_booking_window(day):
        raise PolicyRejection("Date is outside the booking window.", reason=RejectionReason.OUTSIDE_BOOKING_WINDOW)

    resolver = DateResolver(db)
    check_slot(await resolver.resolve(day), start, service, await _usage_for(db, day, policy), policy)

    patient = await patient_for(db, user.id)
    if patient is None:
        raise IdentityGap(UNLINKED_MESSAGE)
    hmo_id = await _check_hmo(db, patient, day, request.payment_method, request.patient_hmo_id)

    # Everything above was read-only. From here on the day is locked.
    await lock_booking_day(db, day)
    try:
        try:
            check_slot(await resolver.resolve(day), start, service, await _usage_for(db, day, policy), policy)
        except CapacityFull as exc:
            logger.info("booking_lost_race", date=day.isoformat(), full_at=exc.full_at)
            raise SlotJustFilled(
                f"Time slot starting at {exc.full_at} was just filled. Please choose another time.",
                full_at=exc.full_at,
            )

        appt = Appointment(
            patient_id=patient.id,
            service_id=service.id,
            patient_hmo_id=hmo_id,
            date=day,
            time_slot=format_time_slot(start, start + (service.estimated_minutes or 0)),
            reference_code=await _allocate_reference(db, policy.reference_code_attempts),
            status="pending",
            payment_method=request.payment_method,
            payment_status="awaiting_payment" if request.payment_method == "maya" else "unpaid",
        )
        db.add(appt)
        await db.flush()

        if notifier is not None:
            await notifier.emit(new_appointment_notice(appt, patient, service))

        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.warning("booking_integrity_error", date=day.isoformat(), error=str(exc.orig))
        raise ReferenceConflict("Could not allocate a unique reference code. Please try again.")
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "booking_created",
        appointment_id=appt.id,
        date=day.isoformat(),
        time_slot=appt.time_slot,
        service_id=service.id,
        payment_method=appt.payment_method,
    )
    return appt


async def list_slots(
    db: AsyncSession,
    *,
    day_raw: str,
    service_id: Optional[int],
    policy: ClinicPolicy,
) -> list[str]:
    """Every grid start the service still fits into; empty when closed."""
    day = parse_booking_date(day_raw)
    needed = 1
    if service_id is not None:
        service = await _service_or_invalid(db, service_id)
        needed = blocks_needed(service.estimated_minutes, policy.slot_minutes)

    snapshot = await DateResolver(db).resolve(day)
    if not snapshot.is_open:
        return []

    usage = await _usage_for(db, day, policy)
    starts = available_starts(
        snapshot.blocks(policy.slot_minutes),
        needed,
        usage,
        snapshot.effective_capacity,
        policy.slot_minutes,
    )
    return [format_clock(s) for s in starts]


async def resolve_reference(db: AsyncSession, code: str) -> ResolvedAppointment:
    """Front-desk check-in: approved bookings only."""
    appt = await appointment_crud.get_by_reference(db, code, status="approved")
    if appt is None:
        raise NotFound("Invalid or used reference code.")
    patient = await get_patient(db, appt.patient_id)
    service = await get_service(db, appt.service_id)
    return ResolvedAppointment(
        id=appt.id,
        patient_name=patient.full_name if patient is not None else "",
        service_name=service.name if service is not None else "",
        date=appt.date,
        time_slot=appt.time_slot,
    )


async def resolve_exact(db: AsyncSession, code: str, *, actor: User) -> Appointment:
    normalized = appointment_crud.normalize_reference(code)
    if len(normalized) != REFERENCE_LENGTH:
        raise ValidationFailed(f"The code field must be {REFERENCE_LENGTH} characters.", field="code")
    appt = await appointment_crud.get_by_reference(db, normalized)
    if appt is None:
        raise NotFound("No appointment found for that code")
    logger.info("resolve_by_code", actor_id=actor.id, appointment_id=appt.id, reference_code=normalized)
    return appt
