# clinic_booking/services/appointment_actions.py
"""Staff approval/rejection and patient cancellation of pending bookings."""
from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.business import ClinicPolicy
from clinic_booking.core.errors import CapacityFull, IdentityGap, NotFound, StateConflict
from clinic_booking.core.logging import get_logger
from clinic_booking.core.timeslots import covered_blocks, parse_time_slot
from clinic_booking.crud import appointment as appointment_crud
from clinic_booking.crud.day_lock import lock_booking_day
from clinic_booking.crud.patient import get_patient, patient_for
from clinic_booking.crud.service import get_service
from clinic_booking.db.models.appointment import Appointment
from clinic_booking.db.models.user import User
from clinic_booking.services.booking import UNLINKED_MESSAGE
from clinic_booking.services.capacity import accumulate_usage, check_capacity
from clinic_booking.services.date_resolver import DateResolver
from clinic_booking.services.notifications import NotificationSink, status_change_notice

logger = get_logger(__name__)


async def _pending_or_raise(db: AsyncSession, appointment_id: int) -> Appointment:
    appt = await appointment_crud.get_appointment(db, appointment_id)
    if appt is None:
        raise NotFound("Appointment not found.")
    if appt.status != "pending":
        raise StateConflict("Appointment already processed.")
    return appt


async def _notify_patient(
    db: AsyncSession,
    appt: Appointment,
    status: str,
    notifier: Optional[NotificationSink],
) -> None:
    if notifier is None:
        return
    patient = await get_patient(db, appt.patient_id)
    # Patients without an account have nobody to notify
    if patient is None or patient.user_id is None:
        return
    service = await get_service(db, appt.service_id)
    await notifier.emit(status_change_notice(appt, service, status), [patient.user_id])


async def approve(
    db: AsyncSession,
    appointment_id: int,
    *,
    actor: User,
    policy: ClinicPolicy,
    notifier: Optional[NotificationSink] = None,
) -> Appointment:
    appt = await _pending_or_raise(db, appointment_id)
    day = appt.date

    await lock_booking_day(db, day)
    try:
        # Another approver may have won while we waited for the lock
        await db.refresh(appt)
        if appt.status != "pending":
            raise StateConflict("Appointment already processed.")

        try:
            start, end = parse_time_slot(appt.time_slot)
        except ValueError:
            logger.warning("time_slot_unparseable", appointment_id=appt.id, time_slot=appt.time_slot)
            start = end = None

        if start is not None:
            snapshot = await DateResolver(db).resolve(day)
            usage = accumulate_usage(
                await appointment_crud.occupying_time_slots(db, day, exclude_id=appt.id),
                policy.slot_minutes,
            )
            result = check_capacity(
                start,
                len(covered_blocks(start, end, policy.slot_minutes)),
                usage,
                snapshot.effective_capacity,
                snapshot.blocks(policy.slot_minutes),
                policy.slot_minutes,
            )
            if not result.ok:
                logger.warning(
                    "approve_failed_capacity",
                    actor_id=actor.id,
                    appointment_id=appt.id,
                    date=day.isoformat(),
                    time_slot=appt.time_slot,
                )
                raise CapacityFull("Cannot approve: slot is fully booked.", full_at=result.full_at_label)

        appt.status = "approved"
        await db.flush()
        await _notify_patient(db, appt, "approved", notifier)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("appointment_approved", actor_id=actor.id, appointment_id=appt.id)
    return appt


async def reject(
    db: AsyncSession,
    appointment_id: int,
    *,
    note: str,
    actor: User,
    notifier: Optional[NotificationSink] = None,
) -> Appointment:
    appt = await _pending_or_raise(db, appointment_id)

    await lock_booking_day(db, appt.date)
    try:
        # An approval may have landed while we waited for the lock
        await db.refresh(appt)
        if appt.status != "pending":
            raise StateConflict("Appointment already processed.")

        appt.status = "rejected"
        appt.append_note(note)
        await db.flush()
        await _notify_patient(db, appt, "rejected", notifier)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("appointment_rejected", actor_id=actor.id, appointment_id=appt.id, note=note)
    return appt


async def cancel(db: AsyncSession, appointment_id: int, *, user: User) -> Appointment:
    """Owning patient only, and only while the booking is still pending."""
    patient = await patient_for(db, user.id)
    if patient is None:
        raise IdentityGap(UNLINKED_MESSAGE)

    appt = await appointment_crud.get_appointment(db, appointment_id)
    if appt is None or appt.patient_id != patient.id:
        raise NotFound("Appointment not found.")
    if appt.status != "pending":
        raise StateConflict("Only pending appointments can be canceled.")

    await lock_booking_day(db, appt.date)
    try:
        await db.refresh(appt)
        if appt.status != "pending":
            raise StateConflict("Only pending appointments can be canceled.")
        appt.mark_as_cancelled()
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("appointment_canceled_by_patient", appointment_id=appt.id, patient_id=patient.id)
    return appt
