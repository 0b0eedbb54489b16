# clinic_booking/api/routes/appointments.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.api.deps import (
    get_current_user,
    get_notifier,
    get_policy,
    require_patient,
    require_staff,
)
from clinic_booking.core.business import ClinicPolicy
from clinic_booking.crud import appointment as appointment_crud
from clinic_booking.crud.patient import patient_for
from clinic_booking.db.models.user import User
from clinic_booking.db.session import get_session
from clinic_booking.schemas.appointment import (
    ActionResult,
    AppointmentCreate,
    AppointmentOut,
    BookingResponse,
    RejectRequest,
    ResolvedAppointment,
    SlotsOut,
)
from clinic_booking.services import appointment_actions, booking
from clinic_booking.services.notifications import NotificationSink

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    payload: AppointmentCreate,
    user: User = Depends(get_current_user),
    policy: ClinicPolicy = Depends(get_policy),
    notifier: NotificationSink = Depends(get_notifier),
    db: AsyncSession = Depends(get_session),
):
    appt = await booking.book_appointment(db, user=user, request=payload, policy=policy, notifier=notifier)
    return BookingResponse(
        message="Appointment booked.",
        reference_code=appt.reference_code,
        appointment=AppointmentOut.model_validate(appt),
    )


@router.get("/slots", response_model=SlotsOut)
async def get_slots(
    date: str = Query(..., description="YYYY-MM-DD"),
    service_id: Optional[int] = Query(None),
    user: User = Depends(get_current_user),
    policy: ClinicPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_session),
):
    return SlotsOut(slots=await booking.list_slots(db, day_raw=date, service_id=service_id, policy=policy))


@router.get("", response_model=list[AppointmentOut])
async def list_appointments(
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    rows = await appointment_crud.list_appointments(
        db, status=status_filter, start_date=start_date, end_date=end_date,
    )
    return [AppointmentOut.model_validate(r) for r in rows]


@router.get("/mine", response_model=list[AppointmentOut])
async def my_appointments(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    patient = await patient_for(db, user.id)
    if patient is None:
        return []
    rows = await appointment_crud.list_appointments(db, patient_id=patient.id)
    return [AppointmentOut.model_validate(r) for r in rows]


@router.get("/resolve-exact", response_model=AppointmentOut)
async def resolve_exact(
    code: str = Query(..., min_length=1, max_length=32),
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    return AppointmentOut.model_validate(await booking.resolve_exact(db, code, actor=staff))


@router.get("/resolve/{code}", response_model=ResolvedAppointment)
async def resolve_reference(
    code: str,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    return await booking.resolve_reference(db, code)


@router.post("/{appointment_id}/approve", response_model=ActionResult)
async def approve_appointment(
    appointment_id: int,
    staff: User = Depends(require_staff),
    policy: ClinicPolicy = Depends(get_policy),
    notifier: NotificationSink = Depends(get_notifier),
    db: AsyncSession = Depends(get_session),
):
    appt = await appointment_actions.approve(db, appointment_id, actor=staff, policy=policy, notifier=notifier)
    return ActionResult(message="Appointment approved.", appointment=AppointmentOut.model_validate(appt))


@router.post("/{appointment_id}/reject", response_model=ActionResult)
async def reject_appointment(
    appointment_id: int,
    payload: RejectRequest,
    staff: User = Depends(require_staff),
    notifier: NotificationSink = Depends(get_notifier),
    db: AsyncSession = Depends(get_session),
):
    appt = await appointment_actions.reject(db, appointment_id, note=payload.note, actor=staff, notifier=notifier)
    return ActionResult(message="Appointment rejected.", appointment=AppointmentOut.model_validate(appt))


@router.post("/{appointment_id}/cancel", response_model=ActionResult)
async def cancel_appointment(
    appointment_id: int,
    user: User = Depends(require_patient),
    db: AsyncSession = Depends(get_session),
):
    appt = await appointment_actions.cancel(db, appointment_id, user=user)
    return ActionResult(message="Appointment canceled.", appointment=AppointmentOut.model_validate(appt))
