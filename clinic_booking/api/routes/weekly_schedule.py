# clinic_booking/api/routes/weekly_schedule.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.api.deps import require_admin, require_staff
from clinic_booking.crud.calendar import list_weekly
from clinic_booking.db.models.user import User
from clinic_booking.db.session import get_session
from clinic_booking.schemas.weekly_schedule import WeeklyScheduleOut, WeeklyScheduleUpdate
from clinic_booking.services.calendar_admin import update_weekly

router = APIRouter(prefix="/weekly-schedule", tags=["weekly-schedule"])


@router.get("", response_model=list[WeeklyScheduleOut])
async def get_weekly_schedule(
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    return [WeeklyScheduleOut.model_validate(r) for r in await list_weekly(db)]


@router.patch("/{row_id}", response_model=WeeklyScheduleOut)
async def patch_weekly_schedule(
    row_id: int,
    payload: WeeklyScheduleUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    return WeeklyScheduleOut.model_validate(await update_weekly(db, row_id, payload))
