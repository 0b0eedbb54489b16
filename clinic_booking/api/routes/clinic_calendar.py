# clinic_booking/api/routes/clinic_calendar.py
from __future__ import annotations

import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.api.deps import get_current_user, get_notifier, get_policy, require_admin, require_staff
from clinic_booking.core.business import ClinicPolicy
from clinic_booking.crud import calendar as calendar_crud
from clinic_booking.db.models.user import User
from clinic_booking.db.session import get_session
from clinic_booking.schemas.calendar import (
    ClosureAlertsOut,
    ClosureImpactsOut,
    ClosureRequest,
    ClosureResponse,
    DailyRow,
    DayCapacityRequest,
    DayCapacityResponse,
    OverrideCreate,
    OverrideOut,
    OverrideUpdate,
    PreviewRow,
)
from clinic_booking.services import calendar_admin, calendar_views
from clinic_booking.services.capacity_planner import set_day_capacity
from clinic_booking.services.closure import set_closure
from clinic_booking.services.notifications import NotificationSink

router = APIRouter(prefix="/clinic-calendar", tags=["clinic-calendar"])
me_router = APIRouter(prefix="/me", tags=["clinic-calendar"])


# -------- Engine operations --------

@router.put("/{day}/closure", response_model=ClosureResponse)
async def put_closure(
    day: dt.date,
    payload: ClosureRequest,
    admin: User = Depends(require_admin),
    policy: ClinicPolicy = Depends(get_policy),
    notifier: NotificationSink = Depends(get_notifier),
    db: AsyncSession = Depends(get_session),
):
    result = await set_closure(
        db, day,
        closed=payload.closed,
        message=payload.message,
        policy=policy,
        actor=admin,
        notifier=notifier,
    )
    return ClosureResponse(message=result.message, auto_rejected=result.auto_rejected)


@router.put("/day/{day}", response_model=DayCapacityResponse, response_model_exclude_none=True)
async def put_day_capacity(
    day: dt.date,
    payload: DayCapacityRequest,
    admin: User = Depends(require_admin),
    policy: ClinicPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_session),
):
    result = await set_day_capacity(db, day, max_parallel=payload.max_parallel, note=payload.note, policy=policy)
    return DayCapacityResponse(ok=result.ok, warning=result.warning, info=result.info)


# -------- Views --------

@router.get("/daily", response_model=list[DailyRow])
async def get_daily(
    from_: Optional[dt.date] = Query(None, alias="from"),
    days: int = Query(14),
    staff: User = Depends(require_staff),
    policy: ClinicPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_session),
):
    return await calendar_views.daily(db, from_ or policy.today, days)


@router.get("/preview", response_model=list[PreviewRow])
async def get_preview(
    days: int = Query(14),
    staff: User = Depends(require_staff),
    policy: ClinicPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_session),
):
    return await calendar_views.preview(db, policy, days)


@router.get("/alerts", response_model=ClosureAlertsOut)
async def get_alerts(
    within_days: int = Query(7, alias="withinDays"),
    user: User = Depends(get_current_user),
    policy: ClinicPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_session),
):
    return await calendar_views.upcoming_closures(db, policy, within_days)


# -------- Manual overrides --------

@router.get("", response_model=list[OverrideOut])
async def list_overrides(
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    return [OverrideOut.model_validate(r) for r in await calendar_crud.list_manual_overrides(db)]


@router.post("", response_model=OverrideOut, status_code=201)
async def create_override(
    payload: OverrideCreate,
    admin: User = Depends(require_admin),
    policy: ClinicPolicy = Depends(get_policy),
    notifier: NotificationSink = Depends(get_notifier),
    db: AsyncSession = Depends(get_session),
):
    row = await calendar_admin.create_override(db, payload, policy=policy, actor=admin, notifier=notifier)
    return OverrideOut.model_validate(row)


@router.put("/{row_id}", response_model=OverrideOut)
async def update_override(
    row_id: int,
    payload: OverrideUpdate,
    admin: User = Depends(require_admin),
    policy: ClinicPolicy = Depends(get_policy),
    notifier: NotificationSink = Depends(get_notifier),
    db: AsyncSession = Depends(get_session),
):
    row = await calendar_admin.update_override(db, row_id, payload, policy=policy, actor=admin, notifier=notifier)
    return OverrideOut.model_validate(row)


@router.delete("/{row_id}")
async def delete_override(
    row_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    await calendar_admin.delete_override(db, row_id)
    return {"message": "Event removed from clinic calendar."}


# -------- Patient feed --------

@me_router.get("/closure-impacts", response_model=ClosureImpactsOut)
async def my_closure_impacts(
    days: int = Query(30),
    user: User = Depends(get_current_user),
    policy: ClinicPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_session),
):
    return await calendar_views.closure_impacts(db, user, policy, days)
