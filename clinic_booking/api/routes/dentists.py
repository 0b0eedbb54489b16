# clinic_booking/api/routes/dentists.py
from __future__ import annotations

import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.api.deps import get_policy, require_admin, require_staff
from clinic_booking.core.business import ClinicPolicy
from clinic_booking.core.errors import NotFound
from clinic_booking.crud import dentist as dentist_crud
from clinic_booking.db.models.user import User
from clinic_booking.db.session import get_session
from clinic_booking.schemas.dentist import AvailableDentistsOut, DentistCreate, DentistOut, DentistUpdate
from clinic_booking.services import calendar_admin
from clinic_booking.services.date_resolver import DateResolver

router = APIRouter(prefix="/dentists", tags=["dentists"])


@router.get("", response_model=list[DentistOut])
async def list_dentists(
    status: Optional[str] = Query(None),
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    return [DentistOut.model_validate(r) for r in await dentist_crud.list_dentists(db, status=status)]


@router.get("/available", response_model=AvailableDentistsOut)
async def available_dentists(
    date: dt.date = Query(...),
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    codes = await DateResolver(db).dentist_codes(date)
    return AvailableDentistsOut(date=date, count=len(codes), dentist_codes=codes)


@router.post("", response_model=DentistOut, status_code=201)
async def create_dentist(
    payload: DentistCreate,
    admin: User = Depends(require_admin),
    policy: ClinicPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_session),
):
    return DentistOut.model_validate(await calendar_admin.create_dentist(db, payload, policy))


@router.get("/{dentist_id}", response_model=DentistOut)
async def get_dentist(
    dentist_id: int,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    row = await dentist_crud.get_dentist(db, dentist_id)
    if row is None:
        raise NotFound("Dentist not found.")
    return DentistOut.model_validate(row)


@router.put("/{dentist_id}", response_model=DentistOut)
async def update_dentist(
    dentist_id: int,
    payload: DentistUpdate,
    admin: User = Depends(require_admin),
    policy: ClinicPolicy = Depends(get_policy),
    db: AsyncSession = Depends(get_session),
):
    return DentistOut.model_validate(await calendar_admin.update_dentist(db, dentist_id, payload, policy))


@router.delete("/{dentist_id}")
async def delete_dentist(
    dentist_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    await calendar_admin.delete_dentist(db, dentist_id)
    return {"message": "Dentist removed."}
