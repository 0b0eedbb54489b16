# clinic_booking/crud/dentist.py

from __future__ import annotations
from typing import Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.db.models.dentist_schedule import DentistSchedule

async def list_dentists(db: AsyncSession, *, status: Optional[str] = None) -> Sequence[DentistSchedule]:
    q = sa.select(DentistSchedule)
    if status is not None:
        q = q.where(DentistSchedule.status == status)
    res = await db.execute(q.order_by(DentistSchedule.dentist_code))
    return res.scalars().all()

async def get_dentist(db: AsyncSession, dentist_id: int) -> Optional[DentistSchedule]:
    return await db.get(DentistSchedule, dentist_id)

async def get_dentist_by_code(db: AsyncSession, code: str) -> Optional[DentistSchedule]:
    res = await db.execute(sa.select(DentistSchedule).where(DentistSchedule.dentist_code == code))
    return res.scalar_one_or_none()
