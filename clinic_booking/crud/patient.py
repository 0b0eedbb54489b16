# clinic_booking/crud/patient.py

from __future__ import annotations
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.db.models.patient import Patient, PatientHmo

async def patient_for(db: AsyncSession, user_id: int) -> Optional[Patient]:
    """
    The patient record linked to `user_id`.

    None unless exactly one linked record exists; an ambiguous link is treated
    the same as no link so the front desk can fix it.
    """
    res = await db.execute(
        sa.select(Patient)
        .where(Patient.user_id == user_id, Patient.is_linked.is_(True))
        .limit(2)
    )
    rows = res.scalars().all()
    return rows[0] if len(rows) == 1 else None

async def get_patient(db: AsyncSession, patient_id: int) -> Optional[Patient]:
    return await db.get(Patient, patient_id)

async def get_patient_hmo(db: AsyncSession, hmo_id: int) -> Optional[PatientHmo]:
    return await db.get(PatientHmo, hmo_id)
