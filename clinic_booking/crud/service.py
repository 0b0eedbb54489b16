# clinic_booking/crud/service.py

from __future__ import annotations
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.db.models.service import Service

async def get_service(db: AsyncSession, service_id: int) -> Optional[Service]:
    return await db.get(Service, service_id)
