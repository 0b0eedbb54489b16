# clinic_booking/crud/user.py

from __future__ import annotations
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.db.models.user import User

async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    return await db.get(User, user_id)
