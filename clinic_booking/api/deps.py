# clinic_booking/api/deps.py
from __future__ import annotations

from typing import Callable

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.business import ClinicPolicy, current_policy
from clinic_booking.core.logging import bind_actor
from clinic_booking.crud.user import get_user
from clinic_booking.db.models.user import User
from clinic_booking.db.session import get_session
from clinic_booking.services.notifications import DatabaseNotificationSink, NotificationSink


async def get_current_user(
    x_user_id: str | None = Header(default=None),
    db: AsyncSession = Depends(get_session),
) -> User:
    """The acting user, named by the X-User-Id header."""
    if not x_user_id or not x_user_id.strip().isdigit():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthenticated.")
    user = await get_user(db, int(x_user_id))
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthenticated.")
    bind_actor(user.id, user.role)
    return user


def require_roles(*roles: str) -> Callable:
    async def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden.")
        return user
    return _guard


require_staff = require_roles("staff", "admin")
require_admin = require_roles("admin")
require_patient = require_roles("patient")


def get_policy() -> ClinicPolicy:
    """Clinic rules for this request, with 'today' in clinic time."""
    return current_policy()


def get_notifier(db: AsyncSession = Depends(get_session)) -> NotificationSink:
    return DatabaseNotificationSink(db)
