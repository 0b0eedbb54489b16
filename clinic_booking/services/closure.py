# clinic_booking/services/closure.py
"""
Closing (or reopening) a clinic date.

Closing is one transaction: mark the date closed, reject every booking that
still holds capacity on it, and record the closure notices. If any step
fails nothing is kept. Reopening only flips the row back; rejected bookings
stay rejected. Manual overrides that close a date reuse the same cascade.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.business import ClinicPolicy
from clinic_booking.core.logging import get_logger
from clinic_booking.crud import appointment as appointment_crud
from clinic_booking.crud.calendar import get_override
from clinic_booking.crud.day_lock import lock_booking_day
from clinic_booking.db.models.clinic_calendar import ClinicCalendar
from clinic_booking.db.models.user import User
from clinic_booking.services.notifications import NotificationSink, closure_broadcast, closure_targeted

logger = get_logger(__name__)

CLOSURE_UPDATED = "Clinic closure updated."


@dataclass(frozen=True)
class ClosureResult:
    message: str
    auto_rejected: int
    notified_users: int = 0


def closure_reason(day: date, message: Optional[str]) -> str:
    reason = f"Auto-rejected due to clinic closure {day.isoformat()}"
    return f"{reason} - {message}" if message else reason


def _already_closed(row: Optional[ClinicCalendar], message: Optional[str]) -> bool:
    return (
        row is not None
        and not row.is_generated
        and row.is_open is False
        and (row.note or None) == (message or None)
    )


async def cascade_closure(
    db: AsyncSession,
    day: date,
    message: Optional[str],
    *,
    policy: ClinicPolicy,
    actor_id: Optional[int] = None,
    notifier: Optional[NotificationSink] = None,
    announce: bool = True,
) -> tuple[int, int]:
    """
    Reject what still occupies `day` and record the closure notices.

    Runs inside the caller's transaction, under the day lock, and does not
    commit. The broadcast goes out when `announce` is set or something was
    rejected; the targeted notice reaches only owners of the bookings
    rejected here. Returns (auto_rejected, notified_users).
    """
    rejected_ids = await appointment_crud.reject_occupying_for_day(db, day, closure_reason(day, message))

    notified = 0
    if notifier is not None and (announce or rejected_ids):
        await notifier.emit(closure_broadcast(day, message, policy, created_by=actor_id))
        user_ids = await appointment_crud.user_ids_for_appointments(db, rejected_ids)
        if user_ids:
            await notifier.emit(closure_targeted(day, message, created_by=actor_id), user_ids)
        notified = len(user_ids)
    return len(rejected_ids), notified


async def set_closure(
    db: AsyncSession,
    day: date,
    *,
    closed: bool,
    message: Optional[str],
    policy: ClinicPolicy,
    actor: Optional[User] = None,
    notifier: Optional[NotificationSink] = None,
) -> ClosureResult:
    actor_id = actor.id if actor is not None else None

    await lock_booking_day(db, day)
    try:
        row = await get_override(db, day)
        repeat = closed and _already_closed(row, message)

        if row is None:
            row = ClinicCalendar(date=day)
            db.add(row)
        # A generated row becomes a manual one; its cap is kept
        row.is_generated = False
        row.is_open = not closed
        row.note = message
        await db.flush()

        auto_rejected = notified = 0
        if closed:
            auto_rejected, notified = await cascade_closure(
                db, day, message,
                policy=policy,
                actor_id=actor_id,
                notifier=notifier,
                announce=not repeat,
            )

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "closure_applied" if closed else "closure_lifted",
        date=day.isoformat(),
        actor_id=actor_id,
        auto_rejected=auto_rejected,
        notified_users=notified,
        repeat=repeat,
    )
    return ClosureResult(message=CLOSURE_UPDATED, auto_rejected=auto_rejected, notified_users=notified)
