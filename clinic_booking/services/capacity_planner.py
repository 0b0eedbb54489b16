# clinic_booking/services/capacity_planner.py
"""
Admin capacity edits for a single date.

Only the cap moves. Hours and open/closed stay with the weekly defaults and
manual rows. Lowering the cap below what is already booked is allowed: the
admin gets a warning and no booking is cancelled.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.business import ClinicPolicy
from clinic_booking.core.errors import PolicyRejection, RejectionReason
from clinic_booking.core.logging import get_logger
from clinic_booking.crud import appointment as appointment_crud
from clinic_booking.crud.calendar import get_override
from clinic_booking.crud.day_lock import lock_booking_day
from clinic_booking.db.models.clinic_calendar import ClinicCalendar
from clinic_booking.services.capacity import accumulate_usage, peak_usage

logger = get_logger(__name__)

MANUAL_ROW_INFO = "Manual override exists; capacity not applied."


@dataclass(frozen=True)
class CapacityEditResult:
    ok: bool = True
    warning: Optional[str] = None
    info: Optional[str] = None


def peak_warning(peak: int, cap: Optional[int]) -> Optional[str]:
    if cap is None or peak <= cap:
        return None
    return (
        f"Heads up: existing bookings peak at {peak}, higher than new cap {cap}. "
        "No cancellations were made."
    )


async def set_day_capacity(
    db: AsyncSession,
    day: date,
    *,
    max_parallel: Optional[int],
    note: Optional[str],
    policy: ClinicPolicy,
) -> CapacityEditResult:
    if not policy.in_edit_window(day):
        raise PolicyRejection(
            f"You can only edit caps for the next {policy.edit_window_days} days.",
            reason=RejectionReason.OUTSIDE_EDIT_WINDOW,
        )

    await lock_booking_day(db, day)
    try:
        row = await get_override(db, day)

        if row is not None and not row.is_generated and not policy.capacity_on_manual_rows:
            await db.rollback()
            logger.info("capacity_edit_skipped_manual_row", date=day.isoformat())
            return CapacityEditResult(info=MANUAL_ROW_INFO)

        slots = await appointment_crud.occupying_time_slots(db, day)
        peak = peak_usage(accumulate_usage(slots, policy.slot_minutes))
        warning = peak_warning(peak, max_parallel)

        if row is not None and not row.is_generated:
            # Manual row: the cap (and note, when given) only
            row.capacity_cap = max_parallel
            if note is not None:
                row.note = note
        else:
            if row is None:
                row = ClinicCalendar(date=day)
                db.add(row)
            row.is_generated = True
            row.capacity_cap = max_parallel
            row.note = note
            row.is_open = None
            row.open_time = None
            row.close_time = None

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "capacity_cap_set",
        date=day.isoformat(),
        cap=max_parallel,
        peak=peak,
        manual_row=not row.is_generated,
        warned=warning is not None,
    )
    return CapacityEditResult(warning=warning)
