# clinic_booking/core/business.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from clinic_booking.core.config import Settings, settings as default_settings

# 0=Sun .. 6=Sat, matching the weekly schedule rows and the dentist weekday flags
WEEKDAY_COLUMNS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def weekday_index(d: date) -> int:
    """Python's Monday=0 converted to the clinic's Sunday=0 convention."""
    return (d.weekday() + 1) % 7


@dataclass(frozen=True)
class ClinicPolicy:
    """
    Per-request snapshot of the clinic rules.

    Built from settings when a request starts and handed to the services, so
    nothing below the route layer reads global configuration or the wall clock.
    """
    today: date
    tz: ZoneInfo = field(default_factory=lambda: ZoneInfo("Asia/Manila"))
    slot_minutes: int = 30
    booking_window_days: int = 7
    edit_window_days: int = 14
    capacity_on_manual_rows: bool = False
    reference_code_attempts: int = 5

    # Booking window: tomorrow .. today + booking_window_days
    @property
    def booking_window(self) -> tuple[date, date]:
        return self.today + timedelta(days=1), self.today + timedelta(days=self.booking_window_days)

    def in_booking_window(self, d: date) -> bool:
        first, last = self.booking_window
        return first <= d <= last

    # Capacity edit window: today .. today + edit_window_days - 1
    @property
    def edit_window(self) -> tuple[date, date]:
        return self.today, self.today + timedelta(days=self.edit_window_days - 1)

    def in_edit_window(self, d: date) -> bool:
        first, last = self.edit_window
        return first <= d <= last

    def end_of_day(self, d: date) -> datetime:
        """Last instant of `d` in clinic time, as UTC."""
        return datetime.combine(d, time.max, tzinfo=self.tz).astimezone(timezone.utc)


def current_policy(cfg: Settings = default_settings, *, now: datetime | None = None) -> ClinicPolicy:
    tz = ZoneInfo(cfg.CLINIC_TIMEZONE)
    local_now = (now or datetime.now(timezone.utc)).astimezone(tz)
    return ClinicPolicy(
        today=local_now.date(),
        tz=tz,
        slot_minutes=cfg.SLOT_MINUTES,
        booking_window_days=cfg.BOOKING_WINDOW_DAYS,
        edit_window_days=cfg.CAPACITY_EDIT_WINDOW_DAYS,
        capacity_on_manual_rows=cfg.CAPACITY_EDITS_MANUAL_ROWS,
        reference_code_attempts=cfg.REFERENCE_CODE_ATTEMPTS,
    )
