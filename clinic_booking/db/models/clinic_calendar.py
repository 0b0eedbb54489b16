# clinic_booking/db/models/clinic_calendar.py

from __future__ import annotations
import datetime as dt
from datetime import datetime, time, timezone
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from clinic_booking.db.session import Base

BigId = sa.BigInteger().with_variant(sa.Integer, "sqlite")


class ClinicWeeklySchedule(Base):
    """Baseline hours per weekday, 0 = Sunday .. 6 = Saturday."""
    __tablename__ = "clinic_weekly_schedules"
    __table_args__ = (
        sa.UniqueConstraint("weekday", name="uq_clinic_weekly_schedules_weekday"),
        sa.CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_clinic_weekly_schedules_weekday"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    weekday: Mapped[int] = mapped_column(sa.SmallInteger, nullable=False)
    is_open: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false(), default=False)
    open_time: Mapped[time | None] = mapped_column(sa.Time)
    close_time: Mapped[time | None] = mapped_column(sa.Time)
    note: Mapped[str | None] = mapped_column(sa.String(255))

    updated_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True),
        onupdate=lambda: datetime.now(timezone.utc)
    )


class ClinicCalendar(Base):
    """
    One row per date. Two kinds share the table:

    * manual rows (is_generated = False): holidays and special hours entered by
      an admin; is_open/open_time/close_time are authoritative for the date.
    * generated rows (is_generated = True): written by the capacity planner,
      carry only capacity_cap and note; their open/hours columns stay NULL.
    """
    __tablename__ = "clinic_calendar"
    __table_args__ = (
        sa.UniqueConstraint("date", name="uq_clinic_calendar_date"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    date: Mapped[dt.date] = mapped_column(sa.Date, nullable=False)

    is_open: Mapped[bool | None] = mapped_column(sa.Boolean)
    open_time: Mapped[time | None] = mapped_column(sa.Time)
    close_time: Mapped[time | None] = mapped_column(sa.Time)

    # NULL means "no cap": capacity follows the dentist headcount
    capacity_cap: Mapped[int | None] = mapped_column(sa.SmallInteger)
    is_generated: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false(), default=False)
    note: Mapped[str | None] = mapped_column(sa.String(2000))

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    @property
    def is_manual(self) -> bool:
        return not self.is_generated


class BookingDayLock(Base):
    """
    Serialization point for date-scoped writes.

    Booking, approval, closure and capacity edits bump `version` for their date
    as the first statement of their transaction, so a second writer for the
    same date waits until the first commits or rolls back.
    """
    __tablename__ = "booking_day_locks"

    day: Mapped[dt.date] = mapped_column(sa.Date, primary_key=True)
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="0", default=0)
