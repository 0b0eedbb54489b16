# clinic_booking/db/models/dentist_schedule.py

from __future__ import annotations
from datetime import date, datetime, timezone
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from clinic_booking.db.session import Base
from clinic_booking.core.business import WEEKDAY_COLUMNS

EMPLOYMENT_TYPES = ("full_time", "part_time", "locum")
EMPLOYMENT_STATUSES = ("active", "inactive")

class DentistSchedule(Base):
    __tablename__ = "dentist_schedules"
    __table_args__ = (
        sa.UniqueConstraint("dentist_code", name="uq_dentist_schedules_dentist_code"),
        sa.Index("ix_dentist_schedules_status", "status"),
    )

    id: Mapped[int] = mapped_column(sa.BigInteger().with_variant(sa.Integer, "sqlite"), primary_key=True, autoincrement=True)
    # Stable anonymized identifier, e.g. D-001
    dentist_code: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    dentist_name: Mapped[str | None] = mapped_column(sa.String(120))
    is_pseudonymous: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.true(), default=True)

    employment_type: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="part_time")
    contract_end_date: Mapped[date | None] = mapped_column(sa.Date)
    status: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="active")

    # Working days, Sun..Sat
    sun: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false(), default=False)
    mon: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false(), default=False)
    tue: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false(), default=False)
    wed: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false(), default=False)
    thu: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false(), default=False)
    fri: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false(), default=False)
    sat: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false(), default=False)

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
    def working_days(self) -> list[str]:
        return [col for col in WEEKDAY_COLUMNS if getattr(self, col)]

    @property
    def display_code(self) -> str:
        return self.dentist_code or self.dentist_name or f"#{self.id}"
