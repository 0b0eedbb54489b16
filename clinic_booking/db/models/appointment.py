# clinic_booking/db/models/appointment.py

from __future__ import annotations
import datetime as dt
from datetime import datetime, timezone
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from clinic_booking.db.session import Base

STATUSES = ("pending", "approved", "rejected", "cancelled", "completed")
PAYMENT_METHODS = ("cash", "maya", "hmo")
PAYMENT_STATUSES = ("unpaid", "awaiting_payment", "paid")

# Bookings in these states hold capacity in their blocks
OCCUPYING_STATUSES = ("pending", "approved")

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        sa.UniqueConstraint("reference_code", name="uq_appointments_reference_code"),
        sa.Index("ix_appointments_date_status", "date", "status"),
        sa.Index("ix_appointments_patient_status_date", "patient_id", "status", "date"),
    )

    id: Mapped[int] = mapped_column(sa.BigInteger().with_variant(sa.Integer, "sqlite"), primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    service_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    patient_hmo_id: Mapped[int | None] = mapped_column(sa.BigInteger, sa.ForeignKey("patient_hmos.id", ondelete="SET NULL"))

    date: Mapped[dt.date] = mapped_column(sa.Date, nullable=False)
    # "HH:MM-HH:MM"
    time_slot: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    reference_code: Mapped[str] = mapped_column(sa.String(8), nullable=False)

    status: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="pending")
    payment_method: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="cash")
    payment_status: Mapped[str] = mapped_column(sa.String(20), nullable=False, server_default="unpaid")

    notes: Mapped[str | None] = mapped_column(sa.Text)
    canceled_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True))
    reminded_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    def append_note(self, text: str) -> None:
        """Notes are an audit trail: add, never overwrite."""
        self.notes = text if not self.notes else f"{self.notes} | {text}"

    def mark_as_cancelled(self, reason: str = "Cancelled by patient."):
        self.status = "cancelled"
        self.canceled_at = datetime.now(timezone.utc)
        self.append_note(reason)
