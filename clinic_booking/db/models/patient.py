# clinic_booking/db/models/patient.py

from __future__ import annotations
from datetime import date, datetime, timezone
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from clinic_booking.db.session import Base

BigId = sa.BigInteger().with_variant(sa.Integer, "sqlite")

class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = (
        sa.Index("ix_patients_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    # Staff may create a patient record before the person registers; the link comes later
    user_id: Mapped[int | None] = mapped_column(sa.BigInteger, sa.ForeignKey("users.id", ondelete="SET NULL"))
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    contact_number: Mapped[str | None] = mapped_column(sa.String(20))
    is_linked: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false(), default=False)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class PatientHmo(Base):
    __tablename__ = "patient_hmos"

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    # Optional validity range
    effective_date: Mapped[date | None] = mapped_column(sa.Date)
    expiry_date: Mapped[date | None] = mapped_column(sa.Date)
    is_primary: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false(), default=False)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    def covers(self, d: date) -> bool:
        if self.effective_date and self.effective_date > d:
            return False
        if self.expiry_date and self.expiry_date < d:
            return False
        return True
