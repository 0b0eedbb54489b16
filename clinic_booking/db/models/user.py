# clinic_booking/db/models/user.py

from datetime import datetime, timezone
from sqlalchemy.orm import Mapped, mapped_column
import sqlalchemy as sa

from clinic_booking.db.session import Base

ROLES = ("patient", "staff", "admin")

class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(sa.BigInteger().with_variant(sa.Integer, "sqlite"), primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(120), nullable=False)
    email: Mapped[str | None] = mapped_column(sa.String(255), unique=True)
    contact_number: Mapped[str | None] = mapped_column(sa.String(20))
    role: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="patient")
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    @property
    def is_staff(self) -> bool:
        return self.role in ("staff", "admin")
