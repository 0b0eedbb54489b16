# clinic_booking/db/models/service.py

from decimal import Decimal
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from clinic_booking.db.session import Base

class Service(Base):
    __tablename__ = "services"

    id: Mapped[int] = mapped_column(sa.BigInteger().with_variant(sa.Integer, "sqlite"), primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(120), nullable=False)
    estimated_minutes: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="30")
    price: Mapped[Decimal | None] = mapped_column(sa.Numeric(10, 2))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.true(), default=True)
