# clinic_booking/db/models/notification.py

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from clinic_booking.db.session import Base

BigId = sa.BigInteger().with_variant(sa.Integer, "sqlite")


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        sa.Index("ix_notifications_scope_effective_from", "scope", "effective_from"),
        sa.Index("ix_notifications_scope_effective_until", "scope", "effective_until"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(sa.String(50), nullable=False)  # closure, new_appointment, appointment_status
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    body: Mapped[str | None] = mapped_column(sa.Text)
    severity: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="info")

    # audience & timing
    scope: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="targeted")
    audience_roles: Mapped[list[str] | None] = mapped_column(sa.JSON)
    effective_from: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True))
    effective_until: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True))

    data: Mapped[dict[str, Any] | None] = mapped_column(sa.JSON)
    created_by: Mapped[int | None] = mapped_column(sa.BigInteger, sa.ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )


class NotificationTarget(Base):
    __tablename__ = "notification_targets"
    __table_args__ = (
        sa.UniqueConstraint("notification_id", "user_id", name="uq_notification_targets_notification_user"),
        sa.Index("ix_notification_targets_user_read", "user_id", "read_at"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    notification_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    seen_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True))
    read_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
