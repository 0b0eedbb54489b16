# clinic_booking/services/notifications.py
"""
Notification payloads and the sink they are handed to.

Delivery is somebody else's job: the engine only records what should be
shown and to whom. The default sink writes `notifications` and
`notification_targets` rows inside the caller's transaction, so a rolled-back
closure leaves no notices behind.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Literal, Optional, Protocol, Sequence

from pydantic import BaseModel, Field
import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.business import ClinicPolicy
from clinic_booking.core.logging import get_logger
from clinic_booking.db.models.appointment import Appointment
from clinic_booking.db.models.notification import Notification, NotificationTarget
from clinic_booking.db.models.patient import Patient
from clinic_booking.db.models.service import Service

logger = get_logger(__name__)

ALL_ROLES = ["patient", "staff", "admin"]
STAFF_ROLES = ["admin", "staff"]


class NotificationPayload(BaseModel):
    type: str
    title: str
    body: Optional[str] = None
    severity: Literal["info", "warning", "danger"] = "info"
    scope: Literal["broadcast", "targeted"] = "targeted"
    audience_roles: Optional[list[str]] = None
    effective_from: Optional[datetime] = None
    effective_until: Optional[datetime] = None
    data: dict[str, Any] = Field(default_factory=dict)
    created_by: Optional[int] = None


class NotificationSink(Protocol):
    async def emit(self, payload: NotificationPayload, user_ids: Sequence[int] = ()) -> Optional[int]:
        ...


class DatabaseNotificationSink:
    """Adds rows to the session; the caller commits or rolls back."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def emit(self, payload: NotificationPayload, user_ids: Sequence[int] = ()) -> Optional[int]:
        row = Notification(**payload.model_dump())
        self.db.add(row)
        await self.db.flush()

        targets = sorted(set(user_ids))
        if targets:
            now = datetime.now(timezone.utc)
            await self.db.execute(
                sa.insert(NotificationTarget),
                [{"notification_id": row.id, "user_id": uid, "created_at": now} for uid in targets],
            )

        logger.info(
            "notification_recorded",
            notification_id=row.id,
            type=payload.type,
            scope=payload.scope,
            targets=len(targets),
        )
        return row.id


# ---------- payload builders ----------

def _appointment_data(appt: Appointment, **extra: Any) -> dict[str, Any]:
    data = {
        "appointment_id": appt.id,
        "patient_id": appt.patient_id,
        "service_id": appt.service_id,
        "reference_code": appt.reference_code,
        "date": appt.date.isoformat(),
        "time_slot": appt.time_slot,
        "payment_method": appt.payment_method,
        "status": appt.status,
    }
    data.update(extra)
    return data


def new_appointment_notice(appt: Appointment, patient: Patient, service: Service) -> NotificationPayload:
    """Broadcast to the front desk when a patient books."""
    name = patient.full_name or "Unknown Patient"
    return NotificationPayload(
        type="new_appointment",
        title=f"New Appointment: {name}",
        body=(
            f"Patient {name} has booked {service.name} for {appt.date.isoformat()} "
            f"at {appt.time_slot}. Ref: {appt.reference_code}"
        ),
        severity="info",
        scope="broadcast",
        audience_roles=STAFF_ROLES,
        effective_from=datetime.now(timezone.utc),
        data=_appointment_data(appt),
    )


def status_change_notice(appt: Appointment, service: Optional[Service], status: str) -> NotificationPayload:
    service_name = service.name if service is not None else "your service"
    return NotificationPayload(
        type="appointment_status",
        title=f"Appointment {status}: {service_name}",
        body=(
            f"Your appointment for {service_name} on {appt.date.isoformat()} at {appt.time_slot} "
            f"has been {status}. Ref: {appt.reference_code}"
        ),
        severity="info" if status == "approved" else "warning",
        scope="targeted",
        effective_from=datetime.now(timezone.utc),
        data=_appointment_data(appt, status=status),
    )


def closure_broadcast(day: date, message: Optional[str], policy: ClinicPolicy,
                      created_by: Optional[int] = None) -> NotificationPayload:
    """Visible to every role until the closed day is over."""
    return NotificationPayload(
        type="closure",
        title=f"Clinic closed on {day.isoformat()}",
        body=message,
        severity="warning",
        scope="broadcast",
        audience_roles=ALL_ROLES,
        effective_from=datetime.now(timezone.utc),
        effective_until=policy.end_of_day(day),
        data={"date": day.isoformat()},
        created_by=created_by,
    )


def closure_targeted(day: date, message: Optional[str], created_by: Optional[int] = None) -> NotificationPayload:
    return NotificationPayload(
        type="closure",
        title=f"Your appointment is affected ({day.isoformat()})",
        body=message,
        severity="danger",
        scope="targeted",
        effective_from=datetime.now(timezone.utc),
        data={"date": day.isoformat()},
        created_by=created_by,
    )
