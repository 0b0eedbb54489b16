# clinic_booking/schemas/appointment.py
from __future__ import annotations

import datetime as dt
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PaymentMethod = Literal["cash", "maya", "hmo"]


class AppointmentCreate(BaseModel):
    service_id: int = Field(..., description="Service being booked")
    # Parsed by the booking service so the failure carries a clinic-specific message
    date: str = Field(..., max_length=10, description="Appointment date, YYYY-MM-DD")
    start_time: str = Field(..., max_length=8, description="Block start, HH:MM or HH:MM:SS")
    payment_method: PaymentMethod
    patient_hmo_id: Optional[int] = Field(None, description="Required when payment_method is 'hmo'")


class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    service_id: int
    patient_hmo_id: Optional[int] = None
    date: dt.date
    time_slot: str
    reference_code: str
    status: str
    payment_method: str
    payment_status: str
    notes: Optional[str] = None
    canceled_at: Optional[datetime] = None
    created_at: datetime


class BookingResponse(BaseModel):
    message: str
    reference_code: str
    appointment: AppointmentOut


class RejectRequest(BaseModel):
    note: str = Field(..., min_length=1, max_length=1000)

    @field_validator("note")
    @classmethod
    def note_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("note is required")
        return v


class SlotsOut(BaseModel):
    slots: list[str] = Field(default_factory=list)


class ResolvedAppointment(BaseModel):
    """What the front desk sees after scanning a patient's reference code."""
    id: int
    patient_name: str
    service_name: str
    date: dt.date
    time_slot: str


class ActionResult(BaseModel):
    message: str
    appointment: Optional[AppointmentOut] = None
