# clinic_booking/schemas/calendar.py
from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clinic_booking.core.timeslots import normalize_clock


class ClosureRequest(BaseModel):
    closed: bool
    message: Optional[str] = Field(None, max_length=2000)


class ClosureResponse(BaseModel):
    message: str
    auto_rejected: int


class DayCapacityRequest(BaseModel):
    max_parallel: Optional[int] = Field(None, ge=0, description="Per-block cap; null removes the cap")
    note: Optional[str] = Field(None, max_length=255)


class DayCapacityResponse(BaseModel):
    ok: bool = True
    warning: Optional[str] = None
    info: Optional[str] = None


class OverrideBase(BaseModel):
    is_open: bool
    open_time: Optional[str] = Field(None, description="HH:MM; falls back to the weekly hours")
    close_time: Optional[str] = None
    capacity_cap: Optional[int] = Field(None, ge=1, le=50)
    note: Optional[str] = Field(None, max_length=255)

    @field_validator("open_time", "close_time")
    @classmethod
    def normalize_clock_fields(cls, v: Optional[str]) -> Optional[str]:
        return None if not v else normalize_clock(v)


class OverrideCreate(OverrideBase):
    date: dt.date


class OverrideUpdate(OverrideBase):
    pass


class OverrideOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: dt.date
    is_open: Optional[bool] = None
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    capacity_cap: Optional[int] = None
    is_generated: bool
    note: Optional[str] = None

    @field_validator("open_time", "close_time", mode="before")
    @classmethod
    def render_clock(cls, v):
        return None if v is None else normalize_clock(v)


class DailyRow(BaseModel):
    date: dt.date
    active_dentists: int
    max_parallel: Optional[int] = None
    is_closed: bool
    note: Optional[str] = None


class PreviewRow(BaseModel):
    date: dt.date
    is_open: bool
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    dentist_count: int
    capacity_cap: Optional[int] = None
    effective_capacity: int
    source: str
    bookable_for_patients: bool


class ClosureAlert(BaseModel):
    date: dt.date
    closure_message: Optional[str] = None


class ClosureAlertsOut(BaseModel):
    today: dt.date
    until: dt.date
    closures: list[ClosureAlert]


class ClosureImpact(BaseModel):
    appointment_id: int
    date: dt.date
    time_slot: str
    service_id: int
    status: str
    closure_message: Optional[str] = None


class ClosureImpactsOut(BaseModel):
    today: dt.date
    until: dt.date
    impacts: list[ClosureImpact]
