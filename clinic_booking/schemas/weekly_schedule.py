# clinic_booking/schemas/weekly_schedule.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clinic_booking.core.timeslots import normalize_clock


class WeeklyScheduleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    weekday: int
    is_open: bool
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    note: Optional[str] = None

    @field_validator("open_time", "close_time", mode="before")
    @classmethod
    def render_clock(cls, v):
        return None if v is None else normalize_clock(v)


class WeeklyScheduleUpdate(BaseModel):
    is_open: bool
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    note: Optional[str] = Field(None, max_length=255)

    @field_validator("open_time", "close_time")
    @classmethod
    def normalize_clock_fields(cls, v: Optional[str]) -> Optional[str]:
        return None if not v else normalize_clock(v)
