# clinic_booking/schemas/dentist.py
from __future__ import annotations

import datetime as dt
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from clinic_booking.core.business import WEEKDAY_COLUMNS

EmploymentType = Literal["full_time", "part_time", "locum"]
EmploymentStatus = Literal["active", "inactive"]


class DentistBase(BaseModel):
    dentist_code: str = Field(..., min_length=1, max_length=32)
    dentist_name: Optional[str] = Field(None, max_length=120)
    is_pseudonymous: bool = True
    employment_type: EmploymentType = "part_time"
    contract_end_date: Optional[dt.date] = None
    status: EmploymentStatus = "active"

    sun: bool = False
    mon: bool = False
    tue: bool = False
    wed: bool = False
    thu: bool = False
    fri: bool = False
    sat: bool = False

    @model_validator(mode="after")
    def at_least_one_working_day(self):
        if not any(getattr(self, col) for col in WEEKDAY_COLUMNS):
            raise ValueError("Select at least one working day.")
        return self


class DentistCreate(DentistBase):
    pass


class DentistUpdate(DentistBase):
    pass


class DentistOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    dentist_code: str
    dentist_name: Optional[str] = None
    is_pseudonymous: bool
    employment_type: str
    contract_end_date: Optional[dt.date] = None
    status: str
    sun: bool
    mon: bool
    tue: bool
    wed: bool
    thu: bool
    fri: bool
    sat: bool


class AvailableDentistsOut(BaseModel):
    date: dt.date
    count: int
    dentist_codes: list[str]
