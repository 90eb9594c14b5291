"""Pydantic schemas for protocols, dose logs and computed schedules."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DayOfWeek = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
FrequencyTypeLiteral = Literal["daily", "specific-days", "every-x-days", "cycling"]
TimingPreference = Literal[
    "morning-fasted",
    "morning-with-food",
    "afternoon",
    "evening",
    "before-bed",
    "any-time",
]
ProtocolStatusLiteral = Literal["active", "paused"]
DoseStatusLiteral = Literal["pending", "taken", "skipped", "overdue"]


class ProtocolBase(BaseModel):
    peptide_name: str = Field(min_length=1, max_length=255)
    dose: str = Field(min_length=1, max_length=64)
    frequency_type: FrequencyTypeLiteral = "daily"
    specific_days: list[DayOfWeek] | None = None
    interval_days: int | None = Field(default=None, ge=1, le=365)
    cycle_on_days: int | None = Field(default=None, ge=1, le=365)
    cycle_off_days: int | None = Field(default=None, ge=0, le=365)
    cycle_start_date: date | None = None
    timing_preference: TimingPreference = "any-time"
    preferred_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    doses_per_day: int = Field(default=1, ge=1, le=10)
    status: ProtocolStatusLiteral = "active"
    start_date: date


class ProtocolCreate(ProtocolBase):
    @model_validator(mode="after")
    def _check_rule(self):
        if self.frequency_type == "specific-days" and not self.specific_days:
            raise ValueError("specific_days is required for specific-days protocols")
        return self


class ProtocolUpdate(BaseModel):
    """PATCH body: only supplied fields change."""

    peptide_name: str | None = Field(default=None, min_length=1, max_length=255)
    dose: str | None = Field(default=None, min_length=1, max_length=64)
    frequency_type: FrequencyTypeLiteral | None = None
    specific_days: list[DayOfWeek] | None = None
    interval_days: int | None = Field(default=None, ge=1, le=365)
    cycle_on_days: int | None = Field(default=None, ge=1, le=365)
    cycle_off_days: int | None = Field(default=None, ge=0, le=365)
    cycle_start_date: date | None = None
    timing_preference: TimingPreference | None = None
    preferred_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    doses_per_day: int | None = Field(default=None, ge=1, le=10)
    status: ProtocolStatusLiteral | None = None
    start_date: date | None = None


class ProtocolOut(ProtocolBase):
    id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    frequency_summary: str | None = None

    model_config = {"from_attributes": True}


class DoseLogCreate(BaseModel):
    protocol_id: int
    scheduled_for: datetime
    dose_number: int = Field(default=1, ge=1, le=10)
    status: DoseStatusLiteral = "taken"
    taken_at: datetime | None = None
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("status")
    @classmethod
    def _not_overdue(cls, v: str) -> str:
        # overdue is computed by the scheduler, never stored
        if v == "overdue":
            raise ValueError("status 'overdue' cannot be logged")
        return v


class DoseLogOut(BaseModel):
    id: int
    protocol_id: int
    peptide_name: str
    dose: str
    dose_number: int
    scheduled_for: datetime
    taken_at: datetime | None = None
    status: DoseStatusLiteral
    notes: str | None = None

    model_config = {"from_attributes": True}


class ScheduledDose(BaseModel):
    protocol_id: int
    peptide_name: str
    dose: str
    scheduled_date: date
    scheduled_time: str | None = None
    timing_preference: str
    dose_number: int
    total_doses: int
    requires_fasting: bool = False
    status: DoseStatusLiteral
    dose_log_id: int | None = None


class DaySchedule(BaseModel):
    date: date
    day_of_week: DayOfWeek
    doses: list[ScheduledDose] = Field(default_factory=list)
    is_today: bool = False
    is_past: bool = False
