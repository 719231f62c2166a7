"""Domain models for availability, timeslots, events and their issues."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator, model_validator


class ExpressionStatus(StrEnum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"


class TimeslotStatus(StrEnum):
    USABLE = "USABLE"
    USED = "USED"


class EventIssueType(StrEnum):
    NONEXISTENT_COACH = "NONEXISTENT_COACH"
    UNCONFIGURED_COACH = "UNCONFIGURED_COACH"
    UNAVAILABLE_EVENT_TYPE = "UNAVAILABLE_EVENT_TYPE"
    UNAVAILABLE_EVENT_VENUE = "UNAVAILABLE_EVENT_VENUE"
    UNAVAILABLE_EVENT_TIME = "UNAVAILABLE_EVENT_TIME"
    CONFLICTING_EVENT_TIME = "CONFLICTING_EVENT_TIME"


class EventIssueStatus(StrEnum):
    UNREPAIRED = "UNREPAIRED"
    REPAIRED = "REPAIRED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Directory models
# ---------------------------------------------------------------------------


class Venue(BaseModel):
    id: int
    name: str


class HostProfile(BaseModel):
    eligible_type_ids: list[int] = Field(default_factory=list)
    eligible_venue_ids: list[int] = Field(default_factory=list)


class HostUser(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    tags: list[str] = Field(default_factory=list)
    profile: HostProfile | None = None


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------


class AvailabilityExpression(BaseModel):
    id: str = Field(default_factory=_new_id)
    host_user_id: str
    timezone: str = "UTC"
    date_of_opening: datetime
    date_of_closure: datetime | None = None
    minutes_of_duration: int = Field(gt=0)
    cron_expressions_of_available_time_points: list[str] = Field(default_factory=list)
    cron_expressions_of_unavailable_time_points: list[str] = Field(default_factory=list)
    venue_ids: list[int] = Field(default_factory=list)
    status: ExpressionStatus = ExpressionStatus.DRAFT
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("date_of_opening", "date_of_closure")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v) if v is not None else v

    @model_validator(mode="after")
    def check_closure_after_opening(self) -> AvailabilityExpression:
        if self.date_of_closure is not None and self.date_of_closure < self.date_of_opening:
            raise ValueError("date_of_closure must not be before date_of_opening")
        return self


class AvailabilityTimeslot(BaseModel):
    id: str = Field(default_factory=_new_id)
    year: int
    month: int
    day_of_month: int
    day_of_week: int
    hour: int
    minute: int
    minutes_of_timeslot: int
    host_user_id: str
    datetime_of_start: datetime
    datetime_of_end: datetime
    expression_id: str
    status: TimeslotStatus = TimeslotStatus.USABLE
    venue_ids: list[int] = Field(default_factory=list)


class HostSlotCount(BaseModel):
    host_user_id: str
    count: int


# ---------------------------------------------------------------------------
# Events and issues
# ---------------------------------------------------------------------------


class Event(BaseModel):
    id: str = Field(default_factory=_new_id)
    host_user_id: str | None = None
    venue_id: int
    type_id: int
    datetime_of_start: datetime
    datetime_of_end: datetime
    # Derived from the window when omitted.
    minutes_of_duration: int | None = Field(default=None, gt=0)
    is_locked: bool = False
    deleted_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("datetime_of_start", "datetime_of_end")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @model_validator(mode="after")
    def check_end_after_start(self) -> Event:
        if self.datetime_of_end <= self.datetime_of_start:
            raise ValueError("datetime_of_end must be after datetime_of_start")
        if self.minutes_of_duration is None:
            window = self.datetime_of_end - self.datetime_of_start
            self.minutes_of_duration = max(int(window.total_seconds() // 60), 1)
        return self


class EventIssue(BaseModel):
    id: str = Field(default_factory=_new_id)
    type: EventIssueType
    description: str
    event_id: str
    status: EventIssueStatus = EventIssueStatus.UNREPAIRED
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Heatmap
# ---------------------------------------------------------------------------


class HeatmapInfo(BaseModel):
    type: str
    count: int


class HeatmapCell(BaseModel):
    year: int
    month: int
    day_of_month: int
    day_of_week: int
    hour: int
    minute: int
    minutes_of_timeslot: int
    info: list[HeatmapInfo] = Field(default_factory=list)


class Heatmap(BaseModel):
    calendar: list[list[str]]
    heatmap: list[HeatmapCell]


# ---------------------------------------------------------------------------
# Request DTOs
# ---------------------------------------------------------------------------


class AvailabilityExpressionCreate(BaseModel):
    host_user_id: str
    timezone: str = "UTC"
    date_of_opening: datetime
    date_of_closure: datetime | None = None
    minutes_of_duration: int = Field(gt=0)
    cron_expressions_of_available_time_points: list[str] = Field(default_factory=list)
    cron_expressions_of_unavailable_time_points: list[str] = Field(default_factory=list)
    venue_ids: list[int] = Field(default_factory=list)


class AvailabilityExpressionUpdate(BaseModel):
    timezone: str | None = None
    date_of_opening: datetime | None = None
    date_of_closure: datetime | None = None
    minutes_of_duration: int | None = Field(default=None, gt=0)
    cron_expressions_of_available_time_points: list[str] | None = None
    cron_expressions_of_unavailable_time_points: list[str] | None = None
    venue_ids: list[int] | None = None


class EventCreate(BaseModel):
    host_user_id: str | None = None
    venue_id: int
    type_id: int
    datetime_of_start: datetime
    datetime_of_end: datetime
    minutes_of_duration: int | None = Field(default=None, gt=0)
    is_locked: bool = False


class EventUpdate(BaseModel):
    host_user_id: str | None = None
    venue_id: int | None = None
    type_id: int | None = None
    datetime_of_start: datetime | None = None
    datetime_of_end: datetime | None = None
    minutes_of_duration: int | None = Field(default=None, gt=0)
    is_locked: bool | None = None
