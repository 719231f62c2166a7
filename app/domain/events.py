"""Domain events emitted by the scheduling engine."""

from __future__ import annotations

from pydantic import BaseModel


class AvailabilityPublished(BaseModel):
    """Fired after an expression's timeslots have been regenerated."""

    expression_id: str
    host_user_id: str
    timeslot_count: int


class EventScheduled(BaseModel):
    """Fired when an event is created or edited and needs (re-)checking."""

    event_id: str


class EventIssuesChecked(BaseModel):
    """Fired after an issue check actually ran (exempt events do not fire)."""

    event_id: str
    issue_types: list[str]
