"""FastAPI application — entry point for the availability & scheduling service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.config import get_settings
from app.domain.bus import EventBus
from app.domain.events import AvailabilityPublished, EventScheduled
from app.domain.handlers import HandlerRegistry
from app.domain.models import (
    AvailabilityExpression,
    AvailabilityExpressionCreate,
    AvailabilityExpressionUpdate,
    AvailabilityTimeslot,
    Event,
    EventCreate,
    EventIssue,
    EventIssueStatus,
    EventUpdate,
    Heatmap,
    HostUser,
    Venue,
)
from app.errors import InvalidExpression, NotFound
from app.repos.memory import (
    EventRepository,
    ExpressionRepository,
    HostRepository,
    IssueRepository,
    TimeslotRepository,
    VenueRepository,
)
from app.services.availability import AvailabilityService
from app.services.heatmap import HeatmapAggregator
from app.services.issues import EventIssueChecker
from app.services.timeslots import TimeslotMaterializer

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Availability & Scheduling Service")

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
venue_repo = VenueRepository()
host_repo = HostRepository()
expression_repo = ExpressionRepository()
timeslot_repo = TimeslotRepository()
event_repo = EventRepository(venue_repo)
issue_repo = IssueRepository()

availability_service = AvailabilityService(
    expression_repo=expression_repo,
    timeslot_store=timeslot_repo,
    materializer=TimeslotMaterializer(settings.minutes_of_timeslot),
)
issue_checker = EventIssueChecker(
    users=host_repo,
    timeslots=timeslot_repo,
    events=event_repo,
    issues=issue_repo,
    minutes_of_timeslot=settings.minutes_of_timeslot,
    conflict_buffer_minutes=settings.conflict_buffer_minutes,
    placeholder_host_tag=settings.placeholder_host_tag,
)
heatmap_aggregator = HeatmapAggregator(
    users=host_repo,
    timeslots=timeslot_repo,
    minutes_of_timeslot=settings.minutes_of_timeslot,
    hour_of_opening=settings.heatmap_hour_of_opening,
    hour_of_closure=settings.heatmap_hour_of_closure,
    minutes_of_bucket=settings.heatmap_minutes_of_bucket,
    timezone_name=settings.heatmap_timezone,
)

handler_registry = HandlerRegistry(
    bus=event_bus,
    event_repo=event_repo,
    checker=issue_checker,
)


# ── Error mapping ─────────────────────────────────────────────────────


@app.exception_handler(NotFound)
async def _not_found(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidExpression)
async def _invalid_expression(request: Request, exc: InvalidExpression) -> JSONResponse:
    logger.warning("Rejected recurrence expression: %s", exc)
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def _invalid_record(request: Request, exc: ValidationError) -> JSONResponse:
    # Merged PATCH payloads and derived records are validated inside routes.
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# ── Directory ─────────────────────────────────────────────────────────


@app.post("/venues", response_model=Venue)
def create_venue(venue: Venue) -> Venue:
    venue_repo.add(venue)
    return venue


@app.post("/hosts", response_model=HostUser)
def create_host(host: HostUser) -> HostUser:
    host_repo.add(host)
    return host


# ── Availability ──────────────────────────────────────────────────────


def _announce(expression: AvailabilityExpression, slots: list[AvailabilityTimeslot]) -> None:
    event_bus.publish(
        AvailabilityPublished(
            expression_id=expression.id,
            host_user_id=expression.host_user_id,
            timeslot_count=len(slots),
        )
    )


@app.post("/availability-expressions", response_model=AvailabilityExpression)
def create_availability_expression(
    payload: AvailabilityExpressionCreate,
) -> AvailabilityExpression:
    """Store an expression and generate its timeslots."""
    expression, slots = availability_service.create(payload)
    _announce(expression, slots)
    return expression


@app.get(
    "/hosts/{host_user_id}/availability-expressions",
    response_model=list[AvailabilityExpression],
)
def list_host_availability_expressions(host_user_id: str) -> list[AvailabilityExpression]:
    return expression_repo.list_for_host(host_user_id)


@app.get("/availability-expressions/{expression_id}", response_model=AvailabilityExpression)
def get_availability_expression(expression_id: str) -> AvailabilityExpression:
    return expression_repo.get_or_raise(expression_id)


@app.patch("/availability-expressions/{expression_id}", response_model=AvailabilityExpression)
def update_availability_expression(
    expression_id: str, payload: AvailabilityExpressionUpdate
) -> AvailabilityExpression:
    """Edit an expression; its timeslots are regenerated from scratch."""
    expression, slots = availability_service.update(expression_id, payload)
    _announce(expression, slots)
    return expression


@app.post("/availability-expressions/{expression_id}/regenerate")
def regenerate_availability_expression(expression_id: str) -> dict:
    slots = availability_service.regenerate(expression_id)
    _announce(expression_repo.get_or_raise(expression_id), slots)
    return {"expression_id": expression_id, "timeslot_count": len(slots)}


@app.get(
    "/availability-expressions/{expression_id}/timeslots",
    response_model=list[AvailabilityTimeslot],
)
def list_availability_timeslots(expression_id: str) -> list[AvailabilityTimeslot]:
    expression_repo.get_or_raise(expression_id)
    return sorted(
        timeslot_repo.list_for_expression(expression_id),
        key=lambda s: s.datetime_of_start,
    )


# ── Events ────────────────────────────────────────────────────────────


@app.post("/events", response_model=Event)
def create_event(payload: EventCreate) -> Event:
    """Store an event and run its issue check."""
    event = Event(**payload.model_dump())
    event_repo.add(event)
    event_bus.publish(EventScheduled(event_id=event.id))
    return event


@app.get("/events/{event_id}", response_model=Event)
def get_event(event_id: str) -> Event:
    return event_repo.get_or_raise(event_id)


@app.patch("/events/{event_id}", response_model=Event)
def update_event(event_id: str, payload: EventUpdate) -> Event:
    current = event_repo.get_or_raise(event_id)
    if current.deleted_at is not None:
        raise HTTPException(status_code=400, detail="Event has been deleted")

    changes = payload.model_dump(exclude_unset=True)
    merged = {**current.model_dump(), **changes}
    if "minutes_of_duration" not in changes and (
        "datetime_of_start" in changes or "datetime_of_end" in changes
    ):
        # re-derived from the new window
        merged["minutes_of_duration"] = None
    event = Event.model_validate(merged)
    event_repo.add(event)
    event_bus.publish(EventScheduled(event_id=event.id))
    return event


@app.delete("/events/{event_id}", response_model=Event)
def delete_event(event_id: str) -> Event:
    """Soft-delete an event; deleted events no longer cause conflicts."""
    event = event_repo.get_or_raise(event_id)
    if event.deleted_at is None:
        event.deleted_at = datetime.now(timezone.utc)
    return event


@app.post("/events/{event_id}/check", response_model=list[EventIssue])
def check_event(event_id: str) -> list[EventIssue]:
    """Re-run the issue check and return the event's unrepaired issues."""
    event_repo.get_or_raise(event_id)
    event_bus.publish(EventScheduled(event_id=event_id))
    return issue_repo.list_for_event(event_id, EventIssueStatus.UNREPAIRED)


@app.get("/events/{event_id}/issues", response_model=list[EventIssue])
def list_event_issues(
    event_id: str, status: EventIssueStatus | None = None
) -> list[EventIssue]:
    event_repo.get_or_raise(event_id)
    return issue_repo.list_for_event(event_id, status)


@app.post("/event-issues/{issue_id}/repair", response_model=EventIssue)
def repair_event_issue(issue_id: str) -> EventIssue:
    return issue_repo.mark_repaired(issue_id)


# ── Heatmap ───────────────────────────────────────────────────────────


@app.get("/heatmap", response_model=Heatmap)
def get_heatmap(
    venue_id: int,
    year: int = Query(ge=1970, le=9999),
    month: int = Query(ge=1, le=12),
) -> Heatmap:
    return heatmap_aggregator.build(venue_id, year, month)
