"""Service for detecting cross-venue scheduling conflicts between events."""

from __future__ import annotations

from datetime import datetime, timedelta

from app.domain.models import Event


def buffered_window(event: Event, buffer_minutes: int) -> tuple[datetime, datetime]:
    """Return the event's window widened by *buffer_minutes* on both sides."""
    buffer = timedelta(minutes=buffer_minutes)
    return event.datetime_of_start - buffer, event.datetime_of_end + buffer


def find_conflicts(
    event: Event,
    window_start: datetime,
    window_end: datetime,
    existing_events: list[Event],
) -> list[Event]:
    """Return the host's other live events at a different venue that intersect
    the window.

    Overlap rule: conflict if existing.start < window_end AND
    existing.end > window_start. Exact boundary touches are NOT conflicts.
    """
    if event.host_user_id is None:
        return []
    return [
        other
        for other in existing_events
        if other.id != event.id
        and other.deleted_at is None
        and other.host_user_id == event.host_user_id
        and other.venue_id != event.venue_id
        and other.datetime_of_start < window_end
        and other.datetime_of_end > window_start
    ]
