"""Tests for the cross-venue conflict-detection service."""

from datetime import datetime, timedelta, timezone

from app.domain.models import Event
from app.services.conflicts import buffered_window, find_conflicts

_START = datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)


def _make_event(
    start: datetime,
    end: datetime,
    venue_id: int = 1,
    host_user_id: str | None = "coach-1",
) -> Event:
    return Event(
        host_user_id=host_user_id,
        venue_id=venue_id,
        type_id=1,
        datetime_of_start=start,
        datetime_of_end=end,
        minutes_of_duration=int((end - start).total_seconds() // 60),
    )


def _conflicts_for(event: Event, existing: list[Event]) -> list[Event]:
    start, end = buffered_window(event, 30)
    return find_conflicts(event, start, end, existing)


def test_buffered_window():
    event = _make_event(_START, _START + timedelta(hours=1))
    assert buffered_window(event, 30) == (
        _START - timedelta(minutes=30),
        _START + timedelta(hours=1, minutes=30),
    )


def test_no_overlap():
    """Events far apart at different venues are not conflicts."""
    event = _make_event(_START, _START + timedelta(hours=1))
    existing = [
        _make_event(_START - timedelta(hours=3), _START - timedelta(hours=2), venue_id=2)
    ]
    assert _conflicts_for(event, existing) == []


def test_within_buffer_is_conflict():
    """Another venue 29 minutes after the event ends is too close."""
    event = _make_event(_START, _START + timedelta(hours=1))
    other = _make_event(
        _START + timedelta(hours=1, minutes=29),
        _START + timedelta(hours=2, minutes=29),
        venue_id=2,
    )
    assert _conflicts_for(event, [other]) == [other]


def test_exact_buffer_boundary_no_conflict():
    """Exactly 30 minutes apart touches the buffered window but does not overlap."""
    event = _make_event(_START, _START + timedelta(hours=1))
    after = _make_event(
        _START + timedelta(hours=1, minutes=30),
        _START + timedelta(hours=2, minutes=30),
        venue_id=2,
    )
    before = _make_event(
        _START - timedelta(hours=1, minutes=30),
        _START - timedelta(minutes=30),
        venue_id=3,
    )
    assert _conflicts_for(event, [after, before]) == []


def test_same_venue_is_not_a_conflict():
    event = _make_event(_START, _START + timedelta(hours=1))
    other = _make_event(_START, _START + timedelta(hours=1), venue_id=1)
    assert _conflicts_for(event, [other]) == []


def test_other_hosts_and_deleted_events_are_ignored():
    event = _make_event(_START, _START + timedelta(hours=1))
    other_host = _make_event(
        _START, _START + timedelta(hours=1), venue_id=2, host_user_id="coach-2"
    )
    deleted = _make_event(_START, _START + timedelta(hours=1), venue_id=2)
    deleted.deleted_at = _START
    assert _conflicts_for(event, [event, other_host, deleted]) == []


def test_event_without_host_has_no_conflicts():
    event = _make_event(_START, _START + timedelta(hours=1), host_user_id=None)
    other = _make_event(
        _START, _START + timedelta(hours=1), venue_id=2, host_user_id=None
    )
    assert _conflicts_for(event, [other]) == []
