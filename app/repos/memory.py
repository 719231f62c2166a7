"""In-memory repositories for expressions, timeslots, hosts, venues, events
and issues."""

from __future__ import annotations

import threading
from collections import Counter
from datetime import datetime
from typing import Iterable, Iterator

from app.domain.models import (
    AvailabilityExpression,
    AvailabilityTimeslot,
    Event,
    EventIssue,
    EventIssueStatus,
    HostSlotCount,
    HostUser,
    TimeslotStatus,
    Venue,
)
from app.errors import NotFound
from app.services.conflicts import find_conflicts


class ExpressionRepository:
    """Dict-backed store for AvailabilityExpression instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, AvailabilityExpression] = {}

    def save(self, expression: AvailabilityExpression) -> None:
        self._store[expression.id] = expression

    def get(self, expression_id: str) -> AvailabilityExpression | None:
        return self._store.get(expression_id)

    def get_or_raise(self, expression_id: str) -> AvailabilityExpression:
        expression = self._store.get(expression_id)
        if expression is None:
            raise NotFound("Availability expression", expression_id)
        return expression

    def list_for_host(self, host_user_id: str) -> list[AvailabilityExpression]:
        return [e for e in self._store.values() if e.host_user_id == host_user_id]


class TimeslotRepository:
    """Timeslots grouped by owning expression.

    Each expression's slot list is swapped as a whole under a lock, so a
    reader sees either the old set or the new one.
    """

    def __init__(self) -> None:
        self._by_expression: dict[str, list[AvailabilityTimeslot]] = {}
        self._lock = threading.Lock()

    def replace_for_expression(
        self, expression_id: str, slots: Iterable[AvailabilityTimeslot]
    ) -> None:
        new_slots = list(slots)
        for slot in new_slots:
            if slot.expression_id != expression_id:
                raise ValueError(
                    f"Timeslot {slot.id} belongs to expression {slot.expression_id}, "
                    f"not {expression_id}"
                )
        if len({s.host_user_id for s in new_slots}) > 1:
            raise ValueError(f"Timeslots of expression {expression_id} span several hosts")
        with self._lock:
            if new_slots:
                self._by_expression[expression_id] = new_slots
            else:
                self._by_expression.pop(expression_id, None)

    def list_for_expression(self, expression_id: str) -> list[AvailabilityTimeslot]:
        with self._lock:
            return list(self._by_expression.get(expression_id, []))

    def list_all(self) -> list[AvailabilityTimeslot]:
        with self._lock:
            return [s for slots in self._by_expression.values() for s in slots]

    def _slots_of_hosts(self, host_user_ids: set[str]) -> Iterator[AvailabilityTimeslot]:
        # Caller holds the lock. An expression's slots all share its host.
        for slots in self._by_expression.values():
            if slots[0].host_user_id in host_user_ids:
                yield from slots

    def count_matching(
        self,
        host_user_id: str,
        venue_id: int,
        start: datetime,
        end: datetime,
        status: TimeslotStatus = TimeslotStatus.USABLE,
    ) -> int:
        """Count slots of the host at the venue lying fully inside [start, end]."""
        with self._lock:
            return sum(
                1
                for s in self._slots_of_hosts({host_user_id})
                if venue_id in s.venue_ids
                and s.status == status
                and s.datetime_of_start >= start
                and s.datetime_of_end <= end
            )

    def group_counts_by_host(
        self, host_user_ids: list[str], start: datetime, end: datetime
    ) -> list[HostSlotCount]:
        """Per-host count of usable slots lying fully inside [start, end].

        Hosts with no matching slot are omitted.
        """
        with self._lock:
            counts = Counter(
                s.host_user_id
                for s in self._slots_of_hosts(set(host_user_ids))
                if s.status == TimeslotStatus.USABLE
                and s.datetime_of_start >= start
                and s.datetime_of_end <= end
            )
        return [
            HostSlotCount(host_user_id=host_id, count=count)
            for host_id, count in counts.items()
        ]


class HostRepository:
    """Dict-backed user directory of hosts (coaches)."""

    def __init__(self) -> None:
        self._store: dict[str, HostUser] = {}

    def add(self, host: HostUser) -> None:
        self._store[host.id] = host

    def find_host_by_id(self, host_user_id: str) -> HostUser | None:
        return self._store.get(host_user_id)

    def list_hosts_for_venue(self, venue_id: int) -> list[HostUser]:
        return [
            h
            for h in self._store.values()
            if h.profile is not None and venue_id in h.profile.eligible_venue_ids
        ]


class VenueRepository:
    """Dict-backed store for Venue instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[int, Venue] = {}

    def add(self, venue: Venue) -> None:
        self._store[venue.id] = venue

    def get(self, venue_id: int) -> Venue | None:
        return self._store.get(venue_id)


class EventRepository:
    """Dict-backed store for Event instances, keyed by id."""

    def __init__(self, venue_repo: VenueRepository) -> None:
        self._store: dict[str, Event] = {}
        self._venue_repo = venue_repo

    def add(self, event: Event) -> None:
        self._store[event.id] = event

    def get(self, event_id: str) -> Event | None:
        return self._store.get(event_id)

    def get_or_raise(self, event_id: str) -> Event:
        event = self._store.get(event_id)
        if event is None:
            raise NotFound("Event", event_id)
        return event

    def list_all(self) -> list[Event]:
        return list(self._store.values())

    def list_live_for_host(self, host_user_id: str) -> list[Event]:
        """Non-deleted events hosted by *host_user_id*."""
        return [
            e
            for e in self._store.values()
            if e.host_user_id == host_user_id and e.deleted_at is None
        ]

    def find_conflicting(
        self, event: Event, start: datetime, end: datetime
    ) -> list[Venue]:
        """Return the venues of conflicting events, in event start order.

        Unknown venue ids are reported with a placeholder name.
        """
        conflicts = sorted(
            find_conflicts(event, start, end, self.list_all()),
            key=lambda e: e.datetime_of_start,
        )
        venues: list[Venue] = []
        for other in conflicts:
            venue = self._venue_repo.get(other.venue_id)
            venues.append(venue or Venue(id=other.venue_id, name=f"Venue {other.venue_id}"))
        return venues


class IssueRepository:
    """List-backed store for EventIssue instances."""

    def __init__(self) -> None:
        self._issues: list[EventIssue] = []
        self._lock = threading.Lock()

    def clear_unrepaired(self, event_id: str) -> None:
        with self._lock:
            self._issues = [
                i
                for i in self._issues
                if not (i.event_id == event_id and i.status == EventIssueStatus.UNREPAIRED)
            ]

    def insert_batch(self, issues: list[EventIssue]) -> None:
        with self._lock:
            self._issues = self._issues + list(issues)

    def get(self, issue_id: str) -> EventIssue | None:
        with self._lock:
            return next((i for i in self._issues if i.id == issue_id), None)

    def mark_repaired(self, issue_id: str) -> EventIssue:
        issue = self.get(issue_id)
        if issue is None:
            raise NotFound("Event issue", issue_id)
        issue.status = EventIssueStatus.REPAIRED
        return issue

    def list_for_event(
        self, event_id: str, status: EventIssueStatus | None = None
    ) -> list[EventIssue]:
        with self._lock:
            return [
                i
                for i in self._issues
                if i.event_id == event_id and (status is None or i.status == status)
            ]
