"""Collaborator contracts the scheduling engine depends on.

Any persistence layer that satisfies these protocols can back the engine;
``app.repos.memory`` provides the in-process implementations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol

from app.domain.models import (
    AvailabilityTimeslot,
    Event,
    EventIssue,
    HostSlotCount,
    HostUser,
    TimeslotStatus,
    Venue,
)


class TimeslotStore(Protocol):
    def replace_for_expression(
        self, expression_id: str, slots: Iterable[AvailabilityTimeslot]
    ) -> None:
        """Atomically swap every slot of *expression_id* for *slots*."""
        ...

    def count_matching(
        self,
        host_user_id: str,
        venue_id: int,
        start: datetime,
        end: datetime,
        status: TimeslotStatus = TimeslotStatus.USABLE,
    ) -> int: ...

    def group_counts_by_host(
        self, host_user_ids: list[str], start: datetime, end: datetime
    ) -> list[HostSlotCount]: ...


class UserDirectory(Protocol):
    def find_host_by_id(self, host_user_id: str) -> HostUser | None: ...

    def list_hosts_for_venue(self, venue_id: int) -> list[HostUser]: ...


class EventDirectory(Protocol):
    def find_conflicting(
        self, event: Event, start: datetime, end: datetime
    ) -> list[Venue]:
        """Venues of the host's other live events at a different venue that
        intersect the open interval ``(start, end)``."""
        ...


class IssueStore(Protocol):
    def clear_unrepaired(self, event_id: str) -> None: ...

    def insert_batch(self, issues: list[EventIssue]) -> None: ...
