"""Service for validating a scheduled event against its host's eligibility,
availability and competing commitments."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from app.domain.models import Event, EventIssue, EventIssueType, HostUser
from app.repos.contracts import EventDirectory, IssueStore, TimeslotStore, UserDirectory
from app.services.conflicts import buffered_window
from app.services.timeutil import ceil_by_minutes, floor_by_minutes

logger = logging.getLogger(__name__)

DESCRIPTIONS = {
    EventIssueType.NONEXISTENT_COACH: "The coach does not exist.",
    EventIssueType.UNCONFIGURED_COACH: "The coach has not been configured.",
    EventIssueType.UNAVAILABLE_EVENT_TYPE: "The coach is not able to teach this type of class.",
    EventIssueType.UNAVAILABLE_EVENT_VENUE: "The coach is not able to teach in this location.",
    EventIssueType.UNAVAILABLE_EVENT_TIME: "The coach is not available.",
    EventIssueType.CONFLICTING_EVENT_TIME: "The coach has conflicting events at: {venues}.",
}


@dataclass(frozen=True)
class CheckContext:
    """Everything a rule may read while evaluating one event."""

    host: HostUser | None
    timeslots: TimeslotStore
    events: EventDirectory
    minutes_of_timeslot: int
    conflict_buffer_minutes: int


Rule = Callable[[Event, CheckContext], "EventIssue | None"]


def _issue(event: Event, issue_type: EventIssueType, **params: str) -> EventIssue:
    return EventIssue(
        type=issue_type,
        description=DESCRIPTIONS[issue_type].format(**params),
        event_id=event.id,
    )


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def host_exists(event: Event, ctx: CheckContext) -> EventIssue | None:
    if ctx.host is None:
        return _issue(event, EventIssueType.NONEXISTENT_COACH)
    return None


def host_configured(event: Event, ctx: CheckContext) -> EventIssue | None:
    if ctx.host.profile is None:
        return _issue(event, EventIssueType.UNCONFIGURED_COACH)
    return None


def eligible_type(event: Event, ctx: CheckContext) -> EventIssue | None:
    if event.type_id not in ctx.host.profile.eligible_type_ids:
        return _issue(event, EventIssueType.UNAVAILABLE_EVENT_TYPE)
    return None


def eligible_venue(event: Event, ctx: CheckContext) -> EventIssue | None:
    if event.venue_id not in ctx.host.profile.eligible_venue_ids:
        return _issue(event, EventIssueType.UNAVAILABLE_EVENT_VENUE)
    return None


def available_time(event: Event, ctx: CheckContext) -> EventIssue | None:
    """The host must hold enough usable slots at the venue inside the event
    window, rounded outward to whole timeslot units."""
    unit = ctx.minutes_of_timeslot
    start = floor_by_minutes(event.datetime_of_start, unit)
    end = ceil_by_minutes(event.datetime_of_end, unit)
    count = ctx.timeslots.count_matching(ctx.host.id, event.venue_id, start, end)
    if count < event.minutes_of_duration / unit:
        return _issue(event, EventIssueType.UNAVAILABLE_EVENT_TIME)
    return None


def no_conflicting_events(event: Event, ctx: CheckContext) -> EventIssue | None:
    start, end = buffered_window(event, ctx.conflict_buffer_minutes)
    venues = ctx.events.find_conflicting(event, start, end)
    if venues:
        return _issue(
            event,
            EventIssueType.CONFLICTING_EVENT_TIME,
            venues=", ".join(v.name for v in venues),
        )
    return None


@dataclass(frozen=True)
class RuleGroup:
    rules: tuple[Rule, ...]
    # Stop evaluating later groups once this group reported anything.
    short_circuit: bool = False


DEFAULT_RULE_GROUPS: tuple[RuleGroup, ...] = (
    RuleGroup((host_exists,), short_circuit=True),
    RuleGroup((host_configured,), short_circuit=True),
    RuleGroup((eligible_type, eligible_venue, available_time, no_conflicting_events)),
)


# ---------------------------------------------------------------------------
# Checker
# ---------------------------------------------------------------------------


class EventIssueChecker:
    """Runs the rule battery for an event and records the resulting issues.

    Re-running a check replaces the event's unrepaired issues, so repeated
    checks on unchanged data produce the same issue set.
    """

    def __init__(
        self,
        users: UserDirectory,
        timeslots: TimeslotStore,
        events: EventDirectory,
        issues: IssueStore,
        minutes_of_timeslot: int,
        conflict_buffer_minutes: int = 30,
        placeholder_host_tag: str = "TBD",
        rule_groups: tuple[RuleGroup, ...] = DEFAULT_RULE_GROUPS,
    ) -> None:
        if minutes_of_timeslot <= 0:
            raise ValueError("minutes_of_timeslot must be positive")
        self.users = users
        self.timeslots = timeslots
        self.events = events
        self.issues = issues
        self.minutes_of_timeslot = minutes_of_timeslot
        self.conflict_buffer_minutes = conflict_buffer_minutes
        self.placeholder_host_tag = placeholder_host_tag
        self.rule_groups = rule_groups

    def _find_host(self, event: Event) -> HostUser | None:
        if event.host_user_id is None:
            return None
        return self.users.find_host_by_id(event.host_user_id)

    def is_exempt(self, event: Event, host: HostUser | None) -> bool:
        """Locked events and placeholder hosts are not checked at all."""
        if event.is_locked:
            return True
        return host is not None and self.placeholder_host_tag in host.tags

    def evaluate(self, event: Event, host: HostUser | None) -> list[EventIssue]:
        """Run the rule groups without touching the issue store."""
        ctx = CheckContext(
            host=host,
            timeslots=self.timeslots,
            events=self.events,
            minutes_of_timeslot=self.minutes_of_timeslot,
            conflict_buffer_minutes=self.conflict_buffer_minutes,
        )
        found: list[EventIssue] = []
        for group in self.rule_groups:
            group_issues = []
            for rule in group.rules:
                issue = rule(event, ctx)
                if issue is not None:
                    group_issues.append(issue)
            found.extend(group_issues)
            if group.short_circuit and group_issues:
                break
        return found

    def check(self, event: Event) -> list[EventIssue] | None:
        """Validate *event* and store a fresh batch of issues.

        Returns the issues recorded by this run, or ``None`` when the event is
        exempt and its existing issues were left untouched.
        """
        host = self._find_host(event)
        if self.is_exempt(event, host):
            logger.debug("Skipping issue check for exempt event %s", event.id)
            return None

        self.issues.clear_unrepaired(event.id)
        found = self.evaluate(event, host)
        if found:
            self.issues.insert_batch(found)
        logger.info(
            "Checked event %s: %d issue(s)%s",
            event.id,
            len(found),
            f" ({', '.join(i.type for i in found)})" if found else "",
        )
        return found
