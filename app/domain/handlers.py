"""Domain event handlers — wired up at application startup."""

from __future__ import annotations

import logging

from app.domain.bus import EventBus
from app.domain.events import AvailabilityPublished, EventIssuesChecked, EventScheduled
from app.repos.memory import EventRepository
from app.services.issues import EventIssueChecker

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to the checker."""

    def __init__(
        self,
        bus: EventBus,
        event_repo: EventRepository,
        checker: EventIssueChecker,
    ) -> None:
        self.bus = bus
        self.event_repo = event_repo
        self.checker = checker
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(EventScheduled, self.on_event_scheduled)
        self.bus.subscribe(AvailabilityPublished, self.on_availability_published)
        self.bus.subscribe(EventIssuesChecked, self.on_event_issues_checked)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_event_scheduled(self, event: EventScheduled) -> None:
        stored = self.event_repo.get(event.event_id)
        if stored is None or stored.deleted_at is not None:
            return

        found = self.checker.check(stored)
        if found is None:
            return

        self.bus.publish(
            EventIssuesChecked(
                event_id=stored.id, issue_types=[issue.type for issue in found]
            )
        )

    def on_availability_published(self, event: AvailabilityPublished) -> None:
        # The host's slots changed, so its events' time checks may have too.
        hosted = self.event_repo.list_live_for_host(event.host_user_id)
        logger.info(
            "Availability expression %s published; re-checking %d event(s) of host %s",
            event.expression_id,
            len(hosted),
            event.host_user_id,
        )
        for stored in hosted:
            self.bus.publish(EventScheduled(event_id=stored.id))

    def on_event_issues_checked(self, event: EventIssuesChecked) -> None:
        if event.issue_types:
            logger.warning(
                "Event %s has unresolved issues: %s",
                event.event_id,
                ", ".join(event.issue_types),
            )
        else:
            logger.debug("Event %s passed its issue check", event.event_id)
