"""Service for materializing availability expressions into fixed-size
timeslots."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterator

from app.domain.models import AvailabilityExpression, AvailabilityTimeslot
from app.errors import InvalidExpression
from app.services.recurrence import expand
from app.services.timeutil import (
    floor_by_minutes,
    get_zone,
    plus_minutes,
    plus_years,
    sunday_based_weekday,
)

logger = logging.getLogger(__name__)


class TimeslotMaterializer:
    """Turns one AvailabilityExpression into its final AvailabilityTimeslot rows.

    ``minutes_of_timeslot`` is the base timeslot unit every slot is cut to.
    """

    def __init__(self, minutes_of_timeslot: int) -> None:
        if minutes_of_timeslot <= 0:
            raise ValueError("minutes_of_timeslot must be positive")
        self.minutes_of_timeslot = minutes_of_timeslot

    def window(self, expression: AvailabilityExpression) -> tuple[datetime, datetime]:
        """Expansion window; open-ended expressions run for one year."""
        end = expression.date_of_closure or plus_years(expression.date_of_opening, 1)
        return expression.date_of_opening, end

    def slots_per_occurrence(self, expression: AvailabilityExpression) -> int:
        # Truncating: a partial trailing unit is dropped.
        return expression.minutes_of_duration // self.minutes_of_timeslot

    def slice_occurrence(self, occurrence: datetime, count: int) -> Iterator[tuple[datetime, datetime]]:
        """Yield *count* consecutive (start, end) unit windows from *occurrence*."""
        for p in range(count):
            start = plus_minutes(occurrence, self.minutes_of_timeslot * p)
            yield start, plus_minutes(start, self.minutes_of_timeslot)

    def _windows(
        self,
        expression: AvailabilityExpression,
        cron_expressions: list[str],
        aligned: bool = False,
    ) -> Iterator[tuple[datetime, datetime]]:
        start, end = self.window(expression)
        count = self.slots_per_occurrence(expression)
        for cron in cron_expressions:
            for occurrence in expand(cron, expression.timezone, start, end):
                if aligned and occurrence != floor_by_minutes(occurrence, self.minutes_of_timeslot):
                    raise InvalidExpression(
                        cron,
                        f"{occurrence.isoformat()} is not on a "
                        f"{self.minutes_of_timeslot}-minute timeslot boundary",
                    )
                yield from self.slice_occurrence(occurrence, count)

    def materialize(self, expression: AvailabilityExpression) -> list[AvailabilityTimeslot]:
        """Return the final slot set for *expression*.

        Availability slots whose (start, end) pair exactly equals an
        unavailability slot are dropped; partial overlaps are kept. Slots
        produced twice by different rules are kept twice.
        """
        try:
            zone = get_zone(expression.timezone)
        except KeyError as exc:
            raise InvalidExpression(expression.timezone, "unknown timezone") from exc

        # Expand everything first so a malformed rule aborts before any write.
        # Generated slots must sit on the unit grid; unavailable windows need
        # not, they simply never match exactly.
        available = list(
            self._windows(
                expression,
                expression.cron_expressions_of_available_time_points,
                aligned=True,
            )
        )
        excluded = set(
            self._windows(expression, expression.cron_expressions_of_unavailable_time_points)
        )

        slots: list[AvailabilityTimeslot] = []
        for start, end in available:
            if (start, end) in excluded:
                continue
            local = start.astimezone(zone)
            slots.append(
                AvailabilityTimeslot(
                    year=local.year,
                    month=local.month,
                    day_of_month=local.day,
                    day_of_week=sunday_based_weekday(local),
                    hour=local.hour,
                    minute=local.minute,
                    minutes_of_timeslot=self.minutes_of_timeslot,
                    host_user_id=expression.host_user_id,
                    datetime_of_start=start,
                    datetime_of_end=end,
                    expression_id=expression.id,
                    venue_ids=list(expression.venue_ids),
                )
            )

        logger.debug(
            "Expression %s: %d available windows, %d excluded, %d final slots",
            expression.id,
            len(available),
            len(excluded),
            len(slots),
        )
        return slots
