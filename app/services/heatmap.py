"""Service for building a venue's monthly coach-availability heatmap."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator

from app.domain.models import Heatmap, HeatmapCell, HeatmapInfo
from app.repos.contracts import TimeslotStore, UserDirectory
from app.services.timeutil import get_zone, plus_minutes, sunday_based_weekday

logger = logging.getLogger(__name__)

HEATMAP_TYPE_AVAILABILITY = "Availability"


@dataclass(frozen=True)
class HeatmapBucket:
    local_start: datetime
    datetime_of_start: datetime
    datetime_of_end: datetime
    minutes_of_timeslot: int


def monthly_calendar(year: int, month: int) -> list[list[str]]:
    """Weeks (Sunday first) covering the month, as ISO dates."""
    weeks = calendar.Calendar(firstweekday=calendar.SUNDAY).monthdatescalendar(year, month)
    return [[day.isoformat() for day in week] for week in weeks]


def monthly_buckets(
    year: int,
    month: int,
    hour_of_opening: int,
    hour_of_closure: int,
    minutes_of_bucket: int,
    timezone_name: str = "UTC",
) -> Iterator[HeatmapBucket]:
    """Yield each bucket of each day of the month between opening and closure."""
    zone = get_zone(timezone_name)
    _, days_in_month = calendar.monthrange(year, month)
    per_day = (hour_of_closure - hour_of_opening) * 60 // minutes_of_bucket
    for day in range(1, days_in_month + 1):
        opening = datetime(year, month, day, hour_of_opening, tzinfo=zone)
        opening_utc = opening.astimezone(timezone.utc)
        for i in range(per_day):
            start = plus_minutes(opening_utc, minutes_of_bucket * i)
            yield HeatmapBucket(
                local_start=start.astimezone(zone),
                datetime_of_start=start,
                datetime_of_end=plus_minutes(start, minutes_of_bucket),
                minutes_of_timeslot=minutes_of_bucket,
            )


class HeatmapAggregator:
    """Counts, per bucket, the hosts available for a venue without gaps."""

    def __init__(
        self,
        users: UserDirectory,
        timeslots: TimeslotStore,
        minutes_of_timeslot: int,
        hour_of_opening: int = 5,
        hour_of_closure: int = 22,
        minutes_of_bucket: int = 30,
        timezone_name: str = "UTC",
    ) -> None:
        if minutes_of_bucket % minutes_of_timeslot:
            raise ValueError("minutes_of_bucket must be a multiple of minutes_of_timeslot")
        self.users = users
        self.timeslots = timeslots
        self.minutes_of_timeslot = minutes_of_timeslot
        self.hour_of_opening = hour_of_opening
        self.hour_of_closure = hour_of_closure
        self.minutes_of_bucket = minutes_of_bucket
        self.timezone_name = timezone_name

    def build(self, venue_id: int, year: int, month: int) -> Heatmap:
        host_ids = [h.id for h in self.users.list_hosts_for_venue(venue_id)]
        units_per_bucket = self.minutes_of_bucket // self.minutes_of_timeslot

        cells: list[HeatmapCell] = []
        for bucket in monthly_buckets(
            year,
            month,
            self.hour_of_opening,
            self.hour_of_closure,
            self.minutes_of_bucket,
            self.timezone_name,
        ):
            count = 0
            if host_ids:
                grouped = self.timeslots.group_counts_by_host(
                    host_ids, bucket.datetime_of_start, bucket.datetime_of_end
                )
                # A host counts only when its slots cover the bucket seamlessly.
                count = sum(1 for g in grouped if g.count == units_per_bucket)

            local = bucket.local_start
            cells.append(
                HeatmapCell(
                    year=local.year,
                    month=local.month,
                    day_of_month=local.day,
                    day_of_week=sunday_based_weekday(local),
                    hour=local.hour,
                    minute=local.minute,
                    minutes_of_timeslot=bucket.minutes_of_timeslot,
                    info=[HeatmapInfo(type=HEATMAP_TYPE_AVAILABILITY, count=count)],
                )
            )

        logger.info(
            "Built heatmap for venue %s %04d-%02d: %d buckets, %d candidate hosts",
            venue_id,
            year,
            month,
            len(cells),
            len(host_ids),
        )
        return Heatmap(calendar=monthly_calendar(year, month), heatmap=cells)
