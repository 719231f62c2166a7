"""Service for parsing cron-style recurrence expressions and expanding them
into concrete, timezone-aware instants."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterator
from zoneinfo import ZoneInfo

from dateutil.rrule import DAILY, rrule, rruleset

from app.errors import InvalidExpression
from app.services.timeutil import ensure_aware, get_zone

_ALIASES = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

_MONTH_NAMES = {
    name: number
    for number, name in enumerate(
        ("JAN", "FEB", "MAR", "APR", "MAY", "JUN",
         "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"),
        start=1,
    )
}

_DAY_NAMES = {
    name: number
    for number, name in enumerate(("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"))
}

_DAYS_IN_MONTH = (31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

# Slack applied to the wall-clock window so DST folds at either edge are
# still visited; exact bounds are enforced on the aware instants.
_WINDOW_SLACK = timedelta(hours=2)


@dataclass(frozen=True)
class CronSchedule:
    """A parsed cron expression.

    ``days_of_month``, ``months`` and ``days_of_week`` are ``None`` when the
    field is a plain wildcard. Days of week use 0 = Sunday; ``-1`` in
    ``days_of_month`` means the last day of the month.
    """

    expression: str
    seconds: tuple[int, ...]
    minutes: tuple[int, ...]
    hours: tuple[int, ...]
    days_of_month: tuple[int, ...] | None
    months: tuple[int, ...] | None
    days_of_week: tuple[int, ...] | None
    # Both day fields restricted: a day matches when either one does.
    days_either: bool = False


def parse_cron(expression: str) -> CronSchedule:
    """Parse a five-field (or six-field, seconds first) cron expression.

    Raises ``InvalidExpression`` if the string does not parse.
    """
    if not isinstance(expression, str) or not expression.strip():
        raise InvalidExpression(str(expression), "expression is empty")

    text = expression.strip()
    text = _ALIASES.get(text.lower(), text)
    fields = text.split()
    if len(fields) == 5:
        fields = ["0", *fields]
    elif len(fields) != 6:
        raise InvalidExpression(
            expression, f"expected 5 or 6 fields, got {len(fields)}"
        )

    sec, minute, hour, dom, month, dow = fields
    try:
        seconds = _parse_field(sec, 0, 59)
        minutes = _parse_field(minute, 0, 59)
        hours = _parse_field(hour, 0, 23)
        days_of_month = _parse_field(dom, 1, 31, allow_last=True)
        months = _parse_field(month, 1, 12, names=_MONTH_NAMES)
        days_of_week = _parse_field(dow, 0, 7, names=_DAY_NAMES)
    except ValueError as exc:
        raise InvalidExpression(expression, str(exc)) from exc

    if days_of_week is not None:
        days_of_week = tuple(sorted({d % 7 for d in days_of_week}))

    days_either = _is_restricted(dom) and _is_restricted(dow)
    if days_of_month and not days_either and -1 not in days_of_month:
        first_day = min(days_of_month)
        if all(first_day > _DAYS_IN_MONTH[m - 1] for m in months or range(1, 13)):
            raise InvalidExpression(expression, "day of month never occurs in the given months")

    return CronSchedule(
        expression=expression,
        seconds=seconds or tuple(range(60)),
        minutes=minutes or tuple(range(60)),
        hours=hours or tuple(range(24)),
        days_of_month=days_of_month,
        months=months,
        days_of_week=days_of_week,
        days_either=days_either,
    )


def _is_restricted(raw: str) -> bool:
    return not raw.startswith(("*", "?"))


def _parse_field(
    raw: str,
    low: int,
    high: int,
    names: dict[str, int] | None = None,
    allow_last: bool = False,
) -> tuple[int, ...] | None:
    if raw in ("*", "?"):
        return None

    values: set[int] = set()
    for part in raw.split(","):
        if not part:
            raise ValueError(f"empty list item in {raw!r}")
        if allow_last and part.upper() == "L":
            values.add(-1)
            continue

        base, _, step_text = part.partition("/")
        step = 1
        if step_text:
            step = _to_int(step_text, None)
            if step <= 0:
                raise ValueError(f"step must be positive in {part!r}")

        if base in ("*", "?"):
            first, last = low, high
        elif "-" in base:
            start_text, _, end_text = base.partition("-")
            first = _to_int(start_text, names)
            last = _to_int(end_text, names)
        else:
            first = _to_int(base, names)
            # "a/n" runs from a to the top of the range
            last = high if step_text else first

        if first < low or last > high:
            raise ValueError(f"{part!r} is outside {low}-{high}")
        if first > last:
            raise ValueError(f"range {part!r} is reversed")
        values.update(range(first, last + 1, step))

    return tuple(sorted(values))


def _to_int(token: str, names: dict[str, int] | None) -> int:
    if names and token.upper() in names:
        return names[token.upper()]
    if not token.isdigit():
        raise ValueError(f"{token!r} is not a number")
    return int(token)


class Occurrences:
    """Lazy, finite, restartable sequence of instants for one schedule.

    Iterating twice yields the same instants; each ``iter()`` call starts a
    fresh expansion.
    """

    def __init__(
        self,
        schedule: CronSchedule,
        zone: ZoneInfo,
        start: datetime,
        end: datetime,
    ) -> None:
        self.schedule = schedule
        self.zone = zone
        self.start = ensure_aware(start)
        self.end = ensure_aware(end)

    def __iter__(self) -> Iterator[datetime]:
        if self.end < self.start:
            return
        for naive in self._wall_clock_times():
            local = naive.replace(tzinfo=self.zone)
            roundtrip = (
                local.astimezone(timezone.utc).astimezone(self.zone).replace(tzinfo=None)
            )
            if roundtrip != naive:
                # falls in a spring-forward gap
                continue
            if local < self.start:
                continue
            if local > self.end:
                return
            yield local.astimezone(timezone.utc)

    def _wall_clock_times(self) -> Iterator[datetime]:
        dtstart = (self.start.astimezone(self.zone) - _WINDOW_SLACK).replace(tzinfo=None)
        until = (self.end.astimezone(self.zone) + _WINDOW_SLACK).replace(tzinfo=None)
        s = self.schedule
        common = dict(
            dtstart=dtstart,
            until=until,
            bysecond=s.seconds,
            byminute=s.minutes,
            byhour=s.hours,
            bymonth=s.months,
        )
        weekdays = (
            tuple((d + 6) % 7 for d in s.days_of_week)
            if s.days_of_week is not None
            else None
        )

        if s.days_either:
            rules = rruleset()
            rules.rrule(rrule(DAILY, bymonthday=s.days_of_month, **common))
            rules.rrule(rrule(DAILY, byweekday=weekdays, **common))
            return iter(rules)
        return iter(
            rrule(DAILY, bymonthday=s.days_of_month, byweekday=weekdays, **common)
        )


def expand(
    expression: str, timezone_name: str, start: datetime, end: datetime
) -> Occurrences:
    """Expand *expression* evaluated in *timezone_name* over ``[start, end]``.

    Instants are yielded as UTC datetimes in non-decreasing order.
    """
    schedule = parse_cron(expression)
    try:
        zone = get_zone(timezone_name)
    except KeyError as exc:
        raise InvalidExpression(expression, f"unknown timezone {timezone_name!r}") from exc
    return Occurrences(schedule, zone, start, end)
