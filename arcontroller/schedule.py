"""Matching of one-time and recurring time periods."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from dateutil import rrule

_FREQUENCIES = {
    "Daily": (rrule.DAILY, 0, 0, 1),
    "Weekly": (rrule.WEEKLY, 0, 0, 7),
    "Monthly": (rrule.MONTHLY, 0, 1, 0),
    "Yearly": (rrule.YEARLY, 1, 0, 0),
}

_TICK = timedelta(microseconds=1)


class ScheduleError(ValueError):
    """Raised when a schedule cannot be evaluated."""


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: str = ""
    until_time: datetime | None = None


@dataclass(frozen=True)
class Period:
    start_time: datetime
    end_time: datetime

    def __str__(self) -> str:
        return f"{_rfc3339(self.start_time)}-{_rfc3339(self.end_time)}"


def _rfc3339(value: datetime) -> str:
    text = value.replace(microsecond=0).isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def _add_normalized(now: datetime, years: int, months: int, days: int) -> datetime:
    """Add calendar units, normalising overflowing months and days."""
    month_index = now.month - 1 + months
    year = now.year + years + month_index // 12
    month = month_index % 12 + 1
    base = datetime(
        year, month, 1, now.hour, now.minute, now.second, now.microsecond,
        tzinfo=now.tzinfo,
    )
    return base + timedelta(days=now.day - 1 + days)


def match_schedule(
    now: datetime,
    start_time: datetime,
    end_time: datetime,
    recurrence_rule: RecurrenceRule,
) -> tuple[Period | None, Period | None]:
    """Return the active and the upcoming period for ``now``."""
    frequency = recurrence_rule.frequency
    if frequency == "":
        if now < start_time:
            return None, Period(start_time, end_time)
        if now < end_time:
            return Period(start_time, end_time), None
        return None, None

    if frequency not in _FREQUENCIES:
        raise ScheduleError(
            f'invalid freq {frequency!r}: It must be one of "Daily", "Weekly", '
            f'"Monthly", and "Yearly"'
        )
    freq, years, months, days = _FREQUENCIES[frequency]

    freq_later = _add_normalized(now, years, months, days)
    freq_duration = freq_later - now
    override_duration = end_time - start_time
    if override_duration > freq_duration:
        raise ScheduleError(
            f"override's duration {override_duration} must be equal to or shorter "
            f"than the duration implied by freq {frequency!r} ({freq_duration})"
        )

    rule = rrule.rrule(freq, dtstart=start_time, until=recurrence_rule.until_time)

    active_starts = rule.between(now - override_duration + _TICK, now, inc=True)
    if len(active_starts) > 1:
        raise ScheduleError(f"unexpected number of active overrides found: {active_starts}")
    active = None
    if active_starts:
        active = Period(active_starts[0], active_starts[0] + override_duration)

    upcoming_starts = rule.between(now + _TICK, freq_later, inc=True)
    upcoming = None
    if upcoming_starts:
        upcoming = Period(upcoming_starts[0], upcoming_starts[0] + override_duration)

    return active, upcoming