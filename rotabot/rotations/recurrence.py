"""Recurrence evaluation for rotation schedules, backed by dateutil's rrule."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import StrEnum
from typing import Any

from dateutil.rrule import DAILY, FR, MO, MONTHLY, TH, TU, WE, WEEKLY, rrule, rrulestr

logger = logging.getLogger(__name__)

_WEEKDAYS = (MO, TU, WE, TH, FR)


class Frequency(StrEnum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"


_FREQ_MAP = {
    Frequency.DAILY: DAILY,
    Frequency.WEEKLY: WEEKLY,
    Frequency.BIWEEKLY: WEEKLY,
    Frequency.MONTHLY: MONTHLY,
}


@dataclass
class RecurrenceSpec:
    """When a rotation fires, at day granularity.

    Attributes:
        frequency: Base frequency. ``BIWEEKLY`` is weekly with double interval.
        start_date: First candidate day (the rule's ``DTSTART``).
        interval: Repeat every *interval* periods.
        weekdays_only: Restrict occurrences to Monday-Friday.
        rrule: Optional raw RRULE text. When present it replaces the
            structured fields (``start_date`` is still used as ``DTSTART``).
    """

    frequency: Frequency
    start_date: date
    interval: int = 1
    weekdays_only: bool = False
    rrule: str | None = None

    @property
    def effective_interval(self) -> int:
        if self.frequency == Frequency.BIWEEKLY:
            return self.interval * 2
        return self.interval

    def to_dict(self) -> dict[str, Any]:
        return {
            "frequency": str(self.frequency),
            "start_date": self.start_date.isoformat(),
            "interval": self.interval,
            "weekdays_only": self.weekdays_only,
            "rrule": self.rrule,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecurrenceSpec:
        return cls(
            frequency=Frequency(data["frequency"]),
            start_date=date.fromisoformat(data["start_date"]),
            interval=int(data.get("interval", 1)),
            weekdays_only=bool(data.get("weekdays_only", False)),
            rrule=data.get("rrule"),
        )


def _build_rule(spec: RecurrenceSpec) -> rrule:
    """Build a dateutil rule on naive midnight datetimes. Raises on bad input."""
    dtstart = datetime.combine(spec.start_date, time())
    if spec.rrule:
        return rrulestr(spec.rrule, dtstart=dtstart)
    if spec.effective_interval < 1:
        msg = f"Interval must be positive, got {spec.interval}"
        raise ValueError(msg)
    kwargs: dict[str, Any] = {
        "dtstart": dtstart,
        "interval": spec.effective_interval,
    }
    if spec.weekdays_only:
        kwargs["byweekday"] = _WEEKDAYS
    return rrule(_FREQ_MAP[Frequency(spec.frequency)], **kwargs)


def is_valid(spec: RecurrenceSpec) -> bool:
    """Return True if *spec* can be evaluated."""
    try:
        _build_rule(spec)
    except (ValueError, TypeError, KeyError):
        return False
    return True


def next_occurrence(spec: RecurrenceSpec, after: date | datetime) -> date | None:
    """Return the first occurrence on or after the calendar day of *after*.

    Time of day is ignored: an occurrence on the same day as *after* counts.
    Returns None when the rule has no further occurrences.
    """
    day = after.date() if isinstance(after, datetime) else after
    rule = _build_rule(spec)
    found = rule.after(datetime.combine(day, time()), inc=True)
    return found.date() if found else None


def occurrences_between(spec: RecurrenceSpec, start: date, end: date) -> list[date]:
    """Return all occurrence days in the inclusive range [start, end]."""
    rule = _build_rule(spec)
    found = rule.between(
        datetime.combine(start, time()), datetime.combine(end, time()), inc=True
    )
    return [dt.date() for dt in found]


def to_rrule(spec: RecurrenceSpec) -> str:
    """Render the spec as RRULE text (including its DTSTART line)."""
    return str(_build_rule(spec))
