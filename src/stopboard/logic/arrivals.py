"""Countdown computation for upcoming arrivals at a stop."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
import logging
import math
from typing import Iterable

from stopboard.data.models import RawArrival

logger = logging.getLogger(__name__)

# Late-night window: a reference after 20:59 and a target before 04:00 means
# the target belongs to the next calendar day. Deliberately narrow; an
# early-morning time requested at midday stays in the past.
ROLLOVER_REFERENCE_AFTER_HOUR = 20
ROLLOVER_TARGET_BEFORE_HOUR = 4

# Service-day notation ("25:10:00") overflows into the next day.
MAX_SERVICE_HOUR = 47

STALE_AFTER_MINUTES = -1

DEFAULT_LINE_COLOR = "#6f2282"
LINE_COLORS = {
    "1": "#EBBD02",
    "2": "#C6007E",
    "3": "#008BD2",
    "4": "#E30613",
}


class MalformedTimeError(ValueError):
    """Raised when a time-of-day string is missing or not ``HH:MM:SS``."""


@dataclass(frozen=True)
class ProcessedArrival:
    """Arrival ready for display."""

    line_id: str
    destination: str
    minutes_until_arrival: int
    is_live: bool
    display_color: str


def line_color(line_id: str) -> str:
    """Return the display color for a line, keyed on its leading character."""
    if not line_id:
        return DEFAULT_LINE_COLOR
    return LINE_COLORS.get(line_id[0], DEFAULT_LINE_COLOR)


def _parse_time_of_day(value: str | None) -> tuple[int, int, int]:
    if not value:
        raise MalformedTimeError("Time of day is missing")
    parts = value.strip().split(":")
    if len(parts) != 3 or not all(part.isascii() and part.isdigit() for part in parts):
        raise MalformedTimeError(f"Expected HH:MM:SS, got {value!r}")
    hour, minute, second = (int(part) for part in parts)
    if hour > MAX_SERVICE_HOUR or minute > 59 or second > 59:
        raise MalformedTimeError(f"Time of day out of range: {value!r}")
    return hour, minute, second


def normalize_time(time_of_day: str | None, reference: datetime) -> datetime:
    """Anchor an ``HH:MM:SS`` string to the reference instant's calendar day.

    The result keeps the reference's tzinfo. When the reference is late in the
    evening (hour > 20) and the target is in the small hours (hour < 4) the
    target is moved to the following day. No other rollover is applied.
    """
    hour, minute, second = _parse_time_of_day(time_of_day)
    midnight = datetime.combine(reference.date(), time(0), tzinfo=reference.tzinfo)
    result = midnight + timedelta(hours=hour, minutes=minute, seconds=second)
    if reference.hour > ROLLOVER_REFERENCE_AFTER_HOUR and hour < ROLLOVER_TARGET_BEFORE_HOUR:
        result += timedelta(days=1)
    return result


def minutes_until(target: datetime, reference: datetime) -> int:
    """Whole minutes from reference to target, floored toward -inf.

    Aware datetimes are compared in UTC so a DST jump between them counts as
    real elapsed time.
    """
    if target.tzinfo is not None and reference.tzinfo is not None:
        target = target.astimezone(timezone.utc)
        reference = reference.astimezone(timezone.utc)
    return math.floor((target - reference).total_seconds() / 60)


def process_arrivals(raw_arrivals: Iterable[RawArrival], reference: datetime) -> list[ProcessedArrival]:
    """Turn raw arrivals into countdown entries sorted by minutes until arrival."""
    processed: list[ProcessedArrival] = []
    for raw in raw_arrivals:
        time_source = raw.estimated_arrival or raw.scheduled_arrival
        if not time_source:
            continue
        try:
            arrival_at = normalize_time(time_source, reference)
        except MalformedTimeError as exc:
            logger.debug("Skipping arrival for trip %s: %s", raw.trip_id, exc)
            continue

        minutes = minutes_until(arrival_at, reference)
        if minutes < STALE_AFTER_MINUTES:
            continue

        processed.append(
            ProcessedArrival(
                line_id=raw.line_id,
                destination=raw.headsign,
                minutes_until_arrival=minutes,
                is_live=bool(raw.estimated_arrival),
                display_color=line_color(raw.line_id),
            )
        )

    # sorted() is stable, so ties keep source order.
    return sorted(processed, key=lambda arrival: arrival.minutes_until_arrival)


__all__ = [
    "DEFAULT_LINE_COLOR",
    "LINE_COLORS",
    "MalformedTimeError",
    "ProcessedArrival",
    "line_color",
    "minutes_until",
    "normalize_time",
    "process_arrivals",
]
