"""Stop-after deadlines.

`on.stop-after` is either an absolute date-time in one of many common
formats, or a relative delta such as `+25h`, `+3d`, `+1w`, `+1mo` or
`+1d12h30m`. Relative deltas resolve against the compile-time clock, which
tests replace with set_clock().

Usage:
    from gh_aw.workflow.time_delta import resolve_stop_time

    resolve_stop_time("+1d12h")         # "2025-06-02 12:00:00" at 2025-06-01 00:00
    resolve_stop_time("June 1st 2025")  # "2025-06-01 00:00:00"
"""

from __future__ import annotations

import calendar
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

STOP_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Upper bound per unit, roughly one year each
MAX_UNITS: dict[str, int] = {
    "mo": 12,
    "w": 52,
    "d": 365,
    "h": 8760,
    "m": 525600,
}

_UNIT_NAMES: dict[str, str] = {
    "mo": "months",
    "w": "weeks",
    "d": "days",
    "h": "hours",
    "m": "minutes",
}

_COMPONENT = re.compile(r"(\d+)(mo|w|d|h|m)")
_ORDINAL = re.compile(r"\b(\d+)(st|nd|rd|th)\b", re.IGNORECASE)

_ABSOLUTE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%B %d, %Y %H:%M:%S",
    "%B %d, %Y",
    "%B %d %Y",
    "%b %d, %Y",
    "%b %d %Y",
    "%d %B %Y %H:%M:%S",
    "%d %B %Y",
    "%d %b %Y",
    "%a, %d %b %Y %H:%M:%S %z",
    "%a, %d %b %Y %H:%M:%S %Z",
    "%d %b %y %H:%M %z",
)


def _default_clock() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


_clock: Callable[[], datetime] = _default_clock


def set_clock(clock: Callable[[], datetime]) -> None:
    """Set custom clock for testing.

    Args:
        clock: Function returning naive UTC datetime

    """
    global _clock
    _clock = clock


def reset_clock() -> None:
    """Reset clock to default (real time)."""
    global _clock
    _clock = _default_clock


@dataclass(frozen=True)
class TimeDelta:
    months: int = 0
    weeks: int = 0
    days: int = 0
    hours: int = 0
    minutes: int = 0

    def __str__(self) -> str:
        parts = [
            f"{value}{unit}"
            for value, unit in (
                (self.months, "mo"),
                (self.weeks, "w"),
                (self.days, "d"),
                (self.hours, "h"),
                (self.minutes, "m"),
            )
            if value
        ]
        return "+" + "".join(parts) if parts else "0m"

    def apply(self, base: datetime) -> datetime:
        """Add the delta to base; months move the calendar month."""
        result = add_months(base, self.months) if self.months else base
        return result + timedelta(
            days=self.weeks * 7 + self.days, hours=self.hours, minutes=self.minutes
        )


def add_months(base: datetime, months: int) -> datetime:
    """Calendar month addition, clamping the day to the target month's length."""
    index = base.month - 1 + months
    year = base.year + index // 12
    month = index % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return base.replace(year=year, month=month, day=day)


def parse_time_delta(value: str) -> TimeDelta:
    """Parse a relative delta such as `+1d12h30m`.

    Raises:
        ValueError: On an empty, malformed, duplicated or oversized delta.

    """
    if not value:
        raise ValueError("empty time delta")
    if not value.startswith("+"):
        raise ValueError(f"time delta must start with '+', got: {value}")
    body = value[1:]
    if not body:
        raise ValueError("empty time delta after '+'")

    expected = (
        f"invalid time delta format: +{body}. "
        "Expected format like +25h, +3d, +1w, +1mo, +1d12h30m"
    )
    matches = list(_COMPONENT.finditer(body))
    if not matches:
        raise ValueError(expected)
    if "".join(m.group(0) for m in matches) != body:
        raise ValueError(f"{expected}. Extra characters detected")

    values: dict[str, int] = {}
    for match in matches:
        amount, unit = int(match.group(1)), match.group(2)
        if unit in values:
            raise ValueError(f"duplicate unit '{unit}' in time delta: +{body}")
        limit = MAX_UNITS[unit]
        if amount > limit:
            plural = _UNIT_NAMES[unit]
            raise ValueError(
                f"time delta too large: {amount} {plural} exceeds maximum of {limit} {plural}"
            )
        values[unit] = amount

    return TimeDelta(
        months=values.get("mo", 0),
        weeks=values.get("w", 0),
        days=values.get("d", 0),
        hours=values.get("h", 0),
        minutes=values.get("m", 0),
    )


def parse_absolute_datetime(value: str) -> datetime:
    """Parse an absolute date-time; aware values are converted to naive UTC.

    Raises:
        ValueError: If no supported format matches.

    """
    text = _ORDINAL.sub(r"\1", value.strip())
    for fmt in _ABSOLUTE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(UTC).replace(tzinfo=None)
        return parsed
    raise ValueError(
        f"unable to parse date-time: {value}. Supported formats include: "
        "YYYY-MM-DD HH:MM:SS, MM/DD/YYYY, January 2 2006, 1st June 2025, etc"
    )


def resolve_stop_time(value: str, now: datetime | None = None) -> str:
    """Resolve a stop-after value to `YYYY-MM-DD HH:MM:SS` (UTC).

    Args:
        value: Absolute date-time or relative `+...` delta.
        now: Base time for relative deltas; defaults to the module clock.

    Raises:
        ValueError: If the value cannot be parsed.

    """
    value = value.strip()
    if value.startswith("+"):
        base = now if now is not None else _clock()
        return parse_time_delta(value).apply(base).strftime(STOP_TIME_FORMAT)
    return parse_absolute_datetime(value).strftime(STOP_TIME_FORMAT)
