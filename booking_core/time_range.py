"""Half-open time intervals compared as UTC instants."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken to be UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class TimeRange:
    """The interval ``[start, end)``.

    Construction never validates ordering so that callers can report an
    inverted range at the point their own validation order demands.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", as_utc(self.start))
        object.__setattr__(self, "end", as_utc(self.end))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def is_valid(self) -> bool:
        return self.end > self.start

    def overlaps(self, other: TimeRange) -> bool:
        return self.start < other.end and other.start < self.end


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    """Touching endpoints do not overlap."""

    return a.overlaps(b)
