"""Conflict detection and alternative slot search."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from .config import Settings
from .exceptions import InvalidTimeRange
from .models import Booking, BookingStatus
from .time_range import TimeRange, as_utc, utcnow

ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.APPROVED})

_LATEST = datetime.max.replace(tzinfo=timezone.utc)


def is_active(booking: Booking) -> bool:
    return booking.status in ACTIVE_STATUSES


def _creation_order(booking: Booking) -> tuple[datetime, int]:
    created = as_utc(booking.created_at) if booking.created_at is not None else _LATEST
    return created, booking.id or 0


def find_conflict(
    resource_id: int,
    candidate: TimeRange,
    existing_bookings: Iterable[Booking],
    exclude_booking_id: Optional[int] = None,
) -> Optional[Booking]:
    """Return the earliest-created active booking of ``resource_id`` overlapping ``candidate``."""

    overlapping = [
        booking
        for booking in existing_bookings
        if booking.resource_id == resource_id
        and is_active(booking)
        and (exclude_booking_id is None or booking.id != exclude_booking_id)
        and candidate.overlaps(booking.time_range)
    ]
    return min(overlapping, key=_creation_order, default=None)


@dataclass(frozen=True)
class SlotPolicy:
    step: timedelta = timedelta(minutes=30)
    open_hour: int = 9
    close_hour: int = 21
    timezone: str = "UTC"
    horizon_days: int = 7

    @classmethod
    def from_settings(cls, settings: Settings) -> SlotPolicy:
        return cls(
            step=timedelta(minutes=settings.slot_step_minutes),
            open_hour=settings.office_open_hour,
            close_hour=settings.office_close_hour,
            timezone=settings.office_timezone,
            horizon_days=settings.slot_search_days,
        )


def _at_hour(day_start: datetime, hour: int) -> datetime:
    return day_start + timedelta(hours=hour)


def find_next_available_slot(
    resource_id: int,
    existing_bookings: Iterable[Booking],
    duration: timedelta,
    now: Optional[datetime] = None,
    policy: SlotPolicy = SlotPolicy(),
) -> Optional[TimeRange]:
    """Scan forward from ``now`` in ``policy.step`` increments for a free window.

    Candidate starts lie between the opening hour and the cutoff hour of each
    day in the office timezone; the first day starts at ``now`` rounded up to
    the next step boundary.
    """

    if duration <= timedelta(0):
        raise InvalidTimeRange("Slot duration must be positive")

    bookings = list(existing_bookings)
    tz = ZoneInfo(policy.timezone)
    local_now = as_utc(now or utcnow()).astimezone(tz)
    today = local_now.replace(hour=0, minute=0, second=0, microsecond=0)

    elapsed = local_now - today
    rounded = today + -(-elapsed // policy.step) * policy.step

    for offset in range(policy.horizon_days + 1):
        day_start = today + timedelta(days=offset)
        pointer = _at_hour(day_start, policy.open_hour)
        if offset == 0:
            pointer = max(pointer, rounded)
        cutoff = _at_hour(day_start, policy.close_hour)
        while pointer < cutoff:
            candidate = TimeRange(pointer, pointer + duration)
            if find_conflict(resource_id, candidate, bookings) is None:
                return candidate
            pointer += policy.step
    return None
