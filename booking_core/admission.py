"""Admission of new booking requests."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional

from .conflicts import SlotPolicy, find_conflict, find_next_available_slot
from .exceptions import ConflictError, InvalidTimeRange, PastStartTime, ResourceNotFound
from .models import Booking, BookingStatus, ResourceType
from .repository import BookingRepository
from .time_range import TimeRange, as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingExtras:
    """Optional meeting-room services requested alongside a booking."""

    participants: int = 1
    has_leader: bool = False
    leader_details: Optional[str] = None
    is_video_conference: bool = False
    needs_tea_service: bool = False
    needs_name_card: bool = False
    name_card_details: Optional[str] = None

    def as_columns(self) -> dict:
        columns = asdict(self)
        # Details only make sense when the matching flag is set.
        if not self.has_leader:
            columns["leader_details"] = None
        if not self.needs_name_card:
            columns["name_card_details"] = None
        return columns


def submit_booking(
    repository: BookingRepository,
    resource_id: int,
    requester_id: int,
    purpose: str,
    time_range: TimeRange,
    extras: Optional[BookingExtras] = None,
    *,
    now: Optional[datetime] = None,
    slot_policy: Optional[SlotPolicy] = None,
) -> Booking:
    """Validate a request and create its booking.

    Checks run in order and the first failure wins: the resource must exist,
    the range must end after it starts, a room booking may not start before
    ``now``, and no active booking of the resource may overlap it. The
    conflict read and the insert happen under the repository's per-resource
    lock. When ``slot_policy`` is given, a past room start or a conflict
    carries the next free window found with the same detector.
    """

    now = now or utcnow()
    extras = extras or BookingExtras()

    with repository.resource_lock(resource_id):
        resource = repository.get_resource(resource_id, for_update=True)
        if resource is None:
            raise ResourceNotFound(resource_id)
        if not time_range.is_valid:
            raise InvalidTimeRange()

        existing = repository.bookings_for_resource(resource_id)
        if resource.type == ResourceType.ROOM and time_range.start < as_utc(now):
            suggestion = None
            if slot_policy is not None:
                suggestion = find_next_available_slot(resource_id, existing, time_range.duration, now, slot_policy)
            logger.info(
                "Rejected booking of room %s for user %s: start %s is before %s",
                resource_id,
                requester_id,
                time_range.start.isoformat(),
                as_utc(now).isoformat(),
            )
            raise PastStartTime(suggestion)

        conflict = find_conflict(resource_id, time_range, existing)
        if conflict is not None:
            suggestion = None
            if slot_policy is not None:
                suggestion = find_next_available_slot(resource_id, existing, time_range.duration, now, slot_policy)
            logger.info(
                "Rejected booking of resource %s for user %s: overlaps booking %s",
                resource_id,
                requester_id,
                conflict.id,
            )
            raise ConflictError(conflict, suggestion)

        workflow = repository.get_workflow()
        booking = Booking(
            user_id=requester_id,
            resource_id=resource.id,
            resource_type=resource.type,
            start_time=time_range.start,
            end_time=time_range.end,
            purpose=purpose,
            created_at=now,
            status=BookingStatus.APPROVED if workflow.is_empty else BookingStatus.PENDING,
            current_node_index=0,
            approval_history=[],
            workflow_snapshot=workflow.to_snapshot(),
            **extras.as_columns(),
        )
        repository.add_booking(booking)

    logger.info(
        "Booking %s admitted for resource %s (user %s) as %s with %d approval step(s)",
        booking.id,
        resource_id,
        requester_id,
        booking.status.value,
        workflow.length(),
    )
    return booking
