"""Entry points used by the HTTP layer: load, transition, persist, publish."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Protocol

from . import state_machine
from .admission import BookingExtras, submit_booking
from .authorization import can_act
from .conflicts import SlotPolicy, find_conflict, find_next_available_slot
from .exceptions import BookingError, BookingNotFound, InvalidState, InvalidTimeRange, ResourceNotFound
from .models import Booking, BookingStatus, User
from .repository import BookingRepository
from .time_range import TimeRange, utcnow

logger = logging.getLogger(__name__)


class EventPublisher(Protocol):
    def publish(self, event: str, booking: Booking) -> None:
        ...


class BookingService:
    def __init__(
        self,
        repository: BookingRepository,
        publisher: Optional[EventPublisher] = None,
        slot_policy: Optional[SlotPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.publisher = publisher
        self.slot_policy = slot_policy or SlotPolicy()
        self.clock = clock

    def _publish(self, event: str, booking: Booking) -> None:
        if self.publisher is not None:
            self.publisher.publish(event, booking)

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.repository.get_booking(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    def _transition(self, booking_id: int, apply: Callable[[Booking], Booking]) -> Booking:
        booking = self.repository.get_booking(booking_id, for_update=True)
        if booking is None:
            raise BookingNotFound(booking_id)
        try:
            apply(booking)
        except BookingError:
            self.repository.rollback()
            raise
        return self.repository.save_booking(booking)

    def submit_booking(
        self,
        resource_id: int,
        requester_id: int,
        purpose: str,
        time_range: TimeRange,
        extras: Optional[BookingExtras] = None,
    ) -> Booking:
        booking = submit_booking(
            self.repository,
            resource_id,
            requester_id,
            purpose,
            time_range,
            extras,
            now=self.clock(),
            slot_policy=self.slot_policy,
        )
        self._publish("booking_created", booking)
        return booking

    def approve(self, booking_id: int, actor: User) -> Booking:
        booking = self._transition(booking_id, lambda b: state_machine.approve(b, actor, now=self.clock()))
        self._publish("booking_approved" if booking.status == BookingStatus.APPROVED else "booking_advanced", booking)
        return booking

    def reject(self, booking_id: int, actor: User, comment: Optional[str] = None) -> Booking:
        booking = self._transition(booking_id, lambda b: state_machine.reject(b, actor, comment, now=self.clock()))
        self._publish("booking_rejected", booking)
        return booking

    def cancel(self, booking_id: int, actor_id: int) -> Booking:
        booking = self._transition(booking_id, lambda b: state_machine.cancel(b, actor_id))
        self._publish("booking_cancelled", booking)
        return booking

    def can_act(self, actor: User, booking_id: int) -> bool:
        return can_act(actor, self.get_booking(booking_id))

    def find_conflict(
        self,
        resource_id: int,
        time_range: TimeRange,
        exclude_booking_id: Optional[int] = None,
    ) -> Optional[Booking]:
        """Read-only preview of the admission conflict check."""

        if self.repository.get_resource(resource_id) is None:
            raise ResourceNotFound(resource_id)
        if not time_range.is_valid:
            raise InvalidTimeRange()
        return find_conflict(resource_id, time_range, self.repository.bookings_for_resource(resource_id), exclude_booking_id)

    def suggest_slot(self, resource_id: int, duration: timedelta) -> Optional[TimeRange]:
        if self.repository.get_resource(resource_id) is None:
            raise ResourceNotFound(resource_id)
        return find_next_available_slot(
            resource_id,
            self.repository.bookings_for_resource(resource_id),
            duration,
            self.clock(),
            self.slot_policy,
        )

    def complete_elapsed(self) -> List[Booking]:
        """Move approved bookings whose end time has passed to COMPLETED.

        Pending bookings that have already ended are left as they are and
        stay open to their approvers; each one is reported in the log.
        """

        now = self.clock()
        completed = []
        for booking in self.repository.approved_bookings_ended_by(now):
            booking_id = booking.id
            try:
                state_machine.complete(booking, now=now)
                self.repository.save_booking(booking)
            except InvalidState as exc:
                # Includes ConcurrentModification; a cancellation may win the race.
                self.repository.rollback()
                logger.warning("Skipped completing booking %s: %s", booking_id, exc.detail)
                continue
            completed.append(booking)
            self._publish("booking_completed", booking)
        for booking in self.repository.pending_bookings_ended_by(now):
            logger.warning(
                "Booking %s ended at %s while still pending at step %d",
                booking.id,
                booking.end_time.isoformat(),
                booking.current_node_index,
            )
        return completed
