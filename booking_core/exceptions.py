"""Booking engine errors and their HTTP translation."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from .models import Booking, BookingStatus
    from .time_range import TimeRange


def _slot_payload(slot: Optional["TimeRange"]) -> Optional[dict[str, str]]:
    if slot is None:
        return None
    return {"start_time": slot.start.isoformat(), "end_time": slot.end.isoformat()}


class BookingError(Exception):
    """Base class for expected, caller-recoverable booking failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Booking operation failed"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def payload(self) -> dict[str, Any]:
        return {"detail": self.detail, "error": type(self).__name__}


class ResourceNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource_id: int) -> None:
        self.resource_id = resource_id
        super().__init__(f"Resource with ID '{resource_id}' not found")

    def payload(self) -> dict[str, Any]:
        return {**super().payload(), "resource_id": self.resource_id}


class BookingNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, booking_id: int) -> None:
        self.booking_id = booking_id
        super().__init__(f"Booking with ID '{booking_id}' not found")

    def payload(self) -> dict[str, Any]:
        return {**super().payload(), "booking_id": self.booking_id}


class InvalidTimeRange(BookingError):
    default_detail = "End time must be after start time"


class PastStartTime(InvalidTimeRange):
    """A room booking that would start before the current time."""

    default_detail = "Room bookings cannot start in the past"

    def __init__(self, suggestion: Optional["TimeRange"] = None) -> None:
        self.suggestion = suggestion
        super().__init__()

    def payload(self) -> dict[str, Any]:
        return {**super().payload(), "suggestion": _slot_payload(self.suggestion)}


class ConflictError(BookingError):
    """The requested slot overlaps an active booking of the same resource."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, conflicting: "Booking", suggestion: Optional["TimeRange"] = None) -> None:
        self.conflicting_booking_id = conflicting.id
        self.owner_id = conflicting.user_id
        owner = conflicting.user
        self.owner_name = owner.name if owner is not None else None
        self.suggestion = suggestion
        occupant = self.owner_name or f"user {self.owner_id}"
        super().__init__(f"Resource already booked for that slot by {occupant}")

    def payload(self) -> dict[str, Any]:
        return {
            **super().payload(),
            "conflicting_booking_id": self.conflicting_booking_id,
            "owner_id": self.owner_id,
            "owner_name": self.owner_name,
            "suggestion": _slot_payload(self.suggestion),
        }


class Unauthorized(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not allowed to act on this booking"


class InvalidState(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This operation is not allowed for the current booking status"

    def __init__(self, detail: Optional[str] = None, current: Optional["BookingStatus"] = None) -> None:
        self.current = current
        super().__init__(detail)

    def payload(self) -> dict[str, Any]:
        data = super().payload()
        if self.current is not None:
            data["status"] = self.current.value
        return data


class StepOutOfRange(InvalidState):
    def __init__(self, index: int, length: int) -> None:
        self.index = index
        super().__init__(f"Workflow step {index} does not exist (workflow has {length} steps)")

    def payload(self) -> dict[str, Any]:
        return {**super().payload(), "index": self.index}


class ConcurrentModification(InvalidState):
    default_detail = "Booking was modified by another request; reload and retry"


def booking_error_handler(_: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


def apply_error_handlers(app: FastAPI) -> None:
    """Translate booking errors into JSON responses instead of 500s."""

    app.add_exception_handler(BookingError, booking_error_handler)
