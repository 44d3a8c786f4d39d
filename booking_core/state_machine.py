"""Booking lifecycle transitions.

Every transition checks all of its preconditions before touching the
booking, so a failed call leaves the record exactly as it was. Callers
persist the mutated booking themselves.

::

    PENDING(i) --approve--> PENDING(i + 1)    (i is not the last step)
    PENDING(i) --approve--> APPROVED          (i is the last step)
    PENDING(i) --reject---> REJECTED
    PENDING / APPROVED --cancel--> CANCELLED  (owner only)
    APPROVED --complete--> COMPLETED          (end time passed)
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from .authorization import booking_workflow, can_act
from .exceptions import InvalidState, Unauthorized
from .models import ApprovalDecision, Booking, BookingStatus, User
from .time_range import as_utc, utcnow
from .workflow import WorkflowDefinition, WorkflowStep

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.APPROVED})
TERMINAL_STATUSES = frozenset({BookingStatus.REJECTED, BookingStatus.CANCELLED, BookingStatus.COMPLETED})


def _ensure_pending(booking: Booking) -> None:
    if booking.status != BookingStatus.PENDING:
        raise InvalidState(
            f"Booking {booking.id} is {booking.status.value}; no approval step is open",
            current=booking.status,
        )


def _open_step(booking: Booking, actor: User) -> tuple[WorkflowDefinition, WorkflowStep]:
    _ensure_pending(booking)
    workflow = booking_workflow(booking)
    step = workflow.step_at(booking.current_node_index)
    if not can_act(actor, booking):
        raise Unauthorized(f"Step '{step.name}' requires the '{step.approver_role.value}' role")
    return workflow, step


def _record(
    step: WorkflowStep,
    actor: User,
    decision: ApprovalDecision,
    now: datetime,
    comment: Optional[str] = None,
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "node_name": step.name,
        "approver_name": actor.name,
        "decision": decision.value,
        "timestamp": as_utc(now).isoformat(),
    }
    if comment is not None:
        record["comment"] = comment
    return record


def approve(booking: Booking, actor: User, *, now: Optional[datetime] = None) -> Booking:
    workflow, step = _open_step(booking, actor)
    record = _record(step, actor, ApprovalDecision.APPROVED, now or utcnow())
    booking.approval_history = [*(booking.approval_history or []), record]
    if workflow.is_last(booking.current_node_index):
        booking.status = BookingStatus.APPROVED
        logger.info("Booking %s approved by %s at final step '%s'", booking.id, actor.username, step.name)
    else:
        booking.current_node_index += 1
        logger.info(
            "Booking %s passed step '%s' (approved by %s); awaiting step %d",
            booking.id,
            step.name,
            actor.username,
            booking.current_node_index,
        )
    return booking


def reject(
    booking: Booking,
    actor: User,
    comment: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> Booking:
    _, step = _open_step(booking, actor)
    record = _record(step, actor, ApprovalDecision.REJECTED, now or utcnow(), comment)
    booking.approval_history = [*(booking.approval_history or []), record]
    booking.status = BookingStatus.REJECTED
    logger.info("Booking %s rejected by %s at step '%s'", booking.id, actor.username, step.name)
    return booking


def cancel(booking: Booking, actor_id: int) -> Booking:
    if booking.status not in CANCELLABLE_STATUSES:
        raise InvalidState(f"Booking {booking.id} is {booking.status.value} and cannot be cancelled", current=booking.status)
    if booking.user_id != actor_id:
        raise Unauthorized("Only the requester may cancel a booking")
    booking.status = BookingStatus.CANCELLED
    logger.info("Booking %s cancelled by its requester %s", booking.id, actor_id)
    return booking


def complete(booking: Booking, *, now: Optional[datetime] = None) -> Booking:
    """Close an approved booking once its time range is over."""

    if booking.status != BookingStatus.APPROVED:
        raise InvalidState(f"Only approved bookings can complete; booking {booking.id} is {booking.status.value}", current=booking.status)
    if booking.time_range.end > as_utc(now or utcnow()):
        raise InvalidState(f"Booking {booking.id} has not ended yet", current=booking.status)
    booking.status = BookingStatus.COMPLETED
    logger.info("Booking %s completed", booking.id)
    return booking
