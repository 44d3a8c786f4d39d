"""Who may decide on a booking's current approval step."""
from __future__ import annotations

from .exceptions import StepOutOfRange
from .models import Booking, BookingStatus, User
from .workflow import WorkflowDefinition


def booking_workflow(booking: Booking) -> WorkflowDefinition:
    """The step list captured when the booking was admitted."""

    return WorkflowDefinition.from_snapshot(booking.workflow_snapshot)


def can_act(actor: User, booking: Booking) -> bool:
    if booking.status != BookingStatus.PENDING:
        return False
    try:
        required = booking_workflow(booking).approver_role_at(booking.current_node_index)
    except StepOutOfRange:
        return False
    return required in actor.role_set
