"""Persistence port used by the booking engine and its SQLAlchemy adapter."""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import ContextManager, Iterator, List, Optional, Protocol

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .exceptions import ConcurrentModification
from .models import Booking, BookingStatus, Resource, WorkflowNode
from .workflow import WorkflowDefinition

logger = logging.getLogger(__name__)


class BookingRepository(Protocol):
    def resource_lock(self, resource_id: int) -> ContextManager[None]:
        """Serialize admissions for one resource; roll back on error."""
        ...

    def get_resource(self, resource_id: int, *, for_update: bool = False) -> Optional[Resource]:
        ...

    def bookings_for_resource(self, resource_id: int) -> List[Booking]:
        """Every booking of the resource, whatever its status."""
        ...

    def get_workflow(self) -> WorkflowDefinition:
        ...

    def get_booking(self, booking_id: int, *, for_update: bool = False) -> Optional[Booking]:
        ...

    def add_booking(self, booking: Booking) -> Booking:
        ...

    def save_booking(self, booking: Booking) -> Booking:
        ...

    def approved_bookings_ended_by(self, now: datetime) -> List[Booking]:
        ...

    def pending_bookings_ended_by(self, now: datetime) -> List[Booking]:
        ...

    def rollback(self) -> None:
        ...


_registry_guard = threading.Lock()
_resource_locks: dict[int, threading.Lock] = {}


def _lock_for(resource_id: int) -> threading.Lock:
    with _registry_guard:
        lock = _resource_locks.get(resource_id)
        if lock is None:
            lock = _resource_locks[resource_id] = threading.Lock()
        return lock


class SqlAlchemyBookingRepository:
    """Repository over a SQLAlchemy session.

    Admissions for a resource are serialized by an in-process lock and, on
    databases that support it, by ``SELECT ... FOR UPDATE`` on the resource
    row. Booking updates rely on the mapper's ``version_id_col``.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def resource_lock(self, resource_id: int) -> Iterator[None]:
        with _lock_for(resource_id):
            try:
                yield
            except BaseException:
                self.db.rollback()
                raise

    def get_resource(self, resource_id: int, *, for_update: bool = False) -> Optional[Resource]:
        query = self.db.query(Resource).filter(Resource.id == resource_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def bookings_for_resource(self, resource_id: int) -> List[Booking]:
        return (
            self.db.query(Booking)
            .filter(Booking.resource_id == resource_id)
            .order_by(Booking.created_at, Booking.id)
            .all()
        )

    def get_workflow(self) -> WorkflowDefinition:
        nodes = self.db.query(WorkflowNode).order_by(WorkflowNode.sort_order, WorkflowNode.id).all()
        return WorkflowDefinition.from_nodes(nodes)

    def get_booking(self, booking_id: int, *, for_update: bool = False) -> Optional[Booking]:
        query = self.db.query(Booking).filter(Booking.id == booking_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def add_booking(self, booking: Booking) -> Booking:
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        return booking

    def save_booking(self, booking: Booking) -> Booking:
        booking_id = booking.id
        try:
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            logger.warning("Concurrent update lost on booking %s", booking_id)
            raise ConcurrentModification() from exc
        self.db.refresh(booking)
        return booking

    def approved_bookings_ended_by(self, now: datetime) -> List[Booking]:
        return (
            self.db.query(Booking)
            .filter(Booking.status == BookingStatus.APPROVED, Booking.end_time <= now)
            .order_by(Booking.end_time, Booking.id)
            .all()
        )

    def pending_bookings_ended_by(self, now: datetime) -> List[Booking]:
        return (
            self.db.query(Booking)
            .filter(Booking.status == BookingStatus.PENDING, Booking.end_time <= now)
            .order_by(Booking.end_time, Booking.id)
            .all()
        )

    def rollback(self) -> None:
        self.db.rollback()
