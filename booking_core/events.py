"""Booking lifecycle events published to RabbitMQ."""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Optional

import pika
from circuitbreaker import CircuitBreakerError, circuit
from pika.exceptions import AMQPError

from .config import get_settings
from .models import Booking

logger = logging.getLogger(__name__)


def booking_event(event: str, booking: Booking) -> dict[str, Any]:
    return {
        "event": event,
        "booking_id": booking.id,
        "user_id": booking.user_id,
        "resource_id": booking.resource_id,
        "status": booking.status.value,
        "current_node_index": booking.current_node_index,
        "start_time": booking.start_time.isoformat(),
        "end_time": booking.end_time.isoformat(),
    }


@circuit(failure_threshold=5, recovery_timeout=60)
def _send(host: str, queue: str, message: dict[str, Any]) -> None:
    connection = pika.BlockingConnection(pika.ConnectionParameters(host=host))
    try:
        channel = connection.channel()
        channel.queue_declare(queue=queue, durable=True)
        channel.basic_publish(
            exchange="",
            routing_key=queue,
            body=json.dumps(message),
            properties=pika.BasicProperties(delivery_mode=2),  # persistent
        )
    finally:
        connection.close()


class BookingEventPublisher:
    """Best-effort publisher; a broker outage never undoes a committed change."""

    def __init__(self, host: Optional[str], queue: str = "bookings") -> None:
        self.host = host
        self.queue = queue

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def publish(self, event: str, booking: Booking) -> None:
        if not self.enabled:
            return
        message = booking_event(event, booking)
        try:
            _send(self.host, self.queue, message)
        except (AMQPError, CircuitBreakerError, OSError) as exc:
            logger.error("[RabbitMQ] Could not publish %s for booking %s: %s", event, booking.id, exc)
            return
        logger.info("[RabbitMQ] Published %s for booking %s", event, booking.id)


@lru_cache
def get_publisher() -> BookingEventPublisher:
    settings = get_settings()
    return BookingEventPublisher(settings.broker_host, settings.broker_queue)
