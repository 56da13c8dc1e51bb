"""
backend/bookflow/services/events.py

Event emitter: pushes booking lifecycle events to a Redis queue.

Notification workers (WhatsApp, push) consume `events:p2p`; delivery is
theirs. A failed push is logged and never fails the booking operation.
"""

import json
import time
import logging

from redis.exceptions import RedisError

from ..config import settings
from ..redis_client import redis_client

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"


def emit_event(event_type: str, payload: dict) -> None:
    """
    Emit a p2p event (instant delivery).

    Pushed to Redis list `events:p2p` for the consumer loop.
    """
    if not settings.events_enabled:
        return

    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis_client.rpush(P2P_QUEUE, json.dumps(event))
        logger.info(f"Event emitted: {event_type} → {P2P_QUEUE}")
    except RedisError as e:
        logger.error(f"Failed to emit event {event_type}: {e}")


def booking_payload(booking) -> dict:
    return {
        "booking_id": booking.id,
        "business_id": booking.business_id,
        "staff_id": booking.staff_id,
        "service_id": booking.service_id,
        "date_start": booking.date_start,
        "status": booking.status,
    }
