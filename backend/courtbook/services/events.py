"""
backend/courtbook/services/events.py

Event emitter: pushes domain events to a Redis list for notification
consumers (booking confirmations, reconciliation alerts, slot changes).

Queue:
- events:p2p: instant delivery to specific users/admins

Emission is fire-and-forget: a Redis outage is logged and never fails the
operation that produced the event.
"""

import json
import time
import logging

from redis.exceptions import RedisError

from ..redis_client import redis_client

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"


def emit_event(event_type: str, payload: dict) -> None:
    """
    Emit a p2p event (instant delivery).

    Pushed to Redis list `events:p2p` for the consumer loop.
    """
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis_client.rpush(P2P_QUEUE, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {P2P_QUEUE}")
    except RedisError as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
