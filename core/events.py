"""
Core — Domain Events

Fire-and-forget publication of ledger events (UsageSubmitted,
UsageAmended, ReturnRecorded, ...). Events are dispatched only after the
surrounding transaction commits; a failing receiver is logged and never
affects the ledger write.

@file core/events.py
"""

import logging
from typing import Any

from django.db import transaction
from django.dispatch import Signal
from django.utils import timezone

logger = logging.getLogger('supplytrack')

# kwargs: event, model_name, object_id, actor, payload, timestamp
domain_event = Signal()


def publish_event(
    event: str,
    *,
    model_name: str,
    object_id,
    actor=None,
    payload: dict[str, Any] | None = None,
) -> None:
    """Queue ``event`` for delivery once the current transaction commits."""
    timestamp = timezone.now()
    object_id = str(object_id)

    def _dispatch():
        responses = domain_event.send_robust(
            sender=event,
            event=event,
            model_name=model_name,
            object_id=object_id,
            actor=actor,
            payload=payload or {},
            timestamp=timestamp,
        )
        for receiver, result in responses:
            if isinstance(result, Exception):
                logger.error(
                    'Event receiver %s failed for %s %s:%s: %s',
                    getattr(receiver, '__name__', receiver), event, model_name, object_id, result,
                )

    transaction.on_commit(_dispatch)
