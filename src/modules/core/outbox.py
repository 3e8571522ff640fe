"""Outbox relay: deliver pending ``OutboxEvent`` rows to the event bus."""

from __future__ import annotations

from typing import Optional

import structlog
from django.db import transaction

from modules.core.models import EventStatus, OutboxEvent
from shared.domain.bus import IEventBus
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 100


def relay_pending_events(
    batch_size: int = DEFAULT_BATCH_SIZE,
    bus: Optional[IEventBus] = None,
) -> int:
    """Publish up to ``batch_size`` pending events; return how many were published.

    A row whose event type has no subscriber, or whose handler raises, is
    marked ``FAILED`` with the error and the relay moves on to the next one.
    """
    bus = bus or event_bus
    published = 0
    with transaction.atomic():
        rows = list(
            OutboxEvent.objects.select_for_update(skip_locked=True)
            .filter(status=EventStatus.PENDING)
            .order_by("created_at", "id")[:batch_size]
        )
        for row in rows:
            log = logger.bind(outbox_id=str(row.id), event_type=row.event_type)
            event_class = bus.event_class_for(row.event_type)
            if event_class is None:
                row.mark_as_failed(f"No handler registered for {row.event_type}.")
                log.warning("outbox.unroutable_event")
                continue
            fields = {k: v for k, v in row.payload.items() if k != "event_name"}
            try:
                bus.publish(event_class(**fields))
            except Exception as exc:
                row.mark_as_failed(str(exc))
                log.exception("outbox.publish_failed")
                continue
            row.mark_as_published()
            published += 1

    if rows:
        logger.info("outbox.relayed", published=published, fetched=len(rows))
    return published
