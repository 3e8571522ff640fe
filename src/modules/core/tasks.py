"""Background tasks of the core module."""

from celery import shared_task

from modules.core.outbox import relay_pending_events


@shared_task(name="core.relay_outbox_events", ignore_result=True)
def relay_outbox_events(batch_size: int = 100) -> int:
    """Publish pending outbox rows to the in-process event bus."""
    return relay_pending_events(batch_size=batch_size)
