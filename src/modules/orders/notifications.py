"""Fire-and-forget notification dispatch.

Delivery (e-mail, push, ...) is handled elsewhere; this module only hands
the message to a Celery worker so a slow channel never blocks the caller.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)


class INotificationDispatcher(Protocol):
    def notify(
        self,
        kind: str,
        order_id: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None: ...


class CeleryNotificationDispatcher:
    """Enqueues ``orders.dispatch_notification`` once the transaction commits."""

    def notify(
        self,
        kind: str,
        order_id: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        from django.db import transaction

        from modules.orders.tasks import dispatch_notification

        transaction.on_commit(
            lambda: dispatch_notification.delay(kind, order_id, payload or {})
        )
        logger.info("notification.enqueued", kind=kind, order_id=order_id)
