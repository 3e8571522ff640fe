"""Celery tasks for the Orders module."""

from __future__ import annotations

from typing import Any, Dict

import structlog
from celery import shared_task

logger = structlog.get_logger(__name__)


@shared_task(name="orders.enforce_negotiation_deadlines")
def enforce_negotiation_deadlines() -> Dict[str, Any]:
    """One sweep of the deadline enforcer (scheduled by Celery beat)."""
    from modules.orders.deadlines import build_deadline_enforcer

    report = build_deadline_enforcer().tick()
    return report.model_dump(mode="json")


@shared_task(name="orders.dispatch_notification", ignore_result=True)
def dispatch_notification(kind: str, order_id: str, payload: Dict[str, Any]) -> None:
    logger.info(
        "notification.dispatched",
        kind=kind,
        order_id=order_id,
        payload=payload,
    )
