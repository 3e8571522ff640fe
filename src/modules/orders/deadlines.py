"""Background enforcement of negotiation deadlines.

Each tick:
1. cancels every negotiating order whose deadline has passed, each one in
   its own savepoint so a failing order never blocks the others;
2. sends an advance warning for negotiating orders whose deadline falls
   within the warning window.

Repositories are resolved from a factory on every tick and database
connections are recycled around it, so no connection is held between
ticks.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, List, Optional

import structlog
from django.conf import settings
from django.db import close_old_connections, transaction
from django.utils import timezone
from pydantic import BaseModel, ConfigDict, Field

from modules.orders.notifications import (
    CeleryNotificationDispatcher,
    INotificationDispatcher,
)
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class DeadlineSweepReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    swept_at: datetime
    cancelled: List[str] = Field(default_factory=list)
    warned: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)


class DeadlineEnforcer:
    def __init__(
        self,
        repository_factory: Callable[[], IOrderRepository],
        notifier: INotificationDispatcher,
        interval_seconds: float = 3600,
        warning_days: int = 1,
    ) -> None:
        self._repository_factory = repository_factory
        self._notifier = notifier
        self.interval_seconds = interval_seconds
        self.warning_days = warning_days

    def tick(self, now: Optional[datetime] = None) -> DeadlineSweepReport:
        now = now or timezone.now()
        close_old_connections()
        try:
            repository = self._repository_factory()
            cancelled, failed = self._cancel_expired(repository, now)
            warned = self._warn_near_deadline(repository, now)
        finally:
            close_old_connections()

        logger.info(
            "deadline.sweep_finished",
            cancelled=len(cancelled),
            warned=len(warned),
            failed=len(failed),
        )
        return DeadlineSweepReport(
            swept_at=now, cancelled=cancelled, warned=warned, failed=failed
        )

    def run(self, stop_event: threading.Event) -> None:
        """Tick every ``interval_seconds`` until *stop_event* is set."""
        logger.info("deadline.enforcer_started", interval_seconds=self.interval_seconds)
        while not stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("deadline.tick_failed")
            stop_event.wait(self.interval_seconds)
        logger.info("deadline.enforcer_stopped")

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _cancel_expired(
        self, repository: IOrderRepository, now: datetime
    ) -> tuple[List[str], List[str]]:
        cancelled: List[str] = []
        failed: List[str] = []
        for order in repository.find_expired(now):
            order_id = str(order.id)
            try:
                with transaction.atomic():
                    order.cancel_by_deadline()
                    repository.save(order)
            except Exception:
                logger.exception("deadline.order_cancel_failed", order_id=order_id)
                failed.append(order_id)
                continue
            cancelled.append(order_id)
            logger.info("deadline.order_cancelled", order_id=order_id)
            self._notifier.notify("deadline.order_cancelled", order_id)
        return cancelled, failed

    def _warn_near_deadline(self, repository: IOrderRepository, now: datetime) -> List[str]:
        warned: List[str] = []
        for order in repository.find_near_deadline(now, self.warning_days):
            self._notifier.notify(
                "deadline.warning",
                str(order.id),
                {"interaction_deadline": order.interaction_deadline.isoformat()},
            )
            warned.append(str(order.id))
        return warned


def build_deadline_enforcer() -> DeadlineEnforcer:
    return DeadlineEnforcer(
        repository_factory=OrderDjangoRepository,
        notifier=CeleryNotificationDispatcher(),
        interval_seconds=settings.DEADLINE_SWEEP_INTERVAL_SECONDS,
        warning_days=settings.ORDER_DEADLINE_WARNING_DAYS,
    )
