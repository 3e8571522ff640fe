"""Negotiation protocol between buyer (producer) and supplier.

Each step appends to the proposal log and may move the order through its
state machine.  Buyer and supplier steps are separate handlers selected by
``ActorRole``.

Log rule: a row is only appended when its action differs from the
immediately preceding row.  A suppressed buyer row still applies its
status change.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, Optional

import structlog

from modules.orders.constants import STARTED_NEGOTIATION_NOTE, ActorRole, BuyerAction
from modules.orders.exceptions import InvalidInput, InvalidOrderStatus
from modules.orders.models import Order, Proposal

if TYPE_CHECKING:
    from modules.orders.notifications import INotificationDispatcher
    from modules.orders.repositories.interfaces import IProposalRepository

logger = structlog.get_logger(__name__)

BUYER_TRANSITIONS: Dict[str, Callable[[Order], None]] = {
    BuyerAction.ACCEPTED: Order.close,
    BuyerAction.CANCELLED: Order.cancel_by_buyer,
}


class NegotiationProtocol:
    def __init__(
        self,
        proposal_repository: IProposalRepository,
        notifier: Optional[INotificationDispatcher] = None,
    ) -> None:
        self._proposal_repo = proposal_repository
        self._notifier = notifier
        self._handlers = {
            ActorRole.BUYER: self._buyer_step,
            ActorRole.SUPPLIER: self._supplier_step,
        }

    def record_action(
        self,
        order: Order,
        actor_user_id: Optional[int],
        role: str,
        requested_action: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Optional[Proposal]:
        """Apply one step to *order* (unsaved) and return the appended row, if any."""
        order.ensure_open()
        handler = self._handlers.get(role)
        if handler is None:
            raise InvalidInput(f"Unknown negotiation role: {role}.")
        proposal = handler(order, actor_user_id, requested_action, note)

        log = logger.bind(order_id=str(order.id), role=str(role), status=order.status)
        if proposal is None:
            log.info("negotiation.proposal_suppressed", action=requested_action)
            return None

        self._proposal_repo.add(proposal)
        log.info("negotiation.action_recorded", action=proposal.action)
        if self._notifier is not None:
            self._notifier.notify(
                "negotiation.proposal_recorded",
                order_id=str(order.id),
                payload={"role": str(role), "action": proposal.action, "note": proposal.note},
            )
        return proposal

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _buyer_step(
        self,
        order: Order,
        actor_user_id: Optional[int],
        requested_action: Optional[str],
        note: Optional[str],
    ) -> Optional[Proposal]:
        last = self._proposal_repo.last_for_order(order.id)

        if last is None:
            action = BuyerAction.STARTED
            note = STARTED_NEGOTIATION_NOTE
        else:
            if not requested_action:
                raise InvalidInput("An action is required.")
            transition = BUYER_TRANSITIONS.get(requested_action)
            if transition is None:
                raise InvalidInput(f"Action {requested_action} cannot be requested.")
            transition(order)
            action = BuyerAction(requested_action)

        if last is not None and last.action == action:
            return None
        return Proposal(
            order=order,
            action=action,
            role=ActorRole.BUYER,
            actor_user_id=actor_user_id,
            note=note or "",
        )

    def _supplier_step(
        self,
        order: Order,
        actor_user_id: Optional[int],
        requested_action: Optional[str],
        note: Optional[str],
    ) -> Proposal:
        if not order.is_negotiating:
            raise InvalidOrderStatus("Only the buyer can start the negotiation.")
        if not note or not note.strip():
            raise InvalidInput("A note is required.")
        return Proposal(
            order=order,
            action=None,
            role=ActorRole.SUPPLIER,
            actor_user_id=actor_user_id,
            note=note.strip(),
        )
