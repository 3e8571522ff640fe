"""Order domain constants.

Defines status and action choices plus the valid status transitions of
the negotiation state machine.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    IN_NEGOTIATION = "IN_NEGOTIATION", "Em negociação"
    CLOSED = "CLOSED", "Fechado"
    CANCELLED_BY_BUYER = "CANCELLED_BY_BUYER", "Cancelado pelo comprador"
    CANCELLED_BY_DEADLINE = "CANCELLED_BY_DEADLINE", "Cancelado por prazo"


class BuyerAction(models.TextChoices):
    STARTED = "STARTED", "Iniciado"
    ACCEPTED = "ACCEPTED", "Aceito"
    CANCELLED = "CANCELLED", "Cancelado"
    CART_CHANGED = "CART_CHANGED", "Carrinho alterado"


class ActorRole(models.TextChoices):
    BUYER = "BUYER", "Comprador"
    SUPPLIER = "SUPPLIER", "Fornecedor"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.IN_NEGOTIATION: {
        OrderStatus.CLOSED,
        OrderStatus.CANCELLED_BY_BUYER,
        OrderStatus.CANCELLED_BY_DEADLINE,
    },
    OrderStatus.CLOSED: set(),
    OrderStatus.CANCELLED_BY_BUYER: set(),
    OrderStatus.CANCELLED_BY_DEADLINE: set(),
}

TERMINAL_STATES: set[str] = {
    OrderStatus.CLOSED,
    OrderStatus.CANCELLED_BY_BUYER,
    OrderStatus.CANCELLED_BY_DEADLINE,
}

CANCELLED_STATES: set[str] = {
    OrderStatus.CANCELLED_BY_BUYER,
    OrderStatus.CANCELLED_BY_DEADLINE,
}

STARTED_NEGOTIATION_NOTE = "Started negotiation"

OUTBOX_TOPIC = "orders"
