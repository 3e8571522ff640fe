from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.orders"
    label = "orders"

    def ready(self) -> None:
        from modules.orders.events import (
            CartChanged,
            DeadlineExtended,
            OrderCancelled,
            OrderClosed,
            OrderCreated,
        )
        from modules.orders.handlers import (
            cart_changed_handler,
            deadline_extended_handler,
            order_cancelled_handler,
            order_closed_handler,
            order_created_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(OrderCreated, order_created_handler)
        event_bus.subscribe(OrderClosed, order_closed_handler)
        event_bus.subscribe(OrderCancelled, order_cancelled_handler)
        event_bus.subscribe(CartChanged, cart_changed_handler)
        event_bus.subscribe(DeadlineExtended, deadline_extended_handler)
