import django_filters

from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    producer = django_filters.UUIDFilter(field_name="producer_id")
    supplier = django_filters.UUIDFilter(field_name="supplier_id")
    deadline_before = django_filters.DateTimeFilter(
        field_name="interaction_deadline", lookup_expr="lte"
    )
    deadline_after = django_filters.DateTimeFilter(
        field_name="interaction_deadline", lookup_expr="gte"
    )

    class Meta:
        model = Order
        fields = ["status", "producer", "supplier", "deadline_before", "deadline_after"]
