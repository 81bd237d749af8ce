import django_filters

from modules.orders.constants import OrderStatus, OrderType
from modules.orders.models import Order

ALL_CHOICE = [("all", "All")]


class OrderFilter(django_filters.FilterSet):
    """Database-side narrowing of the order list, before search and sorting.

    ``order_type`` and ``status`` accept ``all`` as "no filter", matching the
    admin portal's filter dropdowns.
    """

    order_type = django_filters.ChoiceFilter(
        field_name="order_type", choices=ALL_CHOICE + OrderType.choices, method="filter_choice"
    )
    status = django_filters.ChoiceFilter(
        field_name="status", choices=ALL_CHOICE + OrderStatus.choices, method="filter_choice"
    )
    client_id = django_filters.CharFilter(field_name="client_id")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")

    class Meta:
        model = Order
        fields = [
            "order_type",
            "status",
            "client_id",
            "start_date",
            "end_date",
        ]

    def filter_choice(self, queryset, name, value):
        if not value or value == "all":
            return queryset
        return queryset.filter(**{name: value})
