"""Order URL configuration.

Routes (all under ``/api/v1/``):

- ``orders/``: create, list, ``analytics/``
- ``orders/{id}/``: retrieve, PATCH status
- ``orders/{id}/cancel|quote|payments|assign|details|timeline/``
- ``orders/{id}/timeline/{milestone_id}/status/``
- ``orders/{id}/messages/``, ``messages/seen/``, ``messages/{message_id}/flag/``
"""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.orders.views import OrderViewSet

router = DefaultRouter(trailing_slash=True)
router.register("orders", OrderViewSet, basename="order")

urlpatterns = router.urls
