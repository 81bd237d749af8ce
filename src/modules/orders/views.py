"""Order API views.

Exposes ``OrderService`` and ``OrderMessageService`` via HTTP using a DRF
ViewSet.  Domain exceptions are caught and translated into HTTP status
codes (404 missing, 400 validation/state, 409 concurrency) with the
project-wide error body; the view never swallows generic exceptions.

Mutations accept an optional ``version`` in the body.  When given, the
change only applies if the order is still at that version.
"""

from __future__ import annotations

from typing import Any, Callable

import structlog
from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import error_response
from modules.orders import queries
from modules.orders.constants import OrderStatus, SenderRole
from modules.orders.dtos import (
    ActorDTO,
    AddPaymentDTO,
    CancelOrderDTO,
    CreateMilestoneDTO,
    CreateOrderDTO,
    CreateQuoteDTO,
    SendMessageDTO,
    UpdateOrderDTO,
)
from modules.orders.exceptions import (
    MessageNotFound,
    MilestoneNotFound,
    OrderConcurrencyError,
    OrderError,
    OrderNotFound,
)
from modules.orders.filters import OrderFilter
from modules.orders.messaging import OrderMessageService
from modules.orders.numbering import OrderNumberService
from modules.orders.repositories import (
    CounterDjangoRepository,
    OrderDjangoRepository,
    OrderMessageDjangoRepository,
)
from modules.orders.serializers import (
    AddPaymentSerializer,
    AssignOrderSerializer,
    CancelOrderSerializer,
    CreateMilestoneSerializer,
    CreateOrderSerializer,
    CreateQuoteSerializer,
    MarkSeenSerializer,
    MilestoneStatusSerializer,
    OrderListSerializer,
    OrderMessageSerializer,
    OrderSerializer,
    SendMessageSerializer,
    StatusUpdateSerializer,
    TimelineMilestoneSerializer,
    UpdateOrderSerializer,
)
from modules.orders.services import OrderService

logger = structlog.get_logger(__name__)

NOT_FOUND_ERRORS = (OrderNotFound, MessageNotFound, MilestoneNotFound)


def actor_from_request(request: Request) -> ActorDTO:
    """Build the acting identity from the authenticated user."""
    user = request.user
    return ActorDTO(
        actor_id=str(user.pk),
        display_name=user.get_full_name() or user.get_username(),
        role=SenderRole.ADMIN if user.is_staff else SenderRole.CLIENT,
    )


def domain_error_response(exc: OrderError) -> Response:
    if isinstance(exc, NOT_FOUND_ERRORS):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, OrderConcurrencyError):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return error_response(exc.code, str(exc), status_code)


def dto_error_response(exc: PydanticValidationError) -> Response:
    errors = [
        {
            "code": err["type"],
            "detail": err["msg"],
            "attr": ".".join(str(part) for part in err["loc"]) or None,
        }
        for err in exc.errors()
    ]
    return error_response("invalid", "Invalid request.", errors=errors)


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Does **not** extend ``ModelViewSet``: all ORM access goes through the
    service/repository layer.
    """

    filterset_class = OrderFilter
    filter_backends = [DjangoFilterBackend]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        order_repository = OrderDjangoRepository()
        message_repository = OrderMessageDjangoRepository()
        self._service = OrderService(
            order_repository=order_repository,
            message_repository=message_repository,
            number_service=OrderNumberService(CounterDjangoRepository()),
        )
        self._messages = OrderMessageService(
            order_repository=order_repository,
            message_repository=message_repository,
        )

    def get_queryset(self):
        return OrderDjangoRepository().queryset()

    def get_throttles(self) -> list[BaseThrottle]:
        """Throttling scopes per action."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve", "analytics"}:
            throttle_scope = "order_listing"
        elif self.action in {"messages", "messages_seen", "flag_message"}:
            throttle_scope = "order_messaging"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def _run(self, operation: Callable[[], Any], serialize: Callable[[Any], Any], status_code: int = status.HTTP_200_OK) -> Response:
        try:
            result = operation()
        except PydanticValidationError as exc:
            return dto_error_response(exc)
        except OrderError as exc:
            logger.info("order.request_rejected", error=exc.code, detail=str(exc))
            return domain_error_response(exc)
        return Response(serialize(result), status=status_code)

    @staticmethod
    def _order_data(order) -> dict:
        return OrderSerializer(order).data

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/"""
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        actor = actor_from_request(request)

        def operation():
            dto = CreateOrderDTO(
                client_id=data["client_id"],
                client=data["client"],
                details=data["details"],
                admin_notes=data["admin_notes"],
                client_notes=data["client_notes"],
                documents=data["documents"],
            )
            return self._service.create_order(dto, actor)

        return self._run(operation, self._order_data, status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve / Analytics
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        ``order_type``, ``status``, ``client_id``, ``start_date`` and
        ``end_date`` narrow the query in the database; ``search``,
        ``assignee`` and ``sort`` (newest, oldest, amount-high, amount-low,
        status) are applied to the loaded page source.  Results are paginated.
        """
        orders = list(self.filter_queryset(self.get_queryset()))
        orders = queries.search_orders(orders, request.query_params.get("search"))
        orders = queries.filter_by_assignee(orders, request.query_params.get("assignee"))
        orders = queries.sort_orders(orders, request.query_params.get("sort"))

        page = self.paginate_queryset(orders)
        serializer = OrderListSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        return self._run(lambda: self._service.get_order(pk), self._order_data)

    @action(detail=False, methods=["get"])
    def analytics(self, request: Request) -> Response:
        """GET /api/v1/orders/analytics/ (accepts the list filters)."""
        orders = list(self.filter_queryset(self.get_queryset()))
        return Response(queries.build_analytics(orders).model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/

        Updates order status.  Cancellations are **not** allowed via
        this endpoint: use ``POST /orders/{id}/cancel/`` instead.
        """
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data["status"] == OrderStatus.CANCELLED:
            return error_response(
                "use_cancel_endpoint", "Use the /cancel/ endpoint for cancellations."
            )

        return self._run(
            lambda: self._service.transition_status(
                pk,
                data["status"],
                actor_from_request(request),
                notes=data["notes"],
                expected_version=data.get("version"),
            ),
            self._order_data,
        )

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/"""
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        return self._run(
            lambda: self._service.cancel_order(
                pk,
                CancelOrderDTO(reason=data["reason"], refund_amount=data["refund_amount"]),
                actor_from_request(request),
                expected_version=data.get("version"),
            ),
            self._order_data,
        )

    # ------------------------------------------------------------------
    # Quote / Payments
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def quote(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/quote/"""
        serializer = CreateQuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        return self._run(
            lambda: self._service.send_quote(
                pk,
                CreateQuoteDTO(
                    items=data["items"],
                    discount=data["discount"],
                    validity_days=data["validity_days"],
                    currency=data["currency"],
                ),
                actor_from_request(request),
                expected_version=data.get("version"),
            ),
            self._order_data,
        )

    @action(detail=True, methods=["post"])
    def payments(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/payments/"""
        serializer = AddPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        expected_version = data.pop("version", None)

        return self._run(
            lambda: self._service.add_payment(
                pk,
                AddPaymentDTO(**data),
                actor_from_request(request),
                expected_version=expected_version,
            ),
            self._order_data,
        )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def assign(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/assign/"""
        serializer = AssignOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        return self._run(
            lambda: self._service.assign_order(
                pk,
                data["admin_ids"],
                actor_from_request(request),
                expected_version=data.get("version"),
            ),
            self._order_data,
        )

    @action(detail=True, methods=["patch"], url_path="details")
    def update_details(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/details/"""
        serializer = UpdateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        expected_version = data.pop("version", None)

        return self._run(
            lambda: self._service.update_details(
                pk,
                UpdateOrderDTO(**data),
                actor_from_request(request),
                expected_version=expected_version,
            ),
            self._order_data,
        )

    @action(detail=True, methods=["post"])
    def timeline(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/timeline/"""
        serializer = CreateMilestoneSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        expected_version = data.pop("version", None)

        return self._run(
            lambda: self._service.add_timeline_milestone(
                pk,
                CreateMilestoneDTO(**data),
                actor_from_request(request),
                expected_version=expected_version,
            ),
            lambda milestone: TimelineMilestoneSerializer(milestone).data,
            status.HTTP_201_CREATED,
        )

    @action(
        detail=True,
        methods=["patch"],
        url_path=r"timeline/(?P<milestone_id>[^/.]+)/status",
    )
    def milestone_status(
        self, request: Request, pk: str | None = None, milestone_id: str | None = None
    ) -> Response:
        """PATCH /api/v1/orders/{pk}/timeline/{milestone_id}/status/"""
        serializer = MilestoneStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        return self._run(
            lambda: self._service.update_milestone_status(
                pk,
                milestone_id,
                data["status"],
                actor_from_request(request),
                expected_version=data.get("version"),
            ),
            lambda milestone: TimelineMilestoneSerializer(milestone).data,
        )

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    @action(detail=True, methods=["get", "post"])
    def messages(self, request: Request, pk: str | None = None) -> Response:
        """GET/POST /api/v1/orders/{pk}/messages/"""
        actor = actor_from_request(request)
        if request.method == "GET":
            return self._run(
                lambda: (
                    self._messages.list_messages(pk),
                    self._messages.unread_count(pk, actor.actor_id),
                ),
                lambda result: {
                    "results": OrderMessageSerializer(result[0], many=True).data,
                    "unread_count": result[1],
                },
            )

        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        return self._run(
            lambda: self._messages.send_message(
                pk,
                actor,
                SendMessageDTO(text=data["text"], attachments=data["attachments"]),
            ),
            lambda message: OrderMessageSerializer(message).data,
            status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["post"], url_path="messages/seen")
    def messages_seen(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/messages/seen/"""
        serializer = MarkSeenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        actor = actor_from_request(request)

        return self._run(
            lambda: (
                self._messages.mark_seen(pk, serializer.validated_data["message_ids"], actor.actor_id),
                self._messages.unread_count(pk, actor.actor_id),
            ),
            lambda result: {"marked": result[0], "unread_count": result[1]},
        )

    @action(
        detail=True,
        methods=["post"],
        url_path=r"messages/(?P<message_id>[^/.]+)/flag",
    )
    def flag_message(
        self, request: Request, pk: str | None = None, message_id: str | None = None
    ) -> Response:
        """POST /api/v1/orders/{pk}/messages/{message_id}/flag/"""
        return self._run(
            lambda: self._messages.flag_deleted(pk, message_id, actor_from_request(request)),
            lambda message: OrderMessageSerializer(message).data,
        )
