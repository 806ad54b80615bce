"""Order API views.

Exposes the ``OrderService`` via HTTP using a DRF ViewSet.
Domain exceptions are caught and translated into appropriate
HTTP status codes; the view never swallows generic exceptions.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.orders.exceptions import (
    InvalidOrderFilters,
    InvalidOrderStatus,
    OrderNotFound,
    TrackingNumberRequired,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.serializers import (
    CancelOrderSerializer,
    InternalNotesSerializer,
    OrderListParamsSerializer,
    OrderSerializer,
    StatsParamsSerializer,
    TrackedOrderSerializer,
    TrackOrderSerializer,
    UpdateOrderStatusSerializer,
)
from modules.orders.services import OrderService

NOT_FOUND = {"detail": "Order not found."}


class OrderViewSet(GenericViewSet):
    """Fulfillment API for staff, plus the public guest tracking lookup.

    Uses ``OrderService`` with an injected repository (DIP).
    Does **not** extend ``ModelViewSet``: all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.all()
    serializer_class = OrderSerializer
    filter_backends: list = []

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderService(order_repository=OrderDjangoRepository())

    def get_permissions(self):
        if self.action == "track":
            return [AllowAny()]
        return super().get_permissions()

    def get_throttles(self) -> list[BaseThrottle]:
        """Public tracking gets its own, tighter throttle scope."""
        self.throttle_scope = "order_tracking" if self.action == "track" else None
        return super().get_throttles()

    def _actor_id(self, request: Request):
        return getattr(request.user, "pk", None)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filters (status, customer_email, order_number, date_from, date_to)
        are validated by ``OrderFilter``; ``limit``/``offset`` page the
        newest-first result.
        """
        params = OrderListParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        filters = {
            key: request.query_params[key]
            for key in OrderFilter.base_filters
            if key in request.query_params
        }
        try:
            orders, total = self._service.list_orders(
                filters,
                limit=params.validated_data["limit"],
                offset=params.validated_data["offset"],
            )
        except InvalidOrderFilters as exc:
            return Response(
                {"detail": "Invalid filters.", "errors": exc.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )

        return Response(
            {"count": total, "results": OrderSerializer(orders, many=True).data}
        )

    @action(detail=False, methods=["get"])
    def pending(self, request: Request) -> Response:
        """GET /api/v1/orders/pending/ (oldest first)"""
        orders = self._service.get_pending_orders()
        return Response(
            {"count": len(orders), "results": OrderSerializer(orders, many=True).data}
        )

    @action(detail=False, methods=["get"])
    def search(self, request: Request) -> Response:
        """GET /api/v1/orders/search/?q="""
        query = request.query_params.get("q", "").strip()
        if not query:
            return Response(
                {"detail": "Query parameter 'q' is required."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        orders = self._service.search_orders(query)
        return Response(
            {"count": len(orders), "results": OrderSerializer(orders, many=True).data}
        )

    @action(
        detail=False,
        methods=["get"],
        url_path=r"number/(?P<order_number>[^/]+)",
        url_name="by-number",
    )
    def by_number(self, request: Request, order_number: str) -> Response:
        """GET /api/v1/orders/number/{order_number}/"""
        try:
            order = self._service.get_by_order_number(order_number)
        except OrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(OrderSerializer(order).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(pk)
        except OrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(OrderSerializer(order).data)

    @action(detail=False, methods=["get"])
    def stats(self, request: Request) -> Response:
        """GET /api/v1/orders/stats/?date_from=&date_to="""
        params = StatsParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        stats = self._service.get_stats(
            date_from=params.validated_data.get("date_from"),
            date_to=params.validated_data.get("date_to"),
        )
        return Response(stats.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Status Update
    # ------------------------------------------------------------------

    @action(detail=True, methods=["patch"], url_path="status", url_name="status")
    def update_status(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/status/

        SHIPPED requires ``tracking_number``.  Transitions out of a
        terminal status are rejected.
        """
        payload = UpdateOrderStatusSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data

        try:
            order = self._service.update_status(
                pk,
                data["status"],
                notes=data.get("notes", ""),
                actor_id=self._actor_id(request),
                supplier_order_id=data.get("supplier_order_id"),
                tracking_number=data.get("tracking_number"),
                tracking_url=data.get("tracking_url"),
                carrier=data.get("carrier"),
            )
        except OrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except (InvalidOrderStatus, TrackingNumberRequired) as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["patch"], url_path="notes", url_name="notes")
    def internal_notes(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/notes/"""
        payload = InternalNotesSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        try:
            order = self._service.add_internal_notes(
                pk, payload.validated_data["notes"]
            )
        except OrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Cancel (dedicated action)
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/"""
        payload = CancelOrderSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        try:
            order = self._service.cancel_order(
                pk,
                reason=payload.validated_data["reason"],
                actor_id=self._actor_id(request),
            )
        except OrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except InvalidOrderStatus as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Guest tracking (public)
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"])
    def track(self, request: Request) -> Response:
        """POST /api/v1/orders/track/ with ``email`` and ``order_number``."""
        payload = TrackOrderSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        try:
            order = self._service.track_guest_order(
                payload.validated_data["email"],
                payload.validated_data["order_number"],
            )
        except OrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(TrackedOrderSerializer(order).data)
