"""Orders API endpoints: checkout, order history, cancellation and staff status updates."""

from cart.identity import resolve_identity
from common.exceptions import ServiceError
from django.http import Http404
from django_filters import rest_framework as filters
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import filters as drf_filters
from rest_framework import generics
from rest_framework import serializers as rf_serializers
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Order
from .selectors import get_user_order, list_orders, list_user_orders
from .serializers import (
    CheckoutResultSerializer,
    CheckoutSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
    StockConflictSerializer,
)
from .services import cancel_order, checkout_cart, compute_request_hash, transition_order, with_idempotency

IDEMPOTENCY_PARAMETER = OpenApiParameter(
    name="Idempotency-Key",
    location=OpenApiParameter.HEADER,
    required=False,
    description="Makes the request idempotent within scope+path+method",
    type=str,
)

ERROR_RESPONSE = inline_serializer(
    name="OrderError",
    fields={"detail": rf_serializers.CharField(), "code": rf_serializers.CharField()},
)


def _run_idempotent(request, handler):
    idem_key = request.headers.get("Idempotency-Key")
    if idem_key:
        return with_idempotency(
            key=idem_key,
            user=request.user,
            path=str(request.path),
            method=str(request.method),
            request_hash=compute_request_hash(getattr(request, "data", None)),
            handler=handler,
        )
    return handler()


class CheckoutView(APIView):
    """Convert the authenticated user's cart into a pending order.

    Idempotent when `Idempotency-Key` is provided. Returns 409 on key reuse with different payload.
    """

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Checkout"],
        summary="Checkout cart",
        description=(
            "Re-checks every cart line against the live catalog and creates a pending order at current prices. "
            "Lines whose stock cannot cover the requested quantity are returned as conflicts (409) and the cart "
            "is left unchanged. Price changes since the items were added do not block checkout; they are "
            "reported in `price_changes`."
        ),
        request=CheckoutSerializer,
        parameters=[IDEMPOTENCY_PARAMETER],
        responses={
            201: CheckoutResultSerializer,
            400: ERROR_RESPONSE,
            409: inline_serializer(
                name="CheckoutConflict",
                fields={
                    "detail": rf_serializers.CharField(),
                    "code": rf_serializers.CharField(),
                    "conflicts": StockConflictSerializer(many=True),
                },
            ),
            503: ERROR_RESPONSE,
        },
        examples=[
            OpenApiExample(
                "Checkout",
                value={"shipping_address": "12 Harbour Road, Accra", "notes": "Ring twice"},
                request_only=True,
            ),
            OpenApiExample(
                "Stock conflict",
                value={
                    "detail": "Some items in your cart do not have enough stock.",
                    "code": "stock_conflict",
                    "conflicts": [{"product_id": 9, "product_name": "Desk Lamp", "requested": 10, "available": 4}],
                },
                response_only=True,
                status_codes=["409"],
            ),
        ],
    )
    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        def _handler():
            try:
                result = checkout_cart(identity=resolve_identity(request), **serializer.validated_data)
            except ServiceError as exc:
                return exc.as_payload(), exc.status_code
            data = CheckoutResultSerializer(
                {"order": result.order, "price_changes": list(result.price_changes)}, context={"request": request}
            ).data
            return data, status.HTTP_201_CREATED

        body, code = _run_idempotent(request, _handler)
        return Response(body, status=code)


class OrderFilterSet(filters.FilterSet):
    status = filters.ChoiceFilter(choices=Order.STATUS_CHOICES)
    number = filters.CharFilter(field_name="number")
    start = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    end = filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = Order
        fields = ["status", "number", "start", "end"]


class DefaultPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"


class OrderListView(generics.ListAPIView):
    """List authenticated user's orders with basic filters.

    Filters:
    - `status`: one of the OrderStatus values
    - `number`: exact match of order number
    - `start`: ISO date/time string; filters `created_at >= start`
    - `end`: ISO date/time string; filters `created_at <= end`
    """

    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer
    pagination_class = DefaultPagination
    throttle_scope = "orders"
    filter_backends = [filters.DjangoFilterBackend, drf_filters.OrderingFilter]
    filterset_class = OrderFilterSet
    ordering_fields = ["created_at", "total_amount"]

    def get_queryset(self):
        return list_user_orders(user_id=self.request.user.id)

    @extend_schema(
        tags=["Orders"],
        summary="List orders",
        description="List current user's orders with optional filters and pagination.",
        parameters=[
            OpenApiParameter(name="page", description="Page number", required=False, type=int),
            OpenApiParameter(name="page_size", description="Items per page", required=False, type=int),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderDetailView(generics.RetrieveAPIView):
    """Retrieve a single order for the authenticated user."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"
    serializer_class = OrderSerializer

    def get_object(self):
        try:
            return get_user_order(user_id=self.request.user.id, order_id=int(self.kwargs["order_id"]))
        except (Order.DoesNotExist, ValueError):
            raise Http404("Not found.")

    @extend_schema(
        tags=["Orders"],
        summary="Get order detail",
        examples=[
            OpenApiExample(
                "Order",
                value={
                    "id": 123,
                    "number": "ORD-000123",
                    "status": "pending",
                    "shipping_address": "12 Harbour Road, Accra",
                    "notes": "",
                    "payment_method": "cash_on_delivery",
                    "total_amount": "24.00",
                    "item_count": 2,
                    "created_at": "2025-01-01T12:00:00Z",
                    "updated_at": "2025-01-01T12:00:00Z",
                    "items": [
                        {
                            "id": 10,
                            "product_id": 7,
                            "product_name": "Desk Lamp",
                            "quantity": 2,
                            "unit_price": "12.00",
                            "price_when_added": "10.00",
                            "price_changed": True,
                            "subtotal": "24.00",
                        }
                    ],
                },
                response_only=True,
            )
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderCancelView(APIView):
    """Cancel a pending order for the authenticated owner.

    Idempotent when `Idempotency-Key` is provided. Returns 409 on key reuse with different payload.
    """

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Cancel order",
        description="Cancels a pending order and returns its items to stock.",
        request=None,
        parameters=[IDEMPOTENCY_PARAMETER],
        responses={200: OrderSerializer, 400: ERROR_RESPONSE},
        examples=[
            OpenApiExample("Cancelled", value={"id": 1, "status": "cancelled"}, response_only=True),
            OpenApiExample(
                "Mutation Error",
                value={"detail": "Only pending orders can be cancelled.", "code": "invalid_transition"},
                response_only=True,
            ),
        ],
    )
    def post(self, request, order_id: int):
        try:
            order = get_user_order(user_id=request.user.id, order_id=order_id)
        except Order.DoesNotExist:
            raise Http404

        def _handler():
            try:
                updated = cancel_order(order=order)
            except ServiceError as exc:
                return exc.as_payload(), exc.status_code
            return OrderSerializer(updated, context={"request": request}).data, status.HTTP_200_OK

        body, code = _run_idempotent(request, _handler)
        return Response(body, status=code)


class OrderStatusView(APIView):
    """Staff-only status transitions along the order lifecycle."""

    permission_classes = [IsAdminUser]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Update order status (staff)",
        description=(
            "Moves an order along pending -> confirmed -> shipped -> delivered, or pending -> cancelled. "
            "Other transitions are rejected."
        ),
        request=OrderStatusUpdateSerializer,
        responses={200: OrderSerializer, 400: ERROR_RESPONSE},
        examples=[OpenApiExample("Ship", value={"status": "shipped"}, request_only=True)],
    )
    def patch(self, request, order_id: int):
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            order = Order.objects.get(pk=order_id)
        except Order.DoesNotExist:
            raise Http404
        try:
            updated = transition_order(order=order, status=serializer.validated_data["status"])
        except ServiceError as exc:
            return Response(exc.as_payload(), status=exc.status_code)
        return Response(OrderSerializer(updated, context={"request": request}).data, status=status.HTTP_200_OK)


class StaffOrderFilterSet(OrderFilterSet):
    user = filters.NumberFilter(field_name="user_id")

    class Meta(OrderFilterSet.Meta):
        fields = ["status", "number", "start", "end", "user"]


class StaffOrderListView(OrderListView):
    """List every customer's orders (staff only); same filters as the owner list plus `user`."""

    permission_classes = [IsAdminUser]
    filterset_class = StaffOrderFilterSet

    def get_queryset(self):
        return list_orders()

    @extend_schema(
        tags=["Orders"],
        summary="List all orders (staff)",
        parameters=[
            OpenApiParameter(name="page", description="Page number", required=False, type=int),
            OpenApiParameter(name="page_size", description="Items per page", required=False, type=int),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class StaffOrderDetailView(generics.RetrieveAPIView):
    permission_classes = [IsAdminUser]
    throttle_scope = "orders"
    serializer_class = OrderSerializer
    lookup_url_kwarg = "order_id"

    def get_queryset(self):
        return list_orders()

    @extend_schema(tags=["Orders"], summary="Get any order (staff)")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)
