"""DRF views for cart operations.

Every cart endpoint serves both signed-in users and guests: the identity is
resolved once per request (authenticated user first, then ``X-Session-Id``)
and every response carries a freshly reconciled cart.
"""

from common.exceptions import ServiceError
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import serializers as rf_serializers
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .identity import SESSION_HEADER, resolve_identity
from .selectors import get_reconciled_cart
from .serializers import (
    AddItemSerializer,
    CartReadSerializer,
    CartSummarySerializer,
    MigrateCartSerializer,
    SetQuantitySerializer,
)
from .services import add_item, clear_cart, migrate_session_cart, remove_item, set_quantity

SESSION_PARAMETER = OpenApiParameter(
    name=SESSION_HEADER,
    location=OpenApiParameter.HEADER,
    required=False,
    description="Guest session identifier; ignored when the request is authenticated",
    type=str,
)

ERROR_RESPONSE = inline_serializer(
    name="CartError",
    fields={"detail": rf_serializers.CharField(), "code": rf_serializers.CharField()},
)

CART_EXAMPLE = OpenApiExample(
    "Cart",
    value={
        "items": [
            {
                "product_id": 7,
                "product_name": "Desk Lamp",
                "quantity": 2,
                "price_when_added": "10.00",
                "current_price": "12.00",
                "stock_available": 5,
                "price_changed": True,
                "out_of_stock": False,
                "insufficient_stock": False,
                "subtotal": "20.00",
                "added_at": "2025-01-01T12:00:00Z",
            }
        ],
        "summary": {
            "item_count": 1,
            "total_quantity": 2,
            "subtotal": "20.00",
            "has_price_changes": True,
            "has_stock_issues": False,
            "has_issues": True,
        },
        "degraded": False,
    },
    response_only=True,
)


def _error_response(exc: ServiceError) -> Response:
    return Response(exc.as_payload(), status=exc.status_code)


def _cart_response(identity, status_code=status.HTTP_200_OK) -> Response:
    cart = get_reconciled_cart(identity=identity)
    return Response(CartReadSerializer.from_reconciled(cart=cart).data, status=status_code)


class CartView(APIView):
    """Return or clear the caller's cart."""

    permission_classes = [AllowAny]
    throttle_scope = "cart"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Get cart",
        description=(
            "Returns the caller's cart reconciled against the live catalog. Each line reports price drift "
            "and stock; subtotals use the price captured when the line was added."
        ),
        parameters=[SESSION_PARAMETER],
        responses={200: CartReadSerializer, 400: ERROR_RESPONSE},
        examples=[CART_EXAMPLE],
    )
    def get(self, request):
        try:
            identity = resolve_identity(request)
        except ServiceError as exc:
            return _error_response(exc)
        return _cart_response(identity)

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Clear cart",
        description="Removes every line from the caller's cart. Idempotent.",
        parameters=[SESSION_PARAMETER],
        responses={200: CartReadSerializer, 400: ERROR_RESPONSE, 503: ERROR_RESPONSE},
    )
    def delete(self, request):
        try:
            identity = resolve_identity(request)
            clear_cart(identity=identity)
        except ServiceError as exc:
            return _error_response(exc)
        return _cart_response(identity)


class CartSummaryView(APIView):
    """Return only the cart summary (for header badges and the like)."""

    permission_classes = [AllowAny]
    throttle_scope = "cart"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Get cart summary",
        parameters=[SESSION_PARAMETER],
        responses={
            200: inline_serializer(
                name="CartSummaryResponse",
                fields={"summary": CartSummarySerializer(), "degraded": rf_serializers.BooleanField()},
            ),
            400: ERROR_RESPONSE,
        },
    )
    def get(self, request):
        try:
            identity = resolve_identity(request)
        except ServiceError as exc:
            return _error_response(exc)
        cart = get_reconciled_cart(identity=identity)
        return Response(
            {"summary": CartSummarySerializer(cart.summary).data, "degraded": cart.degraded},
            status=status.HTTP_200_OK,
        )


class CartItemsView(APIView):
    """Add a product to the cart."""

    permission_classes = [AllowAny]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Add item to cart",
        description=(
            "Adds a product to the caller's cart. Adding a product already in the cart increases its "
            "quantity and keeps the originally captured price."
        ),
        request=AddItemSerializer,
        parameters=[SESSION_PARAMETER],
        responses={200: CartReadSerializer, 400: ERROR_RESPONSE, 404: ERROR_RESPONSE, 503: ERROR_RESPONSE},
        examples=[OpenApiExample("Add", value={"product_id": 7, "quantity": 2}, request_only=True)],
    )
    def post(self, request):
        serializer = AddItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            identity = resolve_identity(request)
            add_item(identity=identity, **serializer.validated_data)
        except ServiceError as exc:
            return _error_response(exc)
        return _cart_response(identity)


class CartItemDetailView(APIView):
    """Set the quantity of, or remove, one product line."""

    permission_classes = [AllowAny]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Set cart item quantity",
        description="Sets the quantity of a product already in the cart. A quantity of 0 removes the line.",
        request=SetQuantitySerializer,
        parameters=[SESSION_PARAMETER],
        responses={200: CartReadSerializer, 400: ERROR_RESPONSE, 404: ERROR_RESPONSE, 503: ERROR_RESPONSE},
        examples=[OpenApiExample("Update", value={"quantity": 3}, request_only=True)],
    )
    def put(self, request, product_id: int):
        serializer = SetQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            identity = resolve_identity(request)
            set_quantity(identity=identity, product_id=product_id, quantity=serializer.validated_data["quantity"])
        except ServiceError as exc:
            return _error_response(exc)
        return _cart_response(identity)

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Remove cart item",
        description="Removes a product line from the cart. Removing a product that is not in the cart is a no-op.",
        parameters=[SESSION_PARAMETER],
        responses={200: CartReadSerializer, 400: ERROR_RESPONSE, 503: ERROR_RESPONSE},
    )
    def delete(self, request, product_id: int):
        try:
            identity = resolve_identity(request)
            remove_item(identity=identity, product_id=product_id)
        except ServiceError as exc:
            return _error_response(exc)
        return _cart_response(identity)


class CartMigrateView(APIView):
    """Merge a guest session cart into the authenticated user's cart.

    Called once by the client right after sign-in or registration. The merge
    never fails the request: a storage failure is reported as ``failed``.
    """

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Merge guest cart into user cart",
        request=MigrateCartSerializer,
        responses={
            200: inline_serializer(
                name="CartMigrated",
                fields={
                    "status": rf_serializers.CharField(),
                    "migrated_items": rf_serializers.IntegerField(),
                    "cart": CartReadSerializer(),
                },
            ),
            400: ERROR_RESPONSE,
        },
        examples=[
            OpenApiExample("Merge", value={"session_id": "08b73e..."}, request_only=True),
        ],
    )
    def post(self, request):
        payload = request.data.copy()
        if not payload.get("session_id") and request.headers.get(SESSION_HEADER):
            payload["session_id"] = request.headers.get(SESSION_HEADER)
        serializer = MigrateCartSerializer(data=payload)
        serializer.is_valid(raise_exception=True)
        outcome = migrate_session_cart(session_id=serializer.validated_data["session_id"], user_id=request.user.id)
        identity = resolve_identity(request)
        cart = get_reconciled_cart(identity=identity)
        return Response(
            {
                "status": "failed" if outcome.failed else "merged",
                "migrated_items": outcome.migrated,
                "cart": CartReadSerializer.from_reconciled(cart=cart).data,
            },
            status=status.HTTP_200_OK,
        )
