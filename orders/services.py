"""Checkout and order lifecycle services.

``checkout_cart`` turns a user's cart into an order. It never trusts an earlier
reconciliation: every line is re-checked against the live catalog, stock is
deducted with conditional updates, and the order, its items, the stock
deductions and the cart clear commit or roll back together.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Optional, Tuple

from cart.identity import CartIdentity, UserIdentity
from cart.models import Cart
from cart.selectors import find_active_cart
from cart.services import clear_cart
from catalog.selectors import get_product
from catalog.services import StockError, deduct_stock, return_stock
from common.choices import OrderStatus, PaymentMethod
from common.exceptions import CheckoutConflict, CheckoutValidationError, DependencyUnavailable, OrderTransitionError
from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .models import IdempotencyKey, Order, OrderItem

logger = logging.getLogger("storefront.orders")

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


@dataclass(frozen=True)
class StockConflict:
    product_id: int
    product_name: Optional[str]
    requested: int
    available: int


@dataclass(frozen=True)
class PriceChange:
    product_id: int
    product_name: str
    price_when_added: Decimal
    current_price: Decimal


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    price_changes: tuple = ()


def checkout_cart(
    *,
    identity: CartIdentity,
    shipping_address: str,
    notes: str = "",
    payment_method: str = PaymentMethod.CASH_ON_DELIVERY,
    lookup=None,
) -> CheckoutResult:
    """Create a pending order from the identity's cart.

    Raises ``CheckoutValidationError`` for a blank address, a guest identity or
    an empty cart; ``CheckoutConflict`` when any line cannot be fulfilled (the
    cart is left as it was); ``DependencyUnavailable`` when the order could not
    be persisted (nothing is committed).

    Price drift does not block checkout: the order is charged at live prices
    and the drift is returned in ``price_changes``.
    """

    address = (shipping_address or "").strip()
    if not address:
        raise CheckoutValidationError("Shipping address is required.")
    if not isinstance(identity, UserIdentity):
        raise CheckoutValidationError("Sign in to place an order.")
    if payment_method not in PaymentMethod.values:
        raise CheckoutValidationError("Unsupported payment method.")

    try:
        return _place_order(
            identity=identity,
            shipping_address=address,
            notes=(notes or "").strip(),
            payment_method=payment_method,
            lookup=lookup or get_product,
        )
    except DatabaseError as exc:
        logger.exception(
            "checkout.failed",
            extra={"event": "checkout.failed", "error": str(exc), **identity.log_fields()},
        )
        raise DependencyUnavailable("Unable to place order right now. Please try again.") from exc


@transaction.atomic
def _place_order(*, identity: UserIdentity, shipping_address: str, notes: str, payment_method: str, lookup):
    cart = find_active_cart(identity=identity)
    if cart is None:
        raise CheckoutValidationError("Cart is empty.")
    cart = Cart.objects.select_for_update().get(pk=cart.pk)
    items = list(cart.items.order_by("added_at", "id"))
    if not items:
        raise CheckoutValidationError("Cart is empty.")

    conflicts = []
    price_changes = []
    lines = []
    for item in items:
        quantity = int(item.quantity)
        product = lookup(int(item.product_id))
        if product is None or product.stock_quantity < quantity:
            conflicts.append(
                StockConflict(
                    product_id=int(item.product_id),
                    product_name=product.name if product else None,
                    requested=quantity,
                    available=product.stock_quantity if product else 0,
                )
            )
            continue
        if product.price != item.price_when_added:
            price_changes.append(
                PriceChange(
                    product_id=product.id,
                    product_name=product.name,
                    price_when_added=item.price_when_added,
                    current_price=product.price,
                )
            )
        lines.append((item, product))

    if conflicts:
        logger.info(
            "checkout.conflict",
            extra={
                "event": "checkout.conflict",
                "cart_id": cart.id,
                "product_ids": [c.product_id for c in conflicts],
                **identity.log_fields(),
            },
        )
        raise CheckoutConflict(conflicts)

    total = sum((product.price * int(item.quantity) for item, product in lines), Decimal("0.00"))
    order = Order.objects.create(
        user_id=identity.user_id,
        shipping_address=shipping_address,
        notes=notes,
        payment_method=payment_method,
        total_amount=total,
        item_count=sum(int(item.quantity) for item, _ in lines),
    )
    # Generate user-friendly order number (unique)
    order.number = f"ORD-{int(order.id):06d}"
    order.save(update_fields=["number"])
    OrderItem.objects.bulk_create(
        [
            OrderItem(
                order=order,
                product_id=product.id,
                product_name=product.name,
                quantity=int(item.quantity),
                unit_price=product.price,
                price_when_added=item.price_when_added,
                subtotal=product.price * int(item.quantity),
            )
            for item, product in lines
        ]
    )

    for item, product in lines:
        try:
            deduct_stock(product_id=product.id, quantity=int(item.quantity), reference=order.number)
        except StockError:
            # Stock drained between the check above and the deduction
            fresh = lookup(product.id)
            raise CheckoutConflict(
                [
                    StockConflict(
                        product_id=product.id,
                        product_name=product.name,
                        requested=int(item.quantity),
                        available=fresh.stock_quantity if fresh else 0,
                    )
                ]
            )

    clear_cart(identity=identity)
    logger.info(
        "order.created",
        extra={
            "event": "order.created",
            "order_id": order.id,
            "order_number": order.number,
            "cart_id": cart.id,
            "total_amount": str(total),
            "item_count": order.item_count,
            "price_changes": len(price_changes),
            **identity.log_fields(),
        },
    )
    return CheckoutResult(order=order, price_changes=tuple(price_changes))


@transaction.atomic
def transition_order(*, order: Order, status: str) -> Order:
    """Move an order to ``status`` along the lifecycle.

    Moving to the current status is a no-op. Cancelling returns the order's
    units to stock.
    """

    if status not in OrderStatus.values:
        raise OrderTransitionError(f"Unknown order status '{status}'.")
    order = Order.objects.select_for_update().get(pk=order.pk)
    if order.status == status:
        return order
    if status not in ALLOWED_TRANSITIONS[order.status]:
        raise OrderTransitionError(f"Cannot change order status from {order.status} to {status}.")

    prev = order.status
    order.status = status
    order.save(update_fields=["status", "updated_at"])
    if status == Order.STATUS_CANCELLED:
        for item in order.items.all():
            return_stock(product_id=item.product_id, quantity=int(item.quantity), reference=order.number or "")
    logger.info(
        "order.status_changed",
        extra={
            "event": "order.status_changed",
            "order_id": order.id,
            "user_id": order.user_id,
            "status_from": prev,
            "status_to": order.status,
        },
    )
    return order


def cancel_order(*, order: Order) -> Order:
    """Owner-facing cancellation; only pending orders can be cancelled."""

    if order.status not in (Order.STATUS_PENDING, Order.STATUS_CANCELLED):
        raise OrderTransitionError("Only pending orders can be cancelled.")
    return transition_order(order=order, status=Order.STATUS_CANCELLED)


def _json_safe(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def with_idempotency(
    *,
    key: str,
    user,
    path: str,
    method: str,
    handler: Callable[[], Tuple[dict, int]],
    request_hash: Optional[str] = None,
) -> Tuple[dict, int]:
    """Run handler idempotently and persist its response for the given key and scope.

    - Scope is derived from the caller: for authenticated users, "user:<id>"; otherwise "anon".
    - If a record exists and the stored `request_hash` differs from the provided one, returns 409.
    - If a record exists but response is not yet stored, returns 409 to indicate in-progress.
    - Only 2xx responses are stored. Error responses and handler exceptions release the key, so a retry
      runs the handler again against current cart and stock.
    """

    scope = f"user:{getattr(user, 'id', None)}" if getattr(user, "id", None) else "anon"
    method = str(method).upper()
    path = str(path)
    now = timezone.now()
    ttl_hours = int(getattr(settings, "IDEMPOTENCY_TTL_HOURS", 24))

    IdempotencyKey.objects.filter(key=key, scope=scope, path=path, method=method, expires_at__lt=now).delete()
    try:
        with transaction.atomic():
            idem = IdempotencyKey.objects.create(
                key=key,
                user=user if getattr(user, "id", None) else None,
                scope=scope,
                path=path,
                method=method,
                request_hash=request_hash,
                expires_at=now + timedelta(hours=ttl_hours),
            )
    except IntegrityError:
        idem = IdempotencyKey.objects.get(key=key, scope=scope, path=path, method=method)
        # Guard against key reuse with different fingerprints
        if idem.request_hash and request_hash and idem.request_hash != request_hash:
            return {
                "detail": "Idempotency key reused with different request payload",
                "code": "idempotency_mismatch",
            }, 409
        if idem.response_json is not None and idem.response_code is not None:
            logger.info(
                "idempotency.replayed",
                extra={"event": "idempotency.replayed", "scope": scope, "path": path, "method": method},
            )
            return idem.response_json, int(idem.response_code)
        return {"detail": "Request in progress", "code": "idempotency_in_progress"}, 409

    try:
        body, code = handler()
    except Exception:
        IdempotencyKey.objects.filter(id=idem.id).delete()
        raise
    if code >= 300:
        IdempotencyKey.objects.filter(id=idem.id).delete()
        return body, code
    IdempotencyKey.objects.filter(id=idem.id).update(response_json=_json_safe(body), response_code=code)
    return body, code


def compute_request_hash(data: Optional[dict]) -> Optional[str]:
    """Compute a canonical SHA256 hash of the request body.

    Uses sorted keys JSON representation to stabilize the hash across equivalent payloads.
    Returns None when data is falsy or not JSON serialisable.
    """
    if not data:
        return None
    try:
        payload = json.dumps(data, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError):
        return None
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
