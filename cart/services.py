"""Cart services: the single writer of cart state.

Every mutation runs in one transaction and first locks the identity's cart row,
so concurrent writes for the same identity are serialised. Quantity increments
are additionally expressed as ``F()`` updates, so no increment is lost even on
backends without row locks.
"""

import functools
import logging
from dataclasses import dataclass

from catalog.selectors import get_product
from common.exceptions import DependencyUnavailable, InvalidQuantity, ItemNotInCart, ProductNotFound
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .identity import CartIdentity, SessionIdentity, UserIdentity
from .models import Cart, CartItem
from .selectors import find_active_cart, get_or_create_active_cart

logger = logging.getLogger("storefront.cart")


def _storage_errors_as_unavailable(func):
    """Report a failed cart write as ``DependencyUnavailable``; the transaction has already rolled back."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError as exc:
            identity = kwargs.get("identity")
            logger.exception(
                "cart.write_failed",
                extra={
                    "event": "cart.write_failed",
                    "operation": func.__name__,
                    "error": str(exc),
                    **(identity.log_fields() if identity is not None else {}),
                },
            )
            raise DependencyUnavailable("Cart temporarily unavailable. Please try again.") from exc

    return wrapper


def _lock_cart(cart: Cart) -> Cart:
    return Cart.objects.select_for_update().get(pk=cart.pk)


def _touch(cart: Cart) -> None:
    Cart.objects.filter(pk=cart.pk).update(updated_at=timezone.now())


def _increment(*, cart: Cart, product_id: int, quantity: int) -> bool:
    updated = CartItem.objects.filter(cart=cart, product_id=product_id).update(
        quantity=F("quantity") + quantity,
        updated_at=timezone.now(),
    )
    return bool(updated)


@_storage_errors_as_unavailable
@transaction.atomic
def add_item(*, identity: CartIdentity, product_id: int, quantity: int, lookup=None) -> Cart:
    """Add ``quantity`` units of a product to the identity's cart.

    A product already in the cart has its quantity increased and keeps the
    price captured when it was first added. A new line captures the catalog's
    current price. Stock is not checked here; the reconciler flags shortfalls
    and checkout enforces them.
    """

    if quantity is None or int(quantity) <= 0:
        raise InvalidQuantity()
    quantity = int(quantity)
    product = (lookup or get_product)(product_id)
    if product is None:
        raise ProductNotFound()

    cart = _lock_cart(get_or_create_active_cart(identity=identity))
    created = False
    if not _increment(cart=cart, product_id=product.id, quantity=quantity):
        try:
            with transaction.atomic():
                CartItem.objects.create(
                    cart=cart,
                    product_id=product.id,
                    quantity=quantity,
                    price_when_added=product.price,
                )
            created = True
        except IntegrityError:
            # A concurrent writer created the line first
            _increment(cart=cart, product_id=product.id, quantity=quantity)
    _touch(cart)
    event = "cart.item_added" if created else "cart.item_updated"
    logger.info(
        event,
        extra={
            "event": event,
            "cart_id": cart.id,
            "product_id": product.id,
            "quantity": quantity,
            **identity.log_fields(),
        },
    )
    return cart


@_storage_errors_as_unavailable
@transaction.atomic
def set_quantity(*, identity: CartIdentity, product_id: int, quantity: int) -> Cart:
    """Set a line's quantity; zero removes the line."""

    if quantity is None or int(quantity) < 0:
        raise InvalidQuantity("Quantity cannot be negative.")
    quantity = int(quantity)
    cart = find_active_cart(identity=identity)
    if cart is None:
        raise ItemNotInCart()
    cart = _lock_cart(cart)
    try:
        item = CartItem.objects.select_for_update().get(cart=cart, product_id=product_id)
    except CartItem.DoesNotExist:
        raise ItemNotInCart()

    if quantity == 0:
        item.delete()
        event = "cart.item_removed"
    else:
        item.quantity = quantity
        item.save(update_fields=["quantity", "updated_at"])
        event = "cart.item_updated"
    _touch(cart)
    logger.info(
        event,
        extra={
            "event": event,
            "cart_id": cart.id,
            "product_id": product_id,
            "quantity": quantity,
            **identity.log_fields(),
        },
    )
    return cart


@_storage_errors_as_unavailable
@transaction.atomic
def remove_item(*, identity: CartIdentity, product_id: int) -> Cart | None:
    """Remove a product line. Removing an absent line is a no-op."""

    cart = find_active_cart(identity=identity)
    if cart is None:
        return None
    cart = _lock_cart(cart)
    deleted, _ = CartItem.objects.filter(cart=cart, product_id=product_id).delete()
    if deleted:
        _touch(cart)
        logger.info(
            "cart.item_removed",
            extra={"event": "cart.item_removed", "cart_id": cart.id, "product_id": product_id, **identity.log_fields()},
        )
    return cart


@_storage_errors_as_unavailable
@transaction.atomic
def clear_cart(*, identity: CartIdentity) -> int:
    """Remove every line from the identity's cart; returns the number removed."""

    cart = find_active_cart(identity=identity)
    if cart is None:
        return 0
    cart = _lock_cart(cart)
    deleted, _ = CartItem.objects.filter(cart=cart).delete()
    _touch(cart)
    logger.info(
        "cart.cleared",
        extra={"event": "cart.cleared", "cart_id": cart.id, "items_removed": deleted, **identity.log_fields()},
    )
    return deleted


@transaction.atomic
def abandon_cart(*, cart: Cart) -> int:
    """Empty a cart and mark it abandoned; returns the number of lines removed."""

    cart = _lock_cart(cart)
    deleted, _ = CartItem.objects.filter(cart=cart).delete()
    cart.status = Cart.STATUS_ABANDONED
    cart.save(update_fields=["status", "updated_at"])
    logger.info(
        "cart.abandoned",
        extra={
            "event": "cart.abandoned",
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "session_id": cart.session_id,
            "items_removed": deleted,
        },
    )
    return deleted


@transaction.atomic
def merge_guest_cart_to_user(*, session_id: str, user_id: int) -> int:
    """Merge a guest session cart into the user's cart.

    Lines for products the user already has are summed into the user's line,
    which keeps its own captured price. Other lines move over unchanged. The
    guest cart is then emptied and abandoned. The catalog is not consulted.

    Returns the number of guest lines migrated. The merge is a single
    transaction, so it either fully applies or leaves both carts untouched, and
    re-running it after success is a no-op.
    """

    guest = SessionIdentity(session_id=session_id)
    src = find_active_cart(identity=guest)
    if src is None:
        return 0
    src = _lock_cart(src)
    items = list(CartItem.objects.select_for_update().filter(cart=src).order_by("added_at", "id"))
    if not items:
        return 0

    dest = _lock_cart(get_or_create_active_cart(identity=UserIdentity(user_id=user_id)))
    migrated = 0
    for item in items:
        if not _increment(cart=dest, product_id=item.product_id, quantity=int(item.quantity)):
            item.cart = dest
            item.save(update_fields=["cart", "updated_at"])
        migrated += 1

    CartItem.objects.filter(cart=src).delete()
    src.status = Cart.STATUS_ABANDONED
    src.save(update_fields=["status", "updated_at"])
    _touch(dest)
    logger.info(
        "cart.merged",
        extra={
            "event": "cart.merged",
            "src_cart_id": src.id,
            "dest_cart_id": dest.id,
            "user_id": user_id,
            "session_id": session_id,
            "migrated_items": migrated,
        },
    )
    return migrated


@dataclass(frozen=True)
class MergeOutcome:
    migrated: int
    failed: bool = False


def migrate_session_cart(*, session_id: str, user_id: int) -> MergeOutcome:
    """Login hook: merge the guest cart without ever blocking the login.

    A storage failure is logged and reported as ``failed``; the guest cart is
    left intact by the rolled back transaction so the merge can be retried.
    """

    try:
        return MergeOutcome(migrated=merge_guest_cart_to_user(session_id=session_id, user_id=user_id))
    except DatabaseError as exc:
        logger.exception(
            "cart.merge_failed",
            extra={"event": "cart.merge_failed", "user_id": user_id, "session_id": session_id, "error": str(exc)},
        )
        return MergeOutcome(migrated=0, failed=True)
