"""Selectors for read-only cart queries."""

import logging
from typing import Optional

from common.exceptions import DependencyUnavailable
from django.db import DatabaseError

from .identity import CartIdentity, SessionIdentity, UserIdentity
from .models import Cart, CartItem
from .reconciler import ReconciledCart, reconcile_cart

logger = logging.getLogger("storefront.cart")


def _owner_filter(identity: CartIdentity) -> dict:
    if isinstance(identity, UserIdentity):
        return {"user_id": identity.user_id, "session_id": None}
    if isinstance(identity, SessionIdentity):
        return {"user": None, "session_id": identity.session_id}
    raise TypeError(f"Unsupported cart identity: {identity!r}")


def find_active_cart(*, identity: CartIdentity) -> Optional[Cart]:
    """Return the identity's active cart without creating one."""

    return Cart.objects.filter(status=Cart.STATUS_ACTIVE, **_owner_filter(identity)).first()


def get_or_create_active_cart(*, identity: CartIdentity) -> Cart:
    """Return the identity's active cart, creating it if missing.

    Only mutations call this; guest carts are created lazily on first write.
    """

    cart, _ = Cart.objects.get_or_create(status=Cart.STATUS_ACTIVE, **_owner_filter(identity))
    return cart


def get_cart_items(*, identity: CartIdentity) -> list[CartItem]:
    """Return the lines of the identity's active cart, newest first; [] if none."""

    cart = find_active_cart(identity=identity)
    if cart is None:
        return []
    return list(cart.items.all())


def get_reconciled_cart(*, identity: CartIdentity, lookup=None) -> ReconciledCart:
    """Return the reconciled view of the identity's cart.

    If the cart store or the catalog cannot be reached, the read degrades to an
    empty cart flagged ``degraded`` rather than failing the caller.
    """

    try:
        return reconcile_cart(get_cart_items(identity=identity), lookup=lookup)
    except (DatabaseError, DependencyUnavailable) as exc:
        logger.warning(
            "cart.read_degraded",
            extra={"event": "cart.read_degraded", "error": str(exc), **identity.log_fields()},
        )
        return ReconciledCart.empty(degraded=True)
