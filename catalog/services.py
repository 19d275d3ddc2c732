"""Catalog services: transactional stock changes."""

import logging

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .models import Product

logger = logging.getLogger("storefront.catalog")


class StockError(Exception):
    """Raised when a stock change would drive on-hand stock negative."""


@transaction.atomic
def deduct_stock(*, product_id: int, quantity: int, reference: str = "") -> None:
    """Remove ``quantity`` units from on-hand stock.

    The update is conditional on enough stock remaining, so two concurrent
    deductions can never oversell: the loser updates zero rows and gets a
    ``StockError``.
    """

    if quantity <= 0:
        raise StockError("Deduction quantity must be positive")
    updated = Product.objects.filter(id=product_id, stock_quantity__gte=quantity).update(
        stock_quantity=F("stock_quantity") - quantity,
        updated_at=timezone.now(),
    )
    if not updated:
        raise StockError(f"Insufficient stock for product {product_id}")
    logger.info(
        "catalog.stock_deducted",
        extra={
            "event": "catalog.stock_deducted",
            "product_id": product_id,
            "quantity": quantity,
            "reference": reference,
        },
    )


@transaction.atomic
def return_stock(*, product_id: int, quantity: int, reference: str = "") -> None:
    """Put ``quantity`` units back on hand (e.g. after a cancelled order).

    A product that has since been deleted is skipped.
    """

    if quantity <= 0:
        raise StockError("Return quantity must be positive")
    updated = Product.objects.filter(id=product_id).update(
        stock_quantity=F("stock_quantity") + quantity,
        updated_at=timezone.now(),
    )
    logger.info(
        "catalog.stock_returned",
        extra={
            "event": "catalog.stock_returned",
            "product_id": product_id,
            "quantity": quantity,
            "reference": reference,
            "applied": bool(updated),
        },
    )
