"""Read-only catalog lookups consumed by the cart and checkout.

``get_product`` is the catalog reader contract: it returns a lightweight,
detached snapshot of a product's live price and stock, or ``None`` when the
product does not exist or is no longer sold. Storage failures surface as
``CatalogUnavailable`` so callers can decide between degrading (reads) and
failing closed (checkout).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from common.exceptions import CatalogUnavailable
from django.db import DatabaseError

from .models import Product

logger = logging.getLogger("storefront.catalog")


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    name: str
    price: Decimal
    stock_quantity: int


def _snapshot(product: Product) -> ProductSnapshot:
    return ProductSnapshot(
        id=int(product.id),
        name=product.name,
        price=product.price if product.price is not None else Decimal("0.00"),
        stock_quantity=max(0, int(product.stock_quantity)),
    )


def get_product(product_id: int) -> Optional[ProductSnapshot]:
    """Return the live snapshot of an active product, or None."""

    try:
        product = Product.objects.only("id", "name", "price", "stock_quantity").get(
            id=product_id, status=Product.STATUS_ACTIVE
        )
    except Product.DoesNotExist:
        return None
    except DatabaseError as exc:
        logger.warning(
            "catalog.unavailable",
            extra={"event": "catalog.unavailable", "product_id": product_id, "error": str(exc)},
        )
        raise CatalogUnavailable() from exc
    return _snapshot(product)


def get_products(product_ids: Iterable[int]) -> dict[int, ProductSnapshot]:
    """Return snapshots for the active products among ``product_ids`` keyed by id."""

    ids = {int(pid) for pid in product_ids}
    if not ids:
        return {}
    try:
        products = list(Product.objects.filter(id__in=ids, status=Product.STATUS_ACTIVE))
    except DatabaseError as exc:
        logger.warning("catalog.unavailable", extra={"event": "catalog.unavailable", "error": str(exc)})
        raise CatalogUnavailable() from exc
    return {int(p.id): _snapshot(p) for p in products}
