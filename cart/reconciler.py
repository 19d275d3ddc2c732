"""Read-time reconciliation of cart lines against the live catalog.

Reconciliation is a pure projection: it decorates stored cart lines with the
catalog's current price and stock and derives the cart summary. It never
writes, so it runs on every cart read and after every mutation; cart views are
never cached across a mutation.

Subtotals always use the price captured when the line was added. The live price
only matters at checkout, which re-prices the order itself.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional

from catalog.selectors import ProductSnapshot, get_product

ZERO = Decimal("0.00")

ProductLookup = Callable[[int], Optional[ProductSnapshot]]


@dataclass(frozen=True)
class ReconciledCartItem:
    product_id: int
    product_name: Optional[str]
    quantity: int
    price_when_added: Decimal
    current_price: Optional[Decimal]
    stock_available: int
    price_changed: bool
    out_of_stock: bool
    insufficient_stock: bool
    subtotal: Decimal
    added_at: Optional[datetime] = None

    @property
    def has_issues(self) -> bool:
        return self.out_of_stock or self.price_changed


@dataclass(frozen=True)
class CartSummary:
    item_count: int
    total_quantity: int
    subtotal: Decimal
    has_price_changes: bool
    has_stock_issues: bool

    @property
    def has_issues(self) -> bool:
        return self.has_price_changes or self.has_stock_issues


@dataclass(frozen=True)
class ReconciledCart:
    items: tuple
    summary: CartSummary
    degraded: bool = False

    @classmethod
    def empty(cls, *, degraded: bool = False) -> "ReconciledCart":
        return cls(items=(), summary=summarize(()), degraded=degraded)


def reconcile_item(item, product: Optional[ProductSnapshot]) -> ReconciledCartItem:
    """Decorate one stored cart line with the catalog's view of its product.

    A product missing from the catalog is kept with zero stock and no price
    comparison, leaving it to the shopper or checkout to resolve.
    """

    quantity = int(item.quantity)
    captured = item.price_when_added if item.price_when_added is not None else ZERO
    if product is None:
        current_price = None
        stock = 0
        price_changed = False
        name = None
    else:
        current_price = product.price
        stock = max(0, int(product.stock_quantity))
        price_changed = current_price != captured
        name = product.name
    return ReconciledCartItem(
        product_id=int(item.product_id),
        product_name=name,
        quantity=quantity,
        price_when_added=captured,
        current_price=current_price,
        stock_available=stock,
        price_changed=price_changed,
        out_of_stock=stock == 0,
        insufficient_stock=stock < quantity,
        subtotal=captured * Decimal(quantity),
        added_at=getattr(item, "added_at", None),
    )


def summarize(items: Iterable[ReconciledCartItem]) -> CartSummary:
    items = list(items)
    return CartSummary(
        item_count=len(items),
        total_quantity=sum(i.quantity for i in items),
        subtotal=sum((i.subtotal for i in items), ZERO),
        has_price_changes=any(i.price_changed for i in items),
        has_stock_issues=any(i.out_of_stock for i in items),
    )


def reconcile_cart(items: Iterable, lookup: Optional[ProductLookup] = None) -> ReconciledCart:
    """Reconcile stored cart lines, preserving their order.

    ``lookup`` is the catalog reader (``catalog.selectors.get_product`` by
    default); it may raise ``DependencyUnavailable``, which is left to the
    caller to handle.
    """

    lookup = lookup or get_product
    reconciled = tuple(reconcile_item(item, lookup(int(item.product_id))) for item in items)
    return ReconciledCart(items=reconciled, summary=summarize(reconciled))
