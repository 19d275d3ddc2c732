"""Service-layer error taxonomy shared by the cart, catalog and orders apps.

Each error carries the HTTP status it maps to and a stable machine-readable
``code`` so views can render ``{"detail": ..., "code": ...}`` without string
matching on messages.
"""


class ServiceError(Exception):
    """Base class for expected, caller-facing service failures."""

    status_code = 400
    code = "error"
    default_detail = "Unable to process request."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def as_payload(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class InvalidRequest(ServiceError):
    status_code = 400
    code = "invalid"
    default_detail = "Invalid request."


class InvalidQuantity(InvalidRequest):
    code = "invalid_quantity"
    default_detail = "Quantity must be a positive integer."


class CheckoutValidationError(InvalidRequest):
    code = "checkout_invalid"
    default_detail = "Checkout request is invalid."


class OrderTransitionError(InvalidRequest):
    code = "invalid_transition"
    default_detail = "Unable to update order."


class ProductNotFound(ServiceError):
    status_code = 404
    code = "product_not_found"
    default_detail = "Product not found."


class ItemNotInCart(ServiceError):
    status_code = 404
    code = "item_not_in_cart"
    default_detail = "Item not found in cart."


class CheckoutConflict(ServiceError):
    """Raised when committing the cart as-is would oversell stock.

    ``conflicts`` lists the blocking lines so the caller can adjust the cart;
    nothing is truncated or dropped on the caller's behalf.
    """

    status_code = 409
    code = "stock_conflict"
    default_detail = "Some items in your cart do not have enough stock."

    def __init__(self, conflicts, detail: str | None = None):
        self.conflicts = list(conflicts)
        super().__init__(detail)

    def as_payload(self) -> dict:
        payload = super().as_payload()
        payload["conflicts"] = [
            {
                "product_id": c.product_id,
                "product_name": c.product_name,
                "requested": c.requested,
                "available": c.available,
            }
            for c in self.conflicts
        ]
        return payload


class DependencyUnavailable(ServiceError):
    status_code = 503
    code = "dependency_unavailable"
    default_detail = "Service temporarily unavailable. Please try again."


class CatalogUnavailable(DependencyUnavailable):
    code = "catalog_unavailable"
    default_detail = "Catalog temporarily unavailable."
