"""Shared enumerations and choices used across apps."""

from django.db import models


class ActiveInactive(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class CartStatus(models.TextChoices):
    """Statuses for shopping carts.

    Carts are never deleted: a guest cart that was merged into a user cart, or
    left idle, is marked abandoned.
    """

    ACTIVE = "active", "Active"
    ABANDONED = "abandoned", "Abandoned"


class OrderStatus(models.TextChoices):
    """Lifecycle statuses for orders."""

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class PaymentMethod(models.TextChoices):
    """Payment is collected on delivery; no gateway is integrated."""

    CASH_ON_DELIVERY = "cash_on_delivery", "Cash on delivery"
    CARD_ON_DELIVERY = "card_on_delivery", "Card on delivery"
