"""Cart app models.

A cart belongs to exactly one identity: an authenticated user or an anonymous
guest session. At most one *active* cart exists per identity, enforced by
conditional unique constraints so concurrent lazy creation cannot fork it.
"""

from decimal import Decimal

from common.choices import CartStatus
from django.conf import settings
from django.db import models
from django.utils import timezone


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Cart(TimeStampedModel):
    """Shopping cart bound to a user or to a guest session id."""

    STATUS_ACTIVE = CartStatus.ACTIVE
    STATUS_ABANDONED = CartStatus.ABANDONED
    STATUS_CHOICES = CartStatus.choices

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="carts", null=True, blank=True, on_delete=models.CASCADE
    )
    session_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)

    class Meta:
        ordering = ["-updated_at"]
        constraints = [
            models.CheckConstraint(
                name="cart_single_owner",
                condition=(
                    models.Q(user__isnull=False, session_id__isnull=True)
                    | models.Q(user__isnull=True, session_id__isnull=False)
                ),
            ),
            models.UniqueConstraint(
                fields=["user"],
                condition=models.Q(status="active", user__isnull=False),
                name="unique_active_cart_per_user",
            ),
            models.UniqueConstraint(
                fields=["session_id"],
                condition=models.Q(status="active", session_id__isnull=False),
                name="unique_active_cart_per_session",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "status"], name="cart_user_status_idx"),
            models.Index(fields=["session_id", "status"], name="cart_session_status_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        owner = f"user={self.user_id}" if self.user_id else f"session={self.session_id}"
        return f"Cart#{self.id} ({owner})"


class CartItem(TimeStampedModel):
    """One product line in a cart.

    ``product_id`` is a plain reference into the catalog: when a product is
    removed from the catalog the line stays in the cart and is flagged at read
    time instead of disappearing.
    """

    cart = models.ForeignKey(Cart, related_name="items", on_delete=models.CASCADE)
    product_id = models.PositiveBigIntegerField(db_index=True)
    quantity = models.PositiveIntegerField(default=1)
    price_when_added = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    added_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-added_at", "-id"]
        constraints = [
            models.UniqueConstraint(fields=["cart", "product_id"], name="unique_product_per_cart"),
            models.CheckConstraint(name="cart_item_quantity_positive", condition=models.Q(quantity__gte=1)),
        ]
        indexes = [
            models.Index(fields=["cart", "product_id"], name="cartitem_cart_product_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"CartItem#{self.id} cart={self.cart_id} product={self.product_id} qty={self.quantity}"

    @property
    def subtotal(self) -> Decimal:
        return (self.price_when_added or Decimal("0.00")) * Decimal(int(self.quantity))
