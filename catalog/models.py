"""Catalog app models.

The catalog is the authoritative, volatile source of product price and stock.
The cart and checkout only read it through ``catalog.selectors`` and change
stock through ``catalog.services``.
"""

from decimal import Decimal

from common.choices import ActiveInactive
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Product(TimeStampedModel):
    """Sellable product with a live price and on-hand stock."""

    STATUS_ACTIVE = ActiveInactive.ACTIVE
    STATUS_INACTIVE = ActiveInactive.INACTIVE
    STATUS_CHOICES = ActiveInactive.choices

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    stock_quantity = models.IntegerField(default=0)
    image_url = models.URLField(blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(name="product_price_non_negative", condition=models.Q(price__gte=0)),
            models.CheckConstraint(name="product_stock_non_negative", condition=models.Q(stock_quantity__gte=0)),
        ]
        indexes = [
            models.Index(fields=["status", "name"], name="product_status_name_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} (#{self.id})"
