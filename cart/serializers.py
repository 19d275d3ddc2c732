"""Cart serializers for read and write operations."""

from rest_framework import serializers

from .identity import SESSION_ID_MAX_LENGTH
from .reconciler import ReconciledCart


class ReconciledCartItemSerializer(serializers.Serializer):
    """Read serializer for a cart line decorated with live catalog state."""

    product_id = serializers.IntegerField()
    product_name = serializers.CharField(allow_null=True)
    quantity = serializers.IntegerField()
    price_when_added = serializers.DecimalField(max_digits=12, decimal_places=2)
    current_price = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    stock_available = serializers.IntegerField()
    price_changed = serializers.BooleanField()
    out_of_stock = serializers.BooleanField()
    insufficient_stock = serializers.BooleanField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    added_at = serializers.DateTimeField(allow_null=True)


class CartSummarySerializer(serializers.Serializer):
    item_count = serializers.IntegerField()
    total_quantity = serializers.IntegerField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    has_price_changes = serializers.BooleanField()
    has_stock_issues = serializers.BooleanField()
    has_issues = serializers.BooleanField()


class CartReadSerializer(serializers.Serializer):
    """Read serializer for the reconciled cart: items, summary, degraded flag."""

    items = ReconciledCartItemSerializer(many=True)
    summary = CartSummarySerializer()
    degraded = serializers.BooleanField()

    @classmethod
    def from_reconciled(cls, *, cart: ReconciledCart):
        return cls({"items": list(cart.items), "summary": cart.summary, "degraded": cart.degraded})


class AddItemSerializer(serializers.Serializer):
    """Write serializer for adding a product to the cart."""

    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, default=1)


class SetQuantitySerializer(serializers.Serializer):
    """Write serializer for setting a line's quantity; zero removes the line."""

    quantity = serializers.IntegerField(min_value=0)


class MigrateCartSerializer(serializers.Serializer):
    session_id = serializers.CharField(max_length=SESSION_ID_MAX_LENGTH, trim_whitespace=True)
