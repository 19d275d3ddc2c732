"""DRF serializers for Orders and checkout."""

from common.choices import OrderStatus, PaymentMethod
from rest_framework import serializers

from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    """API representation of an order line item."""

    price_changed = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "quantity",
            "unit_price",
            "price_when_added",
            "price_changed",
            "subtotal",
        ]
        read_only_fields = fields

    def get_price_changed(self, obj: OrderItem) -> bool:
        return obj.unit_price != obj.price_when_added


class OrderSerializer(serializers.ModelSerializer):
    """API representation for an order with its immutable line items."""

    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "status",
            "shipping_address",
            "notes",
            "payment_method",
            "total_amount",
            "item_count",
            "created_at",
            "updated_at",
            "items",
        ]
        read_only_fields = fields


class PriceChangeSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    product_name = serializers.CharField()
    price_when_added = serializers.DecimalField(max_digits=12, decimal_places=2)
    current_price = serializers.DecimalField(max_digits=12, decimal_places=2)


class CheckoutResultSerializer(serializers.Serializer):
    """Checkout response: the created order plus any price drift since the items were added."""

    order = OrderSerializer()
    price_changes = PriceChangeSerializer(many=True)


class StockConflictSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    product_name = serializers.CharField(allow_null=True)
    requested = serializers.IntegerField()
    available = serializers.IntegerField()


class CheckoutSerializer(serializers.Serializer):
    """Write serializer for checkout input."""

    shipping_address = serializers.CharField(trim_whitespace=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH_ON_DELIVERY)


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
