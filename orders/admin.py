from django.contrib import admin

from .models import IdempotencyKey, Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    fields = ("product_id", "product_name", "quantity", "unit_price", "price_when_added", "subtotal")
    readonly_fields = fields


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "number", "status", "user", "payment_method", "total_amount", "item_count", "created_at")
    list_filter = ("status", "payment_method", "created_at")
    search_fields = ("number", "user__email", "user__username", "shipping_address")
    readonly_fields = ("number", "total_amount", "item_count", "created_at", "updated_at")
    raw_id_fields = ("user",)
    date_hierarchy = "created_at"
    inlines = [OrderItemInline]


@admin.register(OrderItem)
class OrderItemAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "product_id", "product_name", "quantity", "unit_price", "subtotal")
    search_fields = ("product_name", "order__number")
    raw_id_fields = ("order",)


@admin.register(IdempotencyKey)
class IdempotencyKeyAdmin(admin.ModelAdmin):
    list_display = ("id", "key", "scope", "path", "method", "response_code", "expires_at", "created_at")
    list_filter = ("method", "response_code", "created_at")
    search_fields = ("key", "scope", "path")
    date_hierarchy = "created_at"
