"""Admin registration for catalog models."""

from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "category", "price", "stock_quantity", "status", "updated_at")
    search_fields = ("name", "category")
    list_filter = ("status", "category")
    list_editable = ("price", "stock_quantity", "status")
    ordering = ("name",)
