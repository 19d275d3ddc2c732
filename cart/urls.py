"""Cart URL routes (v1)."""

from django.urls import path

from .views import CartItemDetailView, CartItemsView, CartMigrateView, CartSummaryView, CartView

app_name = "cart"

urlpatterns = [
    path("", CartView.as_view(), name="cart-detail"),
    path("summary/", CartSummaryView.as_view(), name="cart-summary"),
    path("items/", CartItemsView.as_view(), name="cart-add-item"),
    path("items/<int:product_id>/", CartItemDetailView.as_view(), name="cart-item"),
    path("migrate/", CartMigrateView.as_view(), name="cart-migrate"),
]
