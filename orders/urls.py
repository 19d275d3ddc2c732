"""URL routes for the orders app (v1)."""

from django.urls import path

from .views import (
    OrderCancelView,
    OrderDetailView,
    OrderListView,
    OrderStatusView,
    StaffOrderDetailView,
    StaffOrderListView,
)

app_name = "orders"

urlpatterns = [
    path("", OrderListView.as_view(), name="order-list"),
    path("<int:order_id>/", OrderDetailView.as_view(), name="order-detail"),
    path("<int:order_id>/cancel/", OrderCancelView.as_view(), name="order-cancel"),
    path("<int:order_id>/status/", OrderStatusView.as_view(), name="order-status"),
    # Staff
    path("staff/", StaffOrderListView.as_view(), name="staff-order-list"),
    path("staff/<int:order_id>/", StaffOrderDetailView.as_view(), name="staff-order-detail"),
]
