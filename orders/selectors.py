"""Selectors for read-only order queries."""

from django.db.models import QuerySet

from .models import Order


def list_user_orders(*, user_id: int) -> QuerySet:
    """Orders owned by the user, newest first, with items prefetched."""

    return Order.objects.filter(user_id=user_id).order_by("-id").prefetch_related("items")


def get_user_order(*, user_id: int, order_id: int) -> Order:
    """Return one of the user's orders; raises ``Order.DoesNotExist`` for foreign or missing ids."""

    return list_user_orders(user_id=user_id).get(id=order_id)


def list_orders() -> QuerySet:
    """Every order, for staff views."""

    return Order.objects.select_related("user").order_by("-id").prefetch_related("items")
