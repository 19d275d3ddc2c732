import pytest
from catalog.tests.factories import ProductFactory
from common.exceptions import OrderTransitionError
from orders.models import Order
from orders.services import cancel_order, transition_order
from orders.tests.factories import OrderFactory, OrderItemFactory


@pytest.mark.django_db
def test_happy_path_through_delivery():
    order = OrderFactory()

    for status in (Order.STATUS_CONFIRMED, Order.STATUS_SHIPPED, Order.STATUS_DELIVERED):
        order = transition_order(order=order, status=status)
        assert order.status == status

    order.refresh_from_db()
    assert order.status == Order.STATUS_DELIVERED


@pytest.mark.django_db
@pytest.mark.parametrize(
    "start, target",
    [
        (Order.STATUS_PENDING, Order.STATUS_SHIPPED),
        (Order.STATUS_CONFIRMED, Order.STATUS_CANCELLED),
        (Order.STATUS_SHIPPED, Order.STATUS_PENDING),
        (Order.STATUS_DELIVERED, Order.STATUS_CANCELLED),
        (Order.STATUS_CANCELLED, Order.STATUS_CONFIRMED),
    ],
)
def test_invalid_transitions_are_rejected(start, target):
    order = OrderFactory(status=start)

    with pytest.raises(OrderTransitionError):
        transition_order(order=order, status=target)

    order.refresh_from_db()
    assert order.status == start


@pytest.mark.django_db
def test_same_status_is_a_no_op():
    order = OrderFactory(status=Order.STATUS_SHIPPED)

    assert transition_order(order=order, status=Order.STATUS_SHIPPED).status == Order.STATUS_SHIPPED


@pytest.mark.django_db
def test_unknown_status_is_rejected():
    with pytest.raises(OrderTransitionError):
        transition_order(order=OrderFactory(), status="lost")


@pytest.mark.django_db
def test_cancel_returns_units_to_stock_once():
    product = ProductFactory(stock_quantity=3)
    order = OrderFactory()
    OrderItemFactory(order=order, product_id=product.id, quantity=2)

    cancel_order(order=order)
    cancel_order(order=order)

    product.refresh_from_db()
    assert product.stock_quantity == 5
    order.refresh_from_db()
    assert order.status == Order.STATUS_CANCELLED


@pytest.mark.django_db
def test_only_pending_orders_can_be_cancelled_by_owner():
    order = OrderFactory(status=Order.STATUS_CONFIRMED)

    with pytest.raises(OrderTransitionError):
        cancel_order(order=order)
