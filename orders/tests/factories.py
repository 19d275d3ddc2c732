from decimal import Decimal

import factory
from cart.tests.factories import UserFactory
from factory.django import DjangoModelFactory
from orders.models import Order, OrderItem


class OrderFactory(DjangoModelFactory):
    class Meta:
        model = Order

    user = factory.SubFactory(UserFactory)
    number = factory.Sequence(lambda n: f"ORD-T{n:05d}")
    status = Order.STATUS_PENDING
    shipping_address = factory.Faker("address")
    total_amount = Decimal("0.00")


class OrderItemFactory(DjangoModelFactory):
    class Meta:
        model = OrderItem

    order = factory.SubFactory(OrderFactory)
    product_id = factory.Sequence(lambda n: 200000 + n)
    product_name = factory.Faker("word")
    quantity = 1
    unit_price = Decimal("10.00")
    price_when_added = Decimal("10.00")
    subtotal = factory.LazyAttribute(lambda o: o.unit_price * o.quantity)
