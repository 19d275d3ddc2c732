import pytest
from catalog.models import Product
from catalog.services import StockError, deduct_stock, return_stock
from catalog.tests.factories import ProductFactory
from django.db import IntegrityError


@pytest.mark.django_db
def test_deduct_stock_reduces_on_hand():
    product = ProductFactory(stock_quantity=5)

    deduct_stock(product_id=product.id, quantity=3, reference="ORD-000001")

    product.refresh_from_db()
    assert product.stock_quantity == 2


@pytest.mark.django_db
def test_deduct_stock_never_oversells():
    product = ProductFactory(stock_quantity=2)

    with pytest.raises(StockError):
        deduct_stock(product_id=product.id, quantity=3)

    product.refresh_from_db()
    assert product.stock_quantity == 2


@pytest.mark.django_db
def test_deduct_stock_rejects_non_positive_and_unknown_products():
    with pytest.raises(StockError):
        deduct_stock(product_id=1, quantity=0)
    with pytest.raises(StockError):
        deduct_stock(product_id=999999, quantity=1)


@pytest.mark.django_db
def test_return_stock_restocks_and_skips_deleted_products():
    product = ProductFactory(stock_quantity=1)

    return_stock(product_id=product.id, quantity=4)
    return_stock(product_id=999999, quantity=4)

    product.refresh_from_db()
    assert product.stock_quantity == 5


@pytest.mark.django_db
def test_stock_cannot_go_negative_at_database_level():
    product = ProductFactory()

    with pytest.raises(IntegrityError):
        Product.objects.filter(id=product.id).update(stock_quantity=-1)
