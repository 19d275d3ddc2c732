import pytest
from cart.models import Cart, CartItem
from cart.tests.factories import CartFactory, GuestCartFactory, UserFactory
from django.db import IntegrityError, transaction


@pytest.mark.django_db
def test_unique_product_per_cart_constraint():
    cart = CartFactory()
    CartItem.objects.create(cart=cart, product_id=1, quantity=1)

    with pytest.raises(IntegrityError):
        CartItem.objects.create(cart=cart, product_id=1, quantity=2)


@pytest.mark.django_db
def test_quantity_positive_constraint():
    cart = CartFactory()

    with pytest.raises(IntegrityError):
        CartItem.objects.create(cart=cart, product_id=1, quantity=0)


@pytest.mark.django_db
def test_one_active_cart_per_user_and_session():
    user = UserFactory()
    CartFactory(user=user)
    guest = GuestCartFactory()

    with pytest.raises(IntegrityError), transaction.atomic():
        Cart.objects.create(user=user)
    with pytest.raises(IntegrityError), transaction.atomic():
        Cart.objects.create(session_id=guest.session_id)

    # Abandoned carts do not count
    Cart.objects.create(user=user, status=Cart.STATUS_ABANDONED)
    Cart.objects.create(session_id=guest.session_id, status=Cart.STATUS_ABANDONED)


@pytest.mark.django_db
def test_cart_has_exactly_one_owner():
    user = UserFactory()

    with pytest.raises(IntegrityError), transaction.atomic():
        Cart.objects.create(user=None, session_id=None)
    with pytest.raises(IntegrityError), transaction.atomic():
        Cart.objects.create(user=user, session_id="both")


def test_indexes_defined_for_cart_and_items():
    cart_index_fields = [tuple(idx.fields) for idx in Cart._meta.indexes]
    assert ("user", "status") in cart_index_fields
    assert ("session_id", "status") in cart_index_fields

    item_index_fields = [tuple(idx.fields) for idx in CartItem._meta.indexes]
    assert ("cart", "product_id") in item_index_fields
