import threading
from typing import List

import pytest
from cart.identity import SessionIdentity, UserIdentity
from cart.models import Cart
from cart.selectors import get_cart_items
from cart.services import add_item, merge_guest_cart_to_user
from cart.tests.factories import CartItemFactory, GuestCartFactory, UserFactory
from catalog.tests.factories import ProductFactory
from django.db import close_old_connections, connection


@pytest.mark.django_db
def test_rapid_sequential_adds_accumulate():
    product = ProductFactory()
    identity = SessionIdentity(session_id="rapid")

    for _ in range(5):
        add_item(identity=identity, product_id=product.id, quantity=2)

    items = get_cart_items(identity=identity)
    assert len(items) == 1
    assert items[0].quantity == 10
    assert Cart.objects.filter(session_id="rapid").count() == 1


def _add_item_worker(barrier: threading.Barrier, identity, product_id: int, errors: List[Exception]):
    # Ensure this thread uses its own DB connection
    close_old_connections()
    barrier.wait()
    try:
        add_item(identity=identity, product_id=product_id, quantity=1)
    except Exception as exc:  # pragma: no cover
        errors.append(exc)
    finally:
        connection.close()


def _merge_worker(barrier: threading.Barrier, session_id: str, user_id: int, results: List[int], errors):
    close_old_connections()
    barrier.wait()
    try:
        results.append(merge_guest_cart_to_user(session_id=session_id, user_id=user_id))
    except Exception as exc:  # pragma: no cover
        errors.append(exc)
    finally:
        connection.close()


@pytest.mark.django_db(transaction=True)
def test_threaded_concurrent_adds_lose_no_increment():
    if connection.vendor == "sqlite":
        pytest.skip("SQLite lacks real concurrent transactions; skipping threaded test.")
    user = UserFactory()
    product = ProductFactory()
    identity = UserIdentity(user_id=user.id)

    workers = 5
    barrier = threading.Barrier(workers)
    errors: List[Exception] = []
    threads = [
        threading.Thread(target=_add_item_worker, args=(barrier, identity, product.id, errors)) for _ in range(workers)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    items = get_cart_items(identity=identity)
    assert len(items) == 1
    assert items[0].quantity == workers
    assert Cart.objects.filter(user=user, status=Cart.STATUS_ACTIVE).count() == 1


@pytest.mark.django_db(transaction=True)
def test_threaded_double_merge_applies_once():
    if connection.vendor == "sqlite":
        pytest.skip("SQLite lacks real concurrent transactions; skipping threaded test.")
    user = UserFactory()
    guest_cart = GuestCartFactory()
    CartItemFactory(cart=guest_cart, product_id=5, quantity=3)

    barrier = threading.Barrier(2)
    results: List[int] = []
    errors: List[Exception] = []
    threads = [
        threading.Thread(target=_merge_worker, args=(barrier, guest_cart.session_id, user.id, results, errors))
        for _ in range(2)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert sorted(results) == [0, 1]
    items = get_cart_items(identity=UserIdentity(user_id=user.id))
    assert [(i.product_id, i.quantity) for i in items] == [(5, 3)]
