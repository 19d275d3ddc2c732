from datetime import timedelta
from io import StringIO

import pytest
from cart.identity import UserIdentity
from cart.services import add_item, set_quantity
from cart.tests.factories import UserFactory
from catalog.models import Product
from catalog.tests.factories import ProductFactory
from django.core.management import call_command
from django.utils import timezone
from orders.models import IdempotencyKey, Order
from orders.services import compute_request_hash, with_idempotency
from orders.tests.factories import OrderFactory
from rest_framework.test import APIClient


def _client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.mark.django_db
def test_checkout_double_submit_creates_one_order():
    user = UserFactory()
    product = ProductFactory(stock_quantity=5)
    add_item(identity=UserIdentity(user_id=user.id), product_id=product.id, quantity=2)
    client = _client(user)
    payload = {"shipping_address": "12 Harbour Road"}

    r1 = client.post("/api/v1/checkout/", payload, format="json", HTTP_IDEMPOTENCY_KEY="chk-1")
    r2 = client.post("/api/v1/checkout/", payload, format="json", HTTP_IDEMPOTENCY_KEY="chk-1")

    assert r1.status_code == 201
    assert r2.status_code == 201
    assert r2.json()["order"]["id"] == r1.json()["order"]["id"]
    assert Order.objects.count() == 1
    product.refresh_from_db()
    assert product.stock_quantity == 3


@pytest.mark.django_db
def test_key_reuse_with_different_payload_is_rejected():
    user = UserFactory()
    add_item(identity=UserIdentity(user_id=user.id), product_id=ProductFactory().id, quantity=1)
    client = _client(user)

    client.post("/api/v1/checkout/", {"shipping_address": "A"}, format="json", HTTP_IDEMPOTENCY_KEY="chk-2")
    resp = client.post("/api/v1/checkout/", {"shipping_address": "B"}, format="json", HTTP_IDEMPOTENCY_KEY="chk-2")

    assert resp.status_code == 409
    assert resp.json()["code"] == "idempotency_mismatch"


@pytest.mark.django_db
def test_cancel_order_idempotent():
    user = UserFactory()
    order = OrderFactory(user=user)
    client = _client(user)

    r1 = client.post(f"/api/v1/orders/{order.id}/cancel/", HTTP_IDEMPOTENCY_KEY="idem-cancel-123")
    r2 = client.post(f"/api/v1/orders/{order.id}/cancel/", HTTP_IDEMPOTENCY_KEY="idem-cancel-123")

    assert r1.status_code == 200
    assert r2.status_code == 200
    assert r2.json()["status"] == r1.json()["status"] == Order.STATUS_CANCELLED


@pytest.mark.django_db
def test_server_errors_are_not_stored():
    user = UserFactory()
    calls = []

    def failing():
        calls.append(1)
        return {"detail": "down"}, 503

    kwargs = dict(key="k", user=user, path="/api/v1/checkout/", method="post")
    assert with_idempotency(handler=failing, **kwargs) == ({"detail": "down"}, 503)
    assert with_idempotency(handler=lambda: ({"ok": True}, 201), **kwargs) == ({"ok": True}, 201)
    assert with_idempotency(handler=failing, **kwargs) == ({"ok": True}, 201)
    assert len(calls) == 1


@pytest.mark.django_db
def test_handler_exception_releases_the_key():
    user = UserFactory()

    def boom():
        raise RuntimeError("unexpected")

    with pytest.raises(RuntimeError):
        with_idempotency(key="k2", user=user, path="/p/", method="POST", handler=boom)

    assert not IdempotencyKey.objects.filter(key="k2").exists()


@pytest.mark.django_db
def test_expired_key_runs_handler_again():
    user = UserFactory()
    kwargs = dict(key="k3", user=user, path="/p/", method="POST")
    with_idempotency(handler=lambda: ({"n": 1}, 200), **kwargs)
    IdempotencyKey.objects.filter(key="k3").update(expires_at=timezone.now() - timedelta(minutes=1))

    assert with_idempotency(handler=lambda: ({"n": 2}, 200), **kwargs) == ({"n": 2}, 200)


def test_request_hash_is_canonical():
    assert compute_request_hash({"a": 1, "b": 2}) == compute_request_hash({"b": 2, "a": 1})
    assert compute_request_hash({"a": 1}) != compute_request_hash({"a": 2})
    assert compute_request_hash({}) is None
    assert compute_request_hash({"a": object()}) is None


@pytest.mark.django_db
def test_cleanup_idempotency_command_deletes_expired_only():
    user = UserFactory()
    now = timezone.now()
    common = dict(user=user, scope="s", path="/p/", method="POST")
    IdempotencyKey.objects.create(key="old", expires_at=now - timedelta(hours=1), **common)
    IdempotencyKey.objects.create(key="new", expires_at=now + timedelta(hours=1), **common)

    out = StringIO()
    call_command("cleanup_idempotency", stdout=out)

    assert "Deleted 1 expired idempotency keys." in out.getvalue()
    assert list(IdempotencyKey.objects.values_list("key", flat=True)) == ["new"]


@pytest.mark.django_db
def test_stock_conflict_is_not_replayed_after_the_cart_is_fixed():
    user = UserFactory()
    identity = UserIdentity(user_id=user.id)
    product = ProductFactory(stock_quantity=20)
    add_item(identity=identity, product_id=product.id, quantity=10)
    Product.objects.filter(id=product.id).update(stock_quantity=4)
    client = _client(user)
    payload = {"shipping_address": "12 Harbour Road"}

    r1 = client.post("/api/v1/checkout/", payload, format="json", HTTP_IDEMPOTENCY_KEY="chk-fix")
    assert r1.status_code == 409
    assert r1.json()["conflicts"][0]["available"] == 4

    set_quantity(identity=identity, product_id=product.id, quantity=3)
    r2 = client.post("/api/v1/checkout/", payload, format="json", HTTP_IDEMPOTENCY_KEY="chk-fix")

    assert r2.status_code == 201
    assert Order.objects.filter(user=user).count() == 1
    product.refresh_from_db()
    assert product.stock_quantity == 1


@pytest.mark.django_db
def test_client_errors_release_the_key():
    user = UserFactory()
    kwargs = dict(key="k4", user=user, path="/api/v1/checkout/", method="POST")

    rejected = with_idempotency(handler=lambda: ({"code": "checkout_invalid"}, 400), **kwargs)

    assert rejected == ({"code": "checkout_invalid"}, 400)
    assert not IdempotencyKey.objects.filter(key="k4").exists()
    assert with_idempotency(handler=lambda: ({"ok": True}, 201), **kwargs) == ({"ok": True}, 201)
