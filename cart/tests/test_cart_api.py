from decimal import Decimal
from unittest import mock

import pytest
from cart.models import Cart
from cart.tests.factories import CartItemFactory, GuestCartFactory, UserFactory
from cart.views import CartView
from catalog.models import Product
from catalog.tests.factories import ProductFactory
from common.exceptions import CatalogUnavailable
from django.db import DatabaseError
from rest_framework.test import APIClient
from rest_framework.throttling import ScopedRateThrottle


def _guest_client(session_id="guest-session-1"):
    client = APIClient()
    client.credentials(HTTP_X_SESSION_ID=session_id)
    return client


@pytest.mark.django_db
def test_guest_cart_initially_empty_and_not_persisted():
    resp = _guest_client().get("/api/v1/cart/")

    assert resp.status_code == 200
    body = resp.json()
    assert body["items"] == []
    assert body["summary"]["item_count"] == 0
    assert body["summary"]["subtotal"] == "0.00"
    assert body["degraded"] is False
    assert Cart.objects.count() == 0


@pytest.mark.django_db
def test_missing_session_header_returns_400():
    resp = APIClient().get("/api/v1/cart/")

    assert resp.status_code == 400
    assert resp.json() == {"detail": "Missing X-Session-Id.", "code": "missing_session"}


@pytest.mark.django_db
def test_add_item_returns_reconciled_cart():
    product = ProductFactory(price=Decimal("10.00"), stock_quantity=5)
    client = _guest_client()

    resp = client.post("/api/v1/cart/items/", {"product_id": product.id, "quantity": 2}, format="json")

    assert resp.status_code == 200
    body = resp.json()
    assert len(body["items"]) == 1
    line = body["items"][0]
    assert line["product_id"] == product.id
    assert line["product_name"] == product.name
    assert line["quantity"] == 2
    assert line["price_when_added"] == "10.00"
    assert line["current_price"] == "10.00"
    assert line["subtotal"] == "20.00"
    assert line["price_changed"] is False
    assert body["summary"]["subtotal"] == "20.00"


@pytest.mark.django_db
def test_price_change_shows_on_next_read():
    product = ProductFactory(price=Decimal("10.00"), stock_quantity=5)
    client = _guest_client()
    client.post("/api/v1/cart/items/", {"product_id": product.id, "quantity": 2}, format="json")

    Product.objects.filter(id=product.id).update(price=Decimal("12.00"))
    body = client.get("/api/v1/cart/").json()

    line = body["items"][0]
    assert line["price_changed"] is True
    assert line["current_price"] == "12.00"
    assert line["subtotal"] == "20.00"
    assert body["summary"]["has_price_changes"] is True
    assert body["summary"]["has_issues"] is True


@pytest.mark.django_db
def test_add_item_validation_errors():
    client = _guest_client()

    assert client.post("/api/v1/cart/items/", {"product_id": 1, "quantity": 0}, format="json").status_code == 400
    assert client.post("/api/v1/cart/items/", {"quantity": 1}, format="json").status_code == 400

    resp = client.post("/api/v1/cart/items/", {"product_id": 999999}, format="json")
    assert resp.status_code == 404
    assert resp.json()["code"] == "product_not_found"


@pytest.mark.django_db
def test_update_and_remove_item_endpoints():
    product = ProductFactory()
    client = _guest_client()
    client.post("/api/v1/cart/items/", {"product_id": product.id, "quantity": 1}, format="json")

    resp = client.put(f"/api/v1/cart/items/{product.id}/", {"quantity": 4}, format="json")
    assert resp.status_code == 200
    assert resp.json()["items"][0]["quantity"] == 4

    resp = client.put(f"/api/v1/cart/items/{product.id}/", {"quantity": -1}, format="json")
    assert resp.status_code == 400

    resp = client.put(f"/api/v1/cart/items/{product.id}/", {"quantity": 0}, format="json")
    assert resp.status_code == 200
    assert resp.json()["items"] == []

    resp = client.put(f"/api/v1/cart/items/{product.id}/", {"quantity": 2}, format="json")
    assert resp.status_code == 404
    assert resp.json()["code"] == "item_not_in_cart"

    # Removing an absent line is a no-op
    resp = client.delete(f"/api/v1/cart/items/{product.id}/")
    assert resp.status_code == 200


@pytest.mark.django_db
def test_clear_cart_endpoint():
    client = _guest_client()
    for product in ProductFactory.create_batch(2):
        client.post("/api/v1/cart/items/", {"product_id": product.id}, format="json")

    resp = client.delete("/api/v1/cart/")

    assert resp.status_code == 200
    assert resp.json()["items"] == []


@pytest.mark.django_db
def test_summary_endpoint():
    product = ProductFactory(price=Decimal("4.00"), stock_quantity=0)
    client = _guest_client()
    client.post("/api/v1/cart/items/", {"product_id": product.id, "quantity": 3}, format="json")

    resp = client.get("/api/v1/cart/summary/")

    assert resp.status_code == 200
    body = resp.json()
    assert body["summary"]["total_quantity"] == 3
    assert body["summary"]["subtotal"] == "12.00"
    assert body["summary"]["has_stock_issues"] is True
    assert body["degraded"] is False


@pytest.mark.django_db
def test_authenticated_user_ignores_session_header():
    user = UserFactory()
    product = ProductFactory()
    guest = _guest_client("shared-session")
    guest.post("/api/v1/cart/items/", {"product_id": product.id, "quantity": 1}, format="json")

    client = _guest_client("shared-session")
    client.force_authenticate(user=user)
    resp = client.get("/api/v1/cart/")

    assert resp.status_code == 200
    assert resp.json()["items"] == []


@pytest.mark.django_db
def test_catalog_outage_returns_degraded_cart():
    product = ProductFactory()
    client = _guest_client()
    client.post("/api/v1/cart/items/", {"product_id": product.id}, format="json")

    with mock.patch("cart.reconciler.get_product", side_effect=CatalogUnavailable()):
        resp = client.get("/api/v1/cart/")

    assert resp.status_code == 200
    assert resp.json()["degraded"] is True
    assert resp.json()["items"] == []


@pytest.mark.django_db
def test_migrate_requires_authentication():
    resp = APIClient().post("/api/v1/cart/migrate/", {"session_id": "abc"}, format="json")

    assert resp.status_code in (401, 403)


@pytest.mark.django_db
def test_migrate_merges_guest_cart_into_user_cart():
    user = UserFactory()
    guest_cart = GuestCartFactory()
    CartItemFactory(cart=guest_cart, product_id=ProductFactory().id, quantity=2)
    client = APIClient()
    client.force_authenticate(user=user)

    resp = client.post("/api/v1/cart/migrate/", {"session_id": guest_cart.session_id}, format="json")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "merged"
    assert body["migrated_items"] == 1
    assert body["cart"]["items"][0]["quantity"] == 2


@pytest.mark.django_db
def test_migrate_accepts_session_header():
    user = UserFactory()
    guest_cart = GuestCartFactory()
    CartItemFactory(cart=guest_cart, product_id=ProductFactory().id, quantity=1)
    client = _guest_client(guest_cart.session_id)
    client.force_authenticate(user=user)

    resp = client.post("/api/v1/cart/migrate/", {}, format="json")

    assert resp.status_code == 200
    assert resp.json()["migrated_items"] == 1


@pytest.mark.django_db
def test_cart_read_is_throttled(monkeypatch):
    monkeypatch.setattr(ScopedRateThrottle, "THROTTLE_RATES", {"cart": "2/min", "cart_write": "2/min"})
    assert CartView.throttle_scope == "cart"
    client = _guest_client()

    assert client.get("/api/v1/cart/").status_code == 200
    assert client.get("/api/v1/cart/").status_code == 200
    assert client.get("/api/v1/cart/").status_code == 429


@pytest.mark.django_db
def test_cart_write_failure_returns_503_and_keeps_cart():
    product = ProductFactory(stock_quantity=5)
    client = _guest_client()
    client.post("/api/v1/cart/items/", {"product_id": product.id, "quantity": 1}, format="json")

    with mock.patch("cart.services._touch", side_effect=DatabaseError("db down")):
        resp = client.put(f"/api/v1/cart/items/{product.id}/", {"quantity": 4}, format="json")

    assert resp.status_code == 503
    assert resp.json()["code"] == "dependency_unavailable"
    assert client.get("/api/v1/cart/").json()["items"][0]["quantity"] == 1
