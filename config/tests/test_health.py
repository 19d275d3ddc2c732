from unittest import mock

import pytest
from django.db import DatabaseError
from rest_framework.test import APIClient


@pytest.mark.django_db
def test_health_ok():
    resp = APIClient().get("/health/")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.django_db
def test_health_reports_database_outage():
    with mock.patch("config.health.connection") as conn:
        conn.cursor.side_effect = DatabaseError("down")
        resp = APIClient().get("/health/")

    assert resp.status_code == 503
    assert resp.json()["status"] == "unavailable"


@pytest.mark.django_db
def test_schema_is_served():
    resp = APIClient().get("/api/schema/")

    assert resp.status_code == 200
    assert b"/api/v1/checkout/" in resp.content
