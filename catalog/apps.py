"""Django app configuration for catalog."""

from django.apps import AppConfig


class CatalogConfig(AppConfig):
    """Product catalog: live prices and on-hand stock."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "catalog"
