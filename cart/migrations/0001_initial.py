from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Cart",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("session_id", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("abandoned", "Abandoned")],
                        db_index=True,
                        default="active",
                        max_length=16,
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="carts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-updated_at"],
                "indexes": [
                    models.Index(fields=["user", "status"], name="cart_user_status_idx"),
                    models.Index(fields=["session_id", "status"], name="cart_session_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(session_id__isnull=True, user__isnull=False),
                            models.Q(session_id__isnull=False, user__isnull=True),
                            _connector="OR",
                        ),
                        name="cart_single_owner",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(status="active", user__isnull=False),
                        fields=("user",),
                        name="unique_active_cart_per_user",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(status="active", session_id__isnull=False),
                        fields=("session_id",),
                        name="unique_active_cart_per_session",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CartItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("product_id", models.PositiveBigIntegerField(db_index=True)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("price_when_added", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("added_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "cart",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="items", to="cart.cart"
                    ),
                ),
            ],
            options={
                "ordering": ["-added_at", "-id"],
                "indexes": [models.Index(fields=["cart", "product_id"], name="cartitem_cart_product_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("cart", "product_id"), name="unique_product_per_cart"),
                    models.CheckConstraint(condition=models.Q(quantity__gte=1), name="cart_item_quantity_positive"),
                ],
            },
        ),
    ]
