from datetime import timedelta

from cart.models import Cart
from cart.services import abandon_cart
from django.core.management.base import BaseCommand
from django.utils import timezone


class Command(BaseCommand):
    help = "Abandon guest carts that have not been touched within GUEST_CART_TTL_DAYS"

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=None, help="Override GUEST_CART_TTL_DAYS")
        parser.add_argument("--dry-run", action="store_true", help="Only report how many carts would be abandoned")

    def handle(self, *args, **options):
        from django.conf import settings

        ttl_days = options.get("days")
        if ttl_days is None:
            ttl_days = getattr(settings, "GUEST_CART_TTL_DAYS", 30)
        cutoff = timezone.now() - timedelta(days=int(ttl_days))
        qs = Cart.objects.filter(status=Cart.STATUS_ACTIVE, user__isnull=True, updated_at__lt=cutoff)
        if options.get("dry_run"):
            self.stdout.write(f"Would abandon {qs.count()} stale guest carts.")
            return
        count = 0
        for cart in qs.iterator():
            abandon_cart(cart=cart)
            count += 1
        self.stdout.write(self.style.SUCCESS(f"Abandoned {count} stale guest carts."))
