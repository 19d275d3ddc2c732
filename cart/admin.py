"""Admin registration for cart models.

Provides admin interfaces for `Cart` and `CartItem`, with inline lines on the
cart page so support can inspect and repair carts.
"""

from django import forms
from django.contrib import admin, messages
from django.contrib.admin.helpers import ActionForm
from django.contrib.auth import get_user_model
from django.db import DatabaseError

from .identity import SessionIdentity, UserIdentity
from .models import Cart, CartItem
from .services import abandon_cart, clear_cart, merge_guest_cart_to_user


class CartMergeActionForm(ActionForm):
    """Extra input for admin actions: the target user of a guest cart merge."""

    user = forms.ModelChoiceField(
        queryset=get_user_model().objects.all(),
        required=False,
        label="Target user for merge (guest carts only)",
        help_text="Select when using 'Merge guest cart into user'.",
    )


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    fields = ("product_id", "quantity", "price_when_added", "added_at", "updated_at")
    readonly_fields = ("added_at", "updated_at")


class OwnerTypeFilter(admin.SimpleListFilter):
    title = "owner type"
    parameter_name = "owner_type"

    def lookups(self, request, model_admin):
        return (
            ("user", "User carts"),
            ("guest", "Guest carts"),
        )

    def queryset(self, request, queryset):
        value = self.value()
        if value == "user":
            return queryset.filter(user__isnull=False)
        if value == "guest":
            return queryset.filter(user__isnull=True)
        return queryset


def _identity_for(cart: Cart):
    if cart.user_id:
        return UserIdentity(user_id=cart.user_id)
    return SessionIdentity(session_id=cart.session_id)


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "session_id", "status", "updated_at", "created_at")
    list_filter = ("status", OwnerTypeFilter)
    search_fields = ("session_id", "user__username", "user__email")
    ordering = ("-updated_at",)
    readonly_fields = ("created_at", "updated_at")
    inlines = [CartItemInline]
    raw_id_fields = ("user",)
    list_select_related = ("user",)
    action_form = CartMergeActionForm

    @admin.action(description="Clear cart (remove all lines, keep status active)")
    def action_clear_cart(self, request, queryset):
        successes = 0
        failures = 0
        for cart in queryset.filter(status=Cart.STATUS_ACTIVE):
            try:
                clear_cart(identity=_identity_for(cart))
                successes += 1
            except DatabaseError:
                failures += 1
        if successes:
            messages.success(request, f"Cleared {successes} cart(s).")
        if failures:
            messages.error(request, f"Failed to clear {failures} cart(s).")

    @admin.action(description="Abandon cart (remove all lines, mark abandoned)")
    def action_abandon_cart(self, request, queryset):
        successes = 0
        failures = 0
        for cart in queryset.filter(status=Cart.STATUS_ACTIVE):
            try:
                abandon_cart(cart=cart)
                successes += 1
            except DatabaseError:
                failures += 1
        if successes:
            messages.success(request, f"Abandoned {successes} cart(s).")
        if failures:
            messages.error(request, f"Failed to abandon {failures} cart(s).")

    @admin.action(description="Merge guest cart into selected user")
    def action_merge_guest_cart_to_user(self, request, queryset):
        User = get_user_model()
        user_id = request.POST.get("user")
        if not user_id:
            messages.error(request, "Please select a target user in the action form.")
            return
        try:
            target_user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            messages.error(request, "Selected user not found.")
            return

        merged = 0
        skipped = 0
        failures = 0
        for cart in queryset:
            if cart.user_id or cart.status != Cart.STATUS_ACTIVE:
                skipped += 1
                continue
            try:
                merged += merge_guest_cart_to_user(session_id=cart.session_id, user_id=target_user.id)
            except DatabaseError:
                failures += 1
        if merged:
            messages.success(request, f"Merged {merged} line(s) into {target_user.email or target_user.username}.")
        if skipped:
            messages.info(request, f"Skipped {skipped} cart(s); merge applies to active guest carts only.")
        if failures:
            messages.error(request, f"Failed to merge {failures} cart(s).")

    actions = [
        "action_clear_cart",
        "action_abandon_cart",
        "action_merge_guest_cart_to_user",
    ]


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ("id", "cart", "product_id", "quantity", "price_when_added", "added_at")
    search_fields = ("cart__user__email", "cart__session_id")
    list_filter = ("cart__status",)
    ordering = ("id",)
    readonly_fields = ("created_at", "updated_at")
    raw_id_fields = ("cart",)
