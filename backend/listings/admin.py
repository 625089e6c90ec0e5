from django.contrib import admin

from .models import CancellationPolicy, Listing, PromoCode


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "owner", "pricing_mode", "base_price", "currency", "is_active")
    list_filter = ("pricing_mode", "is_active", "deposit_type")
    search_fields = ("title", "owner__username")


@admin.register(CancellationPolicy)
class CancellationPolicyAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "created_at")


@admin.register(PromoCode)
class PromoCodeAdmin(admin.ModelAdmin):
    list_display = ("code", "percent_off", "is_active", "valid_from", "valid_until")
    list_filter = ("is_active",)
