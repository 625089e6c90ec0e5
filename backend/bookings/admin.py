from django.contrib import admin

from .models import Booking, BookingStateHistory, ConditionReport


class BookingStateHistoryInline(admin.TabularInline):
    model = BookingStateHistory
    extra = 0
    can_delete = False
    readonly_fields = ("status", "transition", "actor_id", "actor_role", "metadata", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "listing", "renter", "status", "start_at", "end_at", "total_amount")
    list_filter = ("status",)
    search_fields = ("listing__title", "renter__username")
    # Status only moves through the state machine.
    readonly_fields = ("status", "status_changed_at", "totals", "refund")
    inlines = [BookingStateHistoryInline]


@admin.register(ConditionReport)
class ConditionReportAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "kind", "created_at")
    list_filter = ("kind",)
