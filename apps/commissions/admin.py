from django.contrib import admin

from .models import Commission, ReconciliationCase


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
    list_display = ("id", "order_id", "variant", "creator", "commission_amount", "status", "unlock_at")
    search_fields = ("order_id", "creator__email", "creator__discount_code")
    list_filter = ("status", "variant")
    readonly_fields = ("commission_amount", "commission_rate", "gross_amount", "status", "payout_item")


@admin.register(ReconciliationCase)
class ReconciliationCaseAdmin(admin.ModelAdmin):
    list_display = ("id", "kind", "status", "creator", "created_at", "resolved_at")
    list_filter = ("kind", "status")
