from django.contrib import admin

from .models import PayoutAuditLog, PayoutBatch, PayoutItem, PayoutItemCommission


class PayoutItemCommissionInline(admin.TabularInline):
    model = PayoutItemCommission
    extra = 0
    readonly_fields = ("commission", "amount")
    can_delete = False


@admin.register(PayoutBatch)
class PayoutBatchAdmin(admin.ModelAdmin):
    list_display = ("id", "status", "currency", "created_by", "created_at", "submitted_at", "completed_at")
    list_filter = ("status",)


@admin.register(PayoutItem)
class PayoutItemAdmin(admin.ModelAdmin):
    list_display = ("id", "creator", "amount", "status", "failure_kind", "provider_reference", "created_at")
    search_fields = ("creator__email", "provider_reference", "idempotency_key")
    list_filter = ("status", "failure_kind")
    readonly_fields = ("amount", "status", "provider_reference", "idempotency_key", "attempts", "retry_of")
    inlines = [PayoutItemCommissionInline]


@admin.register(PayoutAuditLog)
class PayoutAuditLogAdmin(admin.ModelAdmin):
    list_display = ("action", "entity_type", "entity_id", "actor", "created_at")
    list_filter = ("action", "entity_type")
    search_fields = ("entity_id",)
