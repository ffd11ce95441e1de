from django.contrib import admin

from .models import CommissionTier, Creator


@admin.register(CommissionTier)
class CommissionTierAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "min_monthly_revenue", "commission_rate")
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Creator)
class CreatorAdmin(admin.ModelAdmin):
    list_display = ("display_name", "email", "discount_code", "current_tier", "bank_verified", "is_active")
    search_fields = ("email", "display_name", "discount_code")
    list_filter = ("is_active", "bank_verified", "current_tier")
    readonly_fields = ("bank_verified_at", "deactivated_at", "created_at", "updated_at")

    def has_delete_permission(self, request, obj=None):
        return False
