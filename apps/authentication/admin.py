from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from apps.creators.models import Creator

from .models import User


class CreatorProfileInline(admin.StackedInline):
    model = Creator
    fk_name = "user"
    extra = 0
    can_delete = False
    fields = ("display_name", "discount_code", "bank_verified", "is_active")
    readonly_fields = ("bank_verified", "is_active")


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Profile", {"fields": ("full_name", "role")}),
        ("Access", {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")}),
        ("Dates", {"fields": ("last_login", "created_at", "updated_at")}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": ("email", "full_name", "role", "password1", "password2")}),
    )
    inlines = [CreatorProfileInline]
    readonly_fields = ("created_at", "updated_at", "last_login")
    list_display = ("email", "full_name", "role", "has_creator_profile", "is_active")
    list_filter = ("role", "is_active")
    search_fields = ("email", "full_name")
    ordering = ("email",)

    @admin.display(boolean=True, description="Creator")
    def has_creator_profile(self, obj):
        return hasattr(obj, "creator_profile")
