from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("creator", "kind", "title", "is_read", "emailed_at", "created_at")
    list_filter = ("kind", "is_read")
