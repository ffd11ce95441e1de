import hmac

from django.conf import settings
from rest_framework import permissions


class IsAdmin(permissions.BasePermission):
    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, "role", None) == "admin")


class IsCreator(permissions.BasePermission):
    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, "role", None) == "creator")


class IsAdminOrCreator(permissions.BasePermission):
    def has_permission(self, request, view):
        user = request.user
        return bool(
            user
            and user.is_authenticated
            and getattr(user, "role", None) in ("admin", "creator")
        )


class HasWebhookSecret(permissions.BasePermission):
    """Server-to-server callers authenticate with a shared secret header."""

    header = "HTTP_X_WEBHOOK_SECRET"
    setting_name = ""

    def has_permission(self, request, view):
        expected = getattr(settings, self.setting_name, "") or ""
        provided = request.META.get(self.header, "") or ""
        if not expected or not provided:
            return False
        return hmac.compare_digest(expected.encode(), provided.encode())


class HasOrderWebhookSecret(HasWebhookSecret):
    setting_name = "ORDER_WEBHOOK_SECRET"


class HasTransferWebhookSecret(HasWebhookSecret):
    setting_name = "TRANSFER_WEBHOOK_SECRET"
