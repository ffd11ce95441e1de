from django.urls import path
from rest_framework.routers import SimpleRouter

from .views import CommissionViewSet, OrderCanceledWebhookView, OrderCompletedWebhookView, ReconciliationCaseViewSet

router = SimpleRouter()
router.register("reconciliation", ReconciliationCaseViewSet, basename="reconciliation-case")
router.register("", CommissionViewSet, basename="commission")

urlpatterns = [
    path("events/order-completed/", OrderCompletedWebhookView.as_view(), name="order-completed-webhook"),
    path("events/order-canceled/", OrderCanceledWebhookView.as_view(), name="order-canceled-webhook"),
] + router.urls
