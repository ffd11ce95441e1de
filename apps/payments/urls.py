from django.urls import path

from .views import TransferWebhookView

urlpatterns = [
    path("transfers/webhook/", TransferWebhookView.as_view(), name="transfer-webhook"),
]
