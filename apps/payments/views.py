import logging

from rest_framework import serializers, status, views
from rest_framework.response import Response

from apps.authentication.permissions import HasTransferWebhookSecret
from apps.payouts.orchestrator import handle_transfer_callback
from apps.payouts.providers import TRANSFER_STATUSES, TransferStatusUpdate
from core.exceptions import LedgerError, ValidationError, http_status_for

from .models import PaymentLog

logger = logging.getLogger(__name__)


class TransferCallbackSerializer(serializers.Serializer):
    transfer_id = serializers.CharField(max_length=100)
    status = serializers.ChoiceField(choices=TRANSFER_STATUSES)
    fee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False, default=0)
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class TransferWebhookView(views.APIView):
    """
    Asynchronous transfer status callbacks.

    The payload is logged first; the state change itself is taken from the
    provider's answer, the callback only says which transfer to look at.
    """

    authentication_classes = []
    permission_classes = [HasTransferWebhookSecret]

    def post(self, request, *args, **kwargs):
        # Persist raw webhook for audit/debugging
        log = PaymentLog.objects.create(
            provider="transfer",
            event_type=str(request.data.get("status", ""))[:50],
            reference=str(request.data.get("transfer_id", ""))[:100],
            raw_payload=request.data,
        )

        params = TransferCallbackSerializer(data=request.data)
        if not params.is_valid():
            log.error = str(params.errors)
            log.save(update_fields=["error"])
            return Response(params.errors, status=status.HTTP_400_BAD_REQUEST)
        data = params.validated_data

        update = TransferStatusUpdate(
            transfer_id=data["transfer_id"],
            status=data["status"],
            fee=data["fee"],
            reason=data["reason"],
        )
        try:
            item = handle_transfer_callback(update)
        except ValidationError as exc:
            # Unknown transfers are acknowledged so the provider stops redelivering.
            logger.warning("Transfer callback ignored: %s", exc)
            log.error = str(exc)
            log.save(update_fields=["error"])
            return Response({"status": "ignored", "detail": str(exc)}, status=status.HTTP_200_OK)
        except LedgerError as exc:
            logger.exception("Transfer callback for %s failed", update.transfer_id)
            log.error = str(exc)
            log.save(update_fields=["error"])
            return Response({"detail": str(exc)}, status=http_status_for(exc))

        log.processed = True
        log.save(update_fields=["processed"])
        return Response({"status": "ok", "payout_item": str(item.id), "item_status": item.status}, status=status.HTTP_200_OK)
