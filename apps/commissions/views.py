import logging

from rest_framework import permissions, status, views, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authentication.permissions import HasOrderWebhookSecret, IsAdmin
from core.exceptions import LedgerError, http_status_for

from .accrual import OrderCompletedEvent, adjust_commission, cancel_order, record_order_completed
from .models import Commission, ReconciliationCase
from .reconciliation import resolve_case
from .serializers import (
    AdjustCommissionSerializer,
    CommissionSerializer,
    OrderCanceledSerializer,
    OrderCompletedSerializer,
    ReconciliationCaseSerializer,
    ResolveCaseSerializer,
)

logger = logging.getLogger(__name__)


class CommissionViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = CommissionSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "variant", "order_id", "creator"]
    ordering_fields = ["created_at", "unlock_at", "commission_amount"]

    def get_queryset(self):
        user = self.request.user
        role = getattr(user, "role", None)
        qs = Commission.objects.select_related("creator")
        if role == "admin":
            return qs
        if role == "creator":
            return qs.filter(creator__user=user)
        return qs.none()

    @action(detail=True, methods=["post"], permission_classes=[IsAdmin])
    def adjust(self, request, *args, **kwargs):
        commission = self.get_object()
        params = AdjustCommissionSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        try:
            commission = adjust_commission(
                commission,
                params.validated_data["amount"],
                params.validated_data["reason"],
                actor=request.user,
            )
        except LedgerError as exc:
            return Response({"detail": str(exc)}, status=http_status_for(exc))
        return Response(self.get_serializer(commission).data, status=status.HTTP_200_OK)


class OrderCompletedWebhookView(views.APIView):
    authentication_classes = []
    permission_classes = [HasOrderWebhookSecret]

    def post(self, request, *args, **kwargs):
        params = OrderCompletedSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        data = params.validated_data

        event = OrderCompletedEvent(
            creator_id=data["creator_id"],
            order_id=data["order_id"],
            gross_amount=data["gross_amount"],
            variant=data["variant"],
            routine_id=data.get("routine_id") or None,
        )
        if data.get("currency"):
            event.currency = data["currency"]

        try:
            commission, created = record_order_completed(event)
        except LedgerError as exc:
            logger.warning("Rejected order event %s: %s", data["order_id"], exc)
            return Response({"detail": str(exc)}, status=http_status_for(exc))

        return Response(
            {"created": created, "commission": CommissionSerializer(commission).data},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class OrderCanceledWebhookView(views.APIView):
    authentication_classes = []
    permission_classes = [HasOrderWebhookSecret]

    def post(self, request, *args, **kwargs):
        params = OrderCanceledSerializer(data=request.data)
        params.is_valid(raise_exception=True)

        try:
            result = cancel_order(params.validated_data["order_id"], reason=params.validated_data["reason"])
        except LedgerError as exc:
            return Response({"detail": str(exc)}, status=http_status_for(exc))

        return Response(
            {
                "order_id": result["order_id"],
                "canceled": [str(c.id) for c in result["canceled"]],
                "conflicts": ReconciliationCaseSerializer(result["conflicts"], many=True).data,
            },
            status=status.HTTP_200_OK,
        )


class ReconciliationCaseViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ReconciliationCaseSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ["status", "kind", "creator"]

    def get_queryset(self):
        return ReconciliationCase.objects.select_related("creator", "commission", "payout_item")

    @action(detail=True, methods=["post"])
    def resolve(self, request, *args, **kwargs):
        case = self.get_object()
        params = ResolveCaseSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        try:
            case = resolve_case(case, params.validated_data["resolution_note"], actor=request.user)
        except LedgerError as exc:
            return Response({"detail": str(exc)}, status=http_status_for(exc))
        return Response(self.get_serializer(case).data, status=status.HTTP_200_OK)
