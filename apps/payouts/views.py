from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authentication.permissions import IsAdmin
from core.exceptions import LedgerError, http_status_for

from .models import PayoutBatch, PayoutItem
from .orchestrator import create_payout_batch, rebatch_failed_item, reconcile_payout_item, submit_payout_batch
from .serializers import (
    CreatePayoutBatchSerializer,
    CreatorPayoutItemSerializer,
    PayoutBatchSerializer,
    PayoutItemSerializer,
)


class PayoutBatchViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = PayoutBatchSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ["status"]

    def get_queryset(self):
        return PayoutBatch.objects.prefetch_related("items__creator", "items__settlements__commission")

    def create(self, request, *args, **kwargs):
        params = CreatePayoutBatchSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        data = params.validated_data

        try:
            batch = create_payout_batch(
                creator_ids=data.get("creator_ids"),
                created_by=request.user,
                notes=data.get("notes", ""),
            )
            if data.get("submit"):
                batch = submit_payout_batch(batch, actor=request.user)
        except LedgerError as exc:
            return Response({"detail": str(exc)}, status=http_status_for(exc))

        batch = self.get_queryset().get(pk=batch.pk)
        return Response(self.get_serializer(batch).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def submit(self, request, *args, **kwargs):
        batch = self.get_object()
        try:
            batch = submit_payout_batch(batch, actor=request.user)
        except LedgerError as exc:
            return Response({"detail": str(exc)}, status=http_status_for(exc))
        batch = self.get_queryset().get(pk=batch.pk)
        return Response(self.get_serializer(batch).data, status=status.HTTP_200_OK)


class PayoutItemViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = PayoutItemSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "creator", "batch"]

    def get_queryset(self):
        user = self.request.user
        role = getattr(user, "role", None)
        qs = PayoutItem.objects.select_related("creator").prefetch_related("settlements__commission")
        if role == "admin":
            return qs
        if role == "creator":
            return qs.filter(creator__user=user)
        return qs.none()

    def get_serializer_class(self):
        if getattr(self.request.user, "role", None) == "admin":
            return PayoutItemSerializer
        return CreatorPayoutItemSerializer

    @action(detail=True, methods=["post"], permission_classes=[IsAdmin])
    def rebatch(self, request, *args, **kwargs):
        item = self.get_object()
        try:
            new_item = rebatch_failed_item(item, created_by=request.user)
        except LedgerError as exc:
            return Response({"detail": str(exc)}, status=http_status_for(exc))
        return Response(self.get_serializer(new_item).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], permission_classes=[IsAdmin])
    def reconcile(self, request, *args, **kwargs):
        item = self.get_object()
        try:
            item = reconcile_payout_item(item)
        except LedgerError as exc:
            return Response({"detail": str(exc)}, status=http_status_for(exc))
        return Response(self.get_serializer(item).data, status=status.HTTP_200_OK)
