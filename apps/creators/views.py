from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.authentication.permissions import IsAdmin
from apps.ledger.serializers import LedgerEntrySerializer
from apps.ledger.services import record_balance_adjustment
from core.exceptions import LedgerError, http_status_for

from .models import CommissionTier, Creator
from .serializers import (
    BalanceAdjustmentSerializer,
    CommissionTierSerializer,
    CreatorSerializer,
    UnverifyBankSerializer,
    VerifyBankSerializer,
)
from .services import deactivate_creator, unverify_bank_details, verify_bank_details
from .tiers import resolve_tier


class CommissionTierViewSet(viewsets.ModelViewSet):
    serializer_class = CommissionTierSerializer
    queryset = CommissionTier.objects.all()

    def get_permissions(self):
        if self.action in ("list", "retrieve"):
            return [permissions.IsAuthenticated()]
        return [IsAdmin()]


class CreatorViewSet(viewsets.ModelViewSet):
    serializer_class = CreatorSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ["is_active", "bank_verified", "current_tier"]
    search_fields = ["email", "display_name", "discount_code"]
    http_method_names = ["get", "post", "patch", "head", "options"]

    def get_queryset(self):
        return Creator.objects.select_related("current_tier")

    @action(detail=True, methods=["post"], url_path="verify-bank")
    def verify_bank(self, request, *args, **kwargs):
        creator = self.get_object()
        params = VerifyBankSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        try:
            creator = verify_bank_details(creator, actor=request.user, **params.validated_data)
        except LedgerError as exc:
            return Response({"detail": str(exc)}, status=http_status_for(exc))
        return Response(self.get_serializer(creator).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="unverify-bank")
    def unverify_bank(self, request, *args, **kwargs):
        creator = self.get_object()
        params = UnverifyBankSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        creator = unverify_bank_details(creator, reason=params.validated_data["reason"], actor=request.user)
        return Response(self.get_serializer(creator).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="adjust-balance")
    def adjust_balance(self, request, *args, **kwargs):
        creator = self.get_object()
        params = BalanceAdjustmentSerializer(data=request.data)
        params.is_valid(raise_exception=True)
        try:
            entry = record_balance_adjustment(
                creator,
                params.validated_data["amount"],
                params.validated_data["reason"],
                actor=request.user,
            )
        except LedgerError as exc:
            return Response({"detail": str(exc)}, status=http_status_for(exc))
        return Response(LedgerEntrySerializer(entry).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def deactivate(self, request, *args, **kwargs):
        creator = deactivate_creator(self.get_object(), actor=request.user)
        return Response(self.get_serializer(creator).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"])
    def tier(self, request, *args, **kwargs):
        creator = self.get_object()
        try:
            resolution = resolve_tier(creator)
        except LedgerError as exc:
            return Response({"detail": str(exc)}, status=http_status_for(exc))
        return Response(resolution.as_dict(), status=status.HTTP_200_OK)
