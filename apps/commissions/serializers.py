from rest_framework import serializers

from .models import Commission, ReconciliationCase


class CommissionSerializer(serializers.ModelSerializer):
    creator_name = serializers.CharField(source="creator.display_name", read_only=True)

    class Meta:
        model = Commission
        fields = [
            "id",
            "creator",
            "creator_name",
            "order_id",
            "routine_id",
            "variant",
            "currency",
            "gross_amount",
            "commission_rate",
            "commission_amount",
            "status",
            "unlock_at",
            "payable_at",
            "payout_item",
            "paid_at",
            "cancel_reason",
            "canceled_at",
            "adjusted_at",
            "created_at",
        ]


class OrderCompletedSerializer(serializers.Serializer):
    creator_id = serializers.UUIDField()
    order_id = serializers.CharField(max_length=100)
    routine_id = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    variant = serializers.ChoiceField(choices=Commission.VARIANT_CHOICES, default="base")
    gross_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    currency = serializers.CharField(max_length=3, required=False)


class OrderCanceledSerializer(serializers.Serializer):
    order_id = serializers.CharField(max_length=100)
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class AdjustCommissionSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    reason = serializers.CharField()


class ReconciliationCaseSerializer(serializers.ModelSerializer):
    creator_name = serializers.CharField(source="creator.display_name", read_only=True)

    class Meta:
        model = ReconciliationCase
        fields = [
            "id",
            "kind",
            "status",
            "creator",
            "creator_name",
            "commission",
            "payout_item",
            "detail",
            "resolution_note",
            "resolved_by",
            "created_at",
            "resolved_at",
        ]
        read_only_fields = fields


class ResolveCaseSerializer(serializers.Serializer):
    resolution_note = serializers.CharField()
