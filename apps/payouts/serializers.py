from rest_framework import serializers

from apps.analytics.services import PAYOUT_STATUS_LABELS, payout_message
from core.money import sum_money

from .models import PayoutBatch, PayoutItem, PayoutItemCommission


class PayoutItemCommissionSerializer(serializers.ModelSerializer):
    order_id = serializers.CharField(source="commission.order_id", read_only=True)

    class Meta:
        model = PayoutItemCommission
        fields = ["commission", "order_id", "amount"]


class PayoutItemSerializer(serializers.ModelSerializer):
    creator_name = serializers.CharField(source="creator.display_name", read_only=True)
    settlements = PayoutItemCommissionSerializer(many=True, read_only=True)

    class Meta:
        model = PayoutItem
        fields = [
            "id",
            "batch",
            "creator",
            "creator_name",
            "amount",
            "currency",
            "provider_fee",
            "status",
            "provider_reference",
            "attempts",
            "failure_reason",
            "failure_kind",
            "retry_of",
            "settlements",
            "created_at",
            "sent_at",
            "completed_at",
            "failed_at",
        ]


class CreatorPayoutItemSerializer(serializers.ModelSerializer):
    """A creator's own payouts; provider references and raw errors stay internal."""

    status_label = serializers.SerializerMethodField()
    message = serializers.SerializerMethodField()
    settlements = PayoutItemCommissionSerializer(many=True, read_only=True)

    class Meta:
        model = PayoutItem
        fields = [
            "id",
            "amount",
            "currency",
            "provider_fee",
            "status",
            "status_label",
            "message",
            "settlements",
            "created_at",
            "sent_at",
            "completed_at",
            "failed_at",
        ]

    def get_status_label(self, obj):
        return PAYOUT_STATUS_LABELS[obj.status]

    def get_message(self, obj):
        return payout_message(obj)


class PayoutBatchSerializer(serializers.ModelSerializer):
    items = PayoutItemSerializer(many=True, read_only=True)
    total_amount = serializers.SerializerMethodField()

    class Meta:
        model = PayoutBatch
        fields = [
            "id",
            "status",
            "currency",
            "notes",
            "created_by",
            "total_amount",
            "items",
            "created_at",
            "submitted_at",
            "completed_at",
        ]

    def get_total_amount(self, obj):
        return str(sum_money(item.amount for item in obj.items.all()))


class CreatePayoutBatchSerializer(serializers.Serializer):
    creator_ids = serializers.ListField(child=serializers.UUIDField(), required=False, allow_empty=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    submit = serializers.BooleanField(required=False, default=False)
