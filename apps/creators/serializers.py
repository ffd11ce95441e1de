from rest_framework import serializers

from .models import CommissionTier, Creator


class CommissionTierSerializer(serializers.ModelSerializer):
    class Meta:
        model = CommissionTier
        fields = ["id", "name", "slug", "min_monthly_revenue", "commission_rate", "benefits", "sort_order"]


class CreatorSerializer(serializers.ModelSerializer):
    current_tier = CommissionTierSerializer(read_only=True)

    class Meta:
        model = Creator
        fields = [
            "id",
            "user",
            "email",
            "display_name",
            "discount_code",
            "commission_rate",
            "lock_days",
            "current_tier",
            "iban",
            "account_holder_name",
            "provider_recipient_id",
            "bank_verified",
            "bank_verified_at",
            "is_active",
            "deactivated_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "current_tier",
            "bank_verified",
            "bank_verified_at",
            "is_active",
            "deactivated_at",
            "created_at",
            "updated_at",
        ]

    def update(self, instance, validated_data):
        # Changing the destination invalidates a previous verification.
        destination_fields = ("iban", "provider_recipient_id")
        if any(f in validated_data and validated_data[f] != getattr(instance, f) for f in destination_fields):
            instance.bank_verified = False
            instance.bank_verified_at = None
        return super().update(instance, validated_data)


class VerifyBankSerializer(serializers.Serializer):
    iban = serializers.CharField(max_length=34, required=False, allow_blank=True)
    account_holder_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    provider_recipient_id = serializers.CharField(max_length=100, required=False, allow_blank=True)


class UnverifyBankSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class BalanceAdjustmentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    reason = serializers.CharField()
