from rest_framework import serializers

from .models import LedgerEntry


class LedgerEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = LedgerEntry
        fields = [
            "id",
            "creator",
            "transaction_type",
            "amount",
            "commission",
            "payout_item",
            "description",
            "metadata",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields
