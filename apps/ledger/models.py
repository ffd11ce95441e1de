from django.db import models
from django.utils import timezone


class LedgerEntryQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise TypeError("Ledger entries are append-only and cannot be updated")

    def delete(self):
        raise TypeError("Ledger entries are append-only and cannot be deleted")


class LedgerEntry(models.Model):
    TRANSACTION_TYPE_CHOICES = [
        ("commission_earned", "Commission earned"),
        ("commission_canceled", "Commission canceled"),
        ("commission_adjusted", "Commission adjusted"),
        ("payout_initiated", "Payout initiated"),
        ("payout_sent", "Payout sent"),
        ("payout_completed", "Payout completed"),
        ("payout_failed", "Payout failed"),
        ("payout_fee", "Payout fee"),
        ("balance_adjustment", "Balance adjustment"),
        ("refund_processed", "Refund processed"),
    ]

    creator = models.ForeignKey(
        "creators.Creator",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    transaction_type = models.CharField(max_length=30, choices=TRANSACTION_TYPE_CHOICES)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    commission = models.ForeignKey(
        "commissions.Commission",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    payout_item = models.ForeignKey(
        "payouts.PayoutItem",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    description = models.CharField(max_length=255)
    metadata = models.JSONField(default=dict, blank=True)
    created_by = models.ForeignKey(
        "authentication.User",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="ledger_entries",
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    objects = LedgerEntryQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["creator", "transaction_type"], name="ledger_creator_type_idx"),
            models.Index(fields=["creator", "created_at"], name="ledger_creator_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.transaction_type} {self.amount} ({self.creator_id})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise TypeError("Ledger entries are append-only and cannot be updated")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TypeError("Ledger entries are append-only and cannot be deleted")
