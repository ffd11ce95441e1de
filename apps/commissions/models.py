import uuid

from django.db import models


class Commission(models.Model):
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("payable", "Payable"),
        ("paid", "Paid"),
        ("canceled", "Canceled"),
        ("adjusted", "Adjusted"),
    ]

    VARIANT_CHOICES = [
        ("base", "Base routine"),
        ("upsell_1", "Upsell 1"),
        ("upsell_2", "Upsell 2"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    creator = models.ForeignKey(
        "creators.Creator",
        on_delete=models.PROTECT,
        related_name="commissions",
    )
    order_id = models.CharField(max_length=100, db_index=True)
    routine_id = models.CharField(max_length=100, blank=True, null=True)
    variant = models.CharField(max_length=20, choices=VARIANT_CHOICES, default="base")
    currency = models.CharField(max_length=3, default="EUR")
    gross_amount = models.DecimalField(max_digits=12, decimal_places=2)
    commission_rate = models.DecimalField(max_digits=5, decimal_places=2)
    commission_amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    unlock_at = models.DateTimeField(db_index=True)
    payable_at = models.DateTimeField(blank=True, null=True)
    # Active claim: the non-failed payout item that will settle this commission.
    payout_item = models.ForeignKey(
        "payouts.PayoutItem",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="claimed_commissions",
    )
    paid_at = models.DateTimeField(blank=True, null=True)
    cancel_reason = models.TextField(blank=True, null=True)
    canceled_at = models.DateTimeField(blank=True, null=True)
    adjusted_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField()

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["creator", "order_id", "variant"],
                name="unique_commission_per_order_variant",
            ),
        ]
        indexes = [
            models.Index(fields=["creator", "status"], name="commission_creator_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.order_id}/{self.variant} {self.commission_amount} [{self.status}]"


class ReconciliationCase(models.Model):
    KIND_CHOICES = [
        ("settled_cancellation", "Cancellation of a paid commission"),
        ("transfer_failed_permanent", "Transfer rejected by provider"),
        ("ambiguous_transfer", "Transfer outcome unknown"),
    ]

    STATUS_CHOICES = [
        ("open", "Open"),
        ("resolved", "Resolved"),
    ]

    kind = models.CharField(max_length=40, choices=KIND_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="open")
    creator = models.ForeignKey(
        "creators.Creator",
        on_delete=models.PROTECT,
        related_name="reconciliation_cases",
    )
    commission = models.ForeignKey(
        Commission,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="reconciliation_cases",
    )
    payout_item = models.ForeignKey(
        "payouts.PayoutItem",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="reconciliation_cases",
    )
    detail = models.TextField()
    resolution_note = models.TextField(blank=True, null=True)
    resolved_by = models.ForeignKey(
        "authentication.User",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="resolved_cases",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    resolved_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.kind} [{self.status}]"
