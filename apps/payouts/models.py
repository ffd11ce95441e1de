import uuid

from django.db import models


class PayoutBatch(models.Model):
    STATUS_CHOICES = [
        ("draft", "Draft"),
        ("processing", "Processing"),
        ("completed", "Completed"),
        ("partially_failed", "Partially failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="draft")
    currency = models.CharField(max_length=3, default="EUR")
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(
        "authentication.User",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="payout_batches",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    submitted_at = models.DateTimeField(blank=True, null=True)
    completed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Batch {self.id} [{self.status}]"


class PayoutItem(models.Model):
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("processing", "Processing"),
        ("completed", "Completed"),
        ("failed", "Failed"),
    ]

    FAILURE_KIND_CHOICES = [
        ("transient", "Transient provider error"),
        ("permanent", "Permanent provider error"),
        ("provider", "Reported failed by provider"),
        ("canceled", "Canceled before sending"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    batch = models.ForeignKey(PayoutBatch, on_delete=models.PROTECT, related_name="items")
    creator = models.ForeignKey(
        "creators.Creator",
        on_delete=models.PROTECT,
        related_name="payout_items",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="EUR")
    provider_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    destination = models.CharField(max_length=100, blank=True, null=True)
    provider_reference = models.CharField(max_length=100, blank=True, null=True, unique=True)
    idempotency_key = models.CharField(max_length=100, unique=True)
    attempts = models.PositiveIntegerField(default=0)
    failure_reason = models.TextField(blank=True, null=True)
    failure_kind = models.CharField(max_length=20, choices=FAILURE_KIND_CHOICES, blank=True, null=True)
    retry_of = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="retries",
    )
    commissions = models.ManyToManyField(
        "commissions.Commission",
        through="PayoutItemCommission",
        related_name="payout_items",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    sent_at = models.DateTimeField(blank=True, null=True)
    completed_at = models.DateTimeField(blank=True, null=True)
    failed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["creator", "status"], name="payoutitem_creator_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.creator_id} {self.amount} [{self.status}]"

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")


class PayoutItemCommission(models.Model):
    payout_item = models.ForeignKey(PayoutItem, on_delete=models.CASCADE, related_name="settlements")
    commission = models.ForeignKey("commissions.Commission", on_delete=models.PROTECT, related_name="settlements")
    amount = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        unique_together = ("payout_item", "commission")


class PayoutAuditLog(models.Model):
    action = models.CharField(max_length=50)
    entity_type = models.CharField(max_length=30)
    entity_id = models.CharField(max_length=64)
    actor = models.ForeignKey(
        "authentication.User",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="payout_audit_logs",
    )
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.action} {self.entity_type}:{self.entity_id}"
