from django.db import models


class PaymentLog(models.Model):
    """Raw provider callback, kept for audit before it is applied."""

    provider = models.CharField(max_length=50)
    event_type = models.CharField(max_length=50, blank=True, default="")
    reference = models.CharField(max_length=100, db_index=True)
    raw_payload = models.JSONField()
    processed = models.BooleanField(default=False)
    error = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.provider}:{self.reference}"
