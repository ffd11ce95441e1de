from django.db import models


class Notification(models.Model):
    KIND_CHOICES = [
        ("commission_earned", "Commission earned"),
        ("payout_sent", "Payout sent"),
        ("payout_completed", "Payout completed"),
        ("payout_failed", "Payout failed"),
    ]

    creator = models.ForeignKey(
        "creators.Creator",
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    kind = models.CharField(max_length=30, choices=KIND_CHOICES)
    title = models.CharField(max_length=255)
    body = models.TextField()
    is_read = models.BooleanField(default=False)
    emailed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.title
