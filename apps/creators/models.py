import uuid

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


def default_lock_days() -> int:
    return settings.DEFAULT_LOCK_DAYS


class CommissionTier(models.Model):
    name = models.CharField(max_length=50)
    slug = models.SlugField(max_length=50, unique=True)
    min_monthly_revenue = models.DecimalField(max_digits=12, decimal_places=2, unique=True)
    commission_rate = models.DecimalField(max_digits=5, decimal_places=2)
    benefits = models.JSONField(default=list, blank=True)
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["min_monthly_revenue"]

    def __str__(self) -> str:
        return self.name


class Creator(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        "authentication.User",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="creator_profile",
    )
    email = models.EmailField(unique=True)
    display_name = models.CharField(max_length=255)
    discount_code = models.CharField(max_length=50, unique=True)
    # Explicit override; when null the resolved tier rate applies.
    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    lock_days = models.PositiveIntegerField(
        default=default_lock_days,
        validators=[MaxValueValidator(365)],
    )
    current_tier = models.ForeignKey(
        CommissionTier,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="creators",
    )

    iban = models.CharField(max_length=34, blank=True, null=True)
    account_holder_name = models.CharField(max_length=255, blank=True, null=True)
    provider_recipient_id = models.CharField(max_length=100, blank=True, null=True)
    bank_verified = models.BooleanField(default=False)
    bank_verified_at = models.DateTimeField(blank=True, null=True)

    is_active = models.BooleanField(default=True)
    deactivated_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.display_name} ({self.discount_code})"

    @property
    def has_payment_destination(self) -> bool:
        return bool(self.provider_recipient_id or self.iban)

    @property
    def payment_destination(self) -> str | None:
        return self.provider_recipient_id or self.iban

    def deactivate(self) -> None:
        self.is_active = False
        self.deactivated_at = timezone.now()
        self.save(update_fields=["is_active", "deactivated_at", "updated_at"])
