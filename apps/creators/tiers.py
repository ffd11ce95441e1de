"""
Tier resolution.

A creator's tier is derived from the commission they generated during the
current calendar month: the highest tier whose ``min_monthly_revenue`` has
been reached is current, and the next threshold above the revenue is what
the dashboard shows progress towards.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from django.db.models import Sum
from django.utils import timezone

from core.exceptions import ConfigurationError
from core.money import ZERO

from .models import CommissionTier, Creator


@dataclass(frozen=True)
class TierResolution:
    current: CommissionTier
    next: Optional[CommissionTier]
    monthly_revenue: Decimal
    remaining: Decimal
    progress: int

    def as_dict(self) -> dict:
        return {
            "current": _tier_payload(self.current),
            "next": _tier_payload(self.next) if self.next else None,
            "monthly_revenue": self.monthly_revenue,
            "remaining": self.remaining,
            "progress": self.progress,
        }


def _tier_payload(tier: CommissionTier) -> dict:
    return {
        "id": tier.id,
        "name": tier.name,
        "slug": tier.slug,
        "min_monthly_revenue": tier.min_monthly_revenue,
        "commission_rate": tier.commission_rate,
        "benefits": tier.benefits,
    }


def month_bounds(as_of: datetime) -> tuple[datetime, datetime]:
    local = timezone.localtime(as_of) if timezone.is_aware(as_of) else as_of
    start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def monthly_commission_revenue(creator: Creator, as_of: datetime | None = None) -> Decimal:
    from apps.commissions.models import Commission

    start, end = month_bounds(as_of or timezone.now())
    total = (
        Commission.objects.filter(creator=creator, created_at__gte=start, created_at__lt=end)
        .exclude(status="canceled")
        .aggregate(total=Sum("commission_amount"))["total"]
    )
    return total or ZERO


def select_tier(tiers: Sequence[CommissionTier], revenue: Decimal) -> TierResolution:
    if not tiers:
        raise ConfigurationError("No commission tiers configured")

    ordered = sorted(tiers, key=lambda t: t.min_monthly_revenue)
    current = ordered[0]
    for tier in ordered:
        if tier.min_monthly_revenue <= revenue:
            current = tier

    next_tier = next((t for t in ordered if t.min_monthly_revenue > revenue), None)

    if next_tier is None:
        return TierResolution(current=current, next=None, monthly_revenue=revenue, remaining=ZERO, progress=100)

    remaining = max(ZERO, next_tier.min_monthly_revenue - revenue)
    if next_tier.min_monthly_revenue > 0:
        progress = int(min(Decimal("100"), revenue * 100 / next_tier.min_monthly_revenue))
    else:
        progress = 100
    return TierResolution(
        current=current,
        next=next_tier,
        monthly_revenue=revenue,
        remaining=remaining,
        progress=progress,
    )


def resolve_tier(
    creator: Creator,
    as_of: datetime | None = None,
    tiers: Sequence[CommissionTier] | None = None,
) -> TierResolution:
    if tiers is None:
        tiers = list(CommissionTier.objects.all())
    if not tiers:
        raise ConfigurationError("No commission tiers configured")
    revenue = monthly_commission_revenue(creator, as_of)
    return select_tier(tiers, revenue)


def effective_commission_rate(creator: Creator, as_of: datetime | None = None) -> Decimal:
    if creator.commission_rate is not None:
        return creator.commission_rate
    try:
        resolution = resolve_tier(creator, as_of)
    except ConfigurationError as exc:
        raise ConfigurationError(
            f"Creator {creator.id} has no commission rate and no tier table is configured"
        ) from exc
    return resolution.current.commission_rate


def assign_current_tiers(as_of: datetime | None = None) -> int:
    tiers = list(CommissionTier.objects.all())
    if not tiers:
        raise ConfigurationError("No commission tiers configured")

    changed = 0
    for creator in Creator.objects.filter(is_active=True).select_related("current_tier"):
        resolution = resolve_tier(creator, as_of, tiers)
        if creator.current_tier_id != resolution.current.id:
            creator.current_tier = resolution.current
            creator.save(update_fields=["current_tier", "updated_at"])
            changed += 1
    return changed
