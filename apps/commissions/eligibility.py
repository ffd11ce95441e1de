from __future__ import annotations

import logging
from datetime import datetime

from django.db import transaction
from django.db.models import Count, Min, Sum
from django.utils import timezone

from apps.ledger.signals import announce_creator_change
from core.money import ZERO

from .models import Commission

logger = logging.getLogger(__name__)

# Statuses still inside (or re-entering) the hold window.
HELD_STATUSES = ("pending", "adjusted")


def release_eligible_commissions(now: datetime | None = None) -> int:
    """
    Move held commissions whose lock window has elapsed to ``payable``.

    Idempotent; the balance does not change so no ledger entry is written.
    """
    now = now or timezone.now()
    with transaction.atomic():
        due = Commission.objects.filter(status__in=HELD_STATUSES, unlock_at__lte=now)
        creator_ids = set(due.values_list("creator_id", flat=True))
        count = due.update(status="payable", payable_at=now)
        if count:
            announce_creator_change(creator_ids)
    if count:
        logger.info("Released %s commissions to payable", count)
    return count


def payable_unclaimed(creator):
    return Commission.objects.filter(creator=creator, status="payable", payout_item__isnull=True)


def payable_unclaimed_total(creator):
    return payable_unclaimed(creator).aggregate(total=Sum("commission_amount"))["total"] or ZERO


def _bucket(qs) -> dict:
    result = qs.aggregate(count=Count("id"), amount=Sum("commission_amount"))
    return {"count": result["count"] or 0, "amount": result["amount"] or ZERO}


def commission_buckets(creator, now: datetime | None = None) -> dict:
    now = now or timezone.now()
    qs = Commission.objects.filter(creator=creator)
    held = qs.filter(status__in=HELD_STATUSES)
    return {
        "pending": _bucket(held),
        "locked": _bucket(held.filter(unlock_at__gt=now)),
        "payable": _bucket(qs.filter(status="payable", payout_item__isnull=True)),
        "paid": _bucket(qs.filter(status="paid")),
    }


def next_unlock_date(creator):
    return Commission.objects.filter(creator=creator, status__in=HELD_STATUSES).aggregate(
        next_unlock=Min("unlock_at")
    )["next_unlock"]
