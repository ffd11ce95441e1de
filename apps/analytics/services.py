"""
Creator-facing read models.

Everything here is recomputed from ledger entries, commissions and payout
items.  The dashboard payload is cached, but the cache is only a copy: it is
dropped whenever a ledger entry or payout item changes for the creator.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable

from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError
from django.db.models import Count, Max, Q, Sum
from django.utils import timezone

from apps.commissions.eligibility import commission_buckets, next_unlock_date
from apps.commissions.models import Commission
from apps.creators.models import Creator
from apps.creators.tiers import month_bounds, resolve_tier
from apps.ledger.models import LedgerEntry
from apps.ledger.services import balance_summary
from apps.payouts.models import PayoutItem
from core.exceptions import ConfigurationError, ValidationError
from core.money import HUNDRED, ZERO, quantize_money

logger = logging.getLogger(__name__)

UPSELL_VARIANTS = ("upsell_1", "upsell_2")

TRANSACTION_LABELS = {
    "commission_earned": "Commission earned",
    "commission_canceled": "Commission canceled",
    "commission_adjusted": "Commission adjusted",
    "payout_initiated": "Payout initiated",
    "payout_sent": "Payout sent",
    "payout_completed": "Payout received",
    "payout_failed": "Payout returned",
    "payout_fee": "Transfer fee",
    "balance_adjustment": "Balance adjustment",
    "refund_processed": "Refund",
}

TRANSACTION_EXPLANATIONS = {
    "commission_earned": "You earned {amount} on order {order}. It becomes payable once the lock period ends.",
    "commission_canceled": "Order {order} was canceled or refunded, so its commission of {amount} was removed.",
    "commission_adjusted": "The commission on order {order} was corrected by {amount}.",
    "payout_initiated": "A payout of {amount} was prepared.",
    "payout_sent": "{amount} left your balance and was sent to your bank account.",
    "payout_completed": "Your bank confirmed the payout.",
    "payout_failed": "A payout could not be delivered; {amount} is back in your balance.",
    "payout_fee": "The transfer provider charged a fee of {amount}.",
    "balance_adjustment": "Our team adjusted your balance by {amount}.",
    "refund_processed": "A refund changed your balance by {amount}.",
}

PAYOUT_STATUS_LABELS = {
    "pending": "Preparing",
    "processing": "On its way",
    "completed": "Paid",
    "failed": "Not delivered",
}

PAYOUT_STATUS_MESSAGES = {
    "pending": "Your payout is being prepared.",
    "processing": "Your payout has been sent and is on its way to your bank account.",
    "completed": "Your payout has arrived.",
    "failed": "This payout didn't go through. The amount is back in your balance and will be included in the next payout.",
    "failed:permanent": "We couldn't send this payout to your bank account. Please check your bank details with our team.",
    "failed:canceled": "This payout was canceled before it was sent.",
}


def _safe(label: str, fn: Callable[[], Any], default: Any, errors: tuple = (DatabaseError,)) -> Any:
    try:
        return fn()
    except errors:
        logger.exception("Dashboard section %s failed, using default", label)
        return default


def _get_creator(creator_id) -> Creator:
    if isinstance(creator_id, Creator):
        return creator_id
    try:
        return Creator.objects.select_related("current_tier").get(id=creator_id)
    except (Creator.DoesNotExist, DjangoValidationError, ValueError) as exc:
        raise ValidationError(f"Unknown creator: {creator_id}") from exc


def dashboard_cache_key(creator_id) -> str:
    return f"creator-dashboard:{creator_id}"


def invalidate_dashboard(creator_id) -> None:
    cache.delete(dashboard_cache_key(creator_id))


def _format_amount(amount: Decimal) -> str:
    return f"{abs(amount):.2f} {settings.PAYOUT_CURRENCY}"


def _entry_payload(entry: LedgerEntry) -> dict:
    return {
        "id": entry.id,
        "transaction_type": entry.transaction_type,
        "label": TRANSACTION_LABELS.get(entry.transaction_type, entry.transaction_type),
        "amount": entry.amount,
        "description": entry.description,
        "commission_id": str(entry.commission_id) if entry.commission_id else None,
        "payout_item_id": str(entry.payout_item_id) if entry.payout_item_id else None,
        "created_at": entry.created_at,
    }


def _empty_bucket() -> dict:
    return {"count": 0, "amount": ZERO}


def get_creator_balance(creator) -> dict:
    return balance_summary(_get_creator(creator))


def get_creator_dashboard(creator_id, now: datetime | None = None) -> dict:
    """Balance, commission buckets, tier progress and recent activity in one payload."""
    creator = _get_creator(creator_id)
    use_cache = now is None
    if use_cache:
        cached = cache.get(dashboard_cache_key(creator.id))
        if cached is not None:
            return cached
    now = now or timezone.now()

    payload = {
        "creator": {
            "id": str(creator.id),
            "display_name": creator.display_name,
            "discount_code": creator.discount_code,
            "bank_verified": creator.bank_verified,
        },
        "balance": _safe(
            "balance",
            lambda: balance_summary(creator),
            {"current_balance": ZERO, "total_earned": ZERO, "total_paid": ZERO, "total_fees": ZERO},
        ),
        "commissions": _safe(
            "commissions",
            lambda: commission_buckets(creator, now),
            {name: _empty_bucket() for name in ("pending", "locked", "payable", "paid")},
        ),
        "next_unlock_date": _safe("next_unlock", lambda: next_unlock_date(creator), None),
        "tier": _safe("tier", lambda: resolve_tier(creator, now).as_dict(), None, errors=(DatabaseError, ConfigurationError)),
        "recent_activity": _safe("activity", lambda: get_creator_timeline(creator, limit=5)["events"], []),
        "unread_notifications": _safe(
            "notifications",
            lambda: creator.notifications.filter(is_read=False).count(),
            0,
        ),
        "generated_at": now,
    }

    if use_cache:
        cache.set(dashboard_cache_key(creator.id), payload, settings.DASHBOARD_CACHE_SECONDS)
    return payload


def get_payout_forecast(creator_id, now: datetime | None = None) -> dict:
    creator = _get_creator(creator_id)
    now = now or timezone.now()
    buckets = commission_buckets(creator, now)
    minimum = settings.PAYOUT_MINIMUM_AMOUNT

    latest_unlock = (
        Commission.objects.filter(creator=creator, status__in=("pending", "adjusted"))
        .aggregate(latest=Max("unlock_at"))["latest"]
    )
    if latest_unlock and latest_unlock > now:
        days_to_full_payout = math.ceil((latest_unlock - now).total_seconds() / 86400)
    else:
        days_to_full_payout = 0

    has_failed_payouts = (
        PayoutItem.objects.filter(creator=creator, status="failed", retries__isnull=True)
        .exclude(failure_kind="canceled")
        .exists()
    )
    payable_now = buckets["payable"]["amount"]
    bank_ready = creator.bank_verified and creator.has_payment_destination

    return {
        "payable_now": payable_now,
        "locked_amount": buckets["locked"]["amount"],
        "pending_amount": buckets["pending"]["amount"],
        "next_unlock_date": next_unlock_date(creator),
        "minimum_payout": minimum,
        "can_receive_payout": bool(creator.is_active and bank_ready and payable_now > minimum),
        "risk_indicators": {
            "has_unverified_bank": not bank_ready,
            "has_locked_commissions": buckets["locked"]["count"] > 0,
            "days_to_full_payout": days_to_full_payout,
            "has_failed_payouts": has_failed_payouts,
        },
    }


def get_creator_ledger(creator_id, limit: int = 50, offset: int = 0, transaction_type: str | None = None) -> dict:
    creator = _get_creator(creator_id)
    qs = LedgerEntry.objects.filter(creator=creator)
    if transaction_type:
        qs = qs.filter(transaction_type=transaction_type)
    return {
        "entries": [_entry_payload(entry) for entry in qs[offset : offset + limit]],
        "total_count": qs.count(),
    }


def get_creator_timeline(creator_id, limit: int = 50, offset: int = 0) -> dict:
    creator = _get_creator(creator_id)
    qs = LedgerEntry.objects.filter(creator=creator).select_related("commission")
    events = []
    for entry in qs[offset : offset + limit]:
        event = _entry_payload(entry)
        order = entry.commission.order_id if entry.commission_id else entry.metadata.get("order_id", "")
        template = TRANSACTION_EXPLANATIONS.get(entry.transaction_type, "{amount}")
        event["explanation"] = template.format(amount=_format_amount(entry.amount), order=order)
        event["direction"] = "credit" if entry.amount > ZERO else "debit" if entry.amount < ZERO else "info"
        events.append(event)
    return {"events": events, "total_count": qs.count()}


def _routine_row(row: dict) -> dict:
    revenue = row["revenue"] or ZERO
    commission = row["commission"] or ZERO
    orders = row["orders"] or 0
    return {
        "orders": orders,
        "revenue": revenue,
        "commission": commission,
        "avg_rate": quantize_money(commission * HUNDRED / revenue) if revenue else ZERO,
        "upsell_rate": quantize_money(Decimal(row["upsell_orders"] or 0) * HUNDRED / orders) if orders else ZERO,
    }


def get_routine_breakdown(creator_id) -> dict:
    creator = _get_creator(creator_id)
    qs = Commission.objects.filter(creator=creator).exclude(status="canceled")
    aggregates = {
        "orders": Count("order_id", distinct=True),
        "revenue": Sum("gross_amount"),
        "commission": Sum("commission_amount"),
        "upsell_orders": Count("order_id", distinct=True, filter=Q(variant__in=UPSELL_VARIANTS)),
    }

    variants: dict = {}
    for row in qs.values("routine_id", "variant").annotate(**aggregates).order_by("routine_id", "variant"):
        variants.setdefault(row["routine_id"], {})[row["variant"]] = _routine_row(row)

    breakdown = []
    for row in qs.values("routine_id").annotate(**aggregates).order_by("-commission"):
        entry = _routine_row(row)
        entry["routine_id"] = row["routine_id"]
        entry["variants"] = variants.get(row["routine_id"], {})
        breakdown.append(entry)

    return {"breakdown": breakdown, "totals": _routine_row(qs.aggregate(**aggregates))}


def payout_message(item: PayoutItem) -> str:
    if item.status == "failed" and item.failure_kind in ("permanent", "canceled"):
        return PAYOUT_STATUS_MESSAGES[f"failed:{item.failure_kind}"]
    return PAYOUT_STATUS_MESSAGES[item.status]


def _payout_payload(item: PayoutItem) -> dict:
    # Raw provider errors stay internal; creators get the plain-language message.
    return {
        "id": str(item.id),
        "amount": item.amount,
        "currency": item.currency,
        "fee": item.provider_fee,
        "status": item.status,
        "status_label": PAYOUT_STATUS_LABELS[item.status],
        "message": payout_message(item),
        "commission_count": item.settlements.count(),
        "created_at": item.created_at,
        "sent_at": item.sent_at,
        "completed_at": item.completed_at,
    }


def get_payout_status(creator_id, history_limit: int = 20) -> dict:
    creator = _get_creator(creator_id)
    items = PayoutItem.objects.filter(creator=creator).order_by("-created_at")
    current = items.filter(status__in=("pending", "processing")).first()
    last_completed = items.filter(status="completed").order_by("-completed_at").first()
    return {
        "current": _payout_payload(current) if current else None,
        "last_completed": _payout_payload(last_completed) if last_completed else None,
        "history": [_payout_payload(item) for item in items[:history_limit]],
    }


def get_monthly_statement(creator_id, year: int, month: int) -> dict:
    creator = _get_creator(creator_id)
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    try:
        start, end = month_bounds(timezone.make_aware(datetime(year, month, 1)))
    except (OverflowError, ValueError) as exc:
        raise ValidationError(f"Invalid statement period: {year}-{month}") from exc

    entries = LedgerEntry.objects.filter(creator=creator)
    opening = entries.filter(created_at__lt=start).aggregate(total=Sum("amount"))["total"] or ZERO
    period = entries.filter(created_at__gte=start, created_at__lt=end)

    totals_by_type = {
        row["transaction_type"]: row["total"]
        for row in period.values("transaction_type").annotate(total=Sum("amount")).order_by("transaction_type")
    }
    movement = sum(totals_by_type.values(), ZERO)

    return {
        "creator_id": str(creator.id),
        "period": {"year": year, "month": month, "start": start, "end": end},
        "opening_balance": opening,
        "closing_balance": opening + movement,
        "totals_by_type": totals_by_type,
        "entries": [_entry_payload(entry) for entry in period.order_by("created_at", "id")],
    }
