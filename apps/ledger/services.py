from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

from django.db import transaction
from django.db.models import Q, Sum
from django.utils import timezone

from core.exceptions import ValidationError
from core.money import ZERO, quantize_money

from .models import LedgerEntry
from .signals import ledger_entry_recorded

logger = logging.getLogger(__name__)

EARNING_TYPES = ("commission_earned", "commission_canceled", "commission_adjusted")
PAYOUT_TYPES = ("payout_sent", "payout_failed")


def append_entry(
    creator,
    transaction_type: str,
    amount: Any,
    description: str,
    *,
    commission=None,
    payout_item=None,
    metadata: Optional[dict] = None,
    created_by=None,
    created_at=None,
) -> LedgerEntry:
    """
    Append one entry to a creator's ledger.

    Must be called inside the caller's ``transaction.atomic()`` block when it
    is paired with other writes; the change signal only fires on commit.
    """
    valid_types = {choice for choice, _ in LedgerEntry.TRANSACTION_TYPE_CHOICES}
    if transaction_type not in valid_types:
        raise ValidationError(f"Unknown ledger transaction type: {transaction_type}")

    entry = LedgerEntry.objects.create(
        creator=creator,
        transaction_type=transaction_type,
        amount=quantize_money(amount),
        commission=commission,
        payout_item=payout_item,
        description=description[:255],
        metadata=metadata or {},
        created_by=created_by,
        created_at=created_at or timezone.now(),
    )
    logger.info(
        "ledger %s creator=%s amount=%s entry=%s",
        transaction_type,
        creator.pk,
        entry.amount,
        entry.pk,
    )
    transaction.on_commit(lambda: ledger_entry_recorded.send(sender=LedgerEntry, entry=entry))
    return entry


def record_balance_adjustment(creator, amount: Any, reason: str, actor=None) -> LedgerEntry:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required for a balance adjustment")
    amount = quantize_money(amount)
    if amount == ZERO:
        raise ValidationError("Adjustment amount must be non-zero")

    with transaction.atomic():
        return append_entry(
            creator,
            "balance_adjustment",
            amount,
            f"Manual adjustment: {reason}",
            metadata={"reason": reason},
            created_by=actor,
        )


def _sum(qs) -> Decimal:
    return qs.aggregate(total=Sum("amount"))["total"] or ZERO


def creator_balance(creator) -> Decimal:
    return _sum(LedgerEntry.objects.filter(creator=creator))


def balance_summary(creator) -> dict:
    entries = LedgerEntry.objects.filter(creator=creator)
    totals = entries.aggregate(
        current_balance=Sum("amount"),
        total_earned=Sum("amount", filter=Q(transaction_type__in=EARNING_TYPES)),
        paid=Sum("amount", filter=Q(transaction_type__in=PAYOUT_TYPES)),
        fees=Sum("amount", filter=Q(transaction_type="payout_fee")),
    )
    return {
        "current_balance": totals["current_balance"] or ZERO,
        "total_earned": totals["total_earned"] or ZERO,
        "total_paid": ZERO - (totals["paid"] or ZERO),
        "total_fees": ZERO - (totals["fees"] or ZERO),
    }


def commission_net(commission) -> Decimal:
    return _sum(LedgerEntry.objects.filter(commission=commission))
