from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.creators.models import Creator
from apps.creators.tiers import effective_commission_rate
from apps.ledger.services import append_entry
from apps.payouts.models import PayoutItem
from core.exceptions import (
    DuplicateEventError,
    InvalidTransitionError,
    SettledCancellationConflict,
    ValidationError,
)
from core.money import ZERO, commission_for, quantize_money, to_decimal

from .models import Commission, ReconciliationCase

logger = logging.getLogger(__name__)

VARIANTS = {choice for choice, _ in Commission.VARIANT_CHOICES}


@dataclass
class OrderCompletedEvent:
    creator_id: Any
    order_id: str
    gross_amount: Decimal
    variant: str = "base"
    routine_id: Optional[str] = None
    currency: str = field(default_factory=lambda: settings.PAYOUT_CURRENCY)


def _validate_event(event: OrderCompletedEvent) -> Decimal:
    if not event.order_id:
        raise ValidationError("order_id is required")
    if event.variant not in VARIANTS:
        raise ValidationError(f"Unknown variant: {event.variant}")
    if (event.currency or "").upper() != settings.PAYOUT_CURRENCY:
        raise ValidationError(f"Unsupported currency: {event.currency}")
    try:
        gross = quantize_money(event.gross_amount)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if gross < ZERO:
        raise ValidationError("gross_amount cannot be negative")
    return gross


def _load_creator(creator_id: Any) -> Creator:
    try:
        creator = Creator.objects.get(id=creator_id)
    except (Creator.DoesNotExist, DjangoValidationError, ValueError) as exc:
        raise ValidationError(f"Unknown creator: {creator_id}") from exc
    if not creator.is_active:
        raise ValidationError(f"Creator {creator_id} is deactivated")
    return creator


def _find_existing(creator: Creator, event: OrderCompletedEvent) -> Commission | None:
    return Commission.objects.filter(
        creator=creator,
        order_id=event.order_id,
        variant=event.variant,
    ).first()


def accrue_commission(event: OrderCompletedEvent, now: datetime | None = None) -> Commission:
    """
    Turn an order-completion event into a pending commission and its
    founding ``commission_earned`` ledger entry, atomically.

    Raises ``DuplicateEventError`` when the (creator, order, variant) triple
    was already accrued.
    """
    gross = _validate_event(event)
    creator = _load_creator(event.creator_id)
    now = now or timezone.now()

    existing = _find_existing(creator, event)
    if existing:
        raise DuplicateEventError(f"Order {event.order_id}/{event.variant} already accrued", existing)

    rate = effective_commission_rate(creator, now)
    amount = commission_for(gross, rate)

    try:
        with transaction.atomic():
            commission = Commission.objects.create(
                creator=creator,
                order_id=event.order_id,
                routine_id=event.routine_id,
                variant=event.variant,
                currency=settings.PAYOUT_CURRENCY,
                gross_amount=gross,
                commission_rate=rate,
                commission_amount=amount,
                status="pending",
                created_at=now,
                unlock_at=now + timedelta(days=creator.lock_days),
            )
            append_entry(
                creator,
                "commission_earned",
                amount,
                f"Commission on order {event.order_id} ({event.variant})",
                commission=commission,
                metadata={
                    "order_id": event.order_id,
                    "variant": event.variant,
                    "routine_id": event.routine_id,
                    "gross_amount": str(gross),
                    "commission_rate": str(rate),
                },
                created_at=now,
            )
    except IntegrityError as exc:
        # A concurrent delivery of the same event won the unique constraint.
        existing = _find_existing(creator, event)
        if existing is None:
            raise
        raise DuplicateEventError(f"Order {event.order_id}/{event.variant} already accrued", existing) from exc

    logger.info(
        "Accrued commission %s for creator %s: %s x %s%% = %s",
        commission.id,
        creator.id,
        gross,
        rate,
        amount,
    )
    return commission


def record_order_completed(event: OrderCompletedEvent, now: datetime | None = None) -> tuple[Commission, bool]:
    """Webhook entry point: returns ``(commission, created)``; redeliveries are absorbed."""
    try:
        return accrue_commission(event, now=now), True
    except DuplicateEventError as exc:
        logger.info("Ignoring redelivered order event %s/%s", event.order_id, event.variant)
        return exc.existing, False


CLAIM_LOCK_ATTEMPTS = 3


def _lock_commission(pk) -> Commission:
    """
    Lock a commission and the payout item claiming it.

    Item row first, then the commission: the order ``accept_payout_item`` and
    ``fail_payout_item`` lock in.
    """
    for _ in range(CLAIM_LOCK_ATTEMPTS):
        claim_id = Commission.objects.filter(pk=pk).values_list("payout_item_id", flat=True).get()
        if claim_id is not None:
            list(PayoutItem.objects.select_for_update().filter(pk=claim_id).values_list("pk", flat=True))
        commission = Commission.objects.select_for_update().select_related("payout_item", "creator").get(pk=pk)
        if commission.payout_item_id == claim_id:
            return commission
    raise InvalidTransitionError(f"Commission {pk} was re-claimed while being locked; retry")


def _release_pending_claim(commission: Commission) -> None:
    """Drop a claim held by a payout item that has not been sent yet."""
    item = commission.payout_item
    if item is None:
        return
    if item.status != "pending":
        raise InvalidTransitionError(
            f"Commission {commission.id} is in flight in payout item {item.id}",
            current_status=item.status,
        )
    from apps.payouts.orchestrator import detach_commission_from_item

    detach_commission_from_item(item, commission)


def cancel_commission(commission: Commission, reason: str = "", now: datetime | None = None) -> Commission:
    now = now or timezone.now()
    with transaction.atomic():
        commission = _lock_commission(commission.pk)

        if commission.status == "canceled":
            return commission
        if commission.status == "paid":
            raise SettledCancellationConflict(
                f"Commission {commission.id} on order {commission.order_id} was already paid out",
                commission,
            )

        _release_pending_claim(commission)

        commission.status = "canceled"
        commission.canceled_at = now
        commission.cancel_reason = reason or None
        commission.payout_item = None
        commission.save(update_fields=["status", "canceled_at", "cancel_reason", "payout_item"])

        append_entry(
            commission.creator,
            "commission_canceled",
            -commission.commission_amount,
            f"Commission canceled for order {commission.order_id} ({commission.variant})",
            commission=commission,
            metadata={"reason": reason, "order_id": commission.order_id},
            created_at=now,
        )

    logger.info("Canceled commission %s (%s)", commission.id, reason or "no reason")
    return commission


def cancel_order(order_id: str, reason: str = "", now: datetime | None = None) -> dict:
    """
    Cancel every commission accrued for ``order_id``.

    Paid commissions are not reversed; each one opens a reconciliation case
    for an operator instead.
    """
    canceled: list[Commission] = []
    conflicts: list[ReconciliationCase] = []

    for commission in Commission.objects.filter(order_id=order_id).select_related("creator"):
        try:
            canceled.append(cancel_commission(commission, reason=reason, now=now))
        except SettledCancellationConflict as exc:
            logger.warning("Cancellation conflict: %s", exc)
            case, _ = ReconciliationCase.objects.get_or_create(
                kind="settled_cancellation",
                commission=commission,
                status="open",
                defaults={
                    "creator": commission.creator,
                    "payout_item": commission.payout_item,
                    "detail": f"Order {order_id} was canceled ({reason or 'no reason'}) "
                    f"after commission {commission.id} was paid.",
                },
            )
            conflicts.append(case)

    return {"order_id": order_id, "canceled": canceled, "conflicts": conflicts}


def adjust_commission(
    commission: Commission,
    new_amount: Any,
    reason: str,
    actor=None,
    now: datetime | None = None,
) -> Commission:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required to adjust a commission")
    try:
        new_amount = quantize_money(to_decimal(new_amount))
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if new_amount < ZERO:
        raise ValidationError("Commission amount cannot be negative")

    now = now or timezone.now()
    with transaction.atomic():
        commission = _lock_commission(commission.pk)
        if commission.status not in ("pending", "payable", "adjusted"):
            raise InvalidTransitionError(
                f"Cannot adjust a {commission.status} commission",
                current_status=commission.status,
                target_status="adjusted",
            )
        delta = new_amount - commission.commission_amount
        if delta == ZERO:
            return commission

        _release_pending_claim(commission)

        previous = commission.commission_amount
        commission.commission_amount = new_amount
        commission.status = "adjusted"
        commission.adjusted_at = now
        commission.payout_item = None
        commission.save(update_fields=["commission_amount", "status", "adjusted_at", "payout_item"])

        append_entry(
            commission.creator,
            "commission_adjusted",
            delta,
            f"Adjustment on order {commission.order_id}: {reason}",
            commission=commission,
            metadata={"reason": reason, "previous_amount": str(previous), "new_amount": str(new_amount)},
            created_by=actor,
            created_at=now,
        )

    logger.info("Adjusted commission %s by %s", commission.id, delta)
    return commission
