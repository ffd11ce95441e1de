"""
Payout batch orchestration.

Item lifecycle::

    pending --(provider accepted)--> processing --(settled)--> completed
       |                                 |                        |
       +--(rejected / gave up)--> failed <--(provider failure)----+

No ledger entry is written while an item is ``pending``.  Acceptance writes
``payout_sent`` and marks the claimed commissions ``paid``; a failure after
acceptance writes ``payout_failed`` for the same amount and returns the
commissions to ``payable``.  Failed items are terminal: a retry is a new item
(``rebatch_failed_item``) that claims the same commissions again.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Q, Sum
from django.utils import timezone

from apps.commissions.models import Commission, ReconciliationCase
from apps.creators.models import Creator
from apps.ledger.services import append_entry
from apps.ledger.signals import announce_creator_change, payout_item_status_changed
from core.exceptions import (
    InvalidTransitionError,
    LedgerError,
    ProviderPermanentError,
    ProviderTimeoutError,
    ProviderTransientError,
    ValidationError,
)
from core.money import ZERO, quantize_money, sum_money

from .models import PayoutAuditLog, PayoutBatch, PayoutItem, PayoutItemCommission
from .providers import TransferProvider, TransferRequest, TransferStatusUpdate, get_transfer_provider

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 30.0


def audit(action: str, entity, actor=None, **metadata) -> PayoutAuditLog:
    return PayoutAuditLog.objects.create(
        action=action,
        entity_type=entity._meta.model_name,
        entity_id=str(entity.pk),
        actor=actor,
        metadata={key: str(value) if isinstance(value, (Decimal, uuid.UUID)) else value for key, value in metadata.items()},
    )


def _emit_status(item: PayoutItem, previous_status: str) -> None:
    status = item.status
    transaction.on_commit(
        lambda: payout_item_status_changed.send(
            sender=PayoutItem,
            item=item,
            previous_status=previous_status,
            status=status,
        )
    )


def _minimum() -> Decimal:
    return settings.PAYOUT_MINIMUM_AMOUNT


# ---------------------------------------------------------------------------
# Batch creation
# ---------------------------------------------------------------------------


def eligible_creators(creator_ids: Optional[Iterable] = None):
    payable = Q(commissions__status="payable", commissions__payout_item__isnull=True)
    qs = (
        Creator.objects.filter(is_active=True, bank_verified=True)
        .annotate(payable_total=Sum("commissions__commission_amount", filter=payable))
        .filter(payable_total__gt=_minimum())
        .order_by("created_at")
    )
    if creator_ids is not None:
        qs = qs.filter(id__in=list(creator_ids))
    return qs


def _claim_commissions(
    batch: PayoutBatch,
    creator: Creator,
    commissions: list[Commission],
    retry_of: PayoutItem | None = None,
) -> PayoutItem:
    """Create a pending item for ``commissions``; caller holds the row locks."""
    total = quantize_money(sum_money(c.commission_amount for c in commissions))
    item_id = uuid.uuid4()
    item = PayoutItem.objects.create(
        id=item_id,
        batch=batch,
        creator=creator,
        amount=total,
        currency=batch.currency,
        destination=creator.payment_destination,
        idempotency_key=str(item_id),
        retry_of=retry_of,
    )
    PayoutItemCommission.objects.bulk_create(
        [PayoutItemCommission(payout_item=item, commission=c, amount=c.commission_amount) for c in commissions]
    )
    claimed = Commission.objects.filter(
        id__in=[c.id for c in commissions],
        status="payable",
        payout_item__isnull=True,
    ).update(payout_item=item)
    if claimed != len(commissions):
        raise InvalidTransitionError(
            f"Only {claimed} of {len(commissions)} commissions could be claimed for creator {creator.id}"
        )
    announce_creator_change([creator.id])
    return item


def _create_item_for_creator(batch: PayoutBatch, creator_id) -> PayoutItem | None:
    with transaction.atomic():
        creator = Creator.objects.select_for_update().get(pk=creator_id)
        if not (creator.is_active and creator.bank_verified and creator.has_payment_destination):
            return None

        commissions = list(
            Commission.objects.select_for_update()
            .filter(creator=creator, status="payable", payout_item__isnull=True)
            .order_by("created_at")
        )
        total = sum_money(c.commission_amount for c in commissions)
        if not commissions or total <= _minimum():
            return None

        return _claim_commissions(batch, creator, commissions)


def create_payout_batch(creator_ids: Optional[Iterable] = None, created_by=None, notes: str = "") -> PayoutBatch:
    """
    Snapshot every eligible creator's payable commissions into a draft batch.

    Each creator is claimed in its own transaction so one failure does not
    abort the whole run.
    """
    batch = PayoutBatch.objects.create(
        created_by=created_by,
        notes=notes,
        currency=settings.PAYOUT_CURRENCY,
    )

    targets = list(eligible_creators(creator_ids).values_list("id", flat=True))
    created = 0
    for creator_id in targets:
        try:
            item = _create_item_for_creator(batch, creator_id)
        except (LedgerError, DatabaseError):
            logger.exception("Could not add creator %s to batch %s", creator_id, batch.id)
            continue
        if item is not None:
            created += 1

    audit("batch_created", batch, actor=created_by, items=created, requested=len(targets))
    logger.info("Created payout batch %s with %s items", batch.id, created)
    return batch


def batch_totals(batch: PayoutBatch) -> dict:
    totals = batch.items.aggregate(total=Sum("amount"))
    return {"total_amount": totals["total"] or ZERO, "item_count": batch.items.count()}


# ---------------------------------------------------------------------------
# Submission to the provider
# ---------------------------------------------------------------------------


def submit_payout_batch(batch: PayoutBatch, provider: TransferProvider | None = None, actor=None) -> PayoutBatch:
    provider = provider or get_transfer_provider()

    with transaction.atomic():
        batch = PayoutBatch.objects.select_for_update().get(pk=batch.pk)
        if batch.status not in ("draft", "processing"):
            raise InvalidTransitionError(
                f"Cannot submit batch in status {batch.status}",
                current_status=batch.status,
                target_status="processing",
            )
        if batch.status == "draft":
            batch.status = "processing"
            batch.submitted_at = timezone.now()
            batch.save(update_fields=["status", "submitted_at"])
            audit("batch_submitted", batch, actor=actor)

    for item in batch.items.filter(status="pending").order_by("created_at"):
        try:
            submit_payout_item(item, provider=provider)
        except LedgerError:
            logger.exception("Payout item %s could not be submitted", item.id)

    return refresh_batch_status(batch)


def _backoff_delay(attempt: int) -> float:
    return min(settings.PAYOUT_PROVIDER_BACKOFF_SECONDS * (2 ** (attempt - 1)), MAX_BACKOFF_SECONDS)


def _open_case(kind: str, item: PayoutItem, detail: str) -> ReconciliationCase:
    case, _ = ReconciliationCase.objects.get_or_create(
        kind=kind,
        payout_item=item,
        status="open",
        defaults={"creator": item.creator, "detail": detail},
    )
    return case


def submit_payout_item(item: PayoutItem, provider: TransferProvider | None = None) -> PayoutItem:
    """
    Ask the provider to send ``item``.

    Transient errors are retried with exponential backoff.  After a timeout
    the provider is asked whether the transfer exists before trying again, so
    an accepted-but-unacknowledged transfer is never sent twice.
    """
    provider = provider or get_transfer_provider()
    item = PayoutItem.objects.select_related("creator").get(pk=item.pk)
    if item.status != "pending":
        return item

    creator = item.creator
    if not creator.bank_verified or not creator.has_payment_destination:
        return fail_payout_item(item, "Payment destination is not verified", kind="canceled")

    request = TransferRequest(
        destination=item.destination or creator.payment_destination,
        amount=item.amount,
        currency=item.currency,
        idempotency_key=item.idempotency_key,
        reference=f"Yeoskin commissions {item.id.hex[:8]}",
    )

    max_attempts = max(1, settings.PAYOUT_PROVIDER_MAX_ATTEMPTS)
    last_error: Exception | None = None
    outcome_unknown = False

    for attempt in range(1, max_attempts + 1):
        item.attempts += 1
        item.save(update_fields=["attempts"])
        try:
            transfer_id = provider.initiate_transfer(request)
        except ProviderPermanentError as exc:
            logger.warning("Provider rejected payout item %s: %s", item.id, exc)
            failed = fail_payout_item(item, str(exc), kind="permanent")
            _block_destination(creator, failed, str(exc))
            return failed
        except ProviderTimeoutError as exc:
            last_error = exc
            try:
                transfer_id = provider.find_transfer(item.idempotency_key)
            except ProviderTransientError as lookup_exc:
                logger.warning("Lookup for payout item %s failed: %s", item.id, lookup_exc)
                outcome_unknown = True
                transfer_id = None
            else:
                outcome_unknown = False
            if transfer_id:
                return _accept_or_escalate(item, transfer_id)
        except ProviderTransientError as exc:
            last_error = exc
            outcome_unknown = False
        else:
            return _accept_or_escalate(item, transfer_id)

        logger.info("Transient error on payout item %s (attempt %s/%s): %s", item.id, attempt, max_attempts, last_error)
        if attempt < max_attempts:
            time.sleep(_backoff_delay(attempt))

    if outcome_unknown:
        # The provider may hold the transfer; leave the item pending for reconciliation.
        _open_case(
            "ambiguous_transfer",
            item,
            f"Transfer for payout item {item.id} timed out and its status could not be confirmed: {last_error}",
        )
        logger.error("Payout item %s left pending: outcome unknown", item.id)
        return item

    return fail_payout_item(item, f"Provider unavailable after {max_attempts} attempts: {last_error}", kind="transient")


def _accept_or_escalate(item: PayoutItem, transfer_id: str) -> PayoutItem:
    try:
        return accept_payout_item(item, transfer_id)
    except InvalidTransitionError as exc:
        _open_case(
            "ambiguous_transfer",
            item,
            f"Provider accepted transfer {transfer_id} but the item could not be marked sent: {exc}",
        )
        raise


def _block_destination(creator: Creator, item: PayoutItem, reason: str) -> None:
    Creator.objects.filter(pk=creator.pk).update(bank_verified=False, updated_at=timezone.now())
    announce_creator_change([creator.pk])
    audit("bank_unverified", creator, reason=reason, payout_item=item.id)
    _open_case(
        "transfer_failed_permanent",
        item,
        f"Provider rejected the transfer: {reason}. Re-verify the payment destination before re-batching.",
    )


# ---------------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------------


def accept_payout_item(item: PayoutItem, transfer_id: str, now: datetime | None = None) -> PayoutItem:
    now = now or timezone.now()
    with transaction.atomic():
        item = PayoutItem.objects.select_for_update().select_related("creator").get(pk=item.pk)
        if item.status != "pending":
            if item.provider_reference == transfer_id:
                return item
            raise InvalidTransitionError(
                f"Payout item {item.id} is {item.status}, cannot accept transfer {transfer_id}",
                current_status=item.status,
                target_status="processing",
            )

        settlements = list(item.settlements.all())
        commission_ids = [s.commission_id for s in settlements]
        commissions = list(Commission.objects.select_for_update().filter(id__in=commission_ids))

        stale = [c.id for c in commissions if c.status != "payable" or c.payout_item_id != item.id]
        if stale or len(commissions) != len(commission_ids):
            raise InvalidTransitionError(f"Payout item {item.id} claims commissions that are no longer payable")

        settled_total = quantize_money(sum_money(c.commission_amount for c in commissions))
        snapshot_total = quantize_money(sum_money(s.amount for s in settlements))
        if settled_total != item.amount or snapshot_total != item.amount:
            raise InvalidTransitionError(
                f"Payout item {item.id} amount {item.amount} does not match its commissions ({settled_total})"
            )

        item.status = "processing"
        item.provider_reference = transfer_id
        item.sent_at = now
        item.save(update_fields=["status", "provider_reference", "sent_at"])

        Commission.objects.filter(id__in=commission_ids).update(status="paid", paid_at=now)

        append_entry(
            item.creator,
            "payout_sent",
            -item.amount,
            f"Payout sent ({len(commission_ids)} commissions)",
            payout_item=item,
            metadata={"transfer_id": transfer_id, "commission_ids": [str(c) for c in commission_ids]},
            created_at=now,
        )
        audit("item_sent", item, transfer_id=transfer_id, amount=item.amount)
        _emit_status(item, "pending")

    logger.info("Payout item %s accepted as transfer %s", item.id, transfer_id)
    return item


def complete_payout_item(item: PayoutItem, fee=ZERO, now: datetime | None = None) -> PayoutItem:
    now = now or timezone.now()
    fee = quantize_money(fee or ZERO)
    if fee < ZERO:
        raise ValidationError("Provider fee cannot be negative")

    with transaction.atomic():
        item = PayoutItem.objects.select_for_update().select_related("creator").get(pk=item.pk)
        if item.status == "completed":
            if fee > ZERO and item.provider_fee == ZERO:
                _record_fee(item, fee, now)
            return item
        if item.status != "processing":
            raise InvalidTransitionError(
                f"Cannot complete payout item in status {item.status}",
                current_status=item.status,
                target_status="completed",
            )

        item.status = "completed"
        item.completed_at = now
        item.save(update_fields=["status", "completed_at"])

        append_entry(
            item.creator,
            "payout_completed",
            ZERO,
            "Payout confirmed by provider",
            payout_item=item,
            metadata={"transfer_id": item.provider_reference},
            created_at=now,
        )
        if fee > ZERO:
            _record_fee(item, fee, now)

        audit("item_completed", item, fee=fee)
        _emit_status(item, "processing")
        refresh_batch_status(item.batch)

    return item


def _record_fee(item: PayoutItem, fee: Decimal, now: datetime | None = None) -> None:
    item.provider_fee = fee
    item.save(update_fields=["provider_fee"])
    append_entry(
        item.creator,
        "payout_fee",
        -fee,
        "Transfer fee",
        payout_item=item,
        metadata={"transfer_id": item.provider_reference},
        created_at=now,
    )


def fail_payout_item(item: PayoutItem, reason: str, kind: str = "provider", now: datetime | None = None) -> PayoutItem:
    now = now or timezone.now()
    with transaction.atomic():
        item = PayoutItem.objects.select_for_update().select_related("creator").get(pk=item.pk)
        if item.status == "failed":
            return item

        previous = item.status
        claimed = Commission.objects.select_for_update().filter(payout_item=item)
        if previous == "pending":
            claimed.update(payout_item=None)
        else:
            # Money had left the balance: reverse it and put the commissions back.
            claimed.filter(status="paid").update(status="payable", paid_at=None, payout_item=None)
            append_entry(
                item.creator,
                "payout_failed",
                item.amount,
                f"Payout failed: {reason}"[:255],
                payout_item=item,
                metadata={"transfer_id": item.provider_reference, "previous_status": previous},
                created_at=now,
            )

        item.status = "failed"
        item.failed_at = now
        item.failure_reason = reason
        item.failure_kind = kind
        item.save(update_fields=["status", "failed_at", "failure_reason", "failure_kind"])

        audit("item_failed", item, previous_status=previous, kind=kind, reason=reason)
        _emit_status(item, previous)
        refresh_batch_status(item.batch)

    logger.warning("Payout item %s failed (%s): %s", item.id, kind, reason)
    return item


def detach_commission_from_item(item: PayoutItem, commission: Commission) -> None:
    """Withdraw one commission from a not-yet-sent item (e.g. the order was refunded)."""
    item = PayoutItem.objects.select_for_update().get(pk=item.pk)
    if item.status != "pending":
        raise InvalidTransitionError(
            f"Payout item {item.id} is {item.status}; commissions can no longer be withdrawn",
            current_status=item.status,
        )
    settlement = item.settlements.filter(commission=commission).first()
    if settlement is not None:
        item.amount = quantize_money(item.amount - settlement.amount)
        settlement.delete()
        item.save(update_fields=["amount"])
    Commission.objects.filter(pk=commission.pk, payout_item=item).update(payout_item=None)
    announce_creator_change([item.creator_id])

    if not item.settlements.exists():
        fail_payout_item(item, "All commissions were withdrawn before sending", kind="canceled")


def refresh_batch_status(batch: PayoutBatch) -> PayoutBatch:
    batch = PayoutBatch.objects.get(pk=batch.pk)
    if batch.status == "draft":
        return batch

    statuses = list(batch.items.values_list("status", flat=True))
    if all(status in ("completed", "failed") for status in statuses):
        new_status = "partially_failed" if "failed" in statuses else "completed"
    else:
        new_status = "processing"

    if new_status != batch.status:
        batch.status = new_status
        batch.completed_at = timezone.now() if new_status in ("completed", "partially_failed") else None
        batch.save(update_fields=["status", "completed_at"])
        audit("batch_status", batch, status=new_status)
    return batch


# ---------------------------------------------------------------------------
# Provider callbacks and reconciliation
# ---------------------------------------------------------------------------


def apply_transfer_update(update: TransferStatusUpdate) -> PayoutItem:
    item = PayoutItem.objects.filter(provider_reference=update.transfer_id).first()
    if item is None:
        raise ValidationError(f"Unknown transfer: {update.transfer_id}")

    if update.status == "sent":
        return item
    if update.status == "completed":
        if item.status == "failed":
            logger.warning("Ignoring completion for failed payout item %s", item.id)
            return item
        return complete_payout_item(item, fee=update.fee)
    if update.status == "failed":
        return fail_payout_item(item, update.reason or "Transfer failed at provider", kind="provider")
    raise ValidationError(f"Unknown transfer status: {update.status}")


def handle_transfer_callback(update: TransferStatusUpdate, provider: TransferProvider | None = None) -> PayoutItem:
    """
    Apply a provider callback after confirming it with the provider.

    Callbacks may be lost or replayed, so the provider's own view of the
    transfer decides the transition.  If the provider cannot be reached the
    item is left as is for the periodic reconciliation.
    """
    provider = provider or get_transfer_provider()
    item = PayoutItem.objects.filter(provider_reference=update.transfer_id).first()
    if item is None:
        raise ValidationError(f"Unknown transfer: {update.transfer_id}")

    try:
        confirmed = provider.get_transfer(update.transfer_id)
    except ProviderTransientError as exc:
        logger.warning("Could not confirm callback for transfer %s: %s", update.transfer_id, exc)
        return item

    if confirmed.status != update.status:
        logger.info(
            "Callback for transfer %s said %s, provider says %s",
            update.transfer_id,
            update.status,
            confirmed.status,
        )
    return apply_transfer_update(
        TransferStatusUpdate(
            transfer_id=update.transfer_id,
            status=confirmed.status,
            fee=update.fee or confirmed.fee,
            reason=update.reason or confirmed.reason,
        )
    )


def reconcile_payout_item(item: PayoutItem, provider: TransferProvider | None = None) -> PayoutItem:
    provider = provider or get_transfer_provider()
    item = PayoutItem.objects.get(pk=item.pk)

    if item.status == "pending":
        transfer_id = provider.find_transfer(item.idempotency_key)
        if transfer_id:
            return accept_payout_item(item, transfer_id)
        return item

    if item.status != "processing" or not item.provider_reference:
        return item

    update = provider.get_transfer(item.provider_reference)
    return apply_transfer_update(update)


def rebatch_failed_item(item: PayoutItem, created_by=None) -> PayoutItem:
    item = PayoutItem.objects.select_related("creator").get(pk=item.pk)
    if item.status != "failed":
        raise InvalidTransitionError(
            "Only failed payout items can be re-batched",
            current_status=item.status,
        )
    if not item.creator.bank_verified or not item.creator.has_payment_destination:
        raise ValidationError("Creator payment destination must be verified before re-batching")

    with transaction.atomic():
        creator = Creator.objects.select_for_update().get(pk=item.creator_id)
        commission_ids = list(item.settlements.values_list("commission_id", flat=True))
        commissions = list(
            Commission.objects.select_for_update()
            .filter(id__in=commission_ids, status="payable", payout_item__isnull=True)
            .order_by("created_at")
        )
        if not commissions:
            raise ValidationError("None of the failed item's commissions are still payable")

        batch = PayoutBatch.objects.create(
            created_by=created_by,
            notes=f"Retry of payout item {item.id}",
            currency=item.currency,
        )
        new_item = _claim_commissions(batch, creator, commissions, retry_of=item)
        audit("item_rebatched", new_item, actor=created_by, retry_of=item.id, amount=new_item.amount)

    return new_item
