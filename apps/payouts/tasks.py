import logging

from celery import shared_task

from core.exceptions import LedgerError, ProviderTransientError

from .models import PayoutBatch, PayoutItem
from .orchestrator import reconcile_payout_item, submit_payout_batch

logger = logging.getLogger(__name__)


@shared_task
def submit_payout_batch_task(batch_id: str) -> str | None:
    try:
        batch = PayoutBatch.objects.get(id=batch_id)
    except PayoutBatch.DoesNotExist:
        return None
    batch = submit_payout_batch(batch)
    return batch.status


@shared_task
def reconcile_payout_item_task(item_id: str) -> str | None:
    try:
        item = PayoutItem.objects.get(id=item_id)
    except PayoutItem.DoesNotExist:
        return None
    return reconcile_payout_item(item).status


@shared_task
def reconcile_processing_payouts() -> int:
    """Re-query the provider for items still in flight; callbacks can be lost."""
    updated = 0
    items = PayoutItem.objects.filter(status__in=("pending", "processing"), batch__status="processing")
    for item in items:
        previous = item.status
        try:
            item = reconcile_payout_item(item)
        except ProviderTransientError as exc:
            logger.warning("Provider unavailable while reconciling %s: %s", item.id, exc)
            continue
        except LedgerError:
            logger.exception("Could not reconcile payout item %s", item.id)
            continue
        if item.status != previous:
            updated += 1
    return updated
