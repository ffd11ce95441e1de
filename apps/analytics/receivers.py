from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from apps.creators.models import Creator
from apps.ledger.signals import creator_state_changed, ledger_entry_recorded, payout_item_status_changed

from .services import invalidate_dashboard


@receiver(ledger_entry_recorded)
def drop_dashboard_on_ledger_entry(sender, entry, **kwargs):
    invalidate_dashboard(entry.creator_id)


@receiver(payout_item_status_changed)
def drop_dashboard_on_payout_change(sender, item, **kwargs):
    invalidate_dashboard(item.creator_id)


@receiver(creator_state_changed)
def drop_dashboards_on_creator_change(sender, creator_ids, **kwargs):
    for creator_id in creator_ids:
        invalidate_dashboard(creator_id)


@receiver(post_save, sender=Creator)
def drop_dashboard_on_profile_save(sender, instance, **kwargs):
    creator_id = instance.pk
    transaction.on_commit(lambda: invalidate_dashboard(creator_id))
