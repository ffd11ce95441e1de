import logging

from django.conf import settings
from django.dispatch import receiver

from apps.ledger.signals import ledger_entry_recorded, payout_item_status_changed

from .models import Notification
from .tasks import send_notification_email

logger = logging.getLogger(__name__)


def _amount(value) -> str:
    return f"{abs(value):.2f} {settings.PAYOUT_CURRENCY}"


def notify(creator_id, kind: str, title: str, body: str, email: bool = False) -> Notification:
    notification = Notification.objects.create(creator_id=creator_id, kind=kind, title=title, body=body)
    if email:
        send_notification_email.delay(notification.id)
    return notification


@receiver(ledger_entry_recorded)
def notify_commission_earned(sender, entry, **kwargs):
    if entry.transaction_type != "commission_earned":
        return
    notify(
        entry.creator_id,
        "commission_earned",
        f"New commission: {_amount(entry.amount)}",
        f"You earned {_amount(entry.amount)}. It becomes payable once the lock period ends.",
    )


@receiver(payout_item_status_changed)
def notify_payout_status(sender, item, previous_status, status, **kwargs):
    if status == "processing":
        notify(
            item.creator_id,
            "payout_sent",
            f"Payout of {_amount(item.amount)} sent",
            f"We sent {_amount(item.amount)} to your bank account. It usually arrives within two business days.",
            email=True,
        )
    elif status == "completed":
        notify(
            item.creator_id,
            "payout_completed",
            "Your payout has arrived",
            f"Your bank confirmed the payout of {_amount(item.amount)}.",
        )
    elif status == "failed" and previous_status != "pending":
        notify(
            item.creator_id,
            "payout_failed",
            "Your payout could not be delivered",
            f"The payout of {_amount(item.amount)} was returned and is back in your balance.",
            email=True,
        )
