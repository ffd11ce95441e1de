"""Creator notifications driven by ledger and payout signals."""

from django.core import mail

from apps.notifications.models import Notification
from apps.notifications.tasks import send_notification_email
from apps.payouts.orchestrator import apply_transfer_update, create_payout_batch, submit_payout_batch
from apps.payouts.providers import TransferStatusUpdate
from core.exceptions import ProviderTransientError


class TestNotifications:
    def test_commission_earned(self, creator, accrue, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            accrue("ORD-1", "100.00")
        notification = Notification.objects.get(creator=creator)
        assert notification.kind == "commission_earned"
        assert "15.00 EUR" in notification.title
        assert mail.outbox == []

    def test_payout_sent_completed_and_emailed(self, creator, make_payable, fake_provider, django_capture_on_commit_callbacks):
        make_payable("ORD-1", "200.00")
        with django_capture_on_commit_callbacks(execute=True):
            submit_payout_batch(create_payout_batch(), provider=fake_provider(initiate=["tr-1"]))
        with django_capture_on_commit_callbacks(execute=True):
            apply_transfer_update(TransferStatusUpdate(transfer_id="tr-1", status="completed"))

        kinds = set(Notification.objects.filter(creator=creator).values_list("kind", flat=True))
        assert kinds == {"payout_sent", "payout_completed"}
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == [creator.email]
        assert Notification.objects.get(kind="payout_sent").emailed_at is not None

    def test_failed_after_sending(self, creator, make_payable, fake_provider, django_capture_on_commit_callbacks):
        make_payable("ORD-1", "200.00")
        submit_payout_batch(create_payout_batch(), provider=fake_provider(initiate=["tr-1"]))
        with django_capture_on_commit_callbacks(execute=True):
            apply_transfer_update(TransferStatusUpdate(transfer_id="tr-1", status="failed"))

        notification = Notification.objects.get(kind="payout_failed")
        assert "back in your balance" in notification.body
        assert len(mail.outbox) == 1

    def test_nothing_when_never_sent(self, creator, make_payable, fake_provider, settings, django_capture_on_commit_callbacks):
        settings.PAYOUT_PROVIDER_MAX_ATTEMPTS = 1
        make_payable("ORD-1", "200.00")
        with django_capture_on_commit_callbacks(execute=True):
            submit_payout_batch(create_payout_batch(), provider=fake_provider(initiate=[ProviderTransientError("503")]))
        assert not Notification.objects.filter(kind__startswith="payout").exists()

    def test_email_sent_once(self, creator):
        notification = Notification.objects.create(creator=creator, kind="payout_sent", title="Sent", body="On its way")
        assert send_notification_email(notification.id) is True
        assert send_notification_email(notification.id) is False
        assert send_notification_email(999999) is False
        assert len(mail.outbox) == 1
