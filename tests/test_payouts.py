"""
Payout batch orchestration.

Covers batch creation (claiming), provider submission with retries and
ambiguous timeouts, acceptance, completion, failure reversal, re-batching and
the exactly-once settlement property.
"""

from decimal import Decimal

import pytest

from apps.commissions.accrual import cancel_commission
from apps.commissions.models import Commission, ReconciliationCase
from apps.creators.services import verify_bank_details
from apps.ledger.models import LedgerEntry
from apps.ledger.services import commission_net, creator_balance
from apps.payouts.models import PayoutAuditLog, PayoutBatch, PayoutItem, PayoutItemCommission
from apps.payouts.orchestrator import (
    accept_payout_item,
    apply_transfer_update,
    complete_payout_item,
    create_payout_batch,
    eligible_creators,
    fail_payout_item,
    handle_transfer_callback,
    rebatch_failed_item,
    reconcile_payout_item,
    submit_payout_batch,
    submit_payout_item,
)
from apps.payouts.providers import TransferStatusUpdate
from core.exceptions import (
    InvalidTransitionError,
    ProviderPermanentError,
    ProviderTimeoutError,
    ProviderTransientError,
    ValidationError,
)


@pytest.fixture
def two_payable(make_creator, make_payable):
    """Scenario B: EUR 15.00 and EUR 25.00 payable for one creator."""
    creator = make_creator(commission_rate=Decimal("25.00"))
    first = make_payable("ORD-1", "60.00", for_creator=creator)
    second = make_payable("ORD-2", "100.00", for_creator=creator)
    return creator, [first, second]


def _payout_entries(creator):
    return LedgerEntry.objects.filter(creator=creator, transaction_type__startswith="payout")


def _assert_exactly_once():
    for commission in Commission.objects.all():
        active = PayoutItemCommission.objects.filter(
            commission=commission,
            payout_item__status__in=("processing", "completed"),
        ).count()
        assert active <= 1, f"commission {commission.id} settled by {active} items"


class TestBatchCreation:
    def test_scenario_b_one_item_with_exact_total(self, two_payable):
        creator, commissions = two_payable
        batch = create_payout_batch()
        item = batch.items.get()
        assert batch.status == "draft"
        assert item.amount == Decimal("40.00")
        assert item.status == "pending"
        assert set(item.settlements.values_list("commission_id", flat=True)) == {c.id for c in commissions}
        assert set(Commission.objects.filter(payout_item=item).values_list("id", flat=True)) == {c.id for c in commissions}
        # Nothing leaves the balance until the provider accepts.
        assert not _payout_entries(creator).exists()
        assert creator_balance(creator) == Decimal("40.00")

    def test_minimum_is_strictly_greater(self, make_creator, make_payable):
        at_minimum = make_creator(commission_rate=Decimal("10.00"))
        make_payable("ORD-1", "100.00", for_creator=at_minimum)
        assert not eligible_creators().filter(id=at_minimum.id).exists()
        assert create_payout_batch().items.count() == 0

    def test_unverified_and_inactive_creators_skipped(self, make_creator, make_payable):
        unverified = make_creator(bank_verified=False)
        make_payable("ORD-1", "100.00", for_creator=unverified)
        inactive = make_creator()
        make_payable("ORD-2", "100.00", for_creator=inactive)
        inactive.deactivate()
        assert create_payout_batch().items.count() == 0

    def test_explicit_subset(self, make_creator, make_payable):
        first, second = make_creator(), make_creator()
        make_payable("ORD-1", "100.00", for_creator=first)
        make_payable("ORD-2", "100.00", for_creator=second)
        batch = create_payout_batch(creator_ids=[second.id])
        assert list(batch.items.values_list("creator_id", flat=True)) == [second.id]

    def test_claimed_commissions_not_batched_twice(self, two_payable):
        create_payout_batch()
        assert create_payout_batch().items.count() == 0

    def test_pending_commissions_not_batched(self, accrue):
        accrue("ORD-1", "500.00")
        assert create_payout_batch().items.count() == 0

    def test_audit_log_written(self, two_payable, operator):
        batch = create_payout_batch(created_by=operator)
        log = PayoutAuditLog.objects.get(action="batch_created", entity_id=str(batch.id))
        assert log.actor == operator
        assert log.metadata["items"] == 1


class TestSubmission:
    def test_scenario_b_acceptance_marks_paid_and_debits_once(self, two_payable, fake_provider):
        creator, commissions = two_payable
        provider = fake_provider(initiate=["tr-100"])
        batch = submit_payout_batch(create_payout_batch(), provider=provider)

        item = batch.items.get()
        assert batch.status == "processing"
        assert item.status == "processing"
        assert item.provider_reference == "tr-100"
        assert provider.requests[0].amount == Decimal("40.00")
        assert provider.requests[0].idempotency_key == item.idempotency_key
        assert all(c.status == "paid" for c in Commission.objects.filter(id__in=[c.id for c in commissions]))

        sent = _payout_entries(creator).get()
        assert sent.transaction_type == "payout_sent"
        assert sent.amount == Decimal("-40.00")
        assert creator_balance(creator) == Decimal("0.00")

    def test_transient_error_retried(self, two_payable, fake_provider):
        provider = fake_provider(initiate=[ProviderTransientError("503"), "tr-1"])
        item = submit_payout_batch(create_payout_batch(), provider=provider).items.get()
        assert item.status == "processing"
        assert item.attempts == 2
        assert len(provider.requests) == 2
        assert provider.requests[0].idempotency_key == provider.requests[1].idempotency_key

    def test_transient_errors_exhausted(self, two_payable, fake_provider, settings):
        settings.PAYOUT_PROVIDER_MAX_ATTEMPTS = 3
        creator, commissions = two_payable
        provider = fake_provider(initiate=[ProviderTransientError("503")] * 3)
        batch = submit_payout_batch(create_payout_batch(), provider=provider)

        item = batch.items.get()
        assert item.status == "failed"
        assert item.failure_kind == "transient"
        assert batch.status == "partially_failed"
        assert not _payout_entries(creator).exists()
        assert Commission.objects.filter(status="payable", payout_item__isnull=True).count() == 2

    def test_timeout_then_lookup_finds_transfer(self, two_payable, fake_provider):
        provider = fake_provider(initiate=[ProviderTimeoutError("read timeout")], lookup=["tr-found"])
        item = submit_payout_batch(create_payout_batch(), provider=provider).items.get()
        assert item.status == "processing"
        assert item.provider_reference == "tr-found"
        assert len(provider.requests) == 1

    def test_timeout_lookup_empty_then_retry(self, two_payable, fake_provider):
        provider = fake_provider(initiate=[ProviderTimeoutError("read timeout"), "tr-2"], lookup=[None])
        item = submit_payout_batch(create_payout_batch(), provider=provider).items.get()
        assert item.provider_reference == "tr-2"
        assert len(provider.lookups) == 1

    def test_unknown_outcome_left_pending_for_reconciliation(self, two_payable, fake_provider, settings):
        settings.PAYOUT_PROVIDER_MAX_ATTEMPTS = 1
        creator, _ = two_payable
        provider = fake_provider(
            initiate=[ProviderTimeoutError("read timeout")],
            lookup=[ProviderTransientError("lookup down")],
        )
        item = submit_payout_batch(create_payout_batch(), provider=provider).items.get()
        assert item.status == "pending"
        assert ReconciliationCase.objects.filter(kind="ambiguous_transfer", payout_item=item).exists()
        assert not _payout_entries(creator).exists()

        item = reconcile_payout_item(item, provider=fake_provider(lookup=["tr-late"]))
        assert item.status == "processing"
        assert item.provider_reference == "tr-late"

    def test_permanent_error_blocks_destination(self, two_payable, fake_provider):
        creator, _ = two_payable
        provider = fake_provider(initiate=[ProviderPermanentError("invalid IBAN", code="400")])
        item = submit_payout_batch(create_payout_batch(), provider=provider).items.get()

        assert item.status == "failed"
        assert item.failure_kind == "permanent"
        assert len(provider.requests) == 1
        creator.refresh_from_db()
        assert creator.bank_verified is False
        assert ReconciliationCase.objects.filter(kind="transfer_failed_permanent", creator=creator).exists()
        assert not _payout_entries(creator).exists()

    def test_unverified_at_submit_time_is_not_sent(self, two_payable, fake_provider):
        creator, _ = two_payable
        batch = create_payout_batch()
        creator.bank_verified = False
        creator.save()
        provider = fake_provider()
        item = submit_payout_batch(batch, provider=provider).items.get()
        assert item.status == "failed"
        assert item.failure_kind == "canceled"
        assert provider.requests == []

    def test_completed_batch_cannot_be_resubmitted(self, two_payable, fake_provider):
        batch = submit_payout_batch(create_payout_batch(), provider=fake_provider())
        apply_transfer_update(TransferStatusUpdate(transfer_id=batch.items.get().provider_reference, status="completed"))
        batch.refresh_from_db()
        assert batch.status == "completed"
        with pytest.raises(InvalidTransitionError):
            submit_payout_batch(batch, provider=fake_provider())

    def test_empty_batch_completes(self, db, fake_provider):
        batch = submit_payout_batch(create_payout_batch(), provider=fake_provider())
        assert batch.status == "completed"


class TestAcceptance:
    def test_idempotent_for_same_transfer(self, two_payable):
        creator, _ = two_payable
        item = create_payout_batch().items.get()
        accept_payout_item(item, "tr-1")
        accept_payout_item(item, "tr-1")
        assert _payout_entries(creator).count() == 1

    def test_other_transfer_id_rejected(self, two_payable):
        item = create_payout_batch().items.get()
        accept_payout_item(item, "tr-1")
        with pytest.raises(InvalidTransitionError):
            accept_payout_item(item, "tr-2")

    def test_amount_mismatch_rolls_back(self, two_payable):
        creator, commissions = two_payable
        item = create_payout_batch().items.get()
        Commission.objects.filter(id=commissions[0].id).update(commission_amount=Decimal("16.00"))

        with pytest.raises(InvalidTransitionError):
            accept_payout_item(item, "tr-1")
        item.refresh_from_db()
        assert item.status == "pending"
        assert not _payout_entries(creator).exists()
        assert not Commission.objects.filter(status="paid").exists()


class TestCompletionAndFailure:
    def _sent_item(self, provider):
        batch = submit_payout_batch(create_payout_batch(), provider=provider)
        return batch.items.get()

    def test_completion_with_fee(self, two_payable, fake_provider):
        creator, _ = two_payable
        item = self._sent_item(fake_provider(initiate=["tr-7"]))
        item = apply_transfer_update(TransferStatusUpdate(transfer_id="tr-7", status="completed", fee=Decimal("0.50")))

        assert item.status == "completed"
        assert item.provider_fee == Decimal("0.50")
        types = list(_payout_entries(creator).order_by("id").values_list("transaction_type", "amount"))
        assert types == [
            ("payout_sent", Decimal("-40.00")),
            ("payout_completed", Decimal("0.00")),
            ("payout_fee", Decimal("-0.50")),
        ]
        assert PayoutBatch.objects.get(id=item.batch_id).status == "completed"

    def test_completion_is_idempotent(self, two_payable, fake_provider):
        creator, _ = two_payable
        item = self._sent_item(fake_provider())
        complete_payout_item(item)
        complete_payout_item(item)
        assert _payout_entries(creator).filter(transaction_type="payout_completed").count() == 1

    def test_pending_item_cannot_complete(self, two_payable):
        with pytest.raises(InvalidTransitionError):
            complete_payout_item(create_payout_batch().items.get())

    def test_scenario_c_provider_failure_reverses(self, two_payable, fake_provider):
        creator, commissions = two_payable
        item = self._sent_item(fake_provider(initiate=["tr-9"]))
        assert creator_balance(creator) == Decimal("0.00")

        item = apply_transfer_update(TransferStatusUpdate(transfer_id="tr-9", status="failed", reason="account closed"))
        assert item.status == "failed"
        assert item.failure_kind == "provider"
        reversal = _payout_entries(creator).get(transaction_type="payout_failed")
        assert reversal.amount == Decimal("40.00")
        assert creator_balance(creator) == Decimal("40.00")
        for commission in Commission.objects.filter(id__in=[c.id for c in commissions]):
            assert commission.status == "payable"
            assert commission.payout_item_id is None
            assert commission_net(commission) == commission.commission_amount
        assert PayoutBatch.objects.get(id=item.batch_id).status == "partially_failed"

    def test_reversal_after_completion(self, two_payable, fake_provider):
        creator, _ = two_payable
        item = self._sent_item(fake_provider(initiate=["tr-3"]))
        apply_transfer_update(TransferStatusUpdate(transfer_id="tr-3", status="completed"))
        apply_transfer_update(TransferStatusUpdate(transfer_id="tr-3", status="failed", reason="charged back"))
        item.refresh_from_db()
        assert item.status == "failed"
        assert creator_balance(creator) == Decimal("40.00")
        assert Commission.objects.filter(status="payable").count() == 2

    def test_failure_is_terminal(self, two_payable, fake_provider):
        creator, _ = two_payable
        item = self._sent_item(fake_provider(initiate=["tr-4"]))
        fail_payout_item(item, "bounced")
        fail_payout_item(item, "bounced again")
        apply_transfer_update(TransferStatusUpdate(transfer_id="tr-4", status="completed"))
        item.refresh_from_db()
        assert item.status == "failed"
        assert _payout_entries(creator).filter(transaction_type="payout_failed").count() == 1

    def test_unknown_transfer(self, db):
        with pytest.raises(ValidationError):
            apply_transfer_update(TransferStatusUpdate(transfer_id="nope", status="completed"))


class TestCallbacks:
    def test_provider_answer_wins_over_callback(self, two_payable, fake_provider):
        submit_payout_batch(create_payout_batch(), provider=fake_provider(initiate=["tr-5"]))
        provider = fake_provider(statuses={"tr-5": "completed"})
        item = handle_transfer_callback(TransferStatusUpdate(transfer_id="tr-5", status="failed"), provider=provider)
        assert item.status == "completed"

    def test_unreachable_provider_leaves_item_alone(self, two_payable, fake_provider):
        submit_payout_batch(create_payout_batch(), provider=fake_provider(initiate=["tr-6"]))
        provider = fake_provider(statuses={"tr-6": ProviderTransientError("down")})
        item = handle_transfer_callback(TransferStatusUpdate(transfer_id="tr-6", status="completed"), provider=provider)
        assert item.status == "processing"

    def test_reconcile_processing_item(self, two_payable, fake_provider):
        item = submit_payout_batch(create_payout_batch(), provider=fake_provider(initiate=["tr-8"])).items.get()
        item = reconcile_payout_item(item, provider=fake_provider(statuses={"tr-8": "completed"}))
        assert item.status == "completed"


class TestRebatch:
    def test_failed_item_rebatched_and_settled_once(self, two_payable, fake_provider):
        creator, commissions = two_payable
        batch = submit_payout_batch(create_payout_batch(), provider=fake_provider(initiate=["tr-a"]))
        failed = apply_transfer_update(TransferStatusUpdate(transfer_id="tr-a", status="failed"))

        retry = rebatch_failed_item(failed)
        assert retry.retry_of_id == failed.id
        assert retry.batch_id != batch.id
        assert retry.amount == Decimal("40.00")
        assert retry.idempotency_key != failed.idempotency_key

        submit_payout_batch(retry.batch, provider=fake_provider(initiate=["tr-b"]))
        _assert_exactly_once()
        assert creator_balance(creator) == Decimal("0.00")
        for commission in commissions:
            assert PayoutItemCommission.objects.filter(commission=commission).count() == 2

    def test_permanent_failure_requires_reverification(self, two_payable, fake_provider):
        creator, _ = two_payable
        provider = fake_provider(initiate=[ProviderPermanentError("invalid IBAN")])
        failed = submit_payout_batch(create_payout_batch(), provider=provider).items.get()

        with pytest.raises(ValidationError):
            rebatch_failed_item(failed)

        verify_bank_details(creator, iban="FR7630006000011234567890999")
        assert rebatch_failed_item(failed).status == "pending"

    def test_only_failed_items(self, two_payable):
        with pytest.raises(InvalidTransitionError):
            rebatch_failed_item(create_payout_batch().items.get())

    def test_canceled_commission_dropped_from_retry(self, two_payable, fake_provider):
        _, commissions = two_payable
        submit_payout_batch(create_payout_batch(), provider=fake_provider(initiate=["tr-c"]))
        failed = apply_transfer_update(TransferStatusUpdate(transfer_id="tr-c", status="failed"))
        cancel_commission(commissions[0], reason="refund")
        assert rebatch_failed_item(failed).amount == Decimal("25.00")


class TestWithdrawal:
    def test_cancel_shrinks_pending_item(self, two_payable):
        _, commissions = two_payable
        item = create_payout_batch().items.get()
        cancel_commission(commissions[0], reason="refund")
        item.refresh_from_db()
        assert item.status == "pending"
        assert item.amount == Decimal("25.00")
        assert item.settlements.count() == 1

    def test_item_emptied_by_cancellations_fails(self, two_payable):
        creator, commissions = two_payable
        item = create_payout_batch().items.get()
        for commission in commissions:
            cancel_commission(commission, reason="refund")
        item.refresh_from_db()
        assert item.status == "failed"
        assert item.failure_kind == "canceled"
        assert creator_balance(creator) == Decimal("0.00")
        assert not _payout_entries(creator).exists()

    def test_submit_after_withdrawal_sends_remaining_amount(self, two_payable, fake_provider):
        _, commissions = two_payable
        batch = create_payout_batch()
        cancel_commission(commissions[1], reason="refund")
        provider = fake_provider()
        item = submit_payout_batch(batch, provider=provider).items.get()
        assert provider.requests[0].amount == Decimal("15.00")
        assert item.status == "processing"

    def test_sent_item_is_not_touched_by_direct_submit(self, two_payable, fake_provider):
        item = submit_payout_batch(create_payout_batch(), provider=fake_provider()).items.get()
        provider = fake_provider()
        assert submit_payout_item(item, provider=provider).status == "processing"
        assert provider.requests == []
        assert PayoutItem.objects.count() == 1
