"""Append-only ledger and balance replay."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.db.models import Sum
from django.utils import timezone

from apps.commissions.accrual import adjust_commission, cancel_commission
from apps.ledger.models import LedgerEntry
from apps.ledger.services import (
    append_entry,
    balance_summary,
    commission_net,
    creator_balance,
    record_balance_adjustment,
)
from apps.payouts.orchestrator import (
    accept_payout_item,
    apply_transfer_update,
    create_payout_batch,
    submit_payout_batch,
)
from apps.payouts.providers import TransferStatusUpdate
from core.exceptions import ValidationError


class TestAppendOnly:
    def test_saved_entry_cannot_be_updated(self, accrue):
        entry = LedgerEntry.objects.get(commission=accrue("ORD-1", "100.00"))
        entry.amount = Decimal("999.00")
        with pytest.raises(TypeError):
            entry.save()

    def test_entry_cannot_be_deleted(self, accrue):
        entry = LedgerEntry.objects.get(commission=accrue("ORD-1", "100.00"))
        with pytest.raises(TypeError):
            entry.delete()

    def test_bulk_update_and_delete_refused(self, accrue):
        accrue("ORD-1", "100.00")
        with pytest.raises(TypeError):
            LedgerEntry.objects.all().update(amount=0)
        with pytest.raises(TypeError):
            LedgerEntry.objects.all().delete()

    def test_unknown_transaction_type(self, creator):
        with pytest.raises(ValidationError):
            append_entry(creator, "gift", Decimal("1.00"), "free money")


class TestEntryTimestamps:
    def test_entries_carry_the_operation_time(self, accrue, now):
        commission = accrue("ORD-1", "100.00", on=now - timedelta(days=3))
        later = now + timedelta(hours=2)
        cancel_commission(commission, reason="refund", now=later)

        assert LedgerEntry.objects.get(transaction_type="commission_earned").created_at == now - timedelta(days=3)
        assert LedgerEntry.objects.get(transaction_type="commission_canceled").created_at == later

    def test_payout_entries_use_the_acceptance_time(self, make_payable, now):
        make_payable("ORD-1", "200.00")
        item = create_payout_batch().items.get()
        accept_payout_item(item, "tr-1", now=now)
        assert LedgerEntry.objects.get(transaction_type="payout_sent").created_at == now

    def test_defaults_to_current_time(self, creator):
        before = timezone.now()
        entry = append_entry(creator, "balance_adjustment", Decimal("1.00"), "bonus")
        assert before <= entry.created_at <= timezone.now()


class TestBalanceAdjustment:
    def test_reason_required(self, creator):
        with pytest.raises(ValidationError):
            record_balance_adjustment(creator, Decimal("5.00"), "")

    def test_zero_rejected(self, creator):
        with pytest.raises(ValidationError):
            record_balance_adjustment(creator, Decimal("0.00"), "nothing")

    def test_adjustment_is_an_entry(self, creator, operator):
        entry = record_balance_adjustment(creator, Decimal("-4.50"), "goodwill clawback", actor=operator)
        assert entry.transaction_type == "balance_adjustment"
        assert entry.created_by == operator
        assert creator_balance(creator) == Decimal("-4.50")


class TestReplay:
    def test_balance_equals_sum_of_entries_across_lifecycle(self, creator, accrue, make_payable, fake_provider, operator):
        paid = make_payable("ORD-1", "100.00")
        make_payable("ORD-2", "200.00")
        cancel_commission(accrue("ORD-3", "50.00"))
        adjust_commission(accrue("ORD-4", "40.00"), "5.00", reason="partial return")
        record_balance_adjustment(creator, Decimal("2.00"), "bonus", actor=operator)

        provider = fake_provider()
        batch = submit_payout_batch(create_payout_batch(), provider=provider)
        item = batch.items.get()
        apply_transfer_update(TransferStatusUpdate(transfer_id=item.provider_reference, status="completed", fee=Decimal("0.35")))

        replayed = LedgerEntry.objects.filter(creator=creator).aggregate(total=Sum("amount"))["total"]
        by_hand = sum(e.amount for e in LedgerEntry.objects.filter(creator=creator))
        assert creator_balance(creator) == replayed == by_hand
        # 15 + 30 paid out, 5 adjusted still held, 2 bonus, 0.35 fee
        assert creator_balance(creator) == Decimal("6.65")

        summary = balance_summary(creator)
        assert summary["total_earned"] == Decimal("50.00")
        assert summary["total_paid"] == Decimal("45.00")
        assert summary["total_fees"] == Decimal("0.35")
        assert commission_net(paid) == paid.commission_amount

    def test_empty_summary(self, creator):
        assert balance_summary(creator) == {
            "current_balance": Decimal("0.00"),
            "total_earned": Decimal("0.00"),
            "total_paid": Decimal("0.00"),
            "total_fees": Decimal("0.00"),
        }
