"""Lock window release and commission buckets."""

from datetime import timedelta
from decimal import Decimal

from apps.commissions.accrual import cancel_commission
from apps.commissions.eligibility import (
    commission_buckets,
    next_unlock_date,
    payable_unclaimed_total,
    release_eligible_commissions,
)
from apps.commissions.models import Commission
from apps.ledger.models import LedgerEntry
from apps.payouts.orchestrator import create_payout_batch


class TestRelease:
    def test_scenario_a_locked_on_day_29_payable_on_day_31(self, creator, accrue, now):
        commission = accrue("ORD-1", "100.00", on=now)

        assert release_eligible_commissions(now=now + timedelta(days=29)) == 0
        buckets = commission_buckets(creator, now=now + timedelta(days=29))
        assert buckets["locked"] == {"count": 1, "amount": Decimal("15.00")}
        assert buckets["payable"]["count"] == 0

        assert release_eligible_commissions(now=now + timedelta(days=31)) == 1
        commission.refresh_from_db()
        assert commission.status == "payable"
        assert commission.payable_at == now + timedelta(days=31)
        assert commission_buckets(creator, now=now + timedelta(days=31))["payable"]["amount"] == Decimal("15.00")

    def test_release_is_idempotent_and_writes_no_ledger_entry(self, accrue, now):
        accrue("ORD-1", "100.00", on=now)
        entries = LedgerEntry.objects.count()
        release_eligible_commissions(now=now + timedelta(days=31))
        assert release_eligible_commissions(now=now + timedelta(days=32)) == 0
        assert LedgerEntry.objects.count() == entries

    def test_unlock_boundary_is_inclusive(self, accrue, now):
        accrue("ORD-1", "100.00", on=now)
        assert release_eligible_commissions(now=now + timedelta(days=30)) == 1

    def test_canceled_never_released(self, accrue, now):
        cancel_commission(accrue("ORD-1", "100.00", on=now))
        release_eligible_commissions(now=now + timedelta(days=31))
        assert not Commission.objects.filter(status="payable").exists()


class TestBuckets:
    def test_claimed_commissions_leave_the_payable_bucket(self, creator, make_payable, now):
        make_payable("ORD-1", "100.00")
        make_payable("ORD-2", "100.00")
        assert payable_unclaimed_total(creator) == Decimal("30.00")

        create_payout_batch()
        assert payable_unclaimed_total(creator) == Decimal("0")
        assert commission_buckets(creator, now=now)["payable"]["count"] == 0

    def test_next_unlock_date(self, creator, accrue, now):
        accrue("ORD-1", "100.00", on=now)
        accrue("ORD-2", "100.00", on=now - timedelta(days=10))
        assert next_unlock_date(creator) == now + timedelta(days=20)

    def test_empty_creator(self, creator, now):
        buckets = commission_buckets(creator, now=now)
        assert all(bucket == {"count": 0, "amount": Decimal("0.00")} for bucket in buckets.values())
        assert next_unlock_date(creator) is None
