"""Tier resolution from the current month's commission revenue."""

from datetime import timedelta
from decimal import Decimal

import pytest

from apps.commissions.accrual import cancel_commission
from apps.commissions.models import Commission
from apps.creators.models import CommissionTier
from apps.creators.tiers import (
    assign_current_tiers,
    effective_commission_rate,
    monthly_commission_revenue,
    resolve_tier,
    select_tier,
)
from core.exceptions import ConfigurationError


class TestSelectTier:
    def test_scenario_e_silver_with_gold_next(self, tiers):
        resolution = select_tier(tiers, Decimal("600.00"))
        assert resolution.current.slug == "silver"
        assert resolution.next.slug == "gold"
        assert resolution.remaining == Decimal("400.00")
        assert resolution.progress == 60

    def test_threshold_is_inclusive(self, tiers):
        assert select_tier(tiers, Decimal("300.00")).current.slug == "silver"

    def test_top_tier_has_no_next(self, tiers):
        resolution = select_tier(tiers, Decimal("2500.00"))
        assert resolution.current.slug == "gold"
        assert resolution.next is None
        assert resolution.remaining == Decimal("0.00")
        assert resolution.progress == 100

    def test_below_every_threshold_defaults_to_lowest(self, db):
        silver = CommissionTier(name="Silver", slug="silver", min_monthly_revenue=Decimal("300"), commission_rate=Decimal("18"))
        gold = CommissionTier(name="Gold", slug="gold", min_monthly_revenue=Decimal("1000"), commission_rate=Decimal("20"))
        resolution = select_tier([gold, silver], Decimal("100.00"))
        assert resolution.current is silver
        assert resolution.next is silver
        assert resolution.remaining == Decimal("200.00")

    def test_missing_table_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            select_tier([], Decimal("10"))


class TestResolveTier:
    def test_scenario_e_from_accrued_commissions(self, tiers, accrue, creator, now):
        accrue("ORD-1", "2500.00")
        accrue("ORD-2", "1500.00")
        resolution = resolve_tier(creator, as_of=now)
        assert resolution.monthly_revenue == Decimal("600.00")
        assert resolution.current.slug == "silver"
        assert resolution.next.slug == "gold"
        assert resolution.remaining == Decimal("400.00")

    def test_revenue_equals_sum_of_commission_amounts(self, tiers, accrue, creator, now):
        for i, gross in enumerate(["99.99", "10.05", "33.30"]):
            accrue(f"ORD-{i}", gross)
        total = sum(c.commission_amount for c in Commission.objects.filter(creator=creator))
        assert monthly_commission_revenue(creator, now) == total

    def test_canceled_and_previous_month_excluded(self, tiers, accrue, creator, now):
        accrue("ORD-1", "1000.00")
        cancel_commission(accrue("ORD-2", "1000.00"), reason="refund")
        accrue("ORD-3", "5000.00", on=now - timedelta(days=40))
        assert monthly_commission_revenue(creator, now) == Decimal("150.00")
        assert resolve_tier(creator, as_of=now).current.slug == "bronze"

    def test_no_tiers_configured(self, creator, now):
        with pytest.raises(ConfigurationError):
            resolve_tier(creator, as_of=now)


class TestEffectiveRate:
    def test_override_wins(self, tiers, make_creator, now):
        assert effective_commission_rate(make_creator(commission_rate=Decimal("22.50")), now) == Decimal("22.50")

    def test_tier_rate_when_no_override(self, tiers, make_creator, now):
        assert effective_commission_rate(make_creator(commission_rate=None), now) == Decimal("15.00")

    def test_no_override_no_tiers(self, make_creator, now):
        with pytest.raises(ConfigurationError):
            effective_commission_rate(make_creator(commission_rate=None), now)


class TestAssignCurrentTiers:
    def test_moves_creator_to_resolved_tier(self, tiers, accrue, creator, now):
        accrue("ORD-1", "4000.00")
        assert assign_current_tiers(as_of=now) == 1
        creator.refresh_from_db()
        assert creator.current_tier.slug == "silver"
        assert assign_current_tiers(as_of=now) == 0
