"""Currency rounding: half-up to the cent, never re-rounded downstream."""

from decimal import Decimal

import pytest

from core.money import commission_for, quantize_money, sum_money, to_decimal


class TestCommissionFor:
    @pytest.mark.parametrize(
        "gross, rate, expected",
        [
            ("100.00", "15.00", "15.00"),
            ("10.05", "15.00", "1.51"),
            ("0.10", "15.00", "0.02"),
            ("33.30", "15.00", "5.00"),
            ("19.99", "20.00", "4.00"),
            ("0.00", "15.00", "0.00"),
        ],
    )
    def test_half_up_to_cent(self, gross, rate, expected):
        assert commission_for(Decimal(gross), Decimal(rate)) == Decimal(expected)

    def test_never_more_than_one_cent_above_exact_value(self):
        exact = Decimal("10.05") * Decimal("15.00") / Decimal("100")
        rounded = commission_for(Decimal("10.05"), Decimal("15.00"))
        assert Decimal("0") <= rounded - exact < Decimal("0.01")


class TestConversions:
    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_garbage_is_rejected(self):
        with pytest.raises(ValueError):
            to_decimal("twelve")

    def test_quantize_returns_two_places(self):
        assert str(quantize_money("7")) == "7.00"

    def test_sum_skips_none(self):
        assert sum_money([Decimal("1.10"), None, "2.20"]) == Decimal("3.30")

    @pytest.mark.parametrize("value", ["NaN", "sNaN", "Infinity", "-Infinity", Decimal("NaN"), float("inf")])
    def test_non_finite_is_rejected(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)

    def test_out_of_range_quantize_is_rejected(self):
        with pytest.raises(ValueError):
            quantize_money("1e40")
