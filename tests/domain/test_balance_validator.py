"""BalanceValidator tests: tolerance boundary, signed delta, no expected value."""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from treasury_kernel.domain.balance import DEFAULT_TOLERANCE, BalanceValidator


class TestBalanceValidator:

    def test_default_tolerance(self):
        assert BalanceValidator().tolerance == DEFAULT_TOLERANCE == Decimal("0.50")

    def test_within_tolerance_is_silent(self):
        validator = BalanceValidator()
        assert validator.validate(Decimal("100.00"), Decimal("100.50")) is None
        assert validator.validate(Decimal("100.50"), Decimal("100.00")) is None

    def test_beyond_tolerance_warns_with_signed_delta(self):
        warning = BalanceValidator().validate(Decimal("99.00"), Decimal("100.00"))

        assert warning is not None
        assert warning.delta == Decimal("-1.00")
        assert warning.computed == Decimal("99.00")
        assert warning.expected == Decimal("100.00")
        assert warning.to_dict()["code"] == "BALANCE_DISCREPANCY"

    def test_no_expected_value(self):
        assert BalanceValidator().validate(Decimal("1"), None) is None

    def test_zero_tolerance_is_exact(self):
        validator = BalanceValidator(Decimal("0"))
        assert validator.validate(Decimal("1.00"), Decimal("1.00")) is None
        assert validator.validate(Decimal("1.00"), Decimal("1.01")) is not None

    def test_negative_tolerance_rejected(self):
        with pytest.raises(ValueError):
            BalanceValidator(Decimal("-0.01"))


money = st.decimals(min_value=Decimal("-1000000"), max_value=Decimal("1000000"), places=2)


class TestBalanceValidatorProperties:

    @given(computed=money, expected=money)
    def test_warns_exactly_outside_tolerance(self, computed, expected):
        warning = BalanceValidator().validate(computed, expected)

        if abs(computed - expected) <= DEFAULT_TOLERANCE:
            assert warning is None
        else:
            assert warning.delta == computed - expected

    @given(computed=money, expected=money)
    def test_delta_sign_flips_with_arguments(self, computed, expected):
        validator = BalanceValidator(Decimal("0"))
        forward = validator.validate(computed, expected)
        backward = validator.validate(expected, computed)

        if forward is None:
            assert backward is None
        else:
            assert forward.delta == -backward.delta
