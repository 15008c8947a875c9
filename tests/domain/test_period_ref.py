"""PeriodRef tests: keys, bounds and ordering of calendar months."""

from datetime import date

import pytest

from treasury_kernel.domain.dtos import PeriodRef
from treasury_kernel.exceptions import InvalidPeriodError


class TestPeriodRef:

    def test_key_and_bounds(self):
        period = PeriodRef(2025, 9)

        assert period.key == "2025-09"
        assert period.start == date(2025, 9, 1)
        assert period.next_start == date(2025, 10, 1)
        assert str(period) == "2025-09"

    def test_december_next_start(self):
        assert PeriodRef(2025, 12).next_start == date(2026, 1, 1)

    def test_contains(self):
        period = PeriodRef(2025, 2)
        assert period.contains(date(2025, 2, 28))
        assert not period.contains(date(2025, 3, 1))
        assert not period.contains(date(2025, 1, 31))

    def test_from_key_and_date(self):
        assert PeriodRef.from_key("2025-09") == PeriodRef(2025, 9)
        assert PeriodRef.from_date(date(2025, 9, 17)) == PeriodRef(2025, 9)

    @pytest.mark.parametrize("key", ["2025-13", "2025/09", "25-09", ""])
    def test_bad_keys(self, key):
        with pytest.raises(InvalidPeriodError):
            PeriodRef.from_key(key)

    @pytest.mark.parametrize("month", [0, 13])
    def test_bad_month(self, month):
        with pytest.raises(InvalidPeriodError):
            PeriodRef(2025, month)

    def test_chronological_ordering(self):
        periods = [PeriodRef(2025, 1), PeriodRef(2024, 12), PeriodRef(2025, 10)]
        assert sorted(periods) == [PeriodRef(2024, 12), PeriodRef(2025, 1), PeriodRef(2025, 10)]
