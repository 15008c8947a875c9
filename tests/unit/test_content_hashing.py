"""
Content hash tests.

Verifies:
- The canonical string Kind|date|amount(2dp)|DESCRIPTION|period
- Description normalization (trim, collapse whitespace, upper-case)
- Amount normalization to two decimals
- Every hashed field changes the hash
"""

import hashlib
from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from treasury_kernel.utils.hashing import (
    ContentHasher,
    hash_file,
    hash_movement,
    normalize_description,
)
from treasury_ingestion.domain.types import MovementCandidate


def _sha(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class TestHashMovement:

    def test_canonical_string(self):
        digest = hash_movement("income", date(2025, 9, 3), Decimal("100"), "  donation   juan ", "2025-09")

        assert digest == _sha("Income|2025-09-03|100.00|DONATION JUAN|2025-09")

    def test_kind_tags(self):
        d = date(2025, 9, 1)
        assert hash_movement("expense", d, Decimal("1"), "x", "2025-09") == _sha("Expense|2025-09-01|1.00|X|2025-09")
        assert hash_movement("opening_balance", d, Decimal("1"), "", "2025-09") == _sha(
            "OpeningBalance|2025-09-01|1.00||2025-09"
        )

    def test_amount_rounds_half_up(self):
        a = hash_movement("income", date(2025, 9, 3), Decimal("10.005"), "x", "2025-09")
        b = hash_movement("income", date(2025, 9, 3), Decimal("10.01"), "x", "2025-09")
        assert a == b

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            hash_movement("transfer", date(2025, 9, 3), Decimal("1"), "x", "2025-09")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"kind": "expense"},
            {"movement_date": date(2025, 9, 4)},
            {"amount": Decimal("100.01")},
            {"description": "Donation Pedro"},
            {"period_key": "2025-10"},
        ],
    )
    def test_every_field_matters(self, kwargs):
        base = {
            "kind": "income",
            "movement_date": date(2025, 9, 3),
            "amount": Decimal("100.00"),
            "description": "Donation Juan",
            "period_key": "2025-09",
        }
        assert hash_movement(**base) != hash_movement(**{**base, **kwargs})


class TestNormalization:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("  cuota   mensual ", "CUOTA MENSUAL"),
            ("a\tb\nc", "A B C"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize_description(self, raw, expected):
        assert normalize_description(raw) == expected

    @settings(max_examples=200)
    @given(
        text=st.text(alphabet=st.characters(whitelist_categories=("Ll", "Lu", "Nd")), min_size=1, max_size=30),
        left=st.sampled_from(["", " ", "  ", "\t"]),
        right=st.sampled_from(["", " ", "   "]),
    )
    def test_padding_and_case_do_not_change_hash(self, text, left, right):
        d = date(2025, 9, 3)
        assert hash_movement("income", d, Decimal("5"), f"{left}{text}{right}", "2025-09") == hash_movement(
            "income", d, Decimal("5"), text.upper(), "2025-09"
        )

    @given(cents=st.integers(min_value=1, max_value=10**12))
    def test_trailing_zeros_do_not_change_hash(self, cents):
        amount = Decimal(cents) / 100
        d = date(2025, 9, 3)
        assert hash_movement("expense", d, amount, "x", "2025-09") == hash_movement(
            "expense", d, amount.quantize(Decimal("0.0000")), "x", "2025-09"
        )


class TestContentHasher:

    def test_matches_hash_movement(self):
        candidate = MovementCandidate(
            movement_date=date(2025, 9, 3),
            kind="income",
            amount=Decimal("100.00"),
            description="Donation",
            period_key="2025-09",
            source_ref="SEP!5",
        )
        assert ContentHasher().hash(candidate) == hash_movement(
            "income", date(2025, 9, 3), Decimal("100.00"), "Donation", "2025-09"
        )

    def test_source_ref_not_part_of_identity(self):
        common = dict(
            movement_date=date(2025, 9, 3),
            kind="income",
            amount=Decimal("100.00"),
            description="Donation",
            period_key="2025-09",
        )
        hasher = ContentHasher()
        assert hasher.hash(MovementCandidate(**common, source_ref="A!1")) == hasher.hash(
            MovementCandidate(**common, source_ref="B!9")
        )


class TestHashFile:

    def test_hash_file(self, tmp_path):
        path = tmp_path / "report.xlsx"
        path.write_bytes(b"treasury")

        assert hash_file(path) == hashlib.sha256(b"treasury").hexdigest()
