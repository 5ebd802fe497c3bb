import pytest
from decimal import Decimal
from datetime import date

from tutor_ledger.core.ledger import derive_status, status_of, roll_forward, latest_date, ZERO
from tutor_ledger.database.db_enums import BalanceStatusEnum

FEE = Decimal("1000.00")


class TestDeriveStatus:

    @pytest.mark.parametrize("balance, expected", [
        (Decimal("0"), BalanceStatusEnum.PAID),
        (Decimal("0.00"), BalanceStatusEnum.PAID),
        (Decimal("0.01"), BalanceStatusEnum.PENDING),
        (Decimal("1500.00"), BalanceStatusEnum.PENDING),
        (Decimal("-0.01"), BalanceStatusEnum.EXCESS),
        (Decimal("-200.00"), BalanceStatusEnum.EXCESS),
    ])
    def test_bucket_follows_sign(self, balance, expected):
        assert derive_status(balance) == expected

    def test_status_of_reports_magnitude(self):
        assert status_of(Decimal("0")) == (BalanceStatusEnum.PAID, ZERO)
        assert status_of(Decimal("400.00")) == (BalanceStatusEnum.PENDING, Decimal("400.00"))
        assert status_of(Decimal("-200.00")) == (BalanceStatusEnum.EXCESS, Decimal("200.00"))


class TestRollForward:
    """Carry-forward rule for the four balance shapes, fee 1000."""

    def test_settled_student_owes_the_new_fee(self):
        t = roll_forward(Decimal("0"), FEE)
        assert t.new_balance == Decimal("1000.00")
        assert t.new_total_paid == ZERO
        assert t.absorbed_as_payment is False

    def test_arrears_accumulate(self):
        t = roll_forward(Decimal("500.00"), FEE)
        assert t.new_balance == Decimal("1500.00")
        assert t.new_total_paid == ZERO

    def test_credit_absorbs_the_whole_fee(self):
        t = roll_forward(Decimal("-1200.00"), FEE)
        assert t.new_balance == Decimal("-200.00")
        assert t.new_total_paid == FEE
        assert t.absorbed_as_payment is True

    def test_credit_covering_exactly_the_fee_settles(self):
        t = roll_forward(Decimal("-1000.00"), FEE)
        assert t.new_balance == ZERO
        assert derive_status(t.new_balance) == BalanceStatusEnum.PAID
        assert t.new_total_paid == FEE

    def test_absorbed_fee_not_recorded_when_disabled(self):
        t = roll_forward(Decimal("-1200.00"), FEE, record_absorbed_fee=False)
        assert t.new_balance == Decimal("-200.00")
        assert t.new_total_paid == ZERO
        assert t.absorbed_as_payment is False

    def test_partial_credit_reduces_the_fee(self):
        t = roll_forward(Decimal("-600.00"), FEE)
        assert t.new_balance == Decimal("400.00")
        assert t.new_total_paid == ZERO
        assert t.absorbed_as_payment is False

    def test_zero_fee_keeps_credit(self):
        t = roll_forward(Decimal("-300.00"), ZERO)
        assert t.new_balance == Decimal("-300.00")
        assert t.absorbed_as_payment is False

    def test_negative_fee_rejected(self):
        with pytest.raises(ValueError):
            roll_forward(Decimal("0"), Decimal("-1"))


class TestLatestDate:

    def test_picks_the_later_date(self):
        assert latest_date(date(2024, 5, 10), date(2024, 5, 3)) == date(2024, 5, 10)
        assert latest_date(date(2024, 5, 3), date(2024, 5, 10)) == date(2024, 5, 10)

    def test_handles_missing_dates(self):
        assert latest_date(None, date(2024, 5, 3)) == date(2024, 5, 3)
        assert latest_date(date(2024, 5, 3), None) == date(2024, 5, 3)
        assert latest_date(None, None) is None
