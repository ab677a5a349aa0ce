"""Tests for remaining-value and amount-due arithmetic."""

from datetime import timedelta
from decimal import Decimal

import pytest
from hypothesis import given, strategies as st

from workstation.engine import PaymentType, ProrationCalculator

from factories import NOW, make_plan, make_subscription


@pytest.fixture
def calculator():
    return ProrationCalculator()


class TestRemainingValue:

    def test_two_thirds_remaining(self, calculator):
        subscription = make_subscription()
        assert calculator.remaining_value(subscription, NOW) == Decimal("6666.67")

    def test_future_start_keeps_full_value(self, calculator):
        subscription = make_subscription(
            start_date=NOW + timedelta(days=3),
            end_date=NOW + timedelta(days=400),
            total_amount=Decimal("1234.56"),
        )
        assert calculator.remaining_value(subscription, NOW) == Decimal("1234.56")

    def test_full_value_at_start(self, calculator):
        subscription = make_subscription(start_date=NOW, end_date=NOW + timedelta(days=30))
        assert calculator.remaining_value(subscription, NOW) == Decimal("10000.00")

    def test_zero_at_end(self, calculator):
        subscription = make_subscription(start_date=NOW - timedelta(days=30), end_date=NOW)
        assert calculator.remaining_value(subscription, NOW) == Decimal("0.00")

    def test_zero_after_end(self, calculator):
        subscription = make_subscription(
            start_date=NOW - timedelta(days=40), end_date=NOW - timedelta(days=10)
        )
        assert calculator.remaining_value(subscription, NOW) == Decimal("0.00")

    def test_sub_day_precision(self, calculator):
        subscription = make_subscription(
            start_date=NOW - timedelta(hours=12),
            end_date=NOW + timedelta(hours=12),
            total_amount=Decimal("5000.00"),
        )
        assert calculator.remaining_value(subscription, NOW) == Decimal("2500.00")

    @given(
        total=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("1000000"), places=2),
        days=st.integers(min_value=1, max_value=365),
        offsets=st.lists(st.integers(min_value=0, max_value=400 * 24), min_size=2, max_size=6),
    )
    def test_non_increasing_over_time(self, total, days, offsets):
        calculator = ProrationCalculator()
        subscription = make_subscription(
            start_date=NOW, end_date=NOW + timedelta(days=days), total_amount=total
        )
        values = [
            calculator.remaining_value(subscription, NOW + timedelta(hours=h)) for h in sorted(offsets)
        ]
        assert values == sorted(values, reverse=True)
        assert all(Decimal("0") <= v <= total for v in values)


class TestAmountDue:

    def test_full_payment_is_price(self, calculator):
        assert calculator.amount_due(make_plan(), PaymentType.FULL) == Decimal("10000.00")

    def test_installment_is_first_installment(self, calculator):
        plan = make_plan(
            price=Decimal("24000"), allows_installments=True,
            installment_months=3, installment_amount=Decimal("8000"),
        )
        assert calculator.amount_due(plan, PaymentType.INSTALLMENT) == Decimal("8000.00")

    def test_net_due_for_upgrade(self, calculator):
        credit = calculator.remaining_value(make_subscription(), NOW)
        assert calculator.net_due(credit, Decimal("24000.00")) == Decimal("17333.33")

    def test_net_due_is_never_a_refund(self, calculator):
        assert calculator.net_due(Decimal("6666.67"), Decimal("5000.00")) == Decimal("0.00")

    @given(
        amount=st.decimals(min_value=Decimal("0"), max_value=Decimal("1000000"), places=2),
        credit=st.decimals(min_value=Decimal("0"), max_value=Decimal("1000000"), places=2),
    )
    def test_net_due_never_negative(self, amount, credit):
        assert ProrationCalculator().net_due(credit, amount) >= 0

    def test_credit_capped_at_funded_part(self, calculator):
        # one 8000 installment paid out of 24000, two still outstanding
        credit = calculator.funded_credit(Decimal("23733.33"), Decimal("24000.00"), Decimal("16000.00"))
        assert credit == Decimal("8000.00")

    def test_fully_paid_credit_is_remaining_value(self, calculator):
        assert calculator.funded_credit(Decimal("6666.67"), Decimal("10000.00"), Decimal("0.00")) == Decimal("6666.67")


class TestProgress:

    def test_progress_is_clamped(self, calculator):
        subscription = make_subscription()
        assert calculator.progress(subscription, NOW) == pytest.approx(100 / 3)
        assert calculator.progress(subscription, NOW - timedelta(days=30)) == 0.0
        assert calculator.progress(subscription, NOW + timedelta(days=30)) == 100.0

    def test_days_remaining(self, calculator):
        subscription = make_subscription()
        assert calculator.days_remaining(subscription, NOW) == 20
        assert calculator.days_remaining(subscription, NOW + timedelta(days=25)) == 0
