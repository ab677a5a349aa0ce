"""Remaining-value and amount-due arithmetic for plan changes."""

from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from .records import PaymentType, PlanRecord, SubscriptionRecord, as_utc

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
_MICROSECOND = timedelta(microseconds=1)


def quantize_money(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


class ProrationCalculator:

    def remaining_value(self, subscription: SubscriptionRecord, now: datetime) -> Decimal:
        """Value of the unused part of ``subscription`` at ``now``."""
        now = as_utc(now)
        total_amount = quantize_money(subscription.total_amount)

        if subscription.start_date > now:
            return total_amount
        if now > subscription.end_date:
            return ZERO

        remaining = (subscription.end_date - now) // _MICROSECOND
        total = (subscription.end_date - subscription.start_date) // _MICROSECOND
        return quantize_money(total_amount * Decimal(remaining) / Decimal(total))

    def amount_due(self, plan: PlanRecord, payment_type: PaymentType) -> Decimal:
        """Full price, or the first installment where the plan allows installments."""
        if payment_type == PaymentType.INSTALLMENT and plan.allows_installments:
            return quantize_money(plan.installment_amount)
        return quantize_money(plan.price)

    def net_due(self, remaining: Decimal, amount_due: Decimal) -> Decimal:
        """What is left to charge once the remaining value is credited; never a refund."""
        return max(ZERO, quantize_money(amount_due - remaining))

    def funded_credit(self, remaining: Decimal, total_amount: Decimal, outstanding: Decimal) -> Decimal:
        """Credit capped at the part of the subscription actually funded (total less unpaid installments)."""
        funded = max(ZERO, quantize_money(total_amount - outstanding))
        return min(quantize_money(remaining), funded)

    def progress(self, subscription: SubscriptionRecord, now: datetime) -> float:
        """Percent of the period already elapsed, clamped to [0, 100]."""
        now = as_utc(now)
        elapsed = (now - subscription.start_date) / (subscription.end_date - subscription.start_date)
        return min(max(elapsed * 100, 0.0), 100.0)

    def days_remaining(self, subscription: SubscriptionRecord, now: datetime) -> int:
        now = as_utc(now)
        if now >= subscription.end_date:
            return 0
        return (subscription.end_date - max(now, subscription.start_date)).days
