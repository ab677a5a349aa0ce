"""
Subscription and payment state transitions.

All methods mutate the record they are given and return it. Illegal moves
raise ``InvalidTransition``; the machine never coerces a status.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, List, Optional

from ..core.exceptions import (
    AlreadyCancelled,
    InsufficientBalance,
    InvalidTransition,
    InvariantViolation,
    ReactivationWindowExpired,
)
from .proration import ZERO, ProrationCalculator, quantize_money
from .records import (
    AccessCardRecord,
    PaymentProgress,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
    PlanRecord,
    SubscriptionRecord,
    SubscriptionStatus,
    as_utc,
)

SUPERSEDED_REASON = "superseded by upgrade/downgrade"

S = SubscriptionStatus

TRANSITIONS: Dict[SubscriptionStatus, FrozenSet[SubscriptionStatus]] = {
    S.PENDING: frozenset({S.ACTIVE, S.CANCELLED}),
    S.ACTIVE: frozenset({S.ACTIVE, S.EXPIRED, S.CANCELLED}),
    S.EXPIRED: frozenset({S.ACTIVE}),
    S.CANCELLED: frozenset({S.ACTIVE, S.PENDING}),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.OVERDUE}),
    PaymentStatus.OVERDUE: frozenset({PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset(),
}


def add_months(start: datetime, months: int) -> datetime:
    """
    Add calendar months keeping the day in range (Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = (next_month - timedelta(days=1)).day
    return start.replace(year=y, month=m, day=min(start.day, last_day))


class SubscriptionStateMachine:

    def __init__(self, calculator: Optional[ProrationCalculator] = None):
        self.calculator = calculator or ProrationCalculator()

    def can_transition(self, from_status: SubscriptionStatus, to_status: SubscriptionStatus) -> bool:
        return to_status in TRANSITIONS.get(from_status, frozenset())

    def _require(self, subscription: SubscriptionRecord, to_status: SubscriptionStatus) -> None:
        if not self.can_transition(subscription.status, to_status):
            raise InvalidTransition(subscription.status, to_status)

    # Opening

    def open(
        self,
        user_id: str,
        plan: PlanRecord,
        payment_type: PaymentType,
        start_date: datetime,
        now: datetime,
    ) -> SubscriptionRecord:
        """New subscription: active when it starts now, pending when scheduled."""
        now = as_utc(now)
        start_date = as_utc(start_date)
        status = S.PENDING if start_date > now else S.ACTIVE
        return SubscriptionRecord(
            user_id=user_id,
            plan_id=plan.id,
            start_date=start_date,
            end_date=start_date + timedelta(days=plan.duration_days),
            total_amount=quantize_money(plan.price),
            payment_type=payment_type,
            status=status,
        )

    def activate(self, subscription: SubscriptionRecord, now: datetime) -> SubscriptionRecord:
        now = as_utc(now)
        if subscription.status != S.PENDING:
            raise InvalidTransition(subscription.status, S.ACTIVE)
        if subscription.start_date > now:
            raise InvalidTransition(
                subscription.status, S.ACTIVE, "Subscription has not reached its start date"
            )
        subscription.status = S.ACTIVE
        return subscription

    def expire(self, subscription: SubscriptionRecord, now: datetime) -> SubscriptionRecord:
        now = as_utc(now)
        if subscription.status != S.ACTIVE:
            raise InvalidTransition(subscription.status, S.EXPIRED)
        if now <= subscription.end_date:
            raise InvalidTransition(
                subscription.status, S.EXPIRED, "Subscription has not reached its end date"
            )
        subscription.status = S.EXPIRED
        return subscription

    # Closing

    def cancel(
        self,
        subscription: SubscriptionRecord,
        reason: str,
        now: datetime,
        feedback: Optional[str] = None,
    ) -> SubscriptionRecord:
        if subscription.status == S.CANCELLED:
            raise AlreadyCancelled(subscription.id)
        self._require(subscription, S.CANCELLED)

        subscription.status = S.CANCELLED
        subscription.cancelled_at = as_utc(now)
        subscription.cancellation_reason = reason
        subscription.cancellation_feedback = feedback
        return subscription

    def supersede(self, subscription: SubscriptionRecord, now: datetime) -> SubscriptionRecord:
        return self.cancel(subscription, SUPERSEDED_REASON, now)

    # Extending

    def renew(
        self,
        subscription: SubscriptionRecord,
        plan: PlanRecord,
        now: datetime,
        balance: Decimal,
    ) -> SubscriptionRecord:
        """
        Extend by one plan period from ``max(now, end_date)``.

        An active subscription keeps its start and accumulates the price; an
        expired one restarts its period at ``now``.
        """
        now = as_utc(now)
        if subscription.status not in (S.ACTIVE, S.EXPIRED):
            raise InvalidTransition(subscription.status, S.ACTIVE)

        amount_due = self.calculator.amount_due(plan, subscription.payment_type)
        if Decimal(balance) < amount_due:
            raise InsufficientBalance(balance, amount_due)

        price = quantize_money(plan.price)
        new_end = max(now, subscription.end_date) + timedelta(days=plan.duration_days)
        if subscription.status == S.EXPIRED:
            subscription.start_date = now
            subscription.total_amount = price
        else:
            subscription.total_amount = quantize_money(subscription.total_amount + price)
        subscription.end_date = new_end
        subscription.plan_id = plan.id
        subscription.status = S.ACTIVE
        return subscription

    def reactivate(
        self,
        subscription: SubscriptionRecord,
        now: datetime,
        grace_period: timedelta,
    ) -> SubscriptionRecord:
        now = as_utc(now)
        if subscription.status != S.CANCELLED:
            raise InvalidTransition(subscription.status, S.ACTIVE)
        if subscription.cancelled_at is None or now > subscription.cancelled_at + grace_period:
            raise ReactivationWindowExpired(
                "Reactivation window has expired",
                {"subscription_id": subscription.id},
            )
        if now >= subscription.end_date:
            raise ReactivationWindowExpired(
                "Subscription period is already over",
                {"subscription_id": subscription.id},
            )

        subscription.status = S.PENDING if subscription.start_date > now else S.ACTIVE
        subscription.cancelled_at = None
        subscription.cancellation_reason = None
        subscription.cancellation_feedback = None
        return subscription

    # Presence

    def check_in(self, subscription: SubscriptionRecord, now: datetime) -> SubscriptionRecord:
        now = as_utc(now)
        if subscription.status != S.ACTIVE or not (subscription.start_date <= now <= subscription.end_date):
            raise InvalidTransition(
                subscription.status, "checked_in", "Only a running active subscription can check in"
            )
        if self.is_checked_in(subscription):
            raise InvalidTransition("checked_in", "checked_in", "Already checked in")
        subscription.last_check_in = now
        return subscription

    def check_out(self, subscription: SubscriptionRecord, now: datetime) -> SubscriptionRecord:
        if not self.is_checked_in(subscription):
            raise InvalidTransition("checked_out", "checked_out", "No open check-in")
        subscription.last_check_out = as_utc(now)
        return subscription

    def is_checked_in(self, subscription: SubscriptionRecord) -> bool:
        if subscription.last_check_in is None:
            return False
        return subscription.last_check_out is None or subscription.last_check_out < subscription.last_check_in

    # Payments

    def build_payment_schedule(
        self,
        subscription: SubscriptionRecord,
        plan: PlanRecord,
        first_amount: Optional[Decimal] = None,
    ) -> List[PaymentRecord]:
        """
        One full payment at the start, or one installment per month.

        The last installment absorbs rounding so the schedule sums to the
        plan price; ``first_amount`` replaces the first charge (prorated).
        """
        start = subscription.start_date
        if subscription.payment_type == PaymentType.FULL:
            amounts = [quantize_money(plan.price)]
        else:
            months = plan.installment_months or 0
            installment = quantize_money(plan.installment_amount or ZERO)
            if months < 1 or installment <= 0:
                raise InvariantViolation("Plan does not allow installments", {"plan_id": plan.id})
            amounts = [installment] * months
            amounts[-1] = max(ZERO, quantize_money(plan.price - installment * (months - 1)))

        if first_amount is not None:
            amounts[0] = quantize_money(first_amount)

        payments = []
        for index, amount in enumerate(amounts):
            payments.append(PaymentRecord(
                subscription_id=subscription.id,
                amount=amount,
                type=subscription.payment_type,
                installment_number=index + 1 if subscription.payment_type == PaymentType.INSTALLMENT else None,
                due_date=add_months(start, index),
            ))
        return payments

    def mark_paid(self, payment: PaymentRecord, now: datetime) -> PaymentRecord:
        if PaymentStatus.PAID not in PAYMENT_TRANSITIONS[payment.status]:
            raise InvalidTransition(payment.status, PaymentStatus.PAID)
        payment.status = PaymentStatus.PAID
        payment.paid_at = as_utc(now)
        return payment

    def mark_overdue(self, payment: PaymentRecord, now: datetime) -> PaymentRecord:
        if PaymentStatus.OVERDUE not in PAYMENT_TRANSITIONS[payment.status]:
            raise InvalidTransition(payment.status, PaymentStatus.OVERDUE)
        if payment.due_date >= as_utc(now):
            raise InvalidTransition(payment.status, PaymentStatus.OVERDUE, "Payment is not yet due")
        payment.status = PaymentStatus.OVERDUE
        return payment

    def payment_progress(self, payments: Iterable[PaymentRecord]) -> PaymentProgress:
        payments = list(payments)
        paid = [p for p in payments if p.status == PaymentStatus.PAID]
        amount_paid = quantize_money(sum((p.amount for p in paid), ZERO))
        total = quantize_money(sum((p.amount for p in payments), ZERO))
        percent = (len(paid) / len(payments) * 100) if payments else 0.0
        return PaymentProgress(
            paid_count=len(paid),
            total_count=len(payments),
            amount_paid=amount_paid,
            outstanding=quantize_money(total - amount_paid),
            percent=percent,
        )

    # Access

    def current_subscription(
        self, subscriptions: Iterable[SubscriptionRecord], now: datetime
    ) -> Optional[SubscriptionRecord]:
        """The subscription eligible for a valid access card at ``now``."""
        now = as_utc(now)
        running = [
            s for s in subscriptions
            if s.status == S.ACTIVE and s.start_date <= now <= s.end_date
        ]
        if not running:
            return None
        return max(running, key=lambda s: s.start_date)

    def issue_access_card(self, subscription: SubscriptionRecord) -> AccessCardRecord:
        if not subscription.is_live:
            raise InvalidTransition(subscription.status, "card_issued", "Cards are issued for live subscriptions only")
        return AccessCardRecord(
            subscription_id=subscription.id,
            valid_date=subscription.end_date.date(),
            qr_code=subscription.tracking_code,
        )
