"""
Subscription lifecycle engine.

Pure composition of the tier comparator, the proration calculator and the
state machine. The caller loads records, asks the engine what to do, charges
``decision.net_due`` through its payment collaborator and persists the result.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from ..core.exceptions import InsufficientBalance, InvariantViolation, PlanChangeRejected
from .proration import ZERO, ProrationCalculator
from .records import (
    PaymentType,
    PlanChangeAction,
    PlanChangeDecision,
    PlanChangeResult,
    PlanRecord,
    StartType,
    SubscriptionRecord,
    as_utc,
)
from .state_machine import SubscriptionStateMachine
from .tiers import PlanTierComparator

logger = logging.getLogger(__name__)

ALREADY_ON_PLAN = "already_on_plan"
INSTALLMENTS_NOT_ALLOWED = "installments_not_allowed"
START_DATE_REQUIRED = "start_date_required"
START_DATE_IN_PAST = "start_date_in_past"
INSUFFICIENT_BALANCE = "insufficient_balance"
PLAN_INACTIVE = "plan_inactive"


class SubscriptionLifecycleEngine:

    def __init__(
        self,
        comparator: Optional[PlanTierComparator] = None,
        calculator: Optional[ProrationCalculator] = None,
        state_machine: Optional[SubscriptionStateMachine] = None,
        grace_period: timedelta = timedelta(days=7),
    ):
        self.comparator = comparator or PlanTierComparator()
        self.calculator = calculator or ProrationCalculator()
        self.state_machine = state_machine or SubscriptionStateMachine(self.calculator)
        self.grace_period = grace_period

    def evaluate(
        self,
        target_plan: PlanRecord,
        payment_type: PaymentType,
        now: datetime,
        current: Optional[SubscriptionRecord] = None,
        current_plan: Optional[PlanRecord] = None,
        start_type: StartType = StartType.IMMEDIATE,
        start_date: Optional[datetime] = None,
        wallet_balance: Optional[Decimal] = None,
        outstanding: Optional[Decimal] = None,
    ) -> PlanChangeDecision:
        """
        Classify a plan selection and price it against the live subscription.

        ``outstanding`` is the unpaid part of the live subscription's schedule;
        the credit never exceeds what was actually funded.
        """
        now = as_utc(now)
        errors = []

        if not target_plan.is_active:
            errors.append(PLAN_INACTIVE)
        if payment_type == PaymentType.INSTALLMENT and not target_plan.allows_installments:
            errors.append(INSTALLMENTS_NOT_ALLOWED)

        starts_at = now
        if start_type == StartType.LATER:
            if start_date is None:
                errors.append(START_DATE_REQUIRED)
            elif as_utc(start_date) < now:
                errors.append(START_DATE_IN_PAST)
            else:
                starts_at = as_utc(start_date)

        live = current if current is not None and current.is_live else None
        credit = ZERO
        if live is None:
            action = PlanChangeAction.SUBSCRIBE
        else:
            if current_plan is None or current_plan.id != live.plan_id:
                raise InvariantViolation(
                    "Current plan does not match the live subscription",
                    {"subscription_id": live.id},
                )
            action = self.comparator.compare(current_plan.duration_days, target_plan.duration_days)
            if action == PlanChangeAction.CURRENT:
                errors.append(ALREADY_ON_PLAN)
            credit = self.calculator.remaining_value(live, now)
            if outstanding is not None:
                credit = self.calculator.funded_credit(credit, live.total_amount, Decimal(outstanding))

        amount_due = self.calculator.amount_due(target_plan, payment_type)
        net_due = self.calculator.net_due(credit, amount_due)

        if wallet_balance is not None and Decimal(wallet_balance) < net_due:
            errors.append(INSUFFICIENT_BALANCE)

        decision = PlanChangeDecision(
            action=action,
            plan_id=target_plan.id,
            payment_type=payment_type,
            start_type=start_type,
            start_date=starts_at,
            amount_due=amount_due,
            credit=credit,
            net_due=net_due,
            wallet_balance=wallet_balance,
            current_subscription_id=live.id if live else None,
            errors=errors,
        )
        logger.debug(
            "Plan change %s to %s: due=%s credit=%s net=%s errors=%s",
            action.value, target_plan.id, amount_due, credit, net_due, errors,
        )
        return decision

    def commit(
        self,
        decision: PlanChangeDecision,
        user_id: str,
        target_plan: PlanRecord,
        now: datetime,
        current: Optional[SubscriptionRecord] = None,
    ) -> PlanChangeResult:
        """
        Turn a valid decision into records: the superseded subscription, the
        new one, its payment schedule and its access card.
        """
        if not decision.is_valid:
            if decision.errors == [INSUFFICIENT_BALANCE]:
                raise InsufficientBalance(decision.wallet_balance, decision.net_due)
            raise PlanChangeRejected(decision.errors)
        if target_plan.id != decision.plan_id:
            raise InvariantViolation("Decision was made for another plan", {"plan_id": target_plan.id})

        superseded = None
        if decision.current_subscription_id is not None:
            if current is None or current.id != decision.current_subscription_id:
                raise InvariantViolation(
                    "Live subscription changed since the decision was made",
                    {"subscription_id": decision.current_subscription_id},
                )
            superseded = self.state_machine.supersede(current, now)

        subscription = self.state_machine.open(
            user_id, target_plan, decision.payment_type, decision.start_date, now
        )
        payments = self.state_machine.build_payment_schedule(
            subscription, target_plan, first_amount=decision.net_due
        )
        access_card = self.state_machine.issue_access_card(subscription)
        return PlanChangeResult(
            decision=decision,
            superseded=superseded,
            subscription=subscription,
            payments=payments,
            access_card=access_card,
        )
