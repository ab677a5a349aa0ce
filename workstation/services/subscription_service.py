from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from sqlalchemy.orm import selectinload
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
import logging

from ..core.config import settings
from ..core.exceptions import (
    InsufficientBalance,
    PlanChangeRejected,
    SubscriptionError,
    SubscriptionNotFound,
)
from ..engine import (
    PaymentRecord,
    PaymentStatus,
    PlanChangeAction,
    PlanChangeDecision,
    PlanRecord,
    PlanTierComparator,
    SubscriptionLifecycleEngine,
    SubscriptionRecord,
    SubscriptionStatus,
)
from ..models.access_card import AccessCard
from ..models.payment import WorkstationPayment
from ..models.subscription import WorkstationSubscription
from ..models.user import User
from ..schemas.subscription import (
    PaymentProgressResponse,
    PaymentResponse,
    PaymentsResponse,
    SubscriptionCreate,
    SubscriptionResponse,
    SubscriptionStatusCheck,
)
from .plan_service import PlanService
from .telegram_bot import format_money, send_telegram_notification
from .user_service import UserService
from .wallet_service import WalletPaymentProcessor

logger = logging.getLogger(__name__)

LIVE_STATUSES = (SubscriptionStatus.PENDING, SubscriptionStatus.ACTIVE)
LIVE_SUBSCRIPTION_EXISTS = "live_subscription_exists"

SUBSCRIPTION_FIELDS = (
    "plan_id",
    "start_date",
    "end_date",
    "total_amount",
    "status",
    "auto_renew",
    "cancelled_at",
    "cancellation_reason",
    "cancellation_feedback",
    "last_check_in",
    "last_check_out",
)


def build_lifecycle_engine() -> SubscriptionLifecycleEngine:
    return SubscriptionLifecycleEngine(
        comparator=PlanTierComparator(strict=settings.strict_plan_tiers),
        grace_period=timedelta(days=settings.reactivation_grace_days),
    )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionService:
    """
    Loads subscription state, asks the lifecycle engine what to do and
    persists the outcome.

    Every command runs in one transaction with the user row locked, so
    superseding the old subscription and opening the new one commit together
    and a user never holds two live subscriptions.
    """

    def __init__(
        self,
        db: AsyncSession,
        engine: Optional[SubscriptionLifecycleEngine] = None,
        payment_processor: Optional[WalletPaymentProcessor] = None,
    ):
        self.db = db
        self.engine = engine or build_lifecycle_engine()
        self.plans = PlanService(db, self.engine.comparator)
        self.users = UserService(db)
        self.payment_processor = payment_processor or WalletPaymentProcessor()

    # Queries

    def _query(self):
        return select(WorkstationSubscription).options(
            selectinload(WorkstationSubscription.plan),
            selectinload(WorkstationSubscription.payments),
            selectinload(WorkstationSubscription.access_cards),
        )

    async def _reload(self, subscription_id: str) -> WorkstationSubscription:
        result = await self.db.execute(
            self._query()
            .where(WorkstationSubscription.id == subscription_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def get_subscription(self, user_id: str, subscription_id: str) -> WorkstationSubscription:
        result = await self.db.execute(
            self._query().where(
                and_(
                    WorkstationSubscription.id == subscription_id,
                    WorkstationSubscription.user_id == user_id,
                )
            )
        )
        subscription = result.scalar_one_or_none()
        if not subscription:
            raise SubscriptionNotFound(subscription_id)
        return subscription

    async def _live_subscription(self, user_id: str) -> Optional[WorkstationSubscription]:
        result = await self.db.execute(
            self._query()
            .where(
                and_(
                    WorkstationSubscription.user_id == user_id,
                    WorkstationSubscription.status.in_(LIVE_STATUSES),
                )
            )
            .order_by(WorkstationSubscription.start_date.desc())
        )
        return result.scalars().first()

    async def get_current_subscription(self, user_id: str) -> Optional[WorkstationSubscription]:
        """Live subscription if any, otherwise the most recent one"""
        live = await self._live_subscription(user_id)
        if live:
            return live
        result = await self.db.execute(
            self._query()
            .where(WorkstationSubscription.user_id == user_id)
            .order_by(WorkstationSubscription.created_at.desc(), WorkstationSubscription.end_date.desc())
        )
        return result.scalars().first()

    async def get_subscription_history(self, user_id: str) -> List[SubscriptionResponse]:
        result = await self.db.execute(
            self._query()
            .where(WorkstationSubscription.user_id == user_id)
            .order_by(WorkstationSubscription.start_date.desc())
        )
        return [self.to_response(s) for s in result.scalars().all()]

    def to_response(self, subscription: WorkstationSubscription) -> SubscriptionResponse:
        response = SubscriptionResponse.model_validate(subscription)
        response.plan = self.plans.to_response(subscription.plan)
        return response

    async def check_subscription_status(self, user_id: str, now: Optional[datetime] = None) -> SubscriptionStatusCheck:
        now = now or utcnow()
        subscription = await self.get_current_subscription(user_id)
        if not subscription:
            return SubscriptionStatusCheck(has_active_subscription=False)

        record = SubscriptionRecord.model_validate(subscription)
        calculator = self.engine.calculator
        current = self.engine.state_machine.current_subscription([record], now)
        return SubscriptionStatusCheck(
            has_active_subscription=current is not None,
            days_remaining=calculator.days_remaining(record, now) if record.is_live else None,
            progress=calculator.progress(record, now),
            is_checked_in=self.engine.state_machine.is_checked_in(record),
            subscription=self.to_response(subscription),
        )

    # Plan changes

    async def _evaluate(
        self, user: User, data: SubscriptionCreate, now: datetime
    ) -> Tuple[PlanChangeDecision, PlanRecord, Optional[WorkstationSubscription], Optional[SubscriptionRecord]]:
        plan = await self.plans.get_plan(data.plan_id)
        target = PlanRecord.model_validate(plan)
        live = await self._live_subscription(user.id)
        current = SubscriptionRecord.model_validate(live) if live else None
        current_plan = PlanRecord.model_validate(live.plan) if live else None
        outstanding = None
        if live:
            payments = [PaymentRecord.model_validate(p) for p in live.payments]
            outstanding = self.engine.state_machine.payment_progress(payments).outstanding

        decision = self.engine.evaluate(
            target,
            data.payment_type,
            now,
            current=current,
            current_plan=current_plan,
            start_type=data.start_type,
            start_date=data.start_date,
            wallet_balance=Decimal(user.wallet_balance or 0),
            outstanding=outstanding,
        )
        return decision, target, live, current

    async def preview_plan_change(
        self, user_id: str, data: SubscriptionCreate, now: Optional[datetime] = None
    ) -> PlanChangeDecision:
        """Price a plan selection without committing anything"""
        user = await self.users.get_user(user_id)
        if not user:
            raise ValueError(f"User {user_id} not found")
        decision, _, _, _ = await self._evaluate(user, data, now or utcnow())
        return decision

    async def change_plan(
        self, user_id: str, data: SubscriptionCreate, now: Optional[datetime] = None
    ) -> Tuple[PlanChangeDecision, WorkstationSubscription]:
        """Subscribe, upgrade or downgrade, charging the prorated amount from the wallet"""
        now = now or utcnow()
        try:
            user = await self.users.get_user_for_update(user_id)
            decision, target, live, current = await self._evaluate(user, data, now)
            result = self.engine.commit(decision, user_id, target, now, current=current)

            if result.superseded is not None:
                self._apply(live, result.superseded)
                self._deactivate_cards(live)

            await self.payment_processor.charge(
                user, decision.net_due, result.subscription.id, decision.payment_type
            )
            self.engine.state_machine.mark_paid(result.payments[0], now)

            subscription = WorkstationSubscription(
                **result.subscription.model_dump(),
                payments=[WorkstationPayment(**p.model_dump()) for p in result.payments],
                access_cards=[AccessCard(**result.access_card.model_dump())],
            )
            self.db.add(subscription)
            await self.db.commit()
            subscription = await self._reload(subscription.id)
            logger.info(
                f"User {user_id}: {decision.action.value} to plan {target.id}, "
                f"charged {decision.net_due}, subscription {subscription.id}"
            )
        except SubscriptionError as e:
            await self.db.rollback()
            logger.warning(f"Plan change for user {user_id} rejected: {e}")
            raise
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Plan change for user {user_id} failed: {e}")
            raise

        await self._notify(
            user,
            f"{self._action_title(decision.action)}: <b>{subscription.plan.name}</b>\n"
            f"Charged: <b>{format_money(decision.net_due)}</b>\n"
            f"Valid until {subscription.end_date:%d %b %Y}",
        )
        return decision, subscription

    # Lifecycle commands

    async def cancel_subscription(
        self,
        user_id: str,
        subscription_id: str,
        reason: str,
        feedback: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> WorkstationSubscription:
        now = now or utcnow()
        try:
            user = await self.users.get_user_for_update(user_id)
            subscription = await self.get_subscription(user_id, subscription_id)
            record = SubscriptionRecord.model_validate(subscription)
            self.engine.state_machine.cancel(record, reason, now, feedback=feedback)
            self._apply(subscription, record)
            self._deactivate_cards(subscription)
            await self.db.commit()
            logger.info(f"Subscription {subscription_id} cancelled: {reason}")
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to cancel subscription {subscription_id}: {e}")
            raise

        await self._notify(user, f"Subscription <b>{subscription.tracking_code}</b> was cancelled.")
        return await self._reload(subscription_id)

    async def renew_subscription(
        self, user_id: str, subscription_id: str, now: Optional[datetime] = None
    ) -> WorkstationSubscription:
        now = now or utcnow()
        try:
            user = await self.users.get_user_for_update(user_id)
            subscription = await self.get_subscription(user_id, subscription_id)
            await self._renew(user, subscription, now)
            await self.db.commit()
            logger.info(f"Subscription {subscription_id} renewed until {subscription.end_date}")
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to renew subscription {subscription_id}: {e}")
            raise

        await self._notify(
            user,
            f"Subscription <b>{subscription.tracking_code}</b> renewed until {subscription.end_date:%d %b %Y}",
        )
        return await self._reload(subscription_id)

    async def _renew(self, user: User, subscription: WorkstationSubscription, now: datetime) -> None:
        record = SubscriptionRecord.model_validate(subscription)
        plan = PlanRecord.model_validate(subscription.plan)
        if record.status == SubscriptionStatus.EXPIRED:
            await self._require_no_other_live(user.id, record.id)

        machine = self.engine.state_machine
        machine.renew(record, plan, now, Decimal(user.wallet_balance or 0))
        amount = self.engine.calculator.amount_due(plan, record.payment_type)
        await self.payment_processor.charge(user, amount, record.id, record.payment_type)

        period = record.model_copy(
            update={"start_date": record.end_date - timedelta(days=plan.duration_days)}
        )
        payments = machine.build_payment_schedule(period, plan)
        machine.mark_paid(payments[0], now)

        self._apply(subscription, record)
        self._deactivate_cards(subscription)
        card = machine.issue_access_card(record)
        subscription.payments.extend(WorkstationPayment(**p.model_dump()) for p in payments)
        subscription.access_cards.append(AccessCard(**card.model_dump()))

    async def reactivate_subscription(
        self, user_id: str, subscription_id: str, now: Optional[datetime] = None
    ) -> WorkstationSubscription:
        now = now or utcnow()
        try:
            user = await self.users.get_user_for_update(user_id)
            subscription = await self.get_subscription(user_id, subscription_id)
            await self._require_no_other_live(user.id, subscription_id)
            record = SubscriptionRecord.model_validate(subscription)
            self.engine.state_machine.reactivate(record, now, self.engine.grace_period)
            self._apply(subscription, record)
            for card in subscription.access_cards:
                if card.valid_date >= now.date():
                    card.is_active = True
            await self.db.commit()
            logger.info(f"Subscription {subscription_id} reactivated")
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to reactivate subscription {subscription_id}: {e}")
            raise

        return await self._reload(subscription_id)

    async def set_auto_renew(self, user_id: str, subscription_id: str, auto_renew: bool) -> WorkstationSubscription:
        try:
            subscription = await self.get_subscription(user_id, subscription_id)
            if subscription.status not in LIVE_STATUSES:
                raise PlanChangeRejected(["subscription_not_live"])
            subscription.auto_renew = auto_renew
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to update auto-renew of subscription {subscription_id}: {e}")
            raise
        return await self._reload(subscription_id)

    async def check_in(self, user_id: str, subscription_id: str, now: Optional[datetime] = None) -> WorkstationSubscription:
        return await self._presence(user_id, subscription_id, now or utcnow(), check_in=True)

    async def check_out(self, user_id: str, subscription_id: str, now: Optional[datetime] = None) -> WorkstationSubscription:
        return await self._presence(user_id, subscription_id, now or utcnow(), check_in=False)

    async def _presence(self, user_id: str, subscription_id: str, now: datetime, check_in: bool) -> WorkstationSubscription:
        try:
            subscription = await self.get_subscription(user_id, subscription_id)
            record = SubscriptionRecord.model_validate(subscription)
            if check_in:
                self.engine.state_machine.check_in(record, now)
            else:
                self.engine.state_machine.check_out(record, now)
            self._apply(subscription, record)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Check-{'in' if check_in else 'out'} failed for subscription {subscription_id}: {e}")
            raise
        return await self._reload(subscription_id)

    # Payments and access

    async def get_payments(self, user_id: str, subscription_id: str) -> PaymentsResponse:
        subscription = await self.get_subscription(user_id, subscription_id)
        records = [PaymentRecord.model_validate(p) for p in subscription.payments]
        progress = self.engine.state_machine.payment_progress(records)
        return PaymentsResponse(
            payments=[PaymentResponse.model_validate(p) for p in subscription.payments],
            progress=PaymentProgressResponse(**progress.model_dump()),
        )

    async def get_access_card(self, user_id: str, now: Optional[datetime] = None) -> AccessCard:
        """Active card of the subscription that currently grants access"""
        now = now or utcnow()
        result = await self.db.execute(
            self._query().where(
                and_(
                    WorkstationSubscription.user_id == user_id,
                    WorkstationSubscription.status == SubscriptionStatus.ACTIVE,
                )
            )
        )
        subscriptions = {s.id: s for s in result.scalars().all()}
        records = [SubscriptionRecord.model_validate(s) for s in subscriptions.values()]
        current = self.engine.state_machine.current_subscription(records, now)
        if current is None:
            raise SubscriptionNotFound()

        cards = [c for c in subscriptions[current.id].access_cards if c.is_active]
        if not cards:
            raise SubscriptionNotFound(current.id)
        return max(cards, key=lambda c: c.valid_date)

    # Scheduler

    async def process_due_transitions(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Activate pending subscriptions whose start arrived, renew or expire
        the ones past their end, and flag unpaid installments of live
        subscriptions as overdue.
        """
        now = now or utcnow()
        machine = self.engine.state_machine
        counts = {"activated": 0, "renewed": 0, "expired": 0, "overdue": 0}
        try:
            result = await self.db.execute(
                self._query().where(
                    and_(
                        WorkstationSubscription.status == SubscriptionStatus.PENDING,
                        WorkstationSubscription.start_date <= now,
                    )
                )
            )
            for subscription in result.scalars().all():
                record = SubscriptionRecord.model_validate(subscription)
                machine.activate(record, now)
                self._apply(subscription, record)
                counts["activated"] += 1

            await self.db.flush()
            result = await self.db.execute(
                self._query().where(
                    and_(
                        WorkstationSubscription.status == SubscriptionStatus.ACTIVE,
                        WorkstationSubscription.end_date < now,
                    )
                )
            )
            for subscription in result.scalars().all():
                if subscription.auto_renew and await self._try_auto_renew(subscription, now):
                    counts["renewed"] += 1
                    continue
                record = SubscriptionRecord.model_validate(subscription)
                machine.expire(record, now)
                self._apply(subscription, record)
                self._deactivate_cards(subscription)
                counts["expired"] += 1

            await self.db.flush()
            # installments left on superseded or cancelled subscriptions are not collected
            result = await self.db.execute(
                select(WorkstationPayment)
                .join(WorkstationSubscription, WorkstationPayment.subscription_id == WorkstationSubscription.id)
                .where(
                    and_(
                        WorkstationPayment.status == PaymentStatus.PENDING,
                        WorkstationPayment.due_date < now,
                        WorkstationSubscription.status.in_(LIVE_STATUSES),
                    )
                )
            )
            for payment in result.scalars().all():
                record = PaymentRecord.model_validate(payment)
                machine.mark_overdue(record, now)
                payment.status = record.status
                counts["overdue"] += 1

            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Scheduled subscription transitions failed: {e}")
            raise

        if any(counts.values()):
            logger.info("Scheduled transitions: %s", counts)
        return counts

    async def _try_auto_renew(self, subscription: WorkstationSubscription, now: datetime) -> bool:
        user = await self.users.get_user_for_update(subscription.user_id)
        try:
            await self._renew(user, subscription, now)
        except InsufficientBalance:
            logger.info(f"Auto-renew of subscription {subscription.id} skipped: insufficient balance")
            return False
        return True

    # Helpers

    def _apply(self, subscription: WorkstationSubscription, record: SubscriptionRecord) -> None:
        for field in SUBSCRIPTION_FIELDS:
            setattr(subscription, field, getattr(record, field))

    def _deactivate_cards(self, subscription: WorkstationSubscription) -> None:
        for card in subscription.access_cards:
            card.is_active = False

    async def _require_no_other_live(self, user_id: str, subscription_id: str) -> None:
        live = await self._live_subscription(user_id)
        if live is not None and live.id != subscription_id:
            raise PlanChangeRejected([LIVE_SUBSCRIPTION_EXISTS])

    def _action_title(self, action: PlanChangeAction) -> str:
        return {
            PlanChangeAction.SUBSCRIBE: "Subscription activated",
            PlanChangeAction.UPGRADE: "Plan upgraded",
            PlanChangeAction.DOWNGRADE: "Plan downgraded",
        }.get(action, "Plan updated")

    async def _notify(self, user: User, message: str) -> None:
        if user.telegram_id:
            await send_telegram_notification(message, user.telegram_id)
