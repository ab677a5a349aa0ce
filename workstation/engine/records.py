"""
Typed records the lifecycle engine works on.

Records are built from ORM rows with ``model_validate`` (``from_attributes``)
or directly by the engine. Naive datetimes are read as UTC, since SQLite
drops the offset on the way back.
"""

import enum
import secrets
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator
from typing_extensions import Annotated

from ..core.exceptions import InvariantViolation


class PaymentType(str, enum.Enum):
    FULL = "full"
    INSTALLMENT = "installment"


class SubscriptionStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PAID = "paid"
    PENDING = "pending"
    OVERDUE = "overdue"


class StartType(str, enum.Enum):
    IMMEDIATE = "immediate"
    LATER = "later"


class PlanChangeAction(str, enum.Enum):
    SUBSCRIBE = "subscribe"
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    CURRENT = "current"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


def new_id() -> str:
    return str(uuid.uuid4())


def new_tracking_code() -> str:
    return f"WS-{secrets.token_hex(5).upper()}"


def new_card_number() -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(12))


class PlanRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    slug: Optional[str] = None
    price: Decimal
    duration_days: int
    allows_installments: bool = False
    installment_months: Optional[int] = None
    installment_amount: Optional[Decimal] = None
    has_locker: bool = False
    has_dedicated_support: bool = False
    meeting_room_hours: int = 0
    print_pages_limit: int = 0
    is_active: bool = True

    @model_validator(mode="after")
    def _check_plan(self):
        if self.price <= 0:
            raise InvariantViolation("Plan price must be positive", {"plan_id": self.id})
        if self.duration_days <= 0:
            raise InvariantViolation("Plan duration must be positive", {"plan_id": self.id})
        if self.allows_installments:
            if not self.installment_months or self.installment_months < 1:
                raise InvariantViolation(
                    "Installment plans need at least one installment month", {"plan_id": self.id}
                )
            if not self.installment_amount or self.installment_amount <= 0:
                raise InvariantViolation(
                    "Installment plans need a positive installment amount", {"plan_id": self.id}
                )
        return self


class PaymentRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=new_id)
    subscription_id: Optional[str] = None
    amount: Decimal
    type: PaymentType
    installment_number: Optional[int] = None
    due_date: UtcDatetime
    status: PaymentStatus = PaymentStatus.PENDING
    paid_at: Optional[UtcDatetime] = None


class AccessCardRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=new_id)
    subscription_id: str
    card_number: str = Field(default_factory=new_card_number)
    valid_date: date
    qr_code: str
    is_active: bool = True


class SubscriptionRecord(BaseModel):
    """One purchased plan period for one user."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    plan_id: str
    tracking_code: str = Field(default_factory=new_tracking_code)
    start_date: UtcDatetime
    end_date: UtcDatetime
    total_amount: Decimal
    payment_type: PaymentType
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    auto_renew: bool = False
    cancelled_at: Optional[UtcDatetime] = None
    cancellation_reason: Optional[str] = None
    cancellation_feedback: Optional[str] = None
    last_check_in: Optional[UtcDatetime] = None
    last_check_out: Optional[UtcDatetime] = None

    @model_validator(mode="after")
    def _check_period(self):
        if self.end_date <= self.start_date:
            raise InvariantViolation(
                "Subscription end_date must be after start_date",
                {"start_date": self.start_date.isoformat(), "end_date": self.end_date.isoformat()},
            )
        if self.total_amount <= 0:
            raise InvariantViolation(
                "Subscription total_amount must be positive",
                {"total_amount": str(self.total_amount)},
            )
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in (SubscriptionStatus.EXPIRED, SubscriptionStatus.CANCELLED)

    @property
    def is_live(self) -> bool:
        return self.status in (SubscriptionStatus.PENDING, SubscriptionStatus.ACTIVE)


class PaymentProgress(BaseModel):
    paid_count: int
    total_count: int
    amount_paid: Decimal
    outstanding: Decimal
    percent: float


class PlanChangeDecision(BaseModel):
    """What the engine decided for a plan selection; the caller charges ``net_due``."""

    action: PlanChangeAction
    plan_id: str
    payment_type: PaymentType
    start_type: StartType
    start_date: UtcDatetime
    amount_due: Decimal
    credit: Decimal = Decimal("0.00")
    net_due: Decimal
    wallet_balance: Optional[Decimal] = None
    current_subscription_id: Optional[str] = None
    errors: List[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class PlanChangeResult(BaseModel):
    decision: PlanChangeDecision
    superseded: Optional[SubscriptionRecord] = None
    subscription: SubscriptionRecord
    payments: List[PaymentRecord]
    access_card: AccessCardRecord
