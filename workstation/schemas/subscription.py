from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from ..engine.records import (
    PaymentStatus,
    PaymentType,
    PlanChangeAction,
    StartType,
    SubscriptionStatus,
)
from .plan import PlanResponse


class SubscriptionCreate(BaseModel):
    plan_id: str
    payment_type: PaymentType = PaymentType.FULL
    start_type: StartType = StartType.IMMEDIATE
    start_date: Optional[datetime] = None


class PlanChangePreview(BaseModel):
    action: PlanChangeAction
    plan_id: str
    payment_type: PaymentType
    start_type: StartType
    start_date: datetime
    amount_due: Decimal
    credit: Decimal
    net_due: Decimal
    wallet_balance: Optional[Decimal] = None
    current_subscription_id: Optional[str] = None
    errors: List[str] = []


class CancelRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=255)
    feedback: Optional[str] = None


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    amount: Decimal
    type: PaymentType
    installment_number: Optional[int] = None
    due_date: datetime
    status: PaymentStatus
    paid_at: Optional[datetime] = None


class AccessCardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    card_number: str
    valid_date: date
    qr_code: str
    is_active: bool


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    plan: PlanResponse
    tracking_code: str
    start_date: datetime
    end_date: datetime
    total_amount: Decimal
    payment_type: PaymentType
    status: SubscriptionStatus
    auto_renew: bool
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancellation_feedback: Optional[str] = None
    last_check_in: Optional[datetime] = None
    last_check_out: Optional[datetime] = None
    payments: List[PaymentResponse] = []
    access_cards: List[AccessCardResponse] = []
    created_at: Optional[datetime] = None


class SubscriptionStatusCheck(BaseModel):
    has_active_subscription: bool
    days_remaining: Optional[int] = None
    progress: Optional[float] = None
    is_checked_in: bool = False
    subscription: Optional[SubscriptionResponse] = None


class PaymentProgressResponse(BaseModel):
    paid_count: int
    total_count: int
    amount_paid: Decimal
    outstanding: Decimal
    percent: float


class PaymentsResponse(BaseModel):
    payments: List[PaymentResponse]
    progress: PaymentProgressResponse


class PlanChangeResponse(BaseModel):
    message: str
    action: PlanChangeAction
    amount_charged: Decimal
    subscription: SubscriptionResponse
