from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Enum, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..core.database import Base
from ..engine.records import PaymentType, SubscriptionStatus, new_id, new_tracking_code


class WorkstationSubscription(Base):
    __tablename__ = "workstation_subscriptions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(String(36), ForeignKey("workstation_plans.id"), nullable=False)
    tracking_code = Column(String(32), unique=True, nullable=False, default=new_tracking_code)

    # Period
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    total_amount = Column(Numeric(12, 2), nullable=False)
    payment_type = Column(Enum(PaymentType), nullable=False)
    status = Column(Enum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.PENDING, index=True)
    auto_renew = Column(Boolean, nullable=False, default=False)

    # Cancellation
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancellation_feedback = Column(Text, nullable=True)

    # Presence
    last_check_in = Column(DateTime(timezone=True), nullable=True)
    last_check_out = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="subscriptions")
    plan = relationship("WorkstationPlan", back_populates="subscriptions")
    payments = relationship(
        "WorkstationPayment",
        back_populates="subscription",
        cascade="all, delete-orphan",
        order_by="WorkstationPayment.due_date",
    )
    access_cards = relationship(
        "AccessCard",
        back_populates="subscription",
        cascade="all, delete-orphan",
    )
