from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..core.database import Base
from ..engine.records import PaymentStatus, PaymentType, new_id


class WorkstationPayment(Base):
    __tablename__ = "workstation_payments"

    id = Column(String(36), primary_key=True, default=new_id)
    subscription_id = Column(
        String(36), ForeignKey("workstation_subscriptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount = Column(Numeric(12, 2), nullable=False)
    type = Column(Enum(PaymentType), nullable=False)
    installment_number = Column(Integer, nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    subscription = relationship("WorkstationSubscription", back_populates="payments")
