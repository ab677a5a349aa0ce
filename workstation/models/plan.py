from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..core.database import Base
from ..engine.records import new_id


class WorkstationPlan(Base):
    __tablename__ = "workstation_plans"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    slug = Column(String(50), unique=True, nullable=False, index=True)
    price = Column(Numeric(12, 2), nullable=False)
    duration_days = Column(Integer, nullable=False)
    print_pages_limit = Column(Integer, nullable=False, default=0)
    meeting_room_hours = Column(Integer, nullable=False, default=0)  # -1 means unlimited
    has_locker = Column(Boolean, nullable=False, default=False)
    has_dedicated_support = Column(Boolean, nullable=False, default=False)
    allows_installments = Column(Boolean, nullable=False, default=False)
    installment_months = Column(Integer, nullable=True)
    installment_amount = Column(Numeric(12, 2), nullable=True)
    features = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    subscriptions = relationship("WorkstationSubscription", back_populates="plan")

    def __repr__(self):
        return f"<WorkstationPlan(slug='{self.slug}', duration_days={self.duration_days}, price={self.price})>"
