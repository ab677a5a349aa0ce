from sqlalchemy import Column, String, Boolean, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..core.database import Base
from ..engine.records import new_id


class AccessCard(Base):
    __tablename__ = "access_cards"

    id = Column(String(36), primary_key=True, default=new_id)
    subscription_id = Column(
        String(36), ForeignKey("workstation_subscriptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    card_number = Column(String(32), unique=True, nullable=False)
    valid_date = Column(Date, nullable=False)
    qr_code = Column(String, nullable=False)  # QR payload, rendered by the client
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    subscription = relationship("WorkstationSubscription", back_populates="access_cards")
