from .user import User
from .plan import WorkstationPlan
from .subscription import WorkstationSubscription
from .payment import WorkstationPayment
from .access_card import AccessCard
from ..core.database import Base

__all__ = [
    "Base",
    "User",
    "WorkstationPlan",
    "WorkstationSubscription",
    "WorkstationPayment",
    "AccessCard",
]
