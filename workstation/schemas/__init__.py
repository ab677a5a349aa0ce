from .plan import PlanCreate, PlanResponse
from .user import UserResponse
from .subscription import (
    SubscriptionCreate, PlanChangePreview, CancelRequest,
    PaymentResponse, AccessCardResponse, SubscriptionResponse,
    SubscriptionStatusCheck, PaymentsResponse, PaymentProgressResponse,
    PlanChangeResponse,
)

__all__ = [
    "PlanCreate", "PlanResponse",
    "UserResponse",
    "SubscriptionCreate", "PlanChangePreview", "CancelRequest",
    "PaymentResponse", "AccessCardResponse", "SubscriptionResponse",
    "SubscriptionStatusCheck", "PaymentsResponse", "PaymentProgressResponse",
    "PlanChangeResponse",
]
