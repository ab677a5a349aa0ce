from .records import (
    AccessCardRecord,
    PaymentProgress,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
    PlanChangeAction,
    PlanChangeDecision,
    PlanChangeResult,
    PlanRecord,
    StartType,
    SubscriptionRecord,
    SubscriptionStatus,
)
from .tiers import DEFAULT_PLAN_HIERARCHY, PlanTierComparator, TierDefinition
from .proration import ProrationCalculator
from .state_machine import SUPERSEDED_REASON, SubscriptionStateMachine
from .lifecycle import SubscriptionLifecycleEngine

__all__ = [
    "AccessCardRecord",
    "PaymentProgress",
    "PaymentRecord",
    "PaymentStatus",
    "PaymentType",
    "PlanChangeAction",
    "PlanChangeDecision",
    "PlanChangeResult",
    "PlanRecord",
    "StartType",
    "SubscriptionRecord",
    "SubscriptionStatus",
    "DEFAULT_PLAN_HIERARCHY",
    "PlanTierComparator",
    "TierDefinition",
    "ProrationCalculator",
    "SUPERSEDED_REASON",
    "SubscriptionStateMachine",
    "SubscriptionLifecycleEngine",
]
