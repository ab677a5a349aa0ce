"""
Subscription errors.

Every failure the lifecycle engine detects is raised as a typed
``SubscriptionError`` carrying a machine-readable code, the HTTP status the
API answers with, and a context dict. Nothing here is retried.
"""

from typing import Any, Dict, Optional


class SubscriptionError(Exception):
    """Base error for the subscription lifecycle."""

    error_code = "SUBSCRIPTION_ERROR"
    status_code = 400

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class InvalidTransition(SubscriptionError):
    """A status change the state machine does not allow."""

    error_code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, from_status: Any, to_status: Any, message: Optional[str] = None):
        self.from_status = getattr(from_status, "value", from_status)
        self.to_status = getattr(to_status, "value", to_status)
        super().__init__(
            message or f"Cannot move from '{self.from_status}' to '{self.to_status}'",
            context={"from": self.from_status, "to": self.to_status},
        )


class AlreadyCancelled(SubscriptionError):
    error_code = "ALREADY_CANCELLED"
    status_code = 409

    def __init__(self, subscription_id: Optional[str] = None):
        super().__init__(
            "Subscription is already cancelled",
            context={"subscription_id": subscription_id} if subscription_id else None,
        )


class ReactivationWindowExpired(SubscriptionError):
    error_code = "REACTIVATION_WINDOW_EXPIRED"
    status_code = 409


class InsufficientBalance(SubscriptionError):
    error_code = "INSUFFICIENT_BALANCE"
    status_code = 402

    def __init__(self, balance: Any, amount_due: Any):
        self.balance = balance
        self.amount_due = amount_due
        super().__init__(
            "Insufficient wallet balance",
            context={"balance": str(balance), "amount_due": str(amount_due)},
        )


class InvalidDuration(SubscriptionError):
    """Duration is not one of the canonical plan tiers."""

    error_code = "INVALID_DURATION"
    status_code = 422

    def __init__(self, duration_days: int):
        self.duration_days = duration_days
        super().__init__(
            f"Unknown plan duration: {duration_days} days",
            context={"duration_days": duration_days},
        )


class InvariantViolation(SubscriptionError):
    error_code = "INVARIANT_VIOLATION"
    status_code = 422


class PlanChangeRejected(SubscriptionError):
    """The requested plan change failed validation."""

    error_code = "PLAN_CHANGE_REJECTED"
    status_code = 422

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(
            f"Plan change rejected: {', '.join(self.errors)}",
            context={"errors": self.errors},
        )


class PlanNotFound(SubscriptionError):
    error_code = "PLAN_NOT_FOUND"
    status_code = 404

    def __init__(self, plan_id: str):
        super().__init__(f"Plan '{plan_id}' not found", context={"plan_id": plan_id})


class SubscriptionNotFound(SubscriptionError):
    error_code = "SUBSCRIPTION_NOT_FOUND"
    status_code = 404

    def __init__(self, subscription_id: Optional[str] = None):
        super().__init__(
            "Subscription not found",
            context={"subscription_id": subscription_id} if subscription_id else None,
        )
