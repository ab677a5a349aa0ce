# Services
from .user_service import UserService
from .plan_service import PlanService
from .wallet_service import WalletService, WalletPaymentProcessor
from .subscription_service import SubscriptionService, build_lifecycle_engine
from .telegram_bot import TelegramBotService, send_telegram_notification
from .auth_service import create_session_token, verify_session_token

__all__ = [
    "UserService",
    "PlanService",
    "WalletService",
    "WalletPaymentProcessor",
    "SubscriptionService",
    "build_lifecycle_engine",
    "TelegramBotService",
    "send_telegram_notification",
    "create_session_token",
    "verify_session_token",
]
