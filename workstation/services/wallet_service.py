import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import InsufficientBalance
from ..engine.proration import quantize_money
from ..engine.records import PaymentType
from ..models.user import User

logger = logging.getLogger(__name__)


class WalletService:
    """Reads wallet balances; the lifecycle engine only compares them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_balance(self, user_id: str) -> Decimal:
        user = await self.db.get(User, user_id)
        if not user:
            raise ValueError(f"User {user_id} not found")
        return quantize_money(user.wallet_balance or 0)


class WalletPaymentProcessor:
    """
    Payment collaborator that settles subscription charges from the wallet.

    Runs inside the caller's transaction: the debit is committed or rolled
    back together with the subscription rows.
    """

    async def charge(
        self,
        user: User,
        amount: Decimal,
        subscription_id: Optional[str],
        payment_type: PaymentType,
    ) -> Decimal:
        amount = quantize_money(amount)
        balance = quantize_money(user.wallet_balance or 0)
        if balance < amount:
            raise InsufficientBalance(balance, amount)

        user.wallet_balance = balance - amount
        logger.info(
            "Charged %s (%s) from wallet of user %s for subscription %s",
            amount, payment_type.value, user.id, subscription_id,
        )
        return amount
