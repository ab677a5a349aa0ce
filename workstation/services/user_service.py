from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from decimal import Decimal
from typing import Optional
from ..models.user import User
from ..engine.proration import quantize_money
import logging

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_user_for_update(self, user_id: str) -> User:
        """Load the user row locked for the rest of the transaction"""
        result = await self.db.execute(
            select(User).where(User.id == user_id).with_for_update()
        )
        user = result.scalar_one_or_none()
        if not user:
            raise ValueError(f"User {user_id} not found")
        return user

    async def create_user(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        telegram_id: Optional[str] = None,
        wallet_balance: Decimal = Decimal("0.00"),
    ) -> User:
        try:
            user = User(
                email=email,
                first_name=first_name,
                last_name=last_name,
                telegram_id=telegram_id,
                wallet_balance=quantize_money(wallet_balance),
            )
            self.db.add(user)
            await self.db.commit()
            await self.db.refresh(user)
            return user
        except Exception as e:
            logger.error(f"Failed to create user {email}: {e}")
            await self.db.rollback()
            raise

    async def fund_wallet(self, user_id: str, amount: Decimal) -> User:
        """Credit the wallet; top-ups come from the payment gateway"""
        if amount <= 0:
            raise ValueError("Top-up amount must be positive")
        try:
            user = await self.get_user_for_update(user_id)
            user.wallet_balance = quantize_money(user.wallet_balance + amount)
            await self.db.commit()
            await self.db.refresh(user)
            logger.info(f"Wallet of user {user_id} funded with {amount}")
            return user
        except Exception as e:
            logger.error(f"Failed to fund wallet of user {user_id}: {e}")
            await self.db.rollback()
            raise
