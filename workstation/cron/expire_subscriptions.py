import asyncio
import logging
from ..core.database import AsyncSessionLocal
from ..services.subscription_service import SubscriptionService
from ..services.telegram_bot import telegram_bot

logger = logging.getLogger(__name__)


async def main():
    async with AsyncSessionLocal() as session:
        counts = await SubscriptionService(session).process_due_transitions()
    logger.info("Subscription transitions applied: %s", counts)
    await telegram_bot.close()


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
