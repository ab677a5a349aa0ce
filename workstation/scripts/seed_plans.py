import asyncio
import logging
from decimal import Decimal
from ..core.database import AsyncSessionLocal, create_tables
from ..schemas.plan import PlanCreate
from ..services.plan_service import PlanService

logger = logging.getLogger(__name__)

PLANS = [
    PlanCreate(
        name="Daily Plan",
        slug="daily",
        price=Decimal("5000.00"),
        duration_days=1,
        print_pages_limit=10,
        meeting_room_hours=0,
        features=[
            "Access to shared workspace for one business day",
            "High-speed Wi-Fi",
            "Printing and scanning: 10 pages per day",
        ],
    ),
    PlanCreate(
        name="Weekly Plan",
        slug="weekly",
        price=Decimal("20000.00"),
        duration_days=7,
        print_pages_limit=50,
        meeting_room_hours=1,
        has_locker=True,
        features=[
            "Reserved desk option for 7 days",
            "Access to lockers for storing personal items",
            "Printing and scanning: 50 pages per week",
        ],
    ),
    PlanCreate(
        name="Monthly Plan",
        slug="monthly",
        price=Decimal("50000.00"),
        duration_days=30,
        print_pages_limit=200,
        meeting_room_hours=4,
        has_locker=True,
        has_dedicated_support=True,
        features=[
            "Personalized desk with ergonomic seating",
            "4 hours of private meeting rooms per month",
            "Dedicated customer support line",
        ],
    ),
    PlanCreate(
        name="Quarterly Plan",
        slug="quarterly",
        price=Decimal("140000.00"),
        duration_days=90,
        print_pages_limit=600,
        meeting_room_hours=8,
        has_locker=True,
        has_dedicated_support=True,
        allows_installments=True,
        installment_months=3,
        installment_amount=Decimal("46667.00"),
        features=[
            "8 meeting room hours per quarter",
            "Access to high-performance equipment",
        ],
    ),
    PlanCreate(
        name="Yearly Plan",
        slug="yearly",
        price=Decimal("500000.00"),
        duration_days=365,
        print_pages_limit=2500,
        meeting_room_hours=-1,
        has_locker=True,
        has_dedicated_support=True,
        allows_installments=True,
        installment_months=12,
        installment_amount=Decimal("41667.00"),
        features=[
            "Unlimited meeting room access (upon availability)",
            "Business mailing address and mail handling",
            "Permanent locker space",
        ],
    ),
]


async def main():
    await create_tables()
    async with AsyncSessionLocal() as session:
        service = PlanService(session)
        for plan in PLANS:
            if await service.get_plan_by_slug(plan.slug):
                logger.info("Plan %s already exists, skipped", plan.slug)
                continue
            await service.create_plan(plan)


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
