from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
from ..models.plan import WorkstationPlan
from ..schemas.plan import PlanCreate, PlanResponse
from ..engine.records import PlanRecord
from ..engine.tiers import PlanTierComparator
from ..core.exceptions import PlanNotFound
import logging

logger = logging.getLogger(__name__)


class PlanService:
    """Read-only plan catalog plus publishing of new plans."""

    def __init__(self, db: AsyncSession, comparator: Optional[PlanTierComparator] = None):
        self.db = db
        self.comparator = comparator or PlanTierComparator()

    def to_response(self, plan: WorkstationPlan) -> PlanResponse:
        response = PlanResponse.model_validate(plan)
        response.tier = self.comparator.tier_name(plan.duration_days)
        return response

    async def get_available_plans(self) -> List[PlanResponse]:
        result = await self.db.execute(
            select(WorkstationPlan)
            .where(WorkstationPlan.is_active == True)
            .order_by(WorkstationPlan.duration_days)
        )
        plans = result.scalars().all()
        if not plans:
            logger.warning("No active workstation plans found")
        return [self.to_response(plan) for plan in plans]

    async def get_plan(self, plan_id: str) -> WorkstationPlan:
        plan = await self.db.get(WorkstationPlan, plan_id)
        if not plan:
            raise PlanNotFound(plan_id)
        return plan

    async def get_plan_by_slug(self, slug: str) -> Optional[WorkstationPlan]:
        result = await self.db.execute(select(WorkstationPlan).where(WorkstationPlan.slug == slug))
        return result.scalar_one_or_none()

    async def create_plan(self, plan_data: PlanCreate) -> WorkstationPlan:
        """Publish a plan; its duration must be a known tier."""
        self.comparator.require_tier(plan_data.duration_days)
        PlanRecord(id="new", **plan_data.model_dump())

        try:
            plan = WorkstationPlan(**plan_data.model_dump())
            self.db.add(plan)
            await self.db.commit()
            await self.db.refresh(plan)
            logger.info(f"Plan {plan.slug} published")
            return plan
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to publish plan {plan_data.slug}: {e}")
            raise
