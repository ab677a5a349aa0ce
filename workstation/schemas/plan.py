from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import datetime
from decimal import Decimal


class PlanBase(BaseModel):
    name: str
    slug: str
    price: Decimal
    duration_days: int
    print_pages_limit: int = 0
    meeting_room_hours: int = 0
    has_locker: bool = False
    has_dedicated_support: bool = False
    allows_installments: bool = False
    installment_months: Optional[int] = None
    installment_amount: Optional[Decimal] = None
    features: List[str] = []
    is_active: bool = True


class PlanCreate(PlanBase):
    pass


class PlanResponse(PlanBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tier: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
