import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ..core.database import get_db
from ..core.exceptions import SubscriptionError
from ..models.user import User
from ..schemas.plan import PlanResponse
from ..schemas.user import UserResponse
from ..schemas.subscription import (
    AccessCardResponse,
    CancelRequest,
    PaymentsResponse,
    PlanChangePreview,
    PlanChangeResponse,
    SubscriptionCreate,
    SubscriptionResponse,
    SubscriptionStatusCheck,
)
from ..services.plan_service import PlanService
from ..services.subscription_service import SubscriptionService
from .deps import require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workstation", tags=["workstation"])


class AutoRenewRequest(BaseModel):
    auto_renew: bool


def subscription_error(e: SubscriptionError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/plans", response_model=List[PlanResponse])
async def get_plans(db: AsyncSession = Depends(get_db)):
    """Active plans ordered by duration"""
    return await PlanService(db).get_available_plans()


@router.get("/wallet", response_model=UserResponse)
async def get_wallet(user: User = Depends(require_user)):
    """Signed-in user with the wallet balance plan changes are charged from"""
    return user


@router.get("/subscription", response_model=SubscriptionStatusCheck)
async def get_current_subscription(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    """Current subscription with progress and remaining days"""
    try:
        return await SubscriptionService(db).check_subscription_status(user.id)
    except Exception as e:
        logger.exception("Failed to load current subscription")
        raise HTTPException(status_code=500, detail=f"Failed to load subscription: {str(e)}")


@router.get("/subscription/history", response_model=List[SubscriptionResponse])
async def get_subscription_history(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await SubscriptionService(db).get_subscription_history(user.id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load subscription history: {str(e)}")


@router.post("/subscription/preview", response_model=PlanChangePreview)
async def preview_plan_change(
    data: SubscriptionCreate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    """Classify and price a plan selection without charging"""
    try:
        decision = await SubscriptionService(db).preview_plan_change(user.id, data)
        return PlanChangePreview(**decision.model_dump())
    except SubscriptionError as e:
        raise subscription_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to preview plan change: {str(e)}")


@router.post("/subscription", response_model=PlanChangeResponse, status_code=201)
async def change_plan(
    data: SubscriptionCreate,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    """Subscribe, upgrade or downgrade"""
    try:
        service = SubscriptionService(db)
        decision, subscription = await service.change_plan(user.id, data)
        return PlanChangeResponse(
            message=f"{decision.action.value.capitalize()} successful",
            action=decision.action,
            amount_charged=decision.net_due,
            subscription=service.to_response(subscription),
        )
    except SubscriptionError as e:
        raise subscription_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to change plan: {str(e)}")


@router.get("/subscription/access-card", response_model=AccessCardResponse)
async def get_access_card(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    """Card of the subscription that currently grants access"""
    try:
        return await SubscriptionService(db).get_access_card(user.id)
    except SubscriptionError as e:
        raise subscription_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load access card: {str(e)}")


@router.post("/subscription/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: str,
    data: CancelRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        service = SubscriptionService(db)
        subscription = await service.cancel_subscription(user.id, subscription_id, data.reason, data.feedback)
        return service.to_response(subscription)
    except SubscriptionError as e:
        raise subscription_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to cancel subscription: {str(e)}")


@router.post("/subscription/{subscription_id}/renew", response_model=SubscriptionResponse)
async def renew_subscription(
    subscription_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        service = SubscriptionService(db)
        return service.to_response(await service.renew_subscription(user.id, subscription_id))
    except SubscriptionError as e:
        raise subscription_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to renew subscription: {str(e)}")


@router.post("/subscription/{subscription_id}/reactivate", response_model=SubscriptionResponse)
async def reactivate_subscription(
    subscription_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        service = SubscriptionService(db)
        return service.to_response(await service.reactivate_subscription(user.id, subscription_id))
    except SubscriptionError as e:
        raise subscription_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to reactivate subscription: {str(e)}")


@router.put("/subscription/{subscription_id}/auto-renew", response_model=SubscriptionResponse)
async def set_auto_renew(
    subscription_id: str,
    data: AutoRenewRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        service = SubscriptionService(db)
        return service.to_response(await service.set_auto_renew(user.id, subscription_id, data.auto_renew))
    except SubscriptionError as e:
        raise subscription_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update auto-renew: {str(e)}")


@router.post("/subscription/{subscription_id}/check-in", response_model=SubscriptionResponse)
async def check_in(
    subscription_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        service = SubscriptionService(db)
        return service.to_response(await service.check_in(user.id, subscription_id))
    except SubscriptionError as e:
        raise subscription_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to check in: {str(e)}")


@router.post("/subscription/{subscription_id}/check-out", response_model=SubscriptionResponse)
async def check_out(
    subscription_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        service = SubscriptionService(db)
        return service.to_response(await service.check_out(user.id, subscription_id))
    except SubscriptionError as e:
        raise subscription_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to check out: {str(e)}")


@router.get("/subscription/{subscription_id}/payments", response_model=PaymentsResponse)
async def get_payments(
    subscription_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    """Payment schedule with paid/outstanding tally"""
    try:
        return await SubscriptionService(db).get_payments(user.id, subscription_id)
    except SubscriptionError as e:
        raise subscription_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load payments: {str(e)}")
