"""Plans & Subscriptions: HTTP surface over SubscriptionService.

Invariants:
    - Every write goes through a transactional service method (one transaction per request)
    - Failures reach the client only as classified errors (api/error_handlers.py)

Design Decisions:
    - get_subscription_service exported as the override point for tests
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from billing.config import get_settings
from billing.infrastructure.database import get_transaction_manager
from billing.infrastructure.transaction_manager import TransactionManager
from billing.schemas.subscription import (
    DeactivatePlansRequest, PlanCreate, PlanResponse, PurchaseRequest,
    PurchaseResponse, SubscriptionResponse,
)
from billing.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["subscriptions"])


def get_subscription_service(
    manager: TransactionManager = Depends(get_transaction_manager),
) -> SubscriptionService:
    settings = get_settings()
    return SubscriptionService(
        manager,
        invoice_prefix=settings.invoice_prefix,
        default_currency=settings.default_currency,
    )


@router.post(
    "/plans", response_model=PlanResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_plan(
    body: PlanCreate,
    service: SubscriptionService = Depends(get_subscription_service),
):
    plan = await service.create_plan(body)
    return PlanResponse.model_validate(plan)


@router.get("/plans", response_model=list[PlanResponse])
async def list_plans(
    include_inactive: bool = Query(False),
    service: SubscriptionService = Depends(get_subscription_service),
):
    plans = await service.list_plans(include_inactive=include_inactive)
    return [PlanResponse.model_validate(p) for p in plans]


@router.post("/plans/deactivate", response_model=list[PlanResponse])
async def deactivate_plans(
    body: DeactivatePlansRequest,
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Deactivate all listed plans, or none of them."""
    plans = await service.deactivate_plans(body.plan_ids)
    return [PlanResponse.model_validate(p) for p in plans]


@router.post(
    "/subscriptions/{user_id}/free", response_model=SubscriptionResponse,
)
async def assign_free_plan(
    user_id: UUID,
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = await service.assign_free_plan(user_id)
    return SubscriptionResponse.model_validate(subscription)


@router.post(
    "/subscriptions/{user_id}/purchase", response_model=PurchaseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def purchase_plan(
    user_id: UUID,
    body: PurchaseRequest,
    service: SubscriptionService = Depends(get_subscription_service),
):
    result = await service.purchase_plan(user_id, body.plan_id)
    return PurchaseResponse(
        subscription=SubscriptionResponse.model_validate(result.subscription),
        invoice_number=result.history.invoice_number,
        amount=result.history.amount,
        tax_amount=result.history.tax_amount,
        total_amount=result.history.total_amount,
    )


@router.post(
    "/subscriptions/{user_id}/cancel", response_model=SubscriptionResponse,
)
async def cancel_subscription(
    user_id: UUID,
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = await service.cancel_subscription(user_id)
    return SubscriptionResponse.model_validate(subscription)


@router.get(
    "/subscriptions/{user_id}", response_model=SubscriptionResponse | None,
)
async def get_active_subscription(
    user_id: UUID,
    service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = await service.get_active_subscription(user_id)
    if subscription is None:
        return None
    return SubscriptionResponse.model_validate(subscription)
