"""Capacity and sales-quota API router."""

from fastapi import APIRouter, Depends

from entitlement_engine.capacity.schemas import (
    CapacityResponse,
    SellerEntitlementResponse,
    SellerSubscriptionUpdate,
)
from entitlement_engine.common.security import require_api_key
from entitlement_engine.plans.catalog import SellerPlanStatus

router = APIRouter(dependencies=[Depends(require_api_key)])


def _get_db():
    from entitlement_engine.deps import get_db
    return get_db()


@router.get("/owners/{owner_id}/capacity", response_model=CapacityResponse)
async def check_capacity(owner_id: str):
    from entitlement_engine.deps import get_capacity_guard
    guard = get_capacity_guard()
    db = _get_db()
    async with db.get_session() as session:
        report = await guard.check_capacity(session, owner_id)
    return CapacityResponse.from_report(report)


@router.get("/sellers/{seller_id}/entitlement", response_model=SellerEntitlementResponse)
async def get_seller_entitlement(seller_id: str):
    from entitlement_engine.deps import get_sales_guard
    guard = get_sales_guard()
    db = _get_db()
    async with db.get_session() as session:
        report = await guard.check_registration_eligibility(session, seller_id)
    return SellerEntitlementResponse.from_report(report)


@router.post("/sellers/{seller_id}/sales", response_model=SellerEntitlementResponse)
async def register_sale(seller_id: str):
    from entitlement_engine.deps import get_sales_guard
    guard = get_sales_guard()
    db = _get_db()
    async with db.get_session() as session:
        report = await guard.consume_sale(session, seller_id)
    return SellerEntitlementResponse.from_report(report)


@router.put("/sellers/{seller_id}/subscription", response_model=SellerEntitlementResponse)
async def set_seller_subscription(seller_id: str, body: SellerSubscriptionUpdate):
    from entitlement_engine.deps import get_sales_guard
    guard = get_sales_guard()
    db = _get_db()
    async with db.get_session() as session:
        if body.status is SellerPlanStatus.PAID:
            report = await guard.mark_paid(session, seller_id, body.plan_type or "paid")
        else:
            report = await guard.mark_free(session, seller_id)
    return SellerEntitlementResponse.from_report(report)
