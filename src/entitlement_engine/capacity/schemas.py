"""Pydantic schemas for capacity and quota endpoints."""

from typing import Optional

from pydantic import BaseModel

from entitlement_engine.capacity.sales import SalesQuotaReport
from entitlement_engine.capacity.seats import CapacityReport
from entitlement_engine.plans.catalog import SellerPlanStatus


class CapacityResponse(BaseModel):
    owner_id: str
    plan_name: Optional[str] = None
    total_sellers: int
    max_sellers: int
    can_add_more: bool
    real_sellers: int
    virtual_sellers: int
    remaining: Optional[int] = None
    provisioned: bool = True
    degraded: bool = False

    @classmethod
    def from_report(cls, report: CapacityReport) -> "CapacityResponse":
        return cls(
            owner_id=report.owner_id,
            plan_name=report.plan_name.value if report.plan_name else None,
            total_sellers=report.total_sellers,
            max_sellers=report.max_sellers,
            can_add_more=report.can_add_more,
            real_sellers=report.real_sellers,
            virtual_sellers=report.virtual_sellers,
            remaining=report.remaining,
            provisioned=report.provisioned,
            degraded=report.degraded,
        )


class SellerEntitlementResponse(BaseModel):
    seller_id: str
    can_register: bool
    sales_used: int
    sales_limit: int
    is_team_member: bool
    subscription_status: str
    plan_type: str
    unlimited: bool
    is_near_limit: bool
    is_at_limit: bool
    remaining: Optional[int] = None

    @classmethod
    def from_report(cls, report: SalesQuotaReport) -> "SellerEntitlementResponse":
        return cls(
            seller_id=report.seller_id,
            can_register=report.can_register,
            sales_used=report.sales_used,
            sales_limit=report.sales_limit,
            is_team_member=report.is_team_member,
            subscription_status=report.subscription_status.value,
            plan_type=report.plan_type,
            unlimited=report.unlimited,
            is_near_limit=report.is_near_limit,
            is_at_limit=report.is_at_limit,
            remaining=report.remaining,
        )


class SellerSubscriptionUpdate(BaseModel):
    status: SellerPlanStatus
    plan_type: Optional[str] = None
