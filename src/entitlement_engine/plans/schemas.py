"""Pydantic schemas for plan endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from entitlement_engine.plans.resolver import CurrentPlan


class PlanResponse(BaseModel):
    owner_id: str
    plan_name: str
    display_name: str
    max_sellers: int
    price_per_month: int
    status: str
    is_annual: bool
    trial_end_date: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None
    trial_days_left: int
    is_trial_expired: bool
    can_upgrade_to_popular: bool
    can_upgrade_to_crescimento: bool
    can_upgrade_to_profissional: bool

    @classmethod
    def from_plan(cls, plan: CurrentPlan) -> "PlanResponse":
        return cls(
            owner_id=plan.owner_id,
            plan_name=plan.plan_name.value,
            display_name=plan.display_name,
            max_sellers=plan.max_sellers,
            price_per_month=plan.price_per_month,
            status=plan.status.value,
            is_annual=plan.is_annual,
            trial_end_date=plan.trial_end_date,
            subscription_end_date=plan.subscription_end_date,
            trial_days_left=plan.trial_days_left(),
            is_trial_expired=plan.is_trial_expired(),
            can_upgrade_to_popular=plan.can_upgrade_to_popular,
            can_upgrade_to_crescimento=plan.can_upgrade_to_crescimento,
            can_upgrade_to_profissional=plan.can_upgrade_to_profissional,
        )


class UpgradeRequest(BaseModel):
    plan_name: str
