"""Entitlement-Engine: plans, seat capacity, sales quotas and billing sync."""

from entitlement_engine.billing.client import BillingProviderClient
from entitlement_engine.plans.catalog import PLAN_TIERS, PlanName, get_tier
from entitlement_engine.plans.trial import days_left, is_expired

__all__ = [
    "BillingProviderClient",
    "PLAN_TIERS",
    "PlanName",
    "get_tier",
    "days_left",
    "is_expired",
]
__version__ = "0.1.0"
