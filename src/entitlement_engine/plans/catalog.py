"""Closed vocabularies and the plan tier table.

Every role, plan, and status string that enters the engine is parsed into one
of the enums below. An unrecognised value raises ``ValidationFailedError`` at
construction time instead of falling through to a default branch.

Tier numbers mirror the billing gateway's checkout prices (BRL cents).
"""

from dataclasses import dataclass
from enum import Enum

from entitlement_engine.common.exceptions import ValidationFailedError

UNLIMITED = -1


class Role(str, Enum):
    OWNER = "owner"
    SELLER = "seller"
    INACTIVE = "inactive"
    VIRTUAL_SELLER = "virtual_seller"


class PlanName(str, Enum):
    FREE = "free"
    POPULAR = "popular"
    CRESCIMENTO = "crescimento"
    PROFISSIONAL = "profissional"


class SubscriptionStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"


class SellerPlanStatus(str, Enum):
    FREE = "free"
    PAID = "paid"


class TeamRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class PlanTier:
    name: PlanName
    display_name: str
    max_sellers: int
    price_per_month: int
    price_per_year: int
    rank: int

    @property
    def unlimited(self) -> bool:
        return self.max_sellers == UNLIMITED


PLAN_TIERS: dict[PlanName, PlanTier] = {
    PlanName.FREE: PlanTier(PlanName.FREE, "Free", 3, 0, 0, 0),
    PlanName.POPULAR: PlanTier(PlanName.POPULAR, "Popular", 10, 10_000, 108_000, 1),
    PlanName.CRESCIMENTO: PlanTier(PlanName.CRESCIMENTO, "Crescimento", 20, 20_000, 216_000, 2),
    PlanName.PROFISSIONAL: PlanTier(
        PlanName.PROFISSIONAL, "Profissional", UNLIMITED, 60_000, 648_000, 3
    ),
}

PAID_PLANS: tuple[PlanName, ...] = (
    PlanName.POPULAR,
    PlanName.CRESCIMENTO,
    PlanName.PROFISSIONAL,
)


def _parse(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationFailedError(
            f"Unknown {label} {value!r}; expected one of: {allowed}"
        ) from None


def parse_plan_name(value: str | PlanName) -> PlanName:
    return _parse(PlanName, value, "plan")


def parse_role(value: str | Role) -> Role:
    return _parse(Role, value, "role")


def parse_subscription_status(value: str | SubscriptionStatus) -> SubscriptionStatus:
    return _parse(SubscriptionStatus, value, "subscription status")


def parse_seller_plan_status(value: str | SellerPlanStatus) -> SellerPlanStatus:
    return _parse(SellerPlanStatus, value, "seller plan status")


def get_tier(plan: str | PlanName) -> PlanTier:
    return PLAN_TIERS[parse_plan_name(plan)]


def upgrade_options(current: str | PlanName) -> dict[PlanName, bool]:
    """Which paid plans rank above ``current``."""
    rank = get_tier(current).rank
    return {plan: PLAN_TIERS[plan].rank > rank for plan in PAID_PLANS}


def price_for(plan: str | PlanName, is_annual: bool) -> int:
    tier = get_tier(plan)
    return tier.price_per_year if is_annual else tier.price_per_month
