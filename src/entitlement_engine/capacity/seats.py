"""Seat capacity: real team members plus virtual sellers against the plan limit.

``check_capacity`` is the optimistic pre-check shown to users. The
enforcement point is ``reserve_seat``, which locks the owner's subscription
row and re-counts inside the caller's transaction, so two concurrent
approvals cannot both take the last seat.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from entitlement_engine.accounts.models import TeamMembershipModel, VirtualSellerModel
from entitlement_engine.common.exceptions import (
    CapacityExceededError,
    NotProvisionedError,
    StoreUnavailableError,
)
from entitlement_engine.plans.catalog import UNLIMITED, PlanName, get_tier
from entitlement_engine.plans.resolver import NOT_PROVISIONED, PlanResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapacityReport:
    owner_id: str
    total_sellers: int
    max_sellers: int
    can_add_more: bool
    real_sellers: int
    virtual_sellers: int
    plan_name: PlanName | None = None
    provisioned: bool = True
    degraded: bool = False

    @property
    def remaining(self) -> int | None:
        if self.max_sellers == UNLIMITED:
            return None
        return max(0, self.max_sellers - self.total_sellers)


def build_report(
    owner_id: str,
    plan_name: PlanName,
    max_sellers: int,
    real: int,
    virtual: int,
) -> CapacityReport:
    total = real + virtual
    return CapacityReport(
        owner_id=owner_id,
        total_sellers=total,
        max_sellers=max_sellers,
        can_add_more=max_sellers == UNLIMITED or total < max_sellers,
        real_sellers=real,
        virtual_sellers=virtual,
        plan_name=plan_name,
    )


def describe_limit(report: CapacityReport) -> str:
    plan = get_tier(report.plan_name).display_name if report.plan_name else "atual"
    return (
        f"Seu plano {plan} permite apenas {report.max_sellers} vendedores. "
        f"Você já possui {report.total_sellers} ({report.real_sellers} reais + "
        f"{report.virtual_sellers} virtuais). Faça upgrade para adicionar mais vendedores."
    )


class CapacityGuard:
    """Seat accounting for owners."""

    def __init__(self, resolver: PlanResolver):
        self.resolver = resolver

    async def count_real_sellers(self, session: AsyncSession, owner_id: str) -> int:
        result = await session.execute(
            select(func.count(TeamMembershipModel.id)).where(
                TeamMembershipModel.owner_id == owner_id
            )
        )
        return result.scalar() or 0

    async def count_virtual_sellers(self, session: AsyncSession, owner_id: str) -> int:
        result = await session.execute(
            select(func.count(VirtualSellerModel.id)).where(
                VirtualSellerModel.owner_id == owner_id
            )
        )
        return result.scalar() or 0

    async def check_capacity(self, session: AsyncSession, owner_id: str) -> CapacityReport:
        """Pre-check for display. Fails closed if either count cannot be read."""
        plan = await self.resolver.resolve_current_plan(session, owner_id)
        if plan is NOT_PROVISIONED:
            return CapacityReport(
                owner_id=owner_id, total_sellers=0, max_sellers=0,
                can_add_more=False, real_sellers=0, virtual_sellers=0,
                provisioned=False,
            )

        try:
            real = await self.count_real_sellers(session, owner_id)
            virtual = await self.count_virtual_sellers(session, owner_id)
        except SQLAlchemyError:
            logger.exception("Seat count failed for %s, reporting no capacity", owner_id)
            return CapacityReport(
                owner_id=owner_id, total_sellers=0, max_sellers=plan.max_sellers,
                can_add_more=False, real_sellers=0, virtual_sellers=0,
                plan_name=plan.plan_name, degraded=True,
            )

        report = build_report(owner_id, plan.plan_name, plan.max_sellers, real, virtual)
        logger.debug(
            "Seller limits check",
            extra={
                "owner_id": owner_id,
                "real_sellers": real,
                "virtual_sellers": virtual,
                "max_sellers": plan.max_sellers,
                "can_add_more": report.can_add_more,
            },
        )
        return report

    async def reserve_seat(self, session: AsyncSession, owner_id: str) -> CapacityReport:
        """Lock the plan row, re-count, and refuse if no seat is left.

        Must run in the same transaction as the insert that consumes the seat.
        """
        row = await self.resolver.get_subscription(session, owner_id, for_update=True)
        if row is None:
            raise NotProvisionedError(f"Owner '{owner_id}' has no subscription")
        try:
            real = await self.count_real_sellers(session, owner_id)
            virtual = await self.count_virtual_sellers(session, owner_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not count sellers: {exc}") from exc

        report = build_report(
            owner_id, PlanName(row.plan_name), row.max_sellers, real, virtual,
        )
        if not report.can_add_more:
            raise CapacityExceededError(
                used=report.total_sellers,
                limit=report.max_sellers,
                resource="sellers",
                message=describe_limit(report),
            )
        return report

    async def validate_seller_creation(
        self, session: AsyncSession, owner_id: str,
    ) -> tuple[bool, str | None]:
        """Pre-check for the "add seller" flow. Returns ``(allowed, message)``."""
        report = await self.check_capacity(session, owner_id)
        if report.can_add_more:
            return True, None
        if not report.provisioned:
            return False, "Plano ainda não carregado. Tente novamente em instantes."
        return False, describe_limit(report)
