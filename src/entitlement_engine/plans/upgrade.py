"""Plan change orchestration.

Steps, each with its own failure channel:

1. Downgrade to ``free``: best-effort cancellation at the billing provider.
   Failure is logged and ignored.
2. Authoritative write of the local subscription row. Failure propagates.
3. Re-resolution through the PlanResolver.

There is no two-phase commit between 1 and 2 and no repair of remote state;
a mutation is never retried here.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from entitlement_engine.billing.adapter import BillingSyncAdapter
from entitlement_engine.common.exceptions import (
    NotProvisionedError,
    StoreUnavailableError,
)
from entitlement_engine.plans.catalog import PlanName, get_tier, parse_plan_name
from entitlement_engine.plans.resolver import CurrentPlan, PlanResolver

logger = logging.getLogger(__name__)


class UpgradeCoordinator:
    """Moves an owner between plan tiers."""

    def __init__(
        self,
        resolver: PlanResolver,
        billing: BillingSyncAdapter | None = None,
    ):
        self.resolver = resolver
        self.billing = billing

    async def upgrade(
        self, session: AsyncSession, owner_id: str, new_plan_name: str,
    ) -> CurrentPlan:
        plan = parse_plan_name(new_plan_name)

        if plan is PlanName.FREE and self.billing is not None:
            if not await self.billing.cancel_subscription(owner_id):
                logger.info(
                    "Continuing local downgrade of %s without remote cancellation",
                    owner_id,
                )

        await self._apply_local(session, owner_id, plan)
        resolved = await self.resolver.refresh(session, owner_id)
        logger.info(
            "Plan changed",
            extra={"owner_id": owner_id, "plan_name": plan.value},
        )
        return resolved

    async def _apply_local(
        self, session: AsyncSession, owner_id: str, plan: PlanName,
    ) -> None:
        row = await self.resolver.get_subscription(session, owner_id, for_update=True)
        if row is None:
            raise NotProvisionedError(f"Owner '{owner_id}' has no subscription")

        tier = get_tier(plan)
        row.plan_name = plan.value
        row.max_sellers = tier.max_sellers
        row.price_per_month = tier.price_per_month
        try:
            await session.flush()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not update plan: {exc}") from exc
        finally:
            self.resolver.invalidate(owner_id)
