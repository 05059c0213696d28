"""Sales quota for seller accounts.

The seller's entitlement row is the single source of truth: ``can_register``
is stored and recomputed by every writer, and the guard returns it as-is.
``is_near_limit`` and ``is_at_limit`` are display derivations only.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from entitlement_engine.accounts.models import AccountModel, TeamMembershipModel
from entitlement_engine.common.config import EngineSettings
from entitlement_engine.common.exceptions import (
    AccountNotFoundError,
    CapacityExceededError,
    StoreUnavailableError,
    ValidationFailedError,
)
from entitlement_engine.plans.catalog import UNLIMITED, Role, SellerPlanStatus
from entitlement_engine.plans.models import SellerEntitlementModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SalesQuotaReport:
    seller_id: str
    can_register: bool
    sales_used: int
    sales_limit: int
    is_team_member: bool
    subscription_status: SellerPlanStatus
    plan_type: str
    unlimited: bool
    is_near_limit: bool
    is_at_limit: bool

    @property
    def remaining(self) -> int | None:
        if self.unlimited:
            return None
        return max(0, self.sales_limit - self.sales_used)


def build_quota_report(
    entitlement: SellerEntitlementModel, near_limit_ratio: float = 0.8,
) -> SalesQuotaReport:
    used = entitlement.sales_used or 0
    unlimited = entitlement.unlimited
    limit = UNLIMITED if unlimited else entitlement.sales_limit
    return SalesQuotaReport(
        seller_id=entitlement.seller_id,
        can_register=entitlement.can_register,
        sales_used=used,
        sales_limit=limit,
        is_team_member=entitlement.is_team_member,
        subscription_status=SellerPlanStatus(entitlement.subscription_status),
        plan_type="unlimited" if entitlement.is_team_member else entitlement.plan_type,
        unlimited=unlimited,
        is_near_limit=not unlimited and used >= near_limit_ratio * limit,
        is_at_limit=not unlimited and used >= limit,
    )


async def get_entitlement(
    session: AsyncSession, seller_id: str, for_update: bool = False,
) -> SellerEntitlementModel | None:
    query = select(SellerEntitlementModel).where(
        SellerEntitlementModel.seller_id == seller_id
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def ensure_seller_entitlement(
    session: AsyncSession, seller_id: str, sales_limit: int = 10,
) -> tuple[SellerEntitlementModel, bool]:
    """Return the seller's entitlement, creating the free default if absent.

    Returns ``(entitlement, created)``. Safe under concurrent callers: a lost
    insert race resolves to the row the other caller wrote.
    """
    existing = await get_entitlement(session, seller_id)
    if existing is not None:
        return existing, False

    membership = await session.execute(
        select(TeamMembershipModel.id).where(TeamMembershipModel.seller_id == seller_id).limit(1)
    )
    entitlement = SellerEntitlementModel(
        seller_id=seller_id,
        is_team_member=membership.first() is not None,
        subscription_status=SellerPlanStatus.FREE.value,
        plan_type="free",
        sales_used=0,
        sales_limit=sales_limit,
    )
    entitlement.recompute_can_register()
    try:
        async with session.begin_nested():
            session.add(entitlement)
    except IntegrityError:
        existing = await get_entitlement(session, seller_id)
        if existing is None:
            raise
        return existing, False
    return entitlement, True


class SalesQuotaGuard:
    """Registration eligibility and quota consumption for sellers."""

    def __init__(self, settings: EngineSettings):
        self.settings = settings

    async def _require_seller(self, session: AsyncSession, seller_id: str) -> AccountModel:
        account = await session.get(AccountModel, seller_id)
        if account is None:
            raise AccountNotFoundError(f"Account '{seller_id}' not found")
        if account.role != Role.SELLER.value:
            raise ValidationFailedError(
                f"Account '{seller_id}' has role {account.role!r}, not a seller"
            )
        return account

    async def check_registration_eligibility(
        self, session: AsyncSession, seller_id: str,
    ) -> SalesQuotaReport:
        try:
            await self._require_seller(session, seller_id)
            entitlement, created = await ensure_seller_entitlement(
                session, seller_id, self.settings.default_sales_limit,
            )
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not read seller entitlement: {exc}") from exc
        if created:
            logger.info("Provisioned default entitlement for seller %s", seller_id)
        return build_quota_report(entitlement, self.settings.near_limit_ratio)

    async def consume_sale(self, session: AsyncSession, seller_id: str) -> SalesQuotaReport:
        """Count one registered sale against the quota, refusing when exhausted."""
        try:
            await self._require_seller(session, seller_id)
            entitlement = await get_entitlement(session, seller_id, for_update=True)
            if entitlement is None:
                entitlement, _ = await ensure_seller_entitlement(
                    session, seller_id, self.settings.default_sales_limit,
                )
            if not entitlement.can_register:
                raise CapacityExceededError(
                    used=entitlement.sales_used,
                    limit=entitlement.sales_limit,
                    resource="sales",
                )
            entitlement.sales_used = (entitlement.sales_used or 0) + 1
            entitlement.recompute_can_register()
            await session.flush()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not record sale: {exc}") from exc
        return build_quota_report(entitlement, self.settings.near_limit_ratio)

    async def set_subscription_status(
        self,
        session: AsyncSession,
        seller_id: str,
        status: SellerPlanStatus,
        plan_type: str | None = None,
    ) -> SalesQuotaReport:
        try:
            await self._require_seller(session, seller_id)
            entitlement, _ = await ensure_seller_entitlement(
                session, seller_id, self.settings.default_sales_limit,
            )
            entitlement.subscription_status = status.value
            entitlement.plan_type = plan_type or status.value
            entitlement.recompute_can_register()
            await session.flush()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not update seller subscription: {exc}") from exc
        return build_quota_report(entitlement, self.settings.near_limit_ratio)

    async def mark_paid(
        self, session: AsyncSession, seller_id: str, plan_type: str = "paid",
    ) -> SalesQuotaReport:
        return await self.set_subscription_status(
            session, seller_id, SellerPlanStatus.PAID, plan_type,
        )

    async def mark_free(self, session: AsyncSession, seller_id: str) -> SalesQuotaReport:
        return await self.set_subscription_status(
            session, seller_id, SellerPlanStatus.FREE, "free",
        )
