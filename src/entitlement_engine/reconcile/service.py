"""Integrity reconciler: idempotent per-account repair sweep.

Each step checks before it writes, so a second run finds nothing to do and
two concurrent sweeps converge: duplicate collapse deletes by id in recency
order (a row already deleted by the other sweep simply is not counted), and
entitlement provisioning tolerates losing the insert race.
"""

import logging
from dataclasses import dataclass, fields
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from entitlement_engine.accounts.models import (
    AccountModel,
    TeamMembershipModel,
    TeamRequestModel,
)
from entitlement_engine.capacity.sales import ensure_seller_entitlement, get_entitlement
from entitlement_engine.common.config import EngineSettings
from entitlement_engine.common.exceptions import AccountNotFoundError, StoreUnavailableError
from entitlement_engine.common.models import utcnow
from entitlement_engine.plans.catalog import Role, TeamRequestStatus

logger = logging.getLogger(__name__)

# Accounts without a role are treated as sellers.
DEFAULT_ROLE = Role.SELLER


@dataclass
class ReconcileReport:
    account_id: str
    role_repaired: bool = False
    pending_requests_removed: int = 0
    memberships_removed: int = 0
    entitlement_created: bool = False
    stale_requests_removed: int = 0
    team_flag_synced: bool = False

    @property
    def changes(self) -> int:
        return sum(
            int(getattr(self, f.name))
            for f in fields(self)
            if f.name != "account_id"
        )

    @property
    def clean(self) -> bool:
        return self.changes == 0


class IntegrityReconciler:
    """Repairs drift in entitlement-related records for one account."""

    def __init__(self, settings: EngineSettings):
        self.settings = settings

    async def _get_account(self, session: AsyncSession, account_id: str) -> AccountModel:
        account = await session.get(AccountModel, account_id)
        if account is None:
            raise AccountNotFoundError(f"Account '{account_id}' not found")
        return account

    async def repair_role(self, session: AsyncSession, account_id: str) -> bool:
        account = await self._get_account(session, account_id)
        if account.role is not None:
            return False
        account.role = DEFAULT_ROLE.value
        await session.flush()
        logger.info("Assigned default role %s to %s", DEFAULT_ROLE.value, account_id)
        return True

    async def _collapse_to_newest(self, session: AsyncSession, model, *criteria) -> int:
        result = await session.execute(
            select(model.id)
            .where(*criteria)
            .order_by(model.created_at.desc(), model.id.desc())
        )
        stale_ids = list(result.scalars().all())[1:]
        if not stale_ids:
            return 0
        deleted = await session.execute(delete(model).where(model.id.in_(stale_ids)))
        return deleted.rowcount or 0

    async def collapse_pending_requests(self, session: AsyncSession, seller_id: str) -> int:
        """Keep only the newest pending team request from a seller."""
        removed = await self._collapse_to_newest(
            session,
            TeamRequestModel,
            TeamRequestModel.seller_id == seller_id,
            TeamRequestModel.status == TeamRequestStatus.PENDING.value,
        )
        if removed:
            logger.info("Cleaned %d duplicate team requests for %s", removed, seller_id)
        return removed

    async def collapse_memberships(self, session: AsyncSession, seller_id: str) -> int:
        """Keep only the newest team membership of a seller."""
        removed = await self._collapse_to_newest(
            session,
            TeamMembershipModel,
            TeamMembershipModel.seller_id == seller_id,
        )
        if removed:
            logger.info("Cleaned %d duplicate team memberships for %s", removed, seller_id)
        return removed

    async def provision_missing_entitlement(
        self, session: AsyncSession, account_id: str,
    ) -> bool:
        account = await self._get_account(session, account_id)
        if account.role != Role.SELLER.value:
            return False
        _, created = await ensure_seller_entitlement(
            session, account_id, self.settings.default_sales_limit,
        )
        if created:
            logger.info("Created missing seller entitlement for %s", account_id)
        return created

    async def cleanup_stale_requests(
        self, session: AsyncSession, seller_id: str, now: datetime | None = None,
    ) -> int:
        """Delete approved or rejected requests older than ``stale_request_days``."""
        cutoff = (now or utcnow()) - timedelta(days=self.settings.stale_request_days)
        result = await session.execute(
            delete(TeamRequestModel).where(
                TeamRequestModel.seller_id == seller_id,
                TeamRequestModel.status.in_(
                    [TeamRequestStatus.APPROVED.value, TeamRequestStatus.REJECTED.value]
                ),
                TeamRequestModel.created_at < cutoff,
            )
        )
        return result.rowcount or 0

    async def sync_team_flag(self, session: AsyncSession, seller_id: str) -> bool:
        """Align ``is_team_member`` with membership rows and refresh the gate."""
        entitlement = await get_entitlement(session, seller_id)
        if entitlement is None:
            return False
        result = await session.execute(
            select(TeamMembershipModel.id)
            .where(TeamMembershipModel.seller_id == seller_id)
            .limit(1)
        )
        has_membership = result.first() is not None

        before = (entitlement.is_team_member, entitlement.can_register)
        entitlement.is_team_member = has_membership
        entitlement.recompute_can_register()
        if before == (entitlement.is_team_member, entitlement.can_register):
            return False
        await session.flush()
        logger.info("Synced team flag for %s to %s", seller_id, has_membership)
        return True

    async def sweep(self, session: AsyncSession, account_id: str) -> ReconcileReport:
        """Run every repair step for one account."""
        report = ReconcileReport(account_id=account_id)
        try:
            report.role_repaired = await self.repair_role(session, account_id)
            report.pending_requests_removed = await self.collapse_pending_requests(
                session, account_id,
            )
            report.memberships_removed = await self.collapse_memberships(session, account_id)
            report.entitlement_created = await self.provision_missing_entitlement(
                session, account_id,
            )
            report.stale_requests_removed = await self.cleanup_stale_requests(
                session, account_id,
            )
            report.team_flag_synced = await self.sync_team_flag(session, account_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Reconciliation failed: {exc}") from exc

        if not report.clean:
            logger.info(
                "Database validation completed",
                extra={"account_id": account_id, "changes": report.changes},
            )
        return report
