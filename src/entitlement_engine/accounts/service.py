"""Account and team operations, including the mutations that consume seats."""

import logging
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from entitlement_engine.accounts.models import (
    AccountModel,
    TeamMembershipModel,
    TeamRequestModel,
    VirtualSellerModel,
)
from entitlement_engine.capacity.sales import ensure_seller_entitlement, get_entitlement
from entitlement_engine.capacity.seats import CapacityGuard
from entitlement_engine.common.config import EngineSettings
from entitlement_engine.common.exceptions import (
    AccountNotFoundError,
    ConflictError,
    ValidationFailedError,
)
from entitlement_engine.common.models import utcnow
from entitlement_engine.notifications.service import NotificationService
from entitlement_engine.plans.catalog import (
    PlanName,
    Role,
    SubscriptionStatus,
    TeamRequestStatus,
    get_tier,
)
from entitlement_engine.plans.models import SubscriptionModel
from entitlement_engine.plans.trial import trial_end_from

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignableSeller:
    id: str
    name: str
    email: str | None
    type: str
    is_virtual: bool


class TeamService:
    """Owners, sellers, team requests, memberships and virtual sellers."""

    def __init__(
        self,
        settings: EngineSettings,
        capacity: CapacityGuard,
        notifier: NotificationService | None = None,
    ):
        self.settings = settings
        self.capacity = capacity
        self.notifier = notifier

    # ── Accounts ──

    async def create_owner(
        self, session: AsyncSession, name: str, email: str | None = None,
    ) -> AccountModel:
        """Create an owner with its trial subscription on the free tier."""
        account = AccountModel(name=name, email=email, role=Role.OWNER.value)
        session.add(account)
        await session.flush()

        tier = get_tier(PlanName.FREE)
        session.add(SubscriptionModel(
            account_id=account.id,
            plan_name=tier.name.value,
            max_sellers=tier.max_sellers,
            price_per_month=tier.price_per_month,
            status=SubscriptionStatus.TRIAL.value,
            trial_end_date=trial_end_from(utcnow(), self.settings.trial_days),
        ))
        await session.flush()
        return account

    async def create_seller(
        self, session: AsyncSession, name: str, email: str | None = None,
    ) -> AccountModel:
        account = AccountModel(name=name, email=email, role=Role.SELLER.value)
        session.add(account)
        await session.flush()
        await ensure_seller_entitlement(
            session, account.id, self.settings.default_sales_limit,
        )
        return account

    async def get_account(self, session: AsyncSession, account_id: str) -> AccountModel:
        account = await session.get(AccountModel, account_id)
        if account is None:
            raise AccountNotFoundError(f"Account '{account_id}' not found")
        return account

    async def _require_role(
        self, session: AsyncSession, account_id: str, role: Role,
    ) -> AccountModel:
        account = await self.get_account(session, account_id)
        if account.role != role.value:
            raise ValidationFailedError(
                f"Account '{account_id}' does not have the {role.value} role"
            )
        return account

    # ── Team requests ──

    async def submit_team_request(
        self, session: AsyncSession, seller_id: str, owner_id: str,
    ) -> TeamRequestModel:
        seller = await self._require_role(session, seller_id, Role.SELLER)
        await self._require_role(session, owner_id, Role.OWNER)

        if await self._find_membership(session, seller_id, owner_id) is not None:
            raise ValidationFailedError("Seller is already a member of this team")

        result = await session.execute(
            select(TeamRequestModel)
            .where(
                TeamRequestModel.seller_id == seller_id,
                TeamRequestModel.owner_id == owner_id,
                TeamRequestModel.status == TeamRequestStatus.PENDING.value,
            )
            .order_by(TeamRequestModel.created_at.desc())
            .limit(1)
        )
        pending = result.scalar_one_or_none()
        if pending is not None:
            return pending

        request = TeamRequestModel(
            seller_id=seller_id,
            owner_id=owner_id,
            status=TeamRequestStatus.PENDING.value,
        )
        session.add(request)
        await session.flush()

        if self.notifier:
            await self.notifier.notify(
                session, owner_id,
                "Nova solicitação de equipe",
                f"{seller.name} quer entrar na sua equipe.",
                "team_request",
                reference_id=request.id,
            )
        return request

    async def _get_pending_request(
        self, session: AsyncSession, request_id: str, owner_id: str,
    ) -> TeamRequestModel:
        request = await session.get(TeamRequestModel, request_id)
        if request is None or request.owner_id != owner_id:
            raise AccountNotFoundError(f"Team request '{request_id}' not found")
        if request.status != TeamRequestStatus.PENDING.value:
            raise ValidationFailedError(f"Team request is already {request.status}")
        return request

    async def approve_team_request(
        self, session: AsyncSession, request_id: str, owner_id: str,
    ) -> TeamMembershipModel:
        """Approve a pending request, taking a seat under the store-side check."""
        request = await self._get_pending_request(session, request_id, owner_id)
        await self._require_role(session, request.seller_id, Role.SELLER)

        membership = await self._find_membership(session, request.seller_id, owner_id)
        if membership is None:
            await self.capacity.reserve_seat(session, owner_id)
            try:
                membership = await self._insert_membership(
                    session, request.seller_id, owner_id,
                )
            except ConflictError:
                logger.info(
                    "Membership %s/%s created concurrently, reusing it",
                    request.seller_id, owner_id,
                )
                membership = await self._find_membership(session, request.seller_id, owner_id)

        request.status = TeamRequestStatus.APPROVED.value
        entitlement, _ = await ensure_seller_entitlement(
            session, request.seller_id, self.settings.default_sales_limit,
        )
        entitlement.is_team_member = True
        entitlement.recompute_can_register()
        await session.flush()

        if self.notifier:
            await self.notifier.notify(
                session, request.seller_id,
                "Solicitação aprovada",
                "Você agora faz parte da equipe.",
                "status_change",
                reference_id=owner_id,
            )
        return membership

    async def reject_team_request(
        self, session: AsyncSession, request_id: str, owner_id: str,
    ) -> TeamRequestModel:
        request = await self._get_pending_request(session, request_id, owner_id)
        request.status = TeamRequestStatus.REJECTED.value
        await session.flush()
        if self.notifier:
            await self.notifier.notify(
                session, request.seller_id,
                "Solicitação recusada",
                "Sua solicitação para entrar na equipe foi recusada.",
                "status_change",
                reference_id=owner_id,
            )
        return request

    async def list_team_requests(
        self,
        session: AsyncSession,
        owner_id: str,
        status: TeamRequestStatus = TeamRequestStatus.PENDING,
    ) -> list[TeamRequestModel]:
        result = await session.execute(
            select(TeamRequestModel)
            .where(
                TeamRequestModel.owner_id == owner_id,
                TeamRequestModel.status == status.value,
            )
            .order_by(TeamRequestModel.created_at.desc())
        )
        return list(result.scalars().all())

    # ── Memberships ──

    async def _find_membership(
        self, session: AsyncSession, seller_id: str, owner_id: str,
    ) -> TeamMembershipModel | None:
        result = await session.execute(
            select(TeamMembershipModel)
            .where(
                TeamMembershipModel.seller_id == seller_id,
                TeamMembershipModel.owner_id == owner_id,
            )
            .order_by(TeamMembershipModel.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _insert_membership(
        self, session: AsyncSession, seller_id: str, owner_id: str,
    ) -> TeamMembershipModel:
        membership = TeamMembershipModel(seller_id=seller_id, owner_id=owner_id)
        try:
            async with session.begin_nested():
                session.add(membership)
        except IntegrityError as exc:
            raise ConflictError(f"Seller '{seller_id}' already in team '{owner_id}'") from exc
        return membership

    async def remove_team_member(
        self,
        session: AsyncSession,
        owner_id: str,
        seller_id: str,
        confirm_id: str,
    ) -> int:
        """Remove a seller from this owner's team.

        ``confirm_id`` must repeat ``seller_id``. Memberships in other teams
        are untouched. The account is retired (role ``inactive``) only once it
        belongs to no team; its entitlement and sales history are kept.
        """
        if confirm_id != seller_id:
            raise ValidationFailedError("Confirmation id does not match the seller id")
        if await self._find_membership(session, seller_id, owner_id) is None:
            raise AccountNotFoundError(f"Seller '{seller_id}' is not in this team")

        result = await session.execute(
            delete(TeamMembershipModel).where(
                TeamMembershipModel.seller_id == seller_id,
                TeamMembershipModel.owner_id == owner_id,
            )
        )
        remaining = await session.execute(
            select(TeamMembershipModel.id)
            .where(TeamMembershipModel.seller_id == seller_id)
            .limit(1)
        )
        if remaining.scalar_one_or_none() is None:
            seller = await self.get_account(session, seller_id)
            seller.role = Role.INACTIVE.value

            entitlement = await get_entitlement(session, seller_id)
            if entitlement is not None:
                entitlement.is_team_member = False
                entitlement.recompute_can_register()
        await session.flush()

        if self.notifier:
            await self.notifier.notify(
                session, seller_id,
                "Removido da equipe",
                "Você foi removido da equipe pelo proprietário. "
                "Suas vendas foram mantidas no sistema.",
                "status_change",
                reference_id=owner_id,
            )
        logger.info("Removed seller %s from team %s", seller_id, owner_id)
        return result.rowcount or 0

    # ── Virtual sellers ──

    async def create_virtual_seller(
        self,
        session: AsyncSession,
        owner_id: str,
        name: str,
        email: str | None = None,
    ) -> VirtualSellerModel:
        await self._require_role(session, owner_id, Role.OWNER)
        if not name.strip():
            raise ValidationFailedError("Virtual seller name is required")

        await self.capacity.reserve_seat(session, owner_id)
        virtual = VirtualSellerModel(owner_id=owner_id, name=name.strip(), email=email or None)
        session.add(virtual)
        await session.flush()
        return virtual

    async def delete_virtual_seller(
        self,
        session: AsyncSession,
        owner_id: str,
        virtual_id: str,
        confirm_id: str,
    ) -> None:
        if confirm_id != virtual_id:
            raise ValidationFailedError("Confirmation id does not match the seller id")
        virtual = await session.get(VirtualSellerModel, virtual_id)
        if virtual is None or virtual.owner_id != owner_id:
            raise AccountNotFoundError(f"Virtual seller '{virtual_id}' not found")
        await session.delete(virtual)
        await session.flush()

    # ── Listing ──

    async def list_assignable_sellers(
        self, session: AsyncSession, owner_id: str,
    ) -> list[AssignableSeller]:
        """Team members first, then virtual sellers, each ordered by name."""
        members = await session.execute(
            select(AccountModel)
            .join(TeamMembershipModel, TeamMembershipModel.seller_id == AccountModel.id)
            .where(TeamMembershipModel.owner_id == owner_id)
            .order_by(AccountModel.name)
            .distinct()
        )
        virtuals = await session.execute(
            select(VirtualSellerModel)
            .where(VirtualSellerModel.owner_id == owner_id)
            .order_by(VirtualSellerModel.name)
        )
        sellers = [
            AssignableSeller(
                id=a.id, name=a.name, email=a.email,
                type="team_member", is_virtual=False,
            )
            for a in members.scalars().all()
        ]
        sellers.extend(
            AssignableSeller(
                id=v.id, name=v.name, email=v.email,
                type="virtual", is_virtual=True,
            )
            for v in virtuals.scalars().all()
        )
        return sellers
