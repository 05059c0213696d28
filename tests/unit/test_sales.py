"""Tests for the seller sales quota."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from entitlement_engine.accounts.models import AccountModel, TeamMembershipModel
from entitlement_engine.capacity.sales import (
    SalesQuotaGuard,
    build_quota_report,
    get_entitlement,
)
from entitlement_engine.common.config import EngineSettings
from entitlement_engine.common.database import DatabaseManager
from entitlement_engine.common.exceptions import (
    AccountNotFoundError,
    CapacityExceededError,
    StoreUnavailableError,
    ValidationFailedError,
)
from entitlement_engine.plans.catalog import UNLIMITED, SellerPlanStatus
from entitlement_engine.plans.models import SellerEntitlementModel


def make_settings(**overrides) -> EngineSettings:
    defaults = {"db_url": "sqlite+aiosqlite://"}
    defaults.update(overrides)
    return EngineSettings(**defaults)


@pytest.fixture
async def db():
    manager = DatabaseManager(make_settings())
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def guard():
    return SalesQuotaGuard(make_settings())


def _entitlement(**kwargs) -> SellerEntitlementModel:
    values = {
        "seller_id": "s-1",
        "is_team_member": False,
        "subscription_status": "free",
        "plan_type": "free",
        "sales_used": 0,
        "sales_limit": 10,
    }
    values.update(kwargs)
    ent = SellerEntitlementModel(**values)
    ent.recompute_can_register()
    return ent


async def _create_seller(db, role="seller", with_entitlement=True, **ent_kwargs) -> str:
    async with db.get_session() as session:
        seller = AccountModel(name="Seller", role=role)
        session.add(seller)
        await session.flush()
        if with_entitlement:
            ent = _entitlement(seller_id=seller.id, **ent_kwargs)
            session.add(ent)
    return seller.id


class TestQuotaReport:
    def test_near_limit_not_at_limit(self):
        report = build_quota_report(_entitlement(sales_used=8))
        assert report.is_near_limit is True
        assert report.is_at_limit is False
        assert report.can_register is True
        assert report.remaining == 2

    def test_at_limit_blocks_free_seller(self):
        report = build_quota_report(_entitlement(sales_used=10))
        assert report.is_at_limit is True
        assert report.can_register is False

    def test_team_member_unlimited(self):
        report = build_quota_report(_entitlement(sales_used=10, is_team_member=True))
        assert report.can_register is True
        assert report.unlimited is True
        assert report.sales_limit == UNLIMITED
        assert report.plan_type == "unlimited"
        assert report.is_at_limit is False

    def test_paid_seller_unlimited(self):
        report = build_quota_report(
            _entitlement(sales_used=10, subscription_status="paid", plan_type="paid")
        )
        assert report.can_register is True
        assert report.sales_limit == UNLIMITED

    def test_low_usage(self):
        report = build_quota_report(_entitlement(sales_used=3))
        assert report.is_near_limit is False

    def test_can_register_read_from_record(self):
        ent = _entitlement(sales_used=2)
        ent.can_register = False
        assert build_quota_report(ent).can_register is False


class TestEligibility:
    async def test_existing_entitlement(self, db, guard):
        seller_id = await _create_seller(db, sales_used=8)
        async with db.get_session() as session:
            report = await guard.check_registration_eligibility(session, seller_id)
        assert report.sales_used == 8
        assert report.is_near_limit is True

    async def test_lazy_provisioning(self, db, guard):
        seller_id = await _create_seller(db, with_entitlement=False)
        async with db.get_session() as session:
            report = await guard.check_registration_eligibility(session, seller_id)
        assert report.sales_limit == 10
        assert report.sales_used == 0
        assert report.subscription_status is SellerPlanStatus.FREE
        async with db.get_session() as session:
            assert await get_entitlement(session, seller_id) is not None

    async def test_lazy_provisioning_detects_membership(self, db, guard):
        seller_id = await _create_seller(db, with_entitlement=False)
        async with db.get_session() as session:
            owner = AccountModel(name="Owner", role="owner")
            session.add(owner)
            await session.flush()
            session.add(TeamMembershipModel(seller_id=seller_id, owner_id=owner.id))
        async with db.get_session() as session:
            report = await guard.check_registration_eligibility(session, seller_id)
        assert report.is_team_member is True
        assert report.unlimited is True

    async def test_owner_rejected(self, db, guard):
        owner_id = await _create_seller(db, role="owner", with_entitlement=False)
        with pytest.raises(ValidationFailedError):
            async with db.get_session() as session:
                await guard.check_registration_eligibility(session, owner_id)

    async def test_unknown_account(self, db, guard):
        with pytest.raises(AccountNotFoundError):
            async with db.get_session() as session:
                await guard.check_registration_eligibility(session, "ghost")


class TestConsumeSale:
    async def test_increments_and_closes_gate(self, db, guard):
        seller_id = await _create_seller(db, sales_used=9)
        async with db.get_session() as session:
            report = await guard.consume_sale(session, seller_id)
        assert report.sales_used == 10
        assert report.can_register is False

        with pytest.raises(CapacityExceededError) as exc_info:
            async with db.get_session() as session:
                await guard.consume_sale(session, seller_id)
        assert exc_info.value.resource == "sales"
        assert exc_info.value.used == 10
        assert exc_info.value.limit == 10

    async def test_refusal_mutates_nothing(self, db, guard):
        seller_id = await _create_seller(db, sales_used=10)
        with pytest.raises(CapacityExceededError):
            async with db.get_session() as session:
                await guard.consume_sale(session, seller_id)
        async with db.get_session() as session:
            ent = await get_entitlement(session, seller_id)
            assert ent.sales_used == 10

    async def test_team_member_never_blocked(self, db, guard):
        seller_id = await _create_seller(db, sales_used=50, is_team_member=True)
        async with db.get_session() as session:
            report = await guard.consume_sale(session, seller_id)
        assert report.sales_used == 51
        assert report.can_register is True


class TestStatusChanges:
    async def test_mark_paid_reopens_gate(self, db, guard):
        seller_id = await _create_seller(db, sales_used=10)
        async with db.get_session() as session:
            report = await guard.mark_paid(session, seller_id)
        assert report.can_register is True
        assert report.subscription_status is SellerPlanStatus.PAID

    async def test_mark_free_closes_gate_again(self, db, guard):
        seller_id = await _create_seller(
            db, sales_used=12, subscription_status="paid", plan_type="paid",
        )
        async with db.get_session() as session:
            report = await guard.mark_free(session, seller_id)
        assert report.can_register is False
        assert report.plan_type == "free"


class TestStoreFailures:
    async def test_consume_sale_reports_store_unavailable(self, db, guard):
        seller_id = await _create_seller(db)
        with patch(
            "entitlement_engine.capacity.sales.get_entitlement",
            AsyncMock(side_effect=SQLAlchemyError("locked")),
        ):
            with pytest.raises(StoreUnavailableError) as exc_info:
                async with db.get_session() as session:
                    await guard.consume_sale(session, seller_id)
        assert exc_info.value.code == "STORE_UNAVAILABLE"

    async def test_status_change_reports_store_unavailable(self, db, guard):
        seller_id = await _create_seller(db)
        with patch(
            "entitlement_engine.capacity.sales.get_entitlement",
            AsyncMock(side_effect=SQLAlchemyError("locked")),
        ):
            with pytest.raises(StoreUnavailableError):
                async with db.get_session() as session:
                    await guard.mark_paid(session, seller_id)
        async with db.get_session() as session:
            ent = await get_entitlement(session, seller_id)
        assert ent.subscription_status == "free"
