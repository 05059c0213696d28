"""Tests for seat capacity and store-side seat reservation."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from entitlement_engine.accounts.models import TeamMembershipModel, VirtualSellerModel
from entitlement_engine.accounts.service import TeamService
from entitlement_engine.capacity.seats import CapacityGuard, build_report, describe_limit
from entitlement_engine.common.config import EngineSettings
from entitlement_engine.common.database import DatabaseManager
from entitlement_engine.common.exceptions import CapacityExceededError, NotProvisionedError
from entitlement_engine.plans.catalog import UNLIMITED, PlanName
from entitlement_engine.plans.resolver import PlanResolver
from entitlement_engine.plans.upgrade import UpgradeCoordinator


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
def resolver():
    return PlanResolver(make_settings())


@pytest.fixture
def guard(resolver):
    return CapacityGuard(resolver)


@pytest.fixture
def teams(guard):
    return TeamService(make_settings(), guard)


async def _owner_with_sellers(db, teams, real=0, virtual=0) -> str:
    async with db.get_session() as session:
        owner = await teams.create_owner(session, "Owner")
        for i in range(real):
            seller = await teams.create_seller(session, f"Seller {i}")
            session.add(TeamMembershipModel(seller_id=seller.id, owner_id=owner.id))
        for i in range(virtual):
            session.add(VirtualSellerModel(owner_id=owner.id, name=f"Virtual {i}"))
    return owner.id


class TestBuildReport:
    def test_total_is_real_plus_virtual(self):
        for real, virtual in [(0, 0), (2, 1), (5, 7)]:
            report = build_report("o", PlanName.POPULAR, 10, real, virtual)
            assert report.total_sellers == real + virtual

    def test_unlimited_always_can_add(self):
        report = build_report("o", PlanName.PROFISSIONAL, UNLIMITED, 500, 500)
        assert report.can_add_more is True
        assert report.remaining is None

    def test_full_plan_cannot_add(self):
        report = build_report("o", PlanName.FREE, 3, 2, 1)
        assert report.can_add_more is False
        assert report.remaining == 0

    def test_limit_message_carries_numbers(self):
        report = build_report("o", PlanName.FREE, 3, 2, 1)
        message = describe_limit(report)
        assert "Free" in message
        assert "3 vendedores" in message
        assert "2 reais + 1 virtuais" in message


class TestCheckCapacity:
    async def test_counts_real_and_virtual(self, db, guard, teams):
        owner_id = await _owner_with_sellers(db, teams, real=1, virtual=1)
        async with db.get_session() as session:
            report = await guard.check_capacity(session, owner_id)
        assert report.real_sellers == 1
        assert report.virtual_sellers == 1
        assert report.total_sellers == 2
        assert report.max_sellers == 3
        assert report.can_add_more is True
        assert report.plan_name is PlanName.FREE

    async def test_full_free_plan(self, db, guard, teams):
        owner_id = await _owner_with_sellers(db, teams, real=2, virtual=1)
        async with db.get_session() as session:
            report = await guard.check_capacity(session, owner_id)
        assert report.can_add_more is False

    async def test_not_provisioned_fails_closed(self, db, guard):
        async with db.get_session() as session:
            report = await guard.check_capacity(session, "ghost")
        assert report.provisioned is False
        assert report.can_add_more is False
        assert report.max_sellers == 0

    async def test_count_failure_fails_closed(self, db, guard, teams):
        owner_id = await _owner_with_sellers(db, teams)
        with patch.object(
            guard, "count_virtual_sellers",
            AsyncMock(side_effect=SQLAlchemyError("locked")),
        ):
            async with db.get_session() as session:
                report = await guard.check_capacity(session, owner_id)
        assert report.degraded is True
        assert report.can_add_more is False

    async def test_unlimited_plan_ignores_count(self, db, guard, teams, resolver):
        owner_id = await _owner_with_sellers(db, teams, real=2, virtual=3)
        async with db.get_session() as session:
            await UpgradeCoordinator(resolver).upgrade(session, owner_id, "profissional")
        async with db.get_session() as session:
            report = await guard.check_capacity(session, owner_id)
        assert report.max_sellers == UNLIMITED
        assert report.can_add_more is True

    async def test_validate_seller_creation(self, db, guard, teams):
        owner_id = await _owner_with_sellers(db, teams, real=3)
        async with db.get_session() as session:
            allowed, message = await guard.validate_seller_creation(session, owner_id)
        assert allowed is False
        assert "3 reais + 0 virtuais" in message


class TestReserveSeat:
    async def test_reserves_when_room(self, db, guard, teams):
        owner_id = await _owner_with_sellers(db, teams, real=1)
        async with db.get_session() as session:
            report = await guard.reserve_seat(session, owner_id)
        assert report.total_sellers == 1

    async def test_refuses_past_limit_even_without_precheck(self, db, guard, teams):
        owner_id = await _owner_with_sellers(db, teams, real=2, virtual=1)
        with pytest.raises(CapacityExceededError) as exc_info:
            async with db.get_session() as session:
                await guard.reserve_seat(session, owner_id)
        assert exc_info.value.used == 3
        assert exc_info.value.limit == 3
        assert exc_info.value.code == "CAPACITY_EXCEEDED"

    async def test_not_provisioned(self, db, guard):
        with pytest.raises(NotProvisionedError):
            async with db.get_session() as session:
                await guard.reserve_seat(session, "ghost")
