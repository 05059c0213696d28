"""Tests for the integrity reconciler."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from entitlement_engine.accounts.models import (
    AccountModel,
    TeamMembershipModel,
    TeamRequestModel,
)
from entitlement_engine.capacity.sales import get_entitlement
from entitlement_engine.common.config import EngineSettings
from entitlement_engine.common.database import DatabaseManager
from entitlement_engine.common.exceptions import AccountNotFoundError
from entitlement_engine.common.models import utcnow
from entitlement_engine.plans.models import SellerEntitlementModel
from entitlement_engine.reconcile.service import IntegrityReconciler


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
def reconciler():
    return IntegrityReconciler(make_settings())


async def _create_accounts(db, seller_role="seller", owners=1):
    async with db.get_session() as session:
        seller = AccountModel(name="Seller", role=seller_role)
        session.add(seller)
        owner_list = [AccountModel(name=f"Owner {i}", role="owner") for i in range(owners)]
        session.add_all(owner_list)
        await session.flush()
    return seller.id, [o.id for o in owner_list]


async def _count(db, model, *criteria) -> int:
    async with db.get_session() as session:
        result = await session.execute(select(func.count(model.id)).where(*criteria))
        return result.scalar()


class TestCollapse:
    async def test_keeps_newest_of_three_pending_requests(self, db, reconciler):
        seller_id, (owner_id,) = await _create_accounts(db)
        base = utcnow()
        async with db.get_session() as session:
            for minutes in (30, 20, 10):
                session.add(TeamRequestModel(
                    seller_id=seller_id, owner_id=owner_id, status="pending",
                    created_at=base - timedelta(minutes=minutes),
                ))
            newest = TeamRequestModel(
                seller_id=seller_id, owner_id=owner_id, status="pending", created_at=base,
            )
            session.add(newest)
        # four rows: the newest survives, three go
        async with db.get_session() as session:
            removed = await reconciler.collapse_pending_requests(session, seller_id)
        assert removed == 3

        async with db.get_session() as session:
            remaining = (await session.execute(select(TeamRequestModel))).scalars().all()
        assert [r.id for r in remaining] == [newest.id]

    async def test_scenario_three_pending_then_idempotent(self, db, reconciler):
        seller_id, (owner_id,) = await _create_accounts(db)
        base = utcnow()
        async with db.get_session() as session:
            for minutes in (3, 2, 1):
                session.add(TeamRequestModel(
                    seller_id=seller_id, owner_id=owner_id, status="pending",
                    created_at=base - timedelta(minutes=minutes),
                ))
        async with db.get_session() as session:
            first = await reconciler.sweep(session, seller_id)
        assert first.pending_requests_removed == 2
        assert await _count(db, TeamRequestModel) == 1

        async with db.get_session() as session:
            second = await reconciler.sweep(session, seller_id)
        assert second.pending_requests_removed == 0
        assert second.clean is True

    async def test_non_pending_requests_untouched(self, db, reconciler):
        seller_id, (owner_id,) = await _create_accounts(db)
        async with db.get_session() as session:
            session.add(TeamRequestModel(seller_id=seller_id, owner_id=owner_id, status="approved"))
            session.add(TeamRequestModel(seller_id=seller_id, owner_id=owner_id, status="pending"))
        async with db.get_session() as session:
            assert await reconciler.collapse_pending_requests(session, seller_id) == 0

    async def test_collapses_memberships_across_owners(self, db, reconciler):
        seller_id, owners = await _create_accounts(db, owners=2)
        base = utcnow()
        async with db.get_session() as session:
            session.add(TeamMembershipModel(
                seller_id=seller_id, owner_id=owners[0], created_at=base - timedelta(days=1),
            ))
            session.add(TeamMembershipModel(seller_id=seller_id, owner_id=owners[1], created_at=base))
        async with db.get_session() as session:
            assert await reconciler.collapse_memberships(session, seller_id) == 1
        async with db.get_session() as session:
            kept = (await session.execute(select(TeamMembershipModel))).scalar_one()
        assert kept.owner_id == owners[1]


class TestRepairs:
    async def test_role_repair(self, db, reconciler):
        seller_id, _ = await _create_accounts(db, seller_role=None)
        async with db.get_session() as session:
            report = await reconciler.sweep(session, seller_id)
        assert report.role_repaired is True
        assert report.entitlement_created is True
        async with db.get_session() as session:
            account = await session.get(AccountModel, seller_id)
            assert account.role == "seller"

    async def test_provisions_missing_entitlement(self, db, reconciler):
        seller_id, _ = await _create_accounts(db)
        async with db.get_session() as session:
            report = await reconciler.sweep(session, seller_id)
        assert report.entitlement_created is True
        async with db.get_session() as session:
            ent = await get_entitlement(session, seller_id)
        assert ent.subscription_status == "free"
        assert ent.plan_type == "free"
        assert ent.sales_limit == 10
        assert ent.can_register is True

    async def test_owner_gets_no_entitlement(self, db, reconciler):
        _, (owner_id,) = await _create_accounts(db)
        async with db.get_session() as session:
            report = await reconciler.sweep(session, owner_id)
        assert report.entitlement_created is False
        assert await _count(db, SellerEntitlementModel) == 0

    async def test_stale_requests_removed(self, db, reconciler):
        seller_id, (owner_id,) = await _create_accounts(db)
        old = utcnow() - timedelta(days=45)
        async with db.get_session() as session:
            session.add(TeamRequestModel(
                seller_id=seller_id, owner_id=owner_id, status="rejected", created_at=old,
            ))
            session.add(TeamRequestModel(
                seller_id=seller_id, owner_id=owner_id, status="approved", created_at=old,
            ))
            session.add(TeamRequestModel(
                seller_id=seller_id, owner_id=owner_id, status="rejected",
            ))
        async with db.get_session() as session:
            report = await reconciler.sweep(session, seller_id)
        assert report.stale_requests_removed == 2
        assert await _count(db, TeamRequestModel) == 1

    async def test_team_flag_synced(self, db, reconciler):
        seller_id, (owner_id,) = await _create_accounts(db)
        async with db.get_session() as session:
            ent = SellerEntitlementModel(
                seller_id=seller_id, is_team_member=False, subscription_status="free",
                plan_type="free", sales_used=10, sales_limit=10, can_register=False,
            )
            session.add(ent)
            session.add(TeamMembershipModel(seller_id=seller_id, owner_id=owner_id))
        async with db.get_session() as session:
            report = await reconciler.sweep(session, seller_id)
        assert report.team_flag_synced is True
        async with db.get_session() as session:
            ent = await get_entitlement(session, seller_id)
        assert ent.is_team_member is True
        assert ent.can_register is True

    async def test_second_sweep_reports_zero_changes(self, db, reconciler):
        seller_id, owners = await _create_accounts(db, seller_role=None, owners=2)
        async with db.get_session() as session:
            for owner_id in owners:
                session.add(TeamMembershipModel(seller_id=seller_id, owner_id=owner_id))
                session.add(TeamRequestModel(seller_id=seller_id, owner_id=owner_id))
        async with db.get_session() as session:
            first = await reconciler.sweep(session, seller_id)
        assert first.changes > 0
        async with db.get_session() as session:
            second = await reconciler.sweep(session, seller_id)
        assert second.changes == 0

    async def test_unknown_account(self, db, reconciler):
        with pytest.raises(AccountNotFoundError):
            async with db.get_session() as session:
                await reconciler.sweep(session, "ghost")
