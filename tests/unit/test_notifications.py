"""Tests for the notification sink."""

import pytest

from entitlement_engine.accounts.models import AccountModel
from entitlement_engine.common.config import EngineSettings
from entitlement_engine.common.database import DatabaseManager
from entitlement_engine.notifications.service import NotificationService


@pytest.fixture
async def db():
    manager = DatabaseManager(EngineSettings(db_url="sqlite+aiosqlite://"))
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def svc():
    return NotificationService()


async def _user(db) -> str:
    async with db.get_session() as session:
        user = AccountModel(name="User", role="seller")
        session.add(user)
    return user.id


class TestNotify:
    async def test_creates_unread_notification(self, db, svc):
        user_id = await _user(db)
        async with db.get_session() as session:
            note = await svc.notify(session, user_id, "Olá", "Bem-vindo", "message")
        assert note is not None
        assert note.read is False
        async with db.get_session() as session:
            assert await svc.unread_count(session, user_id) == 1

    async def test_unknown_kind_dropped(self, db, svc):
        user_id = await _user(db)
        async with db.get_session() as session:
            assert await svc.notify(session, user_id, "t", "m", "broadcast") is None
        async with db.get_session() as session:
            assert await svc.list_for_user(session, user_id) == []

    async def test_list_unread_only(self, db, svc):
        user_id = await _user(db)
        async with db.get_session() as session:
            first = await svc.notify(session, user_id, "a", "a", "update")
            await svc.notify(session, user_id, "b", "b", "update")
        async with db.get_session() as session:
            stored = await session.get(type(first), first.id)
            stored.read = True
        async with db.get_session() as session:
            unread = await svc.list_for_user(session, user_id, unread_only=True)
        assert [n.title for n in unread] == ["b"]
