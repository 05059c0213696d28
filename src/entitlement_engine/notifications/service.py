"""Fire-and-forget notification sink."""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from entitlement_engine.notifications.models import NotificationModel

logger = logging.getLogger(__name__)

NOTIFICATION_KINDS: frozenset[str] = frozenset({
    "team_request",
    "new_sale",
    "update",
    "message",
    "status_change",
})


class NotificationService:
    """Writes notifications in a savepoint; failures are logged, never raised."""

    async def notify(
        self,
        session: AsyncSession,
        user_id: str,
        title: str,
        message: str,
        kind: str,
        reference_id: str | None = None,
    ) -> NotificationModel | None:
        if kind not in NOTIFICATION_KINDS:
            logger.warning("Dropping notification with unknown kind %r", kind)
            return None
        try:
            async with session.begin_nested():
                notification = NotificationModel(
                    user_id=user_id,
                    title=title,
                    message=message,
                    kind=kind,
                    read=False,
                    reference_id=reference_id,
                )
                session.add(notification)
            return notification
        except SQLAlchemyError:
            logger.exception("Failed to create notification for %s", user_id)
            return None

    async def list_for_user(
        self, session: AsyncSession, user_id: str, unread_only: bool = False,
    ) -> list[NotificationModel]:
        query = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if unread_only:
            query = query.where(NotificationModel.read == False)  # noqa: E712
        query = query.order_by(NotificationModel.created_at.desc())
        result = await session.execute(query)
        return list(result.scalars().all())

    async def unread_count(self, session: AsyncSession, user_id: str) -> int:
        result = await session.execute(
            select(func.count(NotificationModel.id)).where(
                NotificationModel.user_id == user_id,
                NotificationModel.read == False,  # noqa: E712
            )
        )
        return result.scalar() or 0
