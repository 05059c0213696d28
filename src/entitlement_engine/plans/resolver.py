"""Authoritative plan resolution from the local store.

The local ``subscriptions`` row is the system of record for capacity. The
resolver never substitutes a default plan: a missing row resolves to the
``NOT_PROVISIONED`` sentinel, and a store failure raises
``StoreUnavailableError``.

Snapshots are cached per owner for ``plan_cache_ttl`` seconds. ``refresh``
always re-reads and ``invalidate`` drops a snapshot; every local plan
mutation must invalidate. Absence is never cached.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from entitlement_engine.common.config import EngineSettings
from entitlement_engine.common.exceptions import StoreUnavailableError
from entitlement_engine.common.models import as_utc
from entitlement_engine.plans import trial
from entitlement_engine.plans.catalog import (
    UNLIMITED,
    PlanName,
    SubscriptionStatus,
    get_tier,
    parse_plan_name,
    parse_subscription_status,
    upgrade_options,
)
from entitlement_engine.plans.models import SubscriptionModel

logger = logging.getLogger(__name__)


class _NotProvisioned:
    """Sentinel for an owner whose subscription row does not exist yet."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_PROVISIONED"


NOT_PROVISIONED = _NotProvisioned()


@dataclass(frozen=True)
class CurrentPlan:
    """Detached snapshot of an owner's subscription."""

    owner_id: str
    plan_name: PlanName
    max_sellers: int
    price_per_month: int
    status: SubscriptionStatus
    is_annual: bool = False
    trial_end_date: datetime | None = None
    subscription_end_date: datetime | None = None

    @classmethod
    def from_model(cls, row: SubscriptionModel) -> "CurrentPlan":
        return cls(
            owner_id=row.account_id,
            plan_name=parse_plan_name(row.plan_name),
            max_sellers=row.max_sellers,
            price_per_month=row.price_per_month,
            status=parse_subscription_status(row.status),
            is_annual=bool(row.is_annual),
            trial_end_date=as_utc(row.trial_end_date),
            subscription_end_date=as_utc(row.subscription_end_date),
        )

    @property
    def display_name(self) -> str:
        return get_tier(self.plan_name).display_name

    @property
    def unlimited(self) -> bool:
        return self.max_sellers == UNLIMITED

    @property
    def can_upgrade_to_popular(self) -> bool:
        return upgrade_options(self.plan_name)[PlanName.POPULAR]

    @property
    def can_upgrade_to_crescimento(self) -> bool:
        return upgrade_options(self.plan_name)[PlanName.CRESCIMENTO]

    @property
    def can_upgrade_to_profissional(self) -> bool:
        return upgrade_options(self.plan_name)[PlanName.PROFISSIONAL]

    def trial_days_left(self, now: datetime | None = None) -> int:
        if self.status is not SubscriptionStatus.TRIAL:
            return 0
        return trial.days_left(self.trial_end_date, now)

    def is_trial_expired(self, now: datetime | None = None) -> bool:
        return trial.is_expired(self.status, self.trial_end_date, now)


ResolvedPlan = Union[CurrentPlan, _NotProvisioned]


class PlanResolver:
    """Resolves and caches owner plans."""

    def __init__(
        self,
        settings: EngineSettings,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self._clock = clock
        self._cache: dict[str, tuple[float, CurrentPlan]] = {}

    async def get_subscription(
        self,
        session: AsyncSession,
        owner_id: str,
        for_update: bool = False,
    ) -> SubscriptionModel | None:
        """Load the raw row. ``for_update`` locks it for the rest of the transaction."""
        query = select(SubscriptionModel).where(SubscriptionModel.account_id == owner_id)
        if for_update:
            query = query.with_for_update()
        try:
            result = await session.execute(query)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Could not read subscription: {exc}") from exc
        return result.scalar_one_or_none()

    async def resolve_current_plan(
        self, session: AsyncSession, owner_id: str,
    ) -> ResolvedPlan:
        """Return the owner's plan, serving a cached snapshot while it is fresh.

        A snapshot younger than ``plan_cache_ttl`` is returned without touching
        the store, so within that window a store outage goes unnoticed and a
        change written by another process is not seen. Callers that need the
        current row use ``refresh``; seat reservation always reads it locked.
        """
        cached = self._cache.get(owner_id)
        if cached is not None:
            cached_at, plan = cached
            if self._clock() - cached_at < self.settings.plan_cache_ttl:
                return plan
        return await self.refresh(session, owner_id)

    async def refresh(self, session: AsyncSession, owner_id: str) -> ResolvedPlan:
        """Bypass the cache, re-read the row, and cache the result."""
        self.invalidate(owner_id)
        row = await self.get_subscription(session, owner_id)
        if row is None:
            logger.debug("Subscription for %s not provisioned yet", owner_id)
            return NOT_PROVISIONED
        plan = CurrentPlan.from_model(row)
        if self.settings.plan_cache_ttl > 0:
            self._cache[owner_id] = (self._clock(), plan)
        return plan

    def invalidate(self, owner_id: str | None = None) -> None:
        """Drop one owner's snapshot, or all of them when ``owner_id`` is None."""
        if owner_id is None:
            self._cache.clear()
        else:
            self._cache.pop(owner_id, None)
