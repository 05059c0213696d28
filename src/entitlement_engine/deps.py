"""Dependency injection singletons for Entitlement-Engine."""

from entitlement_engine.accounts.service import TeamService
from entitlement_engine.billing.adapter import BillingSyncAdapter
from entitlement_engine.billing.client import BillingProviderClient
from entitlement_engine.capacity.sales import SalesQuotaGuard
from entitlement_engine.capacity.seats import CapacityGuard
from entitlement_engine.common.config import get_settings
from entitlement_engine.common.database import DatabaseManager
from entitlement_engine.notifications.service import NotificationService
from entitlement_engine.plans.resolver import PlanResolver
from entitlement_engine.plans.upgrade import UpgradeCoordinator
from entitlement_engine.reconcile.service import IntegrityReconciler

_db: DatabaseManager | None = None
_resolver: PlanResolver | None = None
_capacity: CapacityGuard | None = None
_sales: SalesQuotaGuard | None = None
_billing: BillingSyncAdapter | None = None
_upgrade: UpgradeCoordinator | None = None
_reconciler: IntegrityReconciler | None = None
_teams: TeamService | None = None
_notifier: NotificationService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_plan_resolver() -> PlanResolver:
    global _resolver
    if _resolver is None:
        _resolver = PlanResolver(get_settings())
    return _resolver


def get_capacity_guard() -> CapacityGuard:
    global _capacity
    if _capacity is None:
        _capacity = CapacityGuard(get_plan_resolver())
    return _capacity


def get_sales_guard() -> SalesQuotaGuard:
    global _sales
    if _sales is None:
        _sales = SalesQuotaGuard(get_settings())
    return _sales


def get_billing_adapter() -> BillingSyncAdapter:
    global _billing
    if _billing is None:
        settings = get_settings()
        _billing = BillingSyncAdapter(
            BillingProviderClient(
                base_url=settings.billing_base_url,
                service_token=settings.billing_service_token,
                timeout=settings.billing_timeout,
            )
        )
    return _billing


def get_upgrade_coordinator() -> UpgradeCoordinator:
    global _upgrade
    if _upgrade is None:
        _upgrade = UpgradeCoordinator(get_plan_resolver(), billing=get_billing_adapter())
    return _upgrade


def get_reconciler() -> IntegrityReconciler:
    global _reconciler
    if _reconciler is None:
        _reconciler = IntegrityReconciler(get_settings())
    return _reconciler


def get_notification_service() -> NotificationService:
    global _notifier
    if _notifier is None:
        _notifier = NotificationService()
    return _notifier


def get_team_service() -> TeamService:
    global _teams
    if _teams is None:
        _teams = TeamService(
            get_settings(), get_capacity_guard(), notifier=get_notification_service(),
        )
    return _teams


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _resolver, _capacity, _sales, _billing, _upgrade, _reconciler, _teams, _notifier
    _db = None
    _resolver = None
    _capacity = None
    _sales = None
    _billing = None
    _upgrade = None
    _reconciler = None
    _teams = None
    _notifier = None
