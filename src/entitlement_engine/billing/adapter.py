"""Billing sync adapter: live provider view with a free-tier fallback.

Precedence: the local subscription row decides capacity. The remote view is
for display (plan label, trial countdown) and is allowed to degrade to the
free tier when the provider is unreachable. Explicit user actions (checkout,
portal) fail loudly instead.
"""

import logging

from entitlement_engine.billing.client import BillingProviderClient
from entitlement_engine.billing.schemas import (
    RedirectResponse,
    RemoteBillingView,
    default_remote_view,
)
from entitlement_engine.common.exceptions import (
    ProviderUnavailableError,
    ValidationFailedError,
)
from entitlement_engine.plans.catalog import PAID_PLANS, parse_plan_name

logger = logging.getLogger(__name__)


class BillingSyncAdapter:
    """Read-path and action-path access to the billing provider."""

    def __init__(self, client: BillingProviderClient):
        self.client = client

    async def fetch_remote_view(self, owner_id: str) -> RemoteBillingView:
        """Never raises. Any provider failure yields the default free-tier view."""
        try:
            data = await self.client.check_subscription(owner_id)
            return RemoteBillingView.from_payload(data)
        except Exception as exc:
            logger.warning(
                "Billing provider unavailable for %s, using free-tier view: %s",
                owner_id, exc,
            )
            return default_remote_view()

    async def start_checkout(
        self, owner_id: str, plan_name: str, is_annual: bool = False,
    ) -> RedirectResponse:
        plan = parse_plan_name(plan_name)
        if plan not in PAID_PLANS:
            raise ValidationFailedError(f"Plan '{plan.value}' cannot be purchased")
        try:
            data = await self.client.create_checkout_session(owner_id, plan.value, is_annual)
        except Exception as exc:
            logger.error("Checkout session creation failed for %s: %s", owner_id, exc)
            raise ProviderUnavailableError(f"Checkout failed: {exc}") from exc
        return self._redirect(data, "checkout")

    async def open_management_portal(self, owner_id: str) -> RedirectResponse:
        try:
            data = await self.client.open_customer_portal(owner_id)
        except Exception as exc:
            logger.error("Customer portal failed for %s: %s", owner_id, exc)
            raise ProviderUnavailableError(f"Customer portal failed: {exc}") from exc
        return self._redirect(data, "portal")

    async def cancel_subscription(self, owner_id: str) -> bool:
        """Best-effort cancellation. Returns False instead of raising."""
        try:
            await self.client.cancel_subscription(owner_id)
        except Exception as exc:
            logger.warning("Remote cancellation failed for %s: %s", owner_id, exc)
            return False
        logger.info("Remote subscription cancelled for %s", owner_id)
        return True

    @staticmethod
    def _redirect(data: dict, action: str) -> RedirectResponse:
        url = data.get("url")
        if not url:
            raise ProviderUnavailableError(f"Billing provider returned no {action} URL")
        return RedirectResponse(url=url, session_id=data.get("sessionId"))
