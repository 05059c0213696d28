"""HTTP client for the remote billing gateway."""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class BillingProviderClient:
    """Calls the billing gateway's subscription endpoints.

    Every call is single-shot with a bounded timeout. Errors propagate as
    ``httpx.HTTPError``; callers decide whether to default or surface them.
    """

    def __init__(
        self,
        base_url: str,
        service_token: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_token = service_token
        self.timeout = timeout
        self._transport = transport

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug("Billing gateway call: %s", path)
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport,
        ) as client:
            resp = await client.post(
                url,
                json=payload,
                headers={"Authorization": f"Bearer {self.service_token}"},
            )
            resp.raise_for_status()
            data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected billing payload from {path}: {data!r}")
        if data.get("error"):
            raise ValueError(f"Billing gateway error from {path}: {data['error']}")
        return data

    async def check_subscription(self, account_id: str) -> dict[str, Any]:
        return await self._post("check-subscription", {"account_id": account_id})

    async def create_checkout_session(
        self, account_id: str, plan_name: str, is_annual: bool,
    ) -> dict[str, Any]:
        return await self._post(
            "create-checkout",
            {"account_id": account_id, "planName": plan_name, "isAnnual": is_annual},
        )

    async def open_customer_portal(self, account_id: str) -> dict[str, Any]:
        return await self._post("customer-portal", {"account_id": account_id})

    async def cancel_subscription(self, account_id: str) -> dict[str, Any]:
        return await self._post("cancel-subscription", {"account_id": account_id})
