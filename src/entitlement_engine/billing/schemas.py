"""Pydantic schemas for the remote billing view and billing endpoints."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from entitlement_engine.plans import trial
from entitlement_engine.plans.catalog import PlanName, parse_plan_name


class RemoteBillingView(BaseModel):
    """Live view from the billing provider. Display only, never persisted."""

    subscribed: bool = False
    plan: PlanName = PlanName.FREE
    status: str = "active"
    trial_days_left: int = Field(default=0, ge=0)
    is_annual: bool = False
    degraded: bool = False

    @classmethod
    def from_payload(
        cls, data: dict[str, Any], now: datetime | None = None,
    ) -> "RemoteBillingView":
        """Parse a gateway response. Raises on an unknown plan or bad shape."""
        status = str(data.get("status", "active"))
        days = int(data.get("trial_days_left") or 0)
        trial_end = data.get("trial_end")
        if trial_end and status == "trialing":
            end = datetime.fromtimestamp(int(trial_end), tz=timezone.utc)
            days = trial.days_left(end, now)
        return cls(
            subscribed=bool(data.get("subscribed", False)),
            plan=parse_plan_name(data.get("plan") or PlanName.FREE.value),
            status=status,
            trial_days_left=max(0, days),
            is_annual=bool(data.get("is_annual", False)),
        )

    @property
    def is_trialing(self) -> bool:
        return self.status == "trialing" and self.trial_days_left > 0


def default_remote_view() -> RemoteBillingView:
    return RemoteBillingView(degraded=True)


class CheckoutRequest(BaseModel):
    plan_name: str
    is_annual: bool = False


class RedirectResponse(BaseModel):
    url: str
    session_id: Optional[str] = None
