"""Billing API router: remote view plus checkout and portal redirects."""

from fastapi import APIRouter, Depends

from entitlement_engine.billing.schemas import (
    CheckoutRequest,
    RedirectResponse,
    RemoteBillingView,
)
from entitlement_engine.common.security import require_api_key

router = APIRouter(prefix="/owners", dependencies=[Depends(require_api_key)])


def _get_adapter():
    from entitlement_engine.deps import get_billing_adapter
    return get_billing_adapter()


@router.get("/{owner_id}/billing", response_model=RemoteBillingView)
async def get_remote_view(owner_id: str):
    return await _get_adapter().fetch_remote_view(owner_id)


@router.post("/{owner_id}/billing/checkout", response_model=RedirectResponse)
async def start_checkout(owner_id: str, body: CheckoutRequest):
    return await _get_adapter().start_checkout(owner_id, body.plan_name, body.is_annual)


@router.post("/{owner_id}/billing/portal", response_model=RedirectResponse)
async def open_portal(owner_id: str):
    return await _get_adapter().open_management_portal(owner_id)
