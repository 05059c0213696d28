"""Reconciliation API router."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from entitlement_engine.common.security import require_api_key

router = APIRouter(prefix="/accounts", dependencies=[Depends(require_api_key)])


class ReconcileResponse(BaseModel):
    account_id: str
    role_repaired: bool
    pending_requests_removed: int
    memberships_removed: int
    entitlement_created: bool
    stale_requests_removed: int
    team_flag_synced: bool
    changes: int


@router.post("/{account_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_account(account_id: str):
    from entitlement_engine.deps import get_db, get_reconciler
    reconciler = get_reconciler()
    db = get_db()
    async with db.get_session() as session:
        report = await reconciler.sweep(session, account_id)
    return ReconcileResponse(
        account_id=report.account_id,
        role_repaired=report.role_repaired,
        pending_requests_removed=report.pending_requests_removed,
        memberships_removed=report.memberships_removed,
        entitlement_created=report.entitlement_created,
        stale_requests_removed=report.stale_requests_removed,
        team_flag_synced=report.team_flag_synced,
        changes=report.changes,
    )
