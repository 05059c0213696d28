"""Plan API router."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from entitlement_engine.common.security import require_api_key
from entitlement_engine.plans.resolver import NOT_PROVISIONED
from entitlement_engine.plans.schemas import PlanResponse, UpgradeRequest

router = APIRouter(prefix="/owners", dependencies=[Depends(require_api_key)])


def _get_db():
    from entitlement_engine.deps import get_db
    return get_db()


@router.get("/{owner_id}/plan", response_model=PlanResponse)
async def get_current_plan(owner_id: str, refresh: bool = False):
    from entitlement_engine.deps import get_plan_resolver
    resolver = get_plan_resolver()
    db = _get_db()
    async with db.get_session() as session:
        if refresh:
            plan = await resolver.refresh(session, owner_id)
        else:
            plan = await resolver.resolve_current_plan(session, owner_id)
    if plan is NOT_PROVISIONED:
        return JSONResponse(
            status_code=404,
            content={
                "error": "Subscription not provisioned yet",
                "code": "NOT_PROVISIONED",
                "detail": owner_id,
            },
        )
    return PlanResponse.from_plan(plan)


@router.post("/{owner_id}/plan/upgrade", response_model=PlanResponse)
async def upgrade_plan(owner_id: str, body: UpgradeRequest):
    from entitlement_engine.deps import get_plan_resolver, get_upgrade_coordinator
    coordinator = get_upgrade_coordinator()
    db = _get_db()
    try:
        async with db.get_session() as session:
            plan = await coordinator.upgrade(session, owner_id, body.plan_name)
    except Exception:
        # The snapshot may have been taken inside a transaction that rolled back.
        get_plan_resolver().invalidate(owner_id)
        raise
    return PlanResponse.from_plan(plan)
