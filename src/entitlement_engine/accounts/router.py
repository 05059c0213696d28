"""Account, team and virtual-seller API router."""

from fastapi import APIRouter, Depends, Query

from entitlement_engine.accounts.schemas import (
    AccountCreate,
    AccountResponse,
    AssignableSellerResponse,
    MembershipResponse,
    RemoveMemberResponse,
    TeamRequestCreate,
    TeamRequestDecision,
    TeamRequestResponse,
    VirtualSellerCreate,
    VirtualSellerResponse,
)
from entitlement_engine.common.security import require_api_key

router = APIRouter(dependencies=[Depends(require_api_key)])


def _get_service():
    from entitlement_engine.deps import get_team_service
    return get_team_service()


def _get_db():
    from entitlement_engine.deps import get_db
    return get_db()


# ── Accounts ──


@router.post("/owners", response_model=AccountResponse, status_code=201)
async def create_owner(body: AccountCreate):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        account = await svc.create_owner(session, body.name, body.email)
        return AccountResponse.model_validate(account)


@router.post("/sellers", response_model=AccountResponse, status_code=201)
async def create_seller(body: AccountCreate):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        account = await svc.create_seller(session, body.name, body.email)
        return AccountResponse.model_validate(account)


# ── Team requests ──


@router.post("/team-requests", response_model=TeamRequestResponse, status_code=201)
async def submit_team_request(body: TeamRequestCreate):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        request = await svc.submit_team_request(session, body.seller_id, body.owner_id)
        return TeamRequestResponse.model_validate(request)


@router.get("/owners/{owner_id}/team-requests", response_model=list[TeamRequestResponse])
async def list_team_requests(owner_id: str):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        requests = await svc.list_team_requests(session, owner_id)
        return [TeamRequestResponse.model_validate(r) for r in requests]


@router.post("/team-requests/{request_id}/approve", response_model=MembershipResponse)
async def approve_team_request(request_id: str, body: TeamRequestDecision):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        membership = await svc.approve_team_request(session, request_id, body.owner_id)
        return MembershipResponse.model_validate(membership)


@router.post("/team-requests/{request_id}/reject", response_model=TeamRequestResponse)
async def reject_team_request(request_id: str, body: TeamRequestDecision):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        request = await svc.reject_team_request(session, request_id, body.owner_id)
        return TeamRequestResponse.model_validate(request)


# ── Members ──


@router.delete(
    "/owners/{owner_id}/members/{seller_id}", response_model=RemoveMemberResponse,
)
async def remove_team_member(
    owner_id: str,
    seller_id: str,
    confirm_id: str = Query(..., description="Must repeat the seller id"),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        removed = await svc.remove_team_member(session, owner_id, seller_id, confirm_id)
    return RemoveMemberResponse(
        seller_id=seller_id, owner_id=owner_id, memberships_removed=removed,
    )


@router.get(
    "/owners/{owner_id}/sellers/assignable",
    response_model=list[AssignableSellerResponse],
)
async def list_assignable_sellers(owner_id: str):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        sellers = await svc.list_assignable_sellers(session, owner_id)
    return [AssignableSellerResponse.model_validate(s) for s in sellers]


# ── Virtual sellers ──


@router.post(
    "/owners/{owner_id}/virtual-sellers",
    response_model=VirtualSellerResponse,
    status_code=201,
)
async def create_virtual_seller(owner_id: str, body: VirtualSellerCreate):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        virtual = await svc.create_virtual_seller(session, owner_id, body.name, body.email)
        return VirtualSellerResponse.model_validate(virtual)


@router.delete("/owners/{owner_id}/virtual-sellers/{virtual_id}", status_code=204)
async def delete_virtual_seller(
    owner_id: str,
    virtual_id: str,
    confirm_id: str = Query(..., description="Must repeat the virtual seller id"),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        await svc.delete_virtual_seller(session, owner_id, virtual_id, confirm_id)
