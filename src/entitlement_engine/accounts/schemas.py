"""Pydantic schemas for account and team endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AccountCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = None


class AccountResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    role: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TeamRequestCreate(BaseModel):
    seller_id: str
    owner_id: str


class TeamRequestDecision(BaseModel):
    owner_id: str


class TeamRequestResponse(BaseModel):
    id: str
    seller_id: str
    owner_id: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class MembershipResponse(BaseModel):
    id: str
    seller_id: str
    owner_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class RemoveMemberResponse(BaseModel):
    seller_id: str
    owner_id: str
    memberships_removed: int


class VirtualSellerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = None


class VirtualSellerResponse(BaseModel):
    id: str
    owner_id: str
    name: str
    email: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AssignableSellerResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    type: str
    is_virtual: bool

    model_config = {"from_attributes": True}
