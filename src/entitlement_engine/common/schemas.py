"""Shared Pydantic schemas for Entitlement-Engine."""

from typing import Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "entitlement-engine"
    database: str = "ok"


class ErrorResponse(BaseModel):
    error: str
    code: str
    detail: str = ""
    used: Optional[int] = None
    limit: Optional[int] = None
