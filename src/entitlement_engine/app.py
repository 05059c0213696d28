"""FastAPI application factory for Entitlement-Engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from entitlement_engine.common.config import get_settings
from entitlement_engine.common.exceptions import (
    CapacityExceededError,
    EntitlementError,
    StoreUnavailableError,
)
from entitlement_engine.common.schemas import ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    "STORE_UNAVAILABLE": 503,
    "PROVIDER_UNAVAILABLE": 502,
    "VALIDATION_ERROR": 422,
    "CAPACITY_EXCEEDED": 409,
    "CONFLICT": 409,
    "NOT_PROVISIONED": 404,
    "NOT_FOUND": 404,
}


async def entitlement_error_handler(request: Request, exc: EntitlementError) -> JSONResponse:
    status_code = STATUS_BY_CODE.get(exc.code, 400)
    body = ErrorResponse(error=exc.message, code=exc.code, detail=str(request.url.path))
    if isinstance(exc, CapacityExceededError):
        body.used = exc.used
        body.limit = exc.limit
    if status_code >= 500:
        logger.warning("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from entitlement_engine.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(EntitlementError, entitlement_error_handler)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        from entitlement_engine.deps import get_db
        try:
            await get_db().ping()
        except StoreUnavailableError:
            return HealthResponse(
                status="degraded", version=settings.api_version, database="unavailable",
            )
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from entitlement_engine.accounts.router import router as accounts_router
    from entitlement_engine.billing.router import router as billing_router
    from entitlement_engine.capacity.router import router as capacity_router
    from entitlement_engine.plans.router import router as plans_router
    from entitlement_engine.reconcile.router import router as reconcile_router

    prefix = settings.api_prefix
    app.include_router(plans_router, prefix=prefix, tags=["plans"])
    app.include_router(capacity_router, prefix=prefix, tags=["capacity"])
    app.include_router(accounts_router, prefix=prefix, tags=["accounts"])
    app.include_router(billing_router, prefix=prefix, tags=["billing"])
    app.include_router(reconcile_router, prefix=prefix, tags=["reconcile"])

    return app
