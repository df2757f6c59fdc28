"""
TradeOps API — FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from core.config import get_settings
from trade.errors import DomainValidationError, NotFoundError, TransactionFailure

settings = get_settings()
logger = structlog.get_logger()

# Unversioned paths used by the existing web client
LEGACY_ROUTE_MAP = {
    "/api/needs": "/api/v1/needs",
    "/api/requests": "/api/v1/requests",
    "/api/contracts": "/api/v1/contracts",
    "/api/letters-of-credit": "/api/v1/letters-of-credit",
    "/api/vessels": "/api/v1/vessels",
}
DEPRECATION_SUNSET = "Thu, 31 Dec 2027 00:00:00 GMT"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("TradeOps API starting up", version=settings.app_version)
    yield
    logger.info("TradeOps API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Import operations tracking: needs, contracts, letters of credit, vessels",
    lifespan=lifespan,
)


@app.middleware("http")
async def legacy_route_alias_middleware(request: Request, call_next):
    """
    Compatibility layer for the unversioned client routes:
      - /api/needs/*              -> /api/v1/needs/*
      - /api/letters-of-credit/*  -> /api/v1/letters-of-credit/*
      - ...
    Adds deprecation headers on legacy route usage.
    """
    original_path = request.scope.get("path", "")
    rewritten_to: str | None = None

    for legacy_prefix, canonical_prefix in LEGACY_ROUTE_MAP.items():
        if original_path == legacy_prefix or original_path.startswith(f"{legacy_prefix}/"):
            suffix = original_path[len(legacy_prefix) :]
            request.scope["path"] = f"{canonical_prefix}{suffix}"
            rewritten_to = request.scope["path"]
            break

    response = await call_next(request)
    if rewritten_to:
        response.headers["Deprecation"] = "true"
        response.headers["Sunset"] = DEPRECATION_SUNSET
        response.headers["X-API-Deprecated"] = "Use /api/v1/* endpoints"
        response.headers["Link"] = f'<{rewritten_to}>; rel="successor-version"'
    return response


# ─── Domain error mapping ───────────────────────────────────────────────────


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(DomainValidationError)
async def validation_error_handler(request: Request, exc: DomainValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(TransactionFailure)
async def transaction_failure_handler(request: Request, exc: TransactionFailure):
    logger.error("api.transaction_failure", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import (
    contracts,
    letters_of_credit,
    needs,
    trade_requests,
    vessels,
)

app.include_router(needs.router)
app.include_router(trade_requests.router)
app.include_router(contracts.router)
app.include_router(letters_of_credit.router)
app.include_router(vessels.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
