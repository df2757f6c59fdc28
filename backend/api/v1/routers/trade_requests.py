"""
Requests Router — contract requests raised against a need.

Lifecycle:
  pending → contracted (contract created) → applied (contract approved)
Both transitions are driven by contract writes (trade.workflow); the
status endpoint here is for manual overrides such as rejection.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from api.v1.schemas import PartialUpdate
from core.dates import normalize_datetimes
from db.models import Need, TradeRequest
from trade.errors import DomainValidationError, NotFoundError

router = APIRouter(prefix="/api/v1/requests", tags=["requests"], dependencies=[Depends(get_current_user)])

RequestStatus = Literal["pending", "contracted", "applied", "approved", "rejected", "in_progress", "completed"]


# ─── Schemas ────────────────────────────────────────────────────────────────


class RequestCreate(BaseModel):
    need_id: int | None = None
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    quantity: int = Field(..., gt=0)
    unit_of_measure: str = Field(..., min_length=1, max_length=20)
    price_per_ton: float = Field(..., ge=0)
    cargo_type: str = Field(..., min_length=1, max_length=100)
    country_of_origin: str | None = None
    supplier_name: str | None = None
    priority: Literal["low", "medium", "high", "critical"] = "medium"
    start_date: datetime | None = None
    end_date: datetime | None = None
    department_code: str | None = None
    uploaded_file: str | None = None


class RequestUpdate(PartialUpdate):
    not_null = (
        "title",
        "description",
        "quantity",
        "unit_of_measure",
        "price_per_ton",
        "cargo_type",
        "priority",
        "status",
    )

    need_id: int | None = None
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    quantity: int | None = Field(None, gt=0)
    unit_of_measure: str | None = Field(None, min_length=1, max_length=20)
    price_per_ton: float | None = Field(None, ge=0)
    cargo_type: str | None = Field(None, min_length=1, max_length=100)
    country_of_origin: str | None = None
    supplier_name: str | None = None
    priority: Literal["low", "medium", "high", "critical"] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    department_code: str | None = None
    status: RequestStatus | None = None
    uploaded_file: str | None = None


class RequestStatusUpdate(BaseModel):
    status: RequestStatus


class RequestResponse(BaseModel):
    request_id: int
    need_id: int | None
    title: str
    description: str
    quantity: int
    unit_of_measure: str
    price_per_ton: float
    cargo_type: str
    country_of_origin: str | None
    supplier_name: str | None
    priority: str
    start_date: datetime | None
    end_date: datetime | None
    department_code: str | None
    status: str
    uploaded_file: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[RequestResponse])
async def list_requests(
    need_id: int | None = None,
    status: RequestStatus | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    query = select(TradeRequest)
    if need_id is not None:
        query = query.where(TradeRequest.need_id == need_id)
    if status:
        query = query.where(TradeRequest.status == status)
    query = query.order_by(TradeRequest.created_at.desc(), TradeRequest.request_id.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{request_id}", response_model=RequestResponse)
async def get_request(request_id: int, db: AsyncSession = Depends(get_db)):
    request = await db.get(TradeRequest, request_id)
    if not request:
        raise NotFoundError("Request", request_id)
    return request


@router.post("/", response_model=RequestResponse, status_code=201)
async def create_request(
    body: RequestCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Raise a request. The referenced need must exist."""
    if body.need_id is not None and await db.get(Need, body.need_id) is None:
        raise DomainValidationError(f"Need {body.need_id} does not exist")

    payload = normalize_datetimes(body.model_dump())
    if payload["start_date"] and payload["end_date"] and payload["start_date"] > payload["end_date"]:
        raise DomainValidationError("start_date must not be after end_date")

    request = TradeRequest(**payload, created_by=user.get("sub"))
    db.add(request)
    await db.commit()
    await db.refresh(request)
    return request


@router.put("/{request_id}", response_model=RequestResponse)
async def update_request(
    request_id: int,
    body: RequestUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Partial update. A new need_id must reference an existing need."""
    request = await db.get(TradeRequest, request_id)
    if not request:
        raise NotFoundError("Request", request_id)

    updates = normalize_datetimes(body.model_dump(exclude_unset=True))
    need_id = updates.get("need_id")
    if need_id is not None and await db.get(Need, need_id) is None:
        raise DomainValidationError(f"Need {need_id} does not exist")

    start_date = updates.get("start_date", request.start_date)
    end_date = updates.get("end_date", request.end_date)
    if start_date and end_date and start_date > end_date:
        raise DomainValidationError("start_date must not be after end_date")

    for field, value in updates.items():
        setattr(request, field, value)
    request.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(request)
    return request


@router.patch("/{request_id}/status", response_model=RequestResponse)
async def update_request_status(
    request_id: int,
    body: RequestStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    request = await db.get(TradeRequest, request_id)
    if not request:
        raise NotFoundError("Request", request_id)

    request.status = body.status
    request.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(request)
    return request


@router.delete("/{request_id}", status_code=204)
async def delete_request(request_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a request together with its contracts and their vessels."""
    request = await db.get(TradeRequest, request_id)
    if not request:
        raise NotFoundError("Request", request_id)
    await db.delete(request)
    await db.commit()
