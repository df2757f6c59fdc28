"""
Needs Router — statements of need and their fulfillment progress.

Progress tracking:
  1. Vessels are discharged against approved contracts
  2. POST /update-progress rolls discharged quantities into active needs
  3. GET /progress-report compares each need with its deliveries
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from api.v1.schemas import PartialUpdate
from core.dates import normalize_datetimes, to_naive_utc
from db.models import Need, TradeRequest
from trade.errors import DomainValidationError, NotFoundError
from trade.fulfillment import (
    derive_need_progress,
    update_need_progress,
    update_need_status,
    update_needs_progress_from_vessels,
)
from trade.reporting import get_needs_progress_report

router = APIRouter(prefix="/api/v1/needs", tags=["needs"], dependencies=[Depends(get_current_user)])

NeedStatus = Literal["active", "in_progress", "fulfilled", "expired", "cancelled"]
Priority = Literal["low", "medium", "high", "critical"]
PROGRESS_STATUSES = ("active", "in_progress", "fulfilled")


# ─── Schemas ────────────────────────────────────────────────────────────────


class NeedCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    category: str = Field(..., min_length=1, max_length=50)
    required_quantity: int = Field(..., ge=0)
    unit_of_measure: str = Field(..., min_length=1, max_length=20)
    max_price_per_unit: float | None = Field(None, ge=0)
    fulfillment_start_date: datetime
    fulfillment_end_date: datetime
    priority: Priority = "medium"
    department_code: str | None = None
    notes: str | None = None


class NeedUpdate(PartialUpdate):
    not_null = (
        "title",
        "description",
        "category",
        "required_quantity",
        "unit_of_measure",
        "fulfillment_start_date",
        "fulfillment_end_date",
        "priority",
    )

    title: str | None = None
    description: str | None = None
    category: str | None = None
    required_quantity: int | None = Field(None, ge=0)
    unit_of_measure: str | None = None
    max_price_per_unit: float | None = None
    fulfillment_start_date: datetime | None = None
    fulfillment_end_date: datetime | None = None
    priority: Priority | None = None
    department_code: str | None = None
    notes: str | None = None


class NeedStatusUpdate(BaseModel):
    status: NeedStatus


class NeedProgressUpdate(BaseModel):
    actual_quantity: int = Field(..., ge=0, validation_alias=AliasChoices("actual_quantity", "actualQuantity"))


class NeedResponse(BaseModel):
    need_id: int
    title: str
    description: str
    category: str
    required_quantity: int
    unit_of_measure: str
    max_price_per_unit: float | None
    fulfillment_start_date: datetime
    fulfillment_end_date: datetime
    priority: str
    department_code: str | None
    status: str
    actual_quantity_received: int
    progress_percentage: float
    notes: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class LinkedRequestResponse(BaseModel):
    request_id: int
    request_title: str
    request_quantity: int
    request_status: str

    model_config = {"from_attributes": True}


class DeliveryResponse(BaseModel):
    vessel_id: int
    vessel_name: str | None
    actual_quantity: int | None
    discharge_end_date: datetime | None
    status: str
    request_title: str
    contract_id: int

    model_config = {"from_attributes": True}


class NeedProgressReportRow(BaseModel):
    need_id: int
    need_title: str
    category: str
    required_quantity: int
    actual_quantity_received: int
    progress_percentage: float
    status: str
    fulfillment_start_date: datetime
    fulfillment_end_date: datetime
    priority: str
    unit_of_measure: str
    linked_requests: list[LinkedRequestResponse]
    deliveries: list[DeliveryResponse]
    delivery_gap: int
    is_on_track: bool
    days_remaining: int | None

    model_config = {"from_attributes": True}


class ProgressUpdateSummary(BaseModel):
    message: str
    needs_updated: int
    total_delivered: int
    status_counts: dict[str, int]


def _check_window(start: datetime, end: datetime) -> None:
    if start > end:
        raise DomainValidationError("fulfillment_start_date must not be after fulfillment_end_date")


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[NeedResponse])
async def list_needs(
    status: NeedStatus | None = None,
    category: str | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """List needs, newest first."""
    query = select(Need)
    if status:
        query = query.where(Need.status == status)
    if category:
        query = query.where(Need.category == category)
    query = query.order_by(Need.created_at.desc(), Need.need_id.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/progress-report", response_model=list[NeedProgressReportRow])
async def needs_progress_report(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    start_date_legacy: datetime | None = Query(None, alias="startDate", include_in_schema=False),
    end_date_legacy: datetime | None = Query(None, alias="endDate", include_in_schema=False),
    db: AsyncSession = Depends(get_db),
):
    """
    Need vs delivery report.

    Only needs whose whole fulfillment window lies within
    [start_date, end_date] are included; both bounds are optional.
    The web client's startDate/endDate are accepted as well.
    """
    start = start_date if start_date is not None else start_date_legacy
    end = end_date if end_date is not None else end_date_legacy
    return await get_needs_progress_report(db, to_naive_utc(start), to_naive_utc(end))


@router.post("/update-progress", response_model=ProgressUpdateSummary)
async def update_progress_from_vessels(db: AsyncSession = Depends(get_db)):
    """Recompute progress for all active needs from discharged vessels."""
    summary = await update_needs_progress_from_vessels(db)
    return ProgressUpdateSummary(message="Needs progress updated successfully", **summary)


@router.get("/{need_id}", response_model=NeedResponse)
async def get_need(need_id: int, db: AsyncSession = Depends(get_db)):
    need = await db.get(Need, need_id)
    if not need:
        raise NotFoundError("Need", need_id)
    return need


@router.post("/", response_model=NeedResponse, status_code=201)
async def create_need(
    body: NeedCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Create a need. Progress fields start at zero."""
    payload = normalize_datetimes(body.model_dump())
    _check_window(payload["fulfillment_start_date"], payload["fulfillment_end_date"])
    need = Need(**payload, created_by=user.get("sub"))
    db.add(need)
    await db.commit()
    await db.refresh(need)
    return need


@router.put("/{need_id}", response_model=NeedResponse)
async def update_need(
    need_id: int,
    body: NeedUpdate,
    db: AsyncSession = Depends(get_db),
):
    """
    Partial update of a need's descriptive fields. Progress is not writable
    here, but a new required_quantity re-derives the progress percentage.
    The status follows only while the need is still in the progress flow
    (active, in_progress, fulfilled); cancelled and expired stay put.
    """
    need = await db.get(Need, need_id)
    if not need:
        raise NotFoundError("Need", need_id)

    updates = normalize_datetimes(body.model_dump(exclude_unset=True))
    _check_window(
        updates.get("fulfillment_start_date", need.fulfillment_start_date),
        updates.get("fulfillment_end_date", need.fulfillment_end_date),
    )
    for field, value in updates.items():
        setattr(need, field, value)

    if "required_quantity" in updates:
        progress, status = derive_need_progress(need.required_quantity, need.actual_quantity_received)
        need.progress_percentage = progress
        if need.status in PROGRESS_STATUSES:
            need.status = status
    need.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(need)
    return need


@router.patch("/{need_id}/status", response_model=NeedResponse)
async def set_need_status(
    need_id: int,
    body: NeedStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    need = await update_need_status(db, need_id, body.status)
    await db.commit()
    return need


@router.patch("/{need_id}/progress", response_model=NeedResponse)
async def set_need_progress(
    need_id: int,
    body: NeedProgressUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Record the received quantity for a need; progress and status are re-derived."""
    need = await update_need_progress(db, need_id, body.actual_quantity)
    await db.commit()
    return need


@router.delete("/{need_id}", status_code=204)
async def delete_need(
    need_id: int,
    cascade: bool = Query(False, description="Also delete linked requests and everything below them"),
    db: AsyncSession = Depends(get_db),
):
    """Delete a need. Refused while requests are linked unless cascade=true."""
    need = await db.get(Need, need_id)
    if not need:
        raise NotFoundError("Need", need_id)

    linked = await db.scalar(select(func.count(TradeRequest.request_id)).where(TradeRequest.need_id == need_id))
    if linked and not cascade:
        raise DomainValidationError(f"Need {need_id} has {linked} linked request(s); pass cascade=true to delete them")

    await db.delete(need)
    await db.commit()
