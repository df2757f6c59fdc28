"""
Letters of Credit Router — LC registry and allocation positions.

Allocated and remaining quantities are never stored; every response
recomputes them from vessel_letters_of_credit rows. Remaining quantity
goes negative when an LC is over-allocated.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from api.v1.schemas import PartialUpdate
from core.dates import normalize_datetimes
from db.models import LetterOfCredit, Vessel, VesselLetterOfCredit
from trade.errors import DomainValidationError, NotFoundError
from trade.ledger import get_allocated_quantity, get_lc_position, get_remaining_quantity, set_lc_quantity

router = APIRouter(
    prefix="/api/v1/letters-of-credit",
    tags=["letters-of-credit"],
    dependencies=[Depends(get_current_user)],
)


# ─── Schemas ────────────────────────────────────────────────────────────────


class LCCreate(BaseModel):
    lc_number: str | None = Field(None, max_length=100)
    currency: str | None = Field(None, min_length=3, max_length=3)
    quantity: int = Field(..., ge=0)
    issuing_bank: str | None = None
    advising_bank: str | None = None
    issue_date: datetime | None = None
    expiry_date: datetime | None = None
    terms_conditions: str | None = None
    uploaded_file: str | None = None


class LCUpdate(PartialUpdate):
    not_null = ("quantity", "status")

    lc_number: str | None = Field(None, max_length=100)
    currency: str | None = Field(None, min_length=3, max_length=3)
    quantity: int | None = Field(None, ge=0)
    issuing_bank: str | None = None
    advising_bank: str | None = None
    issue_date: datetime | None = None
    expiry_date: datetime | None = None
    terms_conditions: str | None = None
    uploaded_file: str | None = None
    status: Literal["active", "expired", "cancelled"] | None = None


class LCResponse(BaseModel):
    lc_id: int
    lc_number: str | None
    currency: str | None
    quantity: int
    issuing_bank: str | None
    advising_bank: str | None
    issue_date: datetime | None
    expiry_date: datetime | None
    terms_conditions: str | None
    uploaded_file: str | None
    status: str
    created_by: str | None
    created_at: datetime
    updated_at: datetime
    allocated_quantity: int = 0
    remaining_quantity: int = 0

    model_config = {"from_attributes": True}


class AllocatedQuantityResponse(BaseModel):
    allocated_quantity: int


class LCPositionResponse(BaseModel):
    lc_id: int
    quantity: int
    allocated_quantity: int
    remaining_quantity: int
    utilization_percent: float
    over_allocated: bool

    model_config = {"from_attributes": True}


class LCAllocationResponse(BaseModel):
    allocation_id: int
    vessel_id: int
    vessel_name: str | None
    lc_id: int
    quantity: int
    notes: str | None
    created_at: datetime


def _with_position(lc: LetterOfCredit, allocated: int) -> LCResponse:
    response = LCResponse.model_validate(lc)
    response.allocated_quantity = allocated
    response.remaining_quantity = get_remaining_quantity(lc.quantity, allocated)
    return response


async def _get_lc_or_404(db: AsyncSession, lc_id: int) -> LetterOfCredit:
    lc = await db.get(LetterOfCredit, lc_id)
    if not lc:
        raise NotFoundError("Letter of credit", lc_id)
    return lc


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[LCResponse])
async def list_letters_of_credit(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """List LCs with their allocated and remaining quantity."""
    allocated = (
        select(
            VesselLetterOfCredit.lc_id,
            func.coalesce(func.sum(VesselLetterOfCredit.quantity), 0).label("allocated"),
        )
        .group_by(VesselLetterOfCredit.lc_id)
        .subquery()
    )
    query = (
        select(LetterOfCredit, func.coalesce(allocated.c.allocated, 0))
        .outerjoin(allocated, allocated.c.lc_id == LetterOfCredit.lc_id)
        .order_by(LetterOfCredit.created_at.desc(), LetterOfCredit.lc_id.desc())
        .offset(skip)
        .limit(limit)
    )
    result = await db.execute(query)
    return [_with_position(lc, int(total)) for lc, total in result.all()]


@router.get("/{lc_id}", response_model=LCResponse)
async def get_letter_of_credit(lc_id: int, db: AsyncSession = Depends(get_db)):
    lc = await _get_lc_or_404(db, lc_id)
    return _with_position(lc, await get_allocated_quantity(db, lc_id))


@router.post("/", response_model=LCResponse, status_code=201)
async def create_letter_of_credit(
    body: LCCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    payload = normalize_datetimes(body.model_dump())
    if payload["issue_date"] and payload["expiry_date"] and payload["issue_date"] > payload["expiry_date"]:
        raise DomainValidationError("issue_date must not be after expiry_date")

    lc = LetterOfCredit(**payload, created_by=user.get("sub"))
    db.add(lc)
    await db.commit()
    await db.refresh(lc)
    return _with_position(lc, 0)


@router.put("/{lc_id}", response_model=LCResponse)
async def update_letter_of_credit(
    lc_id: int,
    body: LCUpdate,
    db: AsyncSession = Depends(get_db),
):
    """
    Partial update. A lower face quantity goes through the over-allocation
    policy, so under 'reject' it cannot drop below what is allocated (400).
    """
    lc = await _get_lc_or_404(db, lc_id)
    updates = normalize_datetimes(body.model_dump(exclude_unset=True))

    issue_date = updates.get("issue_date", lc.issue_date)
    expiry_date = updates.get("expiry_date", lc.expiry_date)
    if issue_date and expiry_date and issue_date > expiry_date:
        raise DomainValidationError("issue_date must not be after expiry_date")

    quantity = updates.pop("quantity", None)
    if quantity is not None and quantity != lc.quantity:
        await set_lc_quantity(db, lc, quantity)
    for field, value in updates.items():
        setattr(lc, field, value)
    lc.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(lc)
    return _with_position(lc, await get_allocated_quantity(db, lc_id))


@router.get("/{lc_id}/allocated-quantity", response_model=AllocatedQuantityResponse)
async def allocated_quantity(lc_id: int, db: AsyncSession = Depends(get_db)):
    """Sum of all vessel allocations against the LC (0 when none)."""
    await _get_lc_or_404(db, lc_id)
    return AllocatedQuantityResponse(allocated_quantity=await get_allocated_quantity(db, lc_id))


@router.get("/{lc_id}/position", response_model=LCPositionResponse)
async def lc_position(lc_id: int, db: AsyncSession = Depends(get_db)):
    lc = await _get_lc_or_404(db, lc_id)
    return await get_lc_position(db, lc)


@router.get("/{lc_id}/vessels", response_model=list[LCAllocationResponse])
async def list_lc_vessels(lc_id: int, db: AsyncSession = Depends(get_db)):
    """Vessels this LC is allocated to, newest allocation first."""
    await _get_lc_or_404(db, lc_id)
    result = await db.execute(
        select(VesselLetterOfCredit, Vessel.vessel_name)
        .join(Vessel, Vessel.vessel_id == VesselLetterOfCredit.vessel_id)
        .where(VesselLetterOfCredit.lc_id == lc_id)
        .order_by(VesselLetterOfCredit.created_at.desc(), VesselLetterOfCredit.allocation_id.desc())
    )
    return [
        LCAllocationResponse(
            allocation_id=allocation.allocation_id,
            vessel_id=allocation.vessel_id,
            vessel_name=vessel_name,
            lc_id=allocation.lc_id,
            quantity=allocation.quantity,
            notes=allocation.notes,
            created_at=allocation.created_at,
        )
        for allocation, vessel_name in result.all()
    ]


@router.delete("/{lc_id}", status_code=204)
async def delete_letter_of_credit(lc_id: int, db: AsyncSession = Depends(get_db)):
    """Delete an LC and its vessel allocations."""
    lc = await _get_lc_or_404(db, lc_id)
    await db.delete(lc)
    await db.commit()
