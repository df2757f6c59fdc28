"""
Contracts Router — supplier contracts and their review gate.

Status writes cascade onto the linked request (see trade.workflow):
  create with request_id    → request 'contracted'
  status set to 'approved'  → request 'applied'
A failed cascade rolls back the contract write as well (HTTP 409).
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
from db.models import Contract
from trade.errors import NotFoundError
from trade.workflow import create_contract, update_contract, update_contract_status

router = APIRouter(prefix="/api/v1/contracts", tags=["contracts"], dependencies=[Depends(get_current_user)])

ContractStatus = Literal["draft", "under_review", "approved", "rejected"]


# ─── Schemas ────────────────────────────────────────────────────────────────


class ContractCreate(BaseModel):
    request_id: int | None = None
    supplier_name: str | None = None
    cargo_type: str | None = None
    country_of_origin: str | None = None
    contract_terms: str | None = None
    incoterms: str | None = Field(None, max_length=20)
    quantity: int | None = Field(None, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None
    uploaded_file: str | None = None
    status: ContractStatus = "draft"
    review_notes: str | None = None


class ContractUpdate(PartialUpdate):
    not_null = ("status",)

    request_id: int | None = None
    supplier_name: str | None = None
    cargo_type: str | None = None
    country_of_origin: str | None = None
    contract_terms: str | None = None
    incoterms: str | None = Field(None, max_length=20)
    quantity: int | None = Field(None, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None
    uploaded_file: str | None = None
    status: ContractStatus | None = None
    review_notes: str | None = None


class ContractStatusUpdate(BaseModel):
    status: ContractStatus
    review_notes: str | None = None


class ContractResponse(BaseModel):
    contract_id: int
    request_id: int | None
    supplier_name: str | None
    cargo_type: str | None
    country_of_origin: str | None
    contract_terms: str | None
    incoterms: str | None
    quantity: int | None
    start_date: datetime | None
    end_date: datetime | None
    uploaded_file: str | None
    status: str
    review_notes: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[ContractResponse])
async def list_contracts(
    request_id: int | None = None,
    status: ContractStatus | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    query = select(Contract)
    if request_id is not None:
        query = query.where(Contract.request_id == request_id)
    if status:
        query = query.where(Contract.status == status)
    query = query.order_by(Contract.created_at.desc(), Contract.contract_id.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(contract_id: int, db: AsyncSession = Depends(get_db)):
    contract = await db.get(Contract, contract_id)
    if not contract:
        raise NotFoundError("Contract", contract_id)
    return contract


@router.post("/", response_model=ContractResponse, status_code=201)
async def create_contract_endpoint(
    body: ContractCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Create a contract; its request moves to 'contracted' in the same transaction."""
    payload = normalize_datetimes(body.model_dump())
    contract = await create_contract(db, created_by=user.get("sub"), **payload)
    await db.commit()
    await db.refresh(contract)
    return contract


@router.put("/{contract_id}", response_model=ContractResponse)
async def update_contract_endpoint(
    contract_id: int,
    body: ContractUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Partial update. Setting status to 'approved' cascades onto the request."""
    contract = await update_contract(db, contract_id, normalize_datetimes(body.model_dump(exclude_unset=True)))
    await db.commit()
    await db.refresh(contract)
    return contract


@router.patch("/{contract_id}/status", response_model=ContractResponse)
async def update_contract_status_endpoint(
    contract_id: int,
    body: ContractStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    contract = await update_contract_status(db, contract_id, body.status)
    if body.review_notes is not None:
        contract.review_notes = body.review_notes
    await db.commit()
    await db.refresh(contract)
    return contract
