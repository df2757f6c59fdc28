"""
Vessels Router — nominations, discharge tracking, documents, LC allocations
and loading ports.

Vessel flow:
  nominated → confirmed → in_transit → arrived → discharging → discharged → completed

Receiving the customs release (either a document of type 'customs_release'
or a customs_release_file on update) completes the vessel automatically.
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
from db.models import Contract, LetterOfCredit, Vessel, VesselDocument, VesselLetterOfCredit, VesselLoadingPort
from trade.errors import DomainValidationError, NotFoundError
from trade.ledger import discharge_progress, list_vessel_allocations, record_allocation, remove_allocation
from trade.workflow import add_vessel_document, update_vessel

router = APIRouter(prefix="/api/v1/vessels", tags=["vessels"], dependencies=[Depends(get_current_user)])

VesselStatus = Literal["nominated", "confirmed", "in_transit", "arrived", "discharging", "discharged", "completed"]
LoadingStatus = Literal["pending", "in_progress", "completed"]


# ─── Schemas ────────────────────────────────────────────────────────────────


class VesselCreate(BaseModel):
    contract_id: int | None = None
    vessel_name: str | None = Field(None, max_length=255)
    cargo_type: str | None = None
    quantity: int = Field(0, ge=0)
    country_of_origin: str | None = None
    port_of_discharge: str | None = None
    eta: datetime | None = None
    shipping_instructions: str | None = None
    instructions_file: str | None = None
    status: VesselStatus = "nominated"
    trade_terms: Literal["FOB", "CIF"] = "FOB"


class VesselUpdate(PartialUpdate):
    not_null = ("quantity", "status", "trade_terms")

    contract_id: int | None = None
    vessel_name: str | None = None
    cargo_type: str | None = None
    quantity: int | None = Field(None, ge=0)
    country_of_origin: str | None = None
    port_of_discharge: str | None = None
    eta: datetime | None = None
    shipping_instructions: str | None = None
    instructions_file: str | None = None
    status: VesselStatus | None = None
    trade_terms: Literal["FOB", "CIF"] | None = None
    arrival_date: datetime | None = None
    discharge_start_date: datetime | None = None
    discharge_end_date: datetime | None = None
    actual_quantity: int | None = Field(None, ge=0)
    customs_release_date: datetime | None = None
    customs_release_number: str | None = None
    customs_release_file: str | None = None


class VesselStatusUpdate(BaseModel):
    status: VesselStatus


class VesselResponse(BaseModel):
    vessel_id: int
    contract_id: int | None
    vessel_name: str | None
    cargo_type: str | None
    quantity: int
    country_of_origin: str | None
    port_of_discharge: str | None
    eta: datetime | None
    shipping_instructions: str | None
    instructions_file: str | None
    status: str
    trade_terms: str
    arrival_date: datetime | None
    discharge_start_date: datetime | None
    discharge_end_date: datetime | None
    actual_quantity: int | None
    customs_release_date: datetime | None
    customs_release_number: str | None
    customs_release_file: str | None
    customs_release_status: str
    created_by: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DischargeProgressResponse(BaseModel):
    vessel_id: int
    discharged: int
    planned: int
    percent: float
    variance: int
    variance_percent: float
    classification: str


class DocumentCreate(BaseModel):
    document_type: str = Field(..., min_length=1, max_length=50)
    document_name: str = Field(..., min_length=1, max_length=255)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_path: str | None = None
    notes: str | None = None


class DocumentResponse(BaseModel):
    document_id: int
    vessel_id: int
    document_type: str
    document_name: str
    file_name: str
    file_path: str
    uploaded_by: str | None
    uploaded_at: datetime
    notes: str | None

    model_config = {"from_attributes": True}


class AllocationCreate(BaseModel):
    lc_id: int
    quantity: int = Field(..., gt=0)
    notes: str | None = None


class AllocationResponse(BaseModel):
    allocation_id: int
    vessel_id: int
    lc_id: int
    quantity: int
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class LoadingPortCreate(BaseModel):
    port_name: str = Field(..., min_length=1, max_length=255)
    port_code: str | None = Field(None, max_length=20)
    country: str | None = None
    loading_date: datetime | None = None
    expected_quantity: int = Field(0, ge=0)
    actual_quantity: int | None = Field(None, ge=0)
    loading_status: LoadingStatus = "pending"
    notes: str | None = None


class LoadingPortUpdate(PartialUpdate):
    not_null = ("port_name", "expected_quantity", "loading_status")

    port_name: str | None = None
    port_code: str | None = None
    country: str | None = None
    loading_date: datetime | None = None
    expected_quantity: int | None = Field(None, ge=0)
    actual_quantity: int | None = Field(None, ge=0)
    loading_status: LoadingStatus | None = None
    notes: str | None = None


class LoadingPortResponse(BaseModel):
    port_id: int
    vessel_id: int
    port_name: str
    port_code: str | None
    country: str | None
    loading_date: datetime | None
    expected_quantity: int
    actual_quantity: int | None
    loading_status: str
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


async def _get_vessel_or_404(db: AsyncSession, vessel_id: int) -> Vessel:
    vessel = await db.get(Vessel, vessel_id)
    if not vessel:
        raise NotFoundError("Vessel", vessel_id)
    return vessel


# ─── Vessels ────────────────────────────────────────────────────────────────


@router.get("/", response_model=list[VesselResponse])
async def list_vessels(
    contract_id: int | None = None,
    status: VesselStatus | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    query = select(Vessel)
    if contract_id is not None:
        query = query.where(Vessel.contract_id == contract_id)
    if status:
        query = query.where(Vessel.status == status)
    query = query.order_by(Vessel.created_at.desc(), Vessel.vessel_id.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{vessel_id}", response_model=VesselResponse)
async def get_vessel(vessel_id: int, db: AsyncSession = Depends(get_db)):
    return await _get_vessel_or_404(db, vessel_id)


@router.post("/", response_model=VesselResponse, status_code=201)
async def create_vessel(
    body: VesselCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    if body.contract_id is not None and await db.get(Contract, body.contract_id) is None:
        raise DomainValidationError(f"Contract {body.contract_id} does not exist")

    vessel = Vessel(**normalize_datetimes(body.model_dump()), created_by=user.get("sub"))
    db.add(vessel)
    await db.commit()
    await db.refresh(vessel)
    return vessel


@router.put("/{vessel_id}", response_model=VesselResponse)
async def update_vessel_endpoint(
    vessel_id: int,
    body: VesselUpdate,
    db: AsyncSession = Depends(get_db),
):
    """
    Partial update. Supplying a customs_release_file completes the vessel
    and marks its customs release received, regardless of any status sent.
    """
    updates = normalize_datetimes(body.model_dump(exclude_unset=True))
    customs_release_file = updates.pop("customs_release_file", None)
    vessel = await update_vessel(db, vessel_id, updates, customs_release_file=customs_release_file)
    await db.commit()
    await db.refresh(vessel)
    return vessel


@router.patch("/{vessel_id}/status", response_model=VesselResponse)
async def update_vessel_status(
    vessel_id: int,
    body: VesselStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    vessel = await _get_vessel_or_404(db, vessel_id)
    vessel.status = body.status
    vessel.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(vessel)
    return vessel


@router.get("/{vessel_id}/discharge-progress", response_model=DischargeProgressResponse)
async def get_discharge_progress(vessel_id: int, db: AsyncSession = Depends(get_db)):
    """Discharged vs planned quantity with variance classification."""
    vessel = await _get_vessel_or_404(db, vessel_id)
    progress = discharge_progress(vessel.quantity, vessel.actual_quantity)
    return DischargeProgressResponse(
        vessel_id=vessel_id,
        discharged=progress.discharged,
        planned=progress.planned,
        percent=progress.percent,
        variance=progress.variance,
        variance_percent=progress.variance_percent,
        classification=progress.classification,
    )


@router.delete("/{vessel_id}", status_code=204)
async def delete_vessel(vessel_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a vessel with its documents, loading ports and LC allocations."""
    vessel = await _get_vessel_or_404(db, vessel_id)
    await db.delete(vessel)
    await db.commit()


# ─── Documents ──────────────────────────────────────────────────────────────


@router.get("/{vessel_id}/documents", response_model=list[DocumentResponse])
async def list_documents(vessel_id: int, db: AsyncSession = Depends(get_db)):
    await _get_vessel_or_404(db, vessel_id)
    result = await db.execute(
        select(VesselDocument)
        .where(VesselDocument.vessel_id == vessel_id)
        .order_by(VesselDocument.uploaded_at.desc(), VesselDocument.document_id.desc())
    )
    return result.scalars().all()


@router.post("/{vessel_id}/documents", response_model=DocumentResponse, status_code=201)
async def create_document(
    vessel_id: int,
    body: DocumentCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Attach a document. A 'customs_release' document completes the vessel."""
    document = await add_vessel_document(
        db,
        vessel_id=vessel_id,
        document_type=body.document_type,
        document_name=body.document_name,
        file_name=body.file_name,
        file_path=body.file_path or f"vessel-documents/{vessel_id}/{body.file_name}",
        uploaded_by=user.get("sub"),
        notes=body.notes,
    )
    await db.commit()
    await db.refresh(document)
    return document


@router.delete("/{vessel_id}/documents/{document_id}", status_code=204)
async def delete_document(vessel_id: int, document_id: int, db: AsyncSession = Depends(get_db)):
    document = await db.get(VesselDocument, document_id)
    if not document or document.vessel_id != vessel_id:
        raise NotFoundError("Document", document_id)
    await db.delete(document)
    await db.commit()


# ─── LC Allocations ─────────────────────────────────────────────────────────


@router.get("/{vessel_id}/letters-of-credit", response_model=list[AllocationResponse])
async def list_allocations(vessel_id: int, db: AsyncSession = Depends(get_db)):
    await _get_vessel_or_404(db, vessel_id)
    return await list_vessel_allocations(db, vessel_id)


@router.post("/{vessel_id}/letters-of-credit", response_model=AllocationResponse, status_code=201)
async def create_allocation(
    vessel_id: int,
    body: AllocationCreate,
    db: AsyncSession = Depends(get_db),
):
    """Allocate part of an LC's quantity to this vessel."""
    await _get_vessel_or_404(db, vessel_id)
    if await db.get(LetterOfCredit, body.lc_id) is None:
        raise NotFoundError("Letter of credit", body.lc_id)

    allocation = await record_allocation(db, vessel_id, body.lc_id, body.quantity, notes=body.notes)
    await db.commit()
    await db.refresh(allocation)
    return allocation


@router.delete("/{vessel_id}/letters-of-credit/{allocation_id}", status_code=204)
async def delete_allocation(vessel_id: int, allocation_id: int, db: AsyncSession = Depends(get_db)):
    allocation = await db.get(VesselLetterOfCredit, allocation_id)
    if not allocation or allocation.vessel_id != vessel_id:
        raise NotFoundError("Allocation", allocation_id)
    await remove_allocation(db, allocation_id)
    await db.commit()


# ─── Loading Ports ──────────────────────────────────────────────────────────


@router.get("/{vessel_id}/loading-ports", response_model=list[LoadingPortResponse])
async def list_loading_ports(vessel_id: int, db: AsyncSession = Depends(get_db)):
    await _get_vessel_or_404(db, vessel_id)
    result = await db.execute(
        select(VesselLoadingPort)
        .where(VesselLoadingPort.vessel_id == vessel_id)
        .order_by(VesselLoadingPort.loading_date.asc(), VesselLoadingPort.port_id.asc())
    )
    return result.scalars().all()


@router.post("/{vessel_id}/loading-ports", response_model=LoadingPortResponse, status_code=201)
async def create_loading_port(
    vessel_id: int,
    body: LoadingPortCreate,
    db: AsyncSession = Depends(get_db),
):
    await _get_vessel_or_404(db, vessel_id)
    port = VesselLoadingPort(vessel_id=vessel_id, **normalize_datetimes(body.model_dump()))
    db.add(port)
    await db.commit()
    await db.refresh(port)
    return port


@router.put("/{vessel_id}/loading-ports/{port_id}", response_model=LoadingPortResponse)
async def update_loading_port(
    vessel_id: int,
    port_id: int,
    body: LoadingPortUpdate,
    db: AsyncSession = Depends(get_db),
):
    port = await db.get(VesselLoadingPort, port_id)
    if not port or port.vessel_id != vessel_id:
        raise NotFoundError("Loading port", port_id)

    for field, value in normalize_datetimes(body.model_dump(exclude_unset=True)).items():
        setattr(port, field, value)
    port.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(port)
    return port


@router.delete("/{vessel_id}/loading-ports/{port_id}", status_code=204)
async def delete_loading_port(vessel_id: int, port_id: int, db: AsyncSession = Depends(get_db)):
    port = await db.get(VesselLoadingPort, port_id)
    if not port or port.vessel_id != vessel_id:
        raise NotFoundError("Loading port", port_id)
    await db.delete(port)
    await db.commit()
