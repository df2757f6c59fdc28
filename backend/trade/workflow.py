"""
Workflow writes that carry status cascades.

Each function performs its primary write and dispatches the matching
domain event (trade.transitions) on the same session. If anything fails
between the primary write and the last cascaded write, the session is
rolled back and TransactionFailure is raised, so a contract can never be
left 'approved' while its request is still 'pending'.

Functions flush but do not commit; the caller commits the unit of work.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import CONTRACT_STATUSES, Contract, TradeRequest, Vessel, VesselDocument
from trade import transitions
from trade.errors import DomainValidationError, NotFoundError, TradeOpsError, TransactionFailure

logger = structlog.get_logger()

CUSTOMS_RELEASE_DOCUMENT = "customs_release"

_PROTECTED_FIELDS = {"created_at", "created_by"}


@asynccontextmanager
async def atomic_cascade(db: AsyncSession, operation: str, **context: Any) -> AsyncIterator[None]:
    """Roll the whole session back if the primary write or any cascade fails."""
    try:
        yield
        await db.flush()
    except TradeOpsError:
        await db.rollback()
        raise
    except Exception as exc:
        await db.rollback()
        logger.error("workflow.cascade_failed", operation=operation, error=str(exc), **context)
        raise TransactionFailure(f"{operation} failed and was rolled back") from exc


def _apply_updates(obj: Any, updates: dict[str, Any], id_field: str) -> None:
    for field, value in updates.items():
        if field == id_field or field in _PROTECTED_FIELDS:
            continue
        if not hasattr(type(obj), field):
            raise DomainValidationError(f"Unknown field '{field}' for {type(obj).__name__}")
        setattr(obj, field, value)


def _check_contract_status(status: str) -> None:
    if status not in CONTRACT_STATUSES:
        raise DomainValidationError(f"Invalid contract status '{status}'")


# ─── Contracts ──────────────────────────────────────────────────────────────


async def create_contract(db: AsyncSession, request_id: int | None = None, **fields: Any) -> Contract:
    """Insert a contract; its request (if any) moves to 'contracted' in the same transaction."""
    _check_contract_status(fields.get("status", "draft"))
    if request_id is not None and await db.get(TradeRequest, request_id) is None:
        raise DomainValidationError(f"Request {request_id} does not exist")

    async with atomic_cascade(db, "create_contract", request_id=request_id):
        contract = Contract(request_id=request_id, **fields)
        db.add(contract)
        await db.flush()
        await transitions.dispatch(
            db,
            transitions.ContractCreated(contract_id=contract.contract_id, request_id=request_id),
        )
    return contract


async def update_contract_status(db: AsyncSession, contract_id: int, status: str) -> Contract:
    """Set a contract's status; approval moves its request to 'applied' atomically."""
    _check_contract_status(status)
    contract = await db.get(Contract, contract_id)
    if contract is None:
        raise NotFoundError("Contract", contract_id)

    previous_status = contract.status
    async with atomic_cascade(db, "update_contract_status", contract_id=contract_id, status=status):
        contract.status = status
        contract.updated_at = datetime.utcnow()
        await db.flush()
        await transitions.dispatch(
            db,
            transitions.ContractStatusChanged(
                contract_id=contract_id,
                request_id=contract.request_id,
                status=status,
                previous_status=previous_status,
            ),
        )
    return contract


async def update_contract(db: AsyncSession, contract_id: int, updates: dict[str, Any]) -> Contract:
    """Partial update; a status change goes through the same cascade as update_contract_status."""
    contract = await db.get(Contract, contract_id)
    if contract is None:
        raise NotFoundError("Contract", contract_id)

    updates = dict(updates)
    new_status = updates.pop("status", None)
    if new_status is not None:
        _check_contract_status(new_status)
    if updates.get("request_id") is not None and await db.get(TradeRequest, updates["request_id"]) is None:
        raise DomainValidationError(f"Request {updates['request_id']} does not exist")

    previous_status = contract.status
    async with atomic_cascade(db, "update_contract", contract_id=contract_id):
        _apply_updates(contract, updates, "contract_id")
        if new_status is not None:
            contract.status = new_status
        contract.updated_at = datetime.utcnow()
        await db.flush()
        if new_status is not None and new_status != previous_status:
            await transitions.dispatch(
                db,
                transitions.ContractStatusChanged(
                    contract_id=contract_id,
                    request_id=contract.request_id,
                    status=new_status,
                    previous_status=previous_status,
                ),
            )
    return contract


# ─── Vessels ────────────────────────────────────────────────────────────────


async def add_vessel_document(
    db: AsyncSession,
    vessel_id: int,
    document_type: str,
    document_name: str,
    file_name: str,
    file_path: str,
    uploaded_by: str | None = None,
    notes: str | None = None,
) -> VesselDocument:
    """Attach a document to a vessel. A customs release document completes the vessel."""
    if await db.get(Vessel, vessel_id) is None:
        raise NotFoundError("Vessel", vessel_id)
    if not file_name:
        raise DomainValidationError("Document file is required")

    async with atomic_cascade(db, "add_vessel_document", vessel_id=vessel_id, document_type=document_type):
        document = VesselDocument(
            vessel_id=vessel_id,
            document_type=document_type,
            document_name=document_name,
            file_name=file_name,
            file_path=file_path,
            uploaded_by=uploaded_by,
            notes=notes,
        )
        db.add(document)
        await db.flush()
        if document_type == CUSTOMS_RELEASE_DOCUMENT:
            await transitions.dispatch(
                db,
                transitions.CustomsReleaseReceived(vessel_id=vessel_id, file_name=file_name),
            )
    return document


async def update_vessel(
    db: AsyncSession,
    vessel_id: int,
    updates: dict[str, Any],
    customs_release_file: str | None = None,
) -> Vessel:
    """
    Partial vessel update.

    A newly supplied customs release file overrides any status in `updates`:
    the vessel is completed and its customs release marked received.
    """
    vessel = await db.get(Vessel, vessel_id)
    if vessel is None:
        raise NotFoundError("Vessel", vessel_id)
    if updates.get("contract_id") is not None and await db.get(Contract, updates["contract_id"]) is None:
        raise DomainValidationError(f"Contract {updates['contract_id']} does not exist")

    async with atomic_cascade(db, "update_vessel", vessel_id=vessel_id):
        _apply_updates(vessel, updates, "vessel_id")
        vessel.updated_at = datetime.utcnow()
        await db.flush()
        if customs_release_file:
            await transitions.dispatch(
                db,
                transitions.CustomsReleaseReceived(vessel_id=vessel_id, file_name=customs_release_file),
            )
    return vessel
