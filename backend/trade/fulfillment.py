"""
Need Fulfillment Aggregator — Roll discharged vessel quantities up into needs.

Chain walked for every active need:
    Need ← Request ← Contract (approved) ← Vessel (discharged)

A vessel contributes its actual_quantity to a need only when:
  1. vessel.status == 'discharged'
  2. its contract.status == 'approved'
  3. actual_quantity and discharge_end_date are both set
  4. fulfillment_start_date <= discharge_end_date <= fulfillment_end_date
     (inclusive on both ends)

The rollup is a single grouped join rather than a per-need traversal.
Each need is committed on its own; a failure part-way through the batch
leaves already-updated needs in place.
"""

from datetime import datetime

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import NEED_STATUSES, Contract, Need, TradeRequest, Vessel
from trade.errors import DomainValidationError, NotFoundError

logger = structlog.get_logger()


def derive_need_progress(required_quantity: int, actual_quantity: int) -> tuple[float, str]:
    """
    Progress percentage (clamped to 100) and the status it implies.

    >= 100% → fulfilled, > 0% → in_progress, otherwise active.
    """
    if required_quantity and required_quantity > 0:
        progress = min(actual_quantity / required_quantity * 100, 100.0)
    else:
        progress = 0.0

    if progress >= 100:
        status = "fulfilled"
    elif progress > 0:
        status = "in_progress"
    else:
        status = "active"
    return float(progress), status


async def update_need_progress(db: AsyncSession, need_id: int, actual_quantity: int) -> Need:
    """
    Record the received quantity for a need and re-derive progress and status.

    The derived status overwrites whatever was there before, including
    manually set 'cancelled' or 'expired'. Calling twice with the same
    quantity leaves the same stored state.
    """
    if isinstance(actual_quantity, bool) or not isinstance(actual_quantity, int) or actual_quantity < 0:
        raise DomainValidationError(f"actual_quantity must be a non-negative integer, got {actual_quantity!r}")

    need = await db.get(Need, need_id)
    if need is None:
        raise NotFoundError("Need", need_id)

    progress, status = derive_need_progress(need.required_quantity, actual_quantity)
    previous_status = need.status

    need.actual_quantity_received = actual_quantity
    need.progress_percentage = progress
    need.status = status
    need.updated_at = datetime.utcnow()
    await db.flush()

    logger.info(
        "fulfillment.need_updated",
        need_id=need_id,
        actual_quantity=actual_quantity,
        required_quantity=need.required_quantity,
        progress_percentage=progress,
        status=status,
        previous_status=previous_status,
    )
    return need


async def update_need_status(db: AsyncSession, need_id: int, status: str) -> Need:
    """Manually set a need's status (e.g. cancel or expire it)."""
    if status not in NEED_STATUSES:
        raise DomainValidationError(f"Invalid need status '{status}'")
    need = await db.get(Need, need_id)
    if need is None:
        raise NotFoundError("Need", need_id)
    need.status = status
    need.updated_at = datetime.utcnow()
    await db.flush()
    return need


async def delivered_quantities_for_active_needs(db: AsyncSession) -> dict[int, int]:
    """Delivered tons per active need, counting only in-window discharged vessels."""
    result = await db.execute(
        select(Need.need_id, func.coalesce(func.sum(Vessel.actual_quantity), 0))
        .join(TradeRequest, TradeRequest.need_id == Need.need_id)
        .join(
            Contract,
            and_(Contract.request_id == TradeRequest.request_id, Contract.status == "approved"),
        )
        .join(
            Vessel,
            and_(Vessel.contract_id == Contract.contract_id, Vessel.status == "discharged"),
        )
        .where(
            Need.status == "active",
            Vessel.actual_quantity.isnot(None),
            Vessel.discharge_end_date.isnot(None),
            Vessel.discharge_end_date >= Need.fulfillment_start_date,
            Vessel.discharge_end_date <= Need.fulfillment_end_date,
        )
        .group_by(Need.need_id)
    )
    return {need_id: int(total) for need_id, total in result.all()}


async def update_needs_progress_from_vessels(db: AsyncSession) -> dict:
    """
    Recompute progress for every active need from vessel discharges.

    Needs with no contributing vessel are still updated (to 0 / active).
    Returns a summary dict for logging and the API response.
    """
    totals = await delivered_quantities_for_active_needs(db)

    result = await db.execute(select(Need.need_id).where(Need.status == "active").order_by(Need.need_id))
    active_need_ids = list(result.scalars().all())

    status_counts: dict[str, int] = {}
    for need_id in active_need_ids:
        need = await update_need_progress(db, need_id, totals.get(need_id, 0))
        await db.commit()
        status_counts[need.status] = status_counts.get(need.status, 0) + 1

    summary = {
        "needs_updated": len(active_need_ids),
        "total_delivered": sum(totals.values()),
        "status_counts": status_counts,
    }
    logger.info("fulfillment.batch_complete", **summary)
    return summary
