"""
Quantity Ledger — Letter of Credit allocations and vessel discharge progress.

An LC carries a face quantity (tons) that is split across vessels through
vessel_letters_of_credit rows. Allocated and remaining quantity are always
recomputed from those rows; nothing is cached on the LC itself.

Over-allocation (Σ allocations > LC face quantity) is governed by
settings.lc_overallocation_policy:
  - allow:  accepted silently (historical behaviour, default)
  - warn:   accepted, logged as ledger.over_allocated
  - reject: refused with DomainValidationError
The same policy applies when an LC's face quantity is lowered below what
is already allocated.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from db.models import LetterOfCredit, Vessel, VesselLetterOfCredit
from trade.errors import DomainValidationError, NotFoundError

logger = structlog.get_logger()

OVERALLOCATION_POLICIES = ("allow", "warn", "reject")


@dataclass
class DischargeProgress:
    """Discharged vs planned quantity for one vessel."""

    discharged: int
    planned: int
    percent: float  # 0-100, clamped
    variance: int  # discharged - planned (negative = shortfall)
    variance_percent: float  # variance relative to planned, 0 when planned is 0
    classification: str  # shortfall, excess, exact


@dataclass
class LCPosition:
    """Derived allocation position of a letter of credit."""

    lc_id: int
    quantity: int
    allocated_quantity: int
    remaining_quantity: int  # Not clamped; negative means over-allocated
    utilization_percent: float
    over_allocated: bool


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


async def get_allocated_quantity(db: AsyncSession, lc_id: int) -> int:
    """Sum of allocation quantities for an LC. 0 when it has no allocations."""
    result = await db.execute(
        select(func.coalesce(func.sum(func.coalesce(VesselLetterOfCredit.quantity, 0)), 0)).where(
            VesselLetterOfCredit.lc_id == lc_id
        )
    )
    return int(result.scalar_one())


def get_remaining_quantity(lc_quantity: int | None, allocated_quantity: int) -> int:
    """Face quantity minus allocations, not clamped at zero."""
    return (lc_quantity or 0) - allocated_quantity


async def get_lc_position(db: AsyncSession, lc: LetterOfCredit) -> LCPosition:
    allocated = await get_allocated_quantity(db, lc.lc_id)
    remaining = get_remaining_quantity(lc.quantity, allocated)
    face = lc.quantity or 0
    return LCPosition(
        lc_id=lc.lc_id,
        quantity=face,
        allocated_quantity=allocated,
        remaining_quantity=remaining,
        utilization_percent=round(allocated / face * 100, 2) if face > 0 else 0.0,
        over_allocated=remaining < 0,
    )


async def record_allocation(
    db: AsyncSession,
    vessel_id: int,
    lc_id: int,
    quantity: int,
    notes: str | None = None,
    policy: str | None = None,
) -> VesselLetterOfCredit:
    """
    Allocate `quantity` tons of an LC to a vessel.

    Raises DomainValidationError if the quantity is not a positive integer,
    if the vessel or LC does not exist, or if the reject policy is active
    and the allocation would exceed the LC's face quantity.
    """
    if not _is_positive_int(quantity):
        raise DomainValidationError(f"Allocation quantity must be a positive integer, got {quantity!r}")

    policy = policy or get_settings().lc_overallocation_policy
    if policy not in OVERALLOCATION_POLICIES:
        raise DomainValidationError(f"Unknown over-allocation policy '{policy}'")

    vessel = await db.get(Vessel, vessel_id)
    if vessel is None:
        raise DomainValidationError(f"Vessel {vessel_id} does not exist")
    lc = await db.get(LetterOfCredit, lc_id)
    if lc is None:
        raise DomainValidationError(f"Letter of credit {lc_id} does not exist")

    if policy != "allow":
        already_allocated = await get_allocated_quantity(db, lc_id)
        projected_remaining = get_remaining_quantity(lc.quantity, already_allocated + quantity)
        if projected_remaining < 0:
            if policy == "reject":
                raise DomainValidationError(
                    f"Allocation of {quantity} exceeds remaining quantity "
                    f"{get_remaining_quantity(lc.quantity, already_allocated)} on LC {lc_id}"
                )
            logger.warning(
                "ledger.over_allocated",
                lc_id=lc_id,
                vessel_id=vessel_id,
                quantity=quantity,
                lc_quantity=lc.quantity,
                projected_remaining=projected_remaining,
            )

    allocation = VesselLetterOfCredit(
        vessel_id=vessel_id,
        lc_id=lc_id,
        quantity=quantity,
        notes=notes,
    )
    db.add(allocation)
    await db.flush()

    logger.info(
        "ledger.allocation_recorded",
        allocation_id=allocation.allocation_id,
        vessel_id=vessel_id,
        lc_id=lc_id,
        quantity=quantity,
    )
    return allocation


async def set_lc_quantity(
    db: AsyncSession,
    lc: LetterOfCredit,
    quantity: int,
    policy: str | None = None,
) -> LetterOfCredit:
    """
    Change an LC's face quantity.

    Shrinking below what is already allocated is checked against the same
    over-allocation policy as record_allocation. An LC that is already
    over-allocated may always be raised.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise DomainValidationError(f"LC quantity must be a non-negative integer, got {quantity!r}")

    policy = policy or get_settings().lc_overallocation_policy
    if policy not in OVERALLOCATION_POLICIES:
        raise DomainValidationError(f"Unknown over-allocation policy '{policy}'")

    previous_quantity = lc.quantity
    if policy != "allow" and quantity < (previous_quantity or 0):
        allocated = await get_allocated_quantity(db, lc.lc_id)
        projected_remaining = get_remaining_quantity(quantity, allocated)
        if projected_remaining < 0:
            if policy == "reject":
                raise DomainValidationError(
                    f"LC {lc.lc_id} has {allocated} allocated; quantity cannot drop to {quantity}"
                )
            logger.warning(
                "ledger.over_allocated",
                lc_id=lc.lc_id,
                lc_quantity=quantity,
                allocated_quantity=allocated,
                projected_remaining=projected_remaining,
            )

    lc.quantity = quantity
    await db.flush()

    logger.info("ledger.lc_quantity_changed", lc_id=lc.lc_id, quantity=quantity, previous_quantity=previous_quantity)
    return lc


async def remove_allocation(db: AsyncSession, allocation_id: int) -> int:
    """
    Delete an allocation row and return the LC id it belonged to.

    Not idempotent: removing an already-removed allocation raises NotFoundError.
    """
    allocation = await db.get(VesselLetterOfCredit, allocation_id)
    if allocation is None:
        raise NotFoundError("Allocation", allocation_id)

    lc_id = allocation.lc_id
    await db.delete(allocation)
    await db.flush()

    logger.info("ledger.allocation_removed", allocation_id=allocation_id, lc_id=lc_id)
    return lc_id


async def list_vessel_allocations(db: AsyncSession, vessel_id: int) -> list[VesselLetterOfCredit]:
    result = await db.execute(
        select(VesselLetterOfCredit)
        .where(VesselLetterOfCredit.vessel_id == vessel_id)
        .order_by(VesselLetterOfCredit.created_at.desc(), VesselLetterOfCredit.allocation_id.desc())
    )
    return list(result.scalars().all())


def discharge_progress(planned: int | None, discharged: int | None) -> DischargeProgress:
    """
    Discharge completion for a vessel.

    discharged=None is treated as 0. A planned quantity of 0 yields 0%
    rather than dividing by zero.
    """
    planned = planned or 0
    discharged = discharged or 0
    variance = discharged - planned

    if planned > 0:
        percent = min(100.0, 100.0 * discharged / planned)
        variance_percent = round(100.0 * variance / planned, 1)
    else:
        percent = 0.0
        variance_percent = 0.0

    if variance < 0:
        classification = "shortfall"
    elif variance > 0:
        classification = "excess"
    else:
        classification = "exact"

    return DischargeProgress(
        discharged=discharged,
        planned=planned,
        percent=round(percent, 2),
        variance=variance,
        variance_percent=variance_percent,
        classification=classification,
    )
