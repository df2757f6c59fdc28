"""
Status Transition Rules — cross-entity status cascades as domain events.

Some writes imply a status change on a related row:

  Trigger                                   Effect
  ───────────────────────────────────────   ─────────────────────────────────────
  Contract created with a request_id        Request.status → 'contracted'
  Contract status set to 'approved'         Request.status → 'applied'
  Customs release document received         Vessel.status → 'completed',
                                            customs_release_status → 'received',
                                            customs_release_file → file name

Handlers run synchronously on the caller's session, inside the same
transaction as the triggering write (see trade.workflow). They only mutate
and flush; committing or rolling back is the caller's job.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import TradeRequest, Vessel

logger = structlog.get_logger()


@dataclass(frozen=True)
class ContractCreated:
    contract_id: int
    request_id: int | None


@dataclass(frozen=True)
class ContractStatusChanged:
    contract_id: int
    request_id: int | None
    status: str
    previous_status: str


@dataclass(frozen=True)
class CustomsReleaseReceived:
    vessel_id: int
    file_name: str


Handler = Callable[[AsyncSession, object], Awaitable[None]]

HANDLERS: dict[type, list[Handler]] = {}


def on(event_type: type) -> Callable[[Handler], Handler]:
    """Register a handler for an event type."""

    def register(handler: Handler) -> Handler:
        HANDLERS.setdefault(event_type, []).append(handler)
        return handler

    return register


async def dispatch(db: AsyncSession, event: object) -> None:
    """Run every handler registered for the event's type, in registration order."""
    for handler in HANDLERS.get(type(event), []):
        await handler(db, event)


async def _set_request_status(db: AsyncSession, request_id: int, status: str) -> TradeRequest | None:
    request = await db.get(TradeRequest, request_id)
    if request is None:
        return None
    request.status = status
    request.updated_at = datetime.utcnow()
    await db.flush()
    return request


@on(ContractCreated)
async def mark_request_contracted(db: AsyncSession, event: ContractCreated) -> None:
    if event.request_id is None:
        return
    request = await _set_request_status(db, event.request_id, "contracted")
    if request is not None:
        logger.info(
            "transitions.request_contracted",
            request_id=event.request_id,
            contract_id=event.contract_id,
        )


@on(ContractStatusChanged)
async def mark_request_applied(db: AsyncSession, event: ContractStatusChanged) -> None:
    if event.status != "approved" or event.request_id is None:
        return
    request = await _set_request_status(db, event.request_id, "applied")
    if request is not None:
        logger.info(
            "transitions.request_applied",
            request_id=event.request_id,
            contract_id=event.contract_id,
        )


@on(CustomsReleaseReceived)
async def complete_vessel_on_customs_release(db: AsyncSession, event: CustomsReleaseReceived) -> None:
    vessel = await db.get(Vessel, event.vessel_id)
    if vessel is None:
        return
    vessel.status = "completed"
    vessel.customs_release_status = "received"
    vessel.customs_release_file = event.file_name
    vessel.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(
        "transitions.vessel_customs_release",
        vessel_id=event.vessel_id,
        file_name=event.file_name,
    )
