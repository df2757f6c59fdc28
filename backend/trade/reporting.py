"""
Progress Report Builder — need vs delivery, point in time.

For each need in the requested range:
  - linked requests
  - every vessel under those requests' contracts (any vessel status)
  - delivery_gap   = required - received (negative when over-delivered)
  - is_on_track    = received >= required × on_track_ratio (default 0.9)
  - days_remaining = ceil((fulfillment_end - now) / 1 day), negative when overdue

Range filter: a need is included only when its whole fulfillment window
falls inside [start_date, end_date]; either bound may be omitted.
Related rows are fetched in three batched queries (requests, contracts,
vessels) regardless of how many needs are in the report.
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from db.models import Contract, Need, TradeRequest, Vessel

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class LinkedRequest:
    request_id: int
    request_title: str
    request_quantity: int
    request_status: str


@dataclass
class Delivery:
    vessel_id: int
    vessel_name: str | None
    actual_quantity: int | None
    discharge_end_date: datetime | None
    status: str
    request_title: str
    contract_id: int


@dataclass
class NeedProgressRow:
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
    delivery_gap: int
    is_on_track: bool
    days_remaining: int | None
    linked_requests: list[LinkedRequest] = field(default_factory=list)
    deliveries: list[Delivery] = field(default_factory=list)


def days_until(end: datetime | None, now: datetime) -> int | None:
    if end is None:
        return None
    return math.ceil((end - now).total_seconds() / SECONDS_PER_DAY)


def is_on_track(actual_quantity: int, required_quantity: int, ratio: float) -> bool:
    return actual_quantity >= required_quantity * ratio


async def get_needs_progress_report(
    db: AsyncSession,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    now: datetime | None = None,
    on_track_ratio: float | None = None,
) -> list[NeedProgressRow]:
    """Build one report row per need, newest need first."""
    now = now or datetime.utcnow()
    ratio = get_settings().need_on_track_ratio if on_track_ratio is None else on_track_ratio

    query = select(Need)
    if start_date is not None:
        query = query.where(Need.fulfillment_start_date >= start_date)
    if end_date is not None:
        query = query.where(Need.fulfillment_end_date <= end_date)
    result = await db.execute(query.order_by(Need.created_at.desc(), Need.need_id.desc()))
    needs = list(result.scalars().all())
    if not needs:
        return []

    # Batched fetch of the chain below the selected needs
    req_result = await db.execute(
        select(TradeRequest)
        .where(TradeRequest.need_id.in_([n.need_id for n in needs]))
        .order_by(TradeRequest.request_id)
    )
    requests = list(req_result.scalars().all())

    contracts: list[Contract] = []
    if requests:
        contract_result = await db.execute(
            select(Contract)
            .where(Contract.request_id.in_([r.request_id for r in requests]))
            .order_by(Contract.contract_id)
        )
        contracts = list(contract_result.scalars().all())

    vessels: list[Vessel] = []
    if contracts:
        vessel_result = await db.execute(
            select(Vessel)
            .where(Vessel.contract_id.in_([c.contract_id for c in contracts]))
            .order_by(Vessel.vessel_id)
        )
        vessels = list(vessel_result.scalars().all())

    requests_by_need: dict[int, list[TradeRequest]] = defaultdict(list)
    for req in requests:
        requests_by_need[req.need_id].append(req)
    contracts_by_request: dict[int, list[Contract]] = defaultdict(list)
    for contract in contracts:
        contracts_by_request[contract.request_id].append(contract)
    vessels_by_contract: dict[int, list[Vessel]] = defaultdict(list)
    for vessel in vessels:
        vessels_by_contract[vessel.contract_id].append(vessel)

    rows = []
    for need in needs:
        linked = requests_by_need.get(need.need_id, [])
        deliveries = [
            Delivery(
                vessel_id=vessel.vessel_id,
                vessel_name=vessel.vessel_name,
                actual_quantity=vessel.actual_quantity,
                discharge_end_date=vessel.discharge_end_date,
                status=vessel.status,
                request_title=req.title,
                contract_id=contract.contract_id,
            )
            for req in linked
            for contract in contracts_by_request.get(req.request_id, [])
            for vessel in vessels_by_contract.get(contract.contract_id, [])
        ]
        received = need.actual_quantity_received or 0
        rows.append(
            NeedProgressRow(
                need_id=need.need_id,
                need_title=need.title,
                category=need.category,
                required_quantity=need.required_quantity,
                actual_quantity_received=received,
                progress_percentage=float(need.progress_percentage or 0),
                status=need.status,
                fulfillment_start_date=need.fulfillment_start_date,
                fulfillment_end_date=need.fulfillment_end_date,
                priority=need.priority,
                unit_of_measure=need.unit_of_measure,
                delivery_gap=need.required_quantity - received,
                is_on_track=is_on_track(received, need.required_quantity, ratio),
                days_remaining=days_until(need.fulfillment_end_date, now),
                linked_requests=[
                    LinkedRequest(
                        request_id=req.request_id,
                        request_title=req.title,
                        request_quantity=req.quantity,
                        request_status=req.status,
                    )
                    for req in linked
                ],
                deliveries=deliveries,
            )
        )
    return rows
