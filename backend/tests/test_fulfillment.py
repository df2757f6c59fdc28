"""
Tests for the need fulfillment aggregator.

Vessel contributions are counted only for discharged vessels under approved
contracts whose discharge_end_date falls inside the need's window,
inclusive on both ends.
"""

from datetime import datetime, timedelta

import pytest

from db.models import Contract, Need, TradeRequest, Vessel
from trade.errors import DomainValidationError, NotFoundError
from trade.fulfillment import (
    delivered_quantities_for_active_needs,
    derive_need_progress,
    update_need_progress,
    update_need_status,
    update_needs_progress_from_vessels,
)

# Matches the seeded need's fulfillment window
WINDOW_START = datetime(2026, 1, 1)
WINDOW_END = datetime(2026, 1, 31)


async def _add_vessel(db, contract_id: int, actual: int | None, discharged_on: datetime | None, status="discharged"):
    vessel = Vessel(
        contract_id=contract_id,
        vessel_name=f"MV {actual}",
        quantity=actual or 0,
        status=status,
        actual_quantity=actual,
        discharge_end_date=discharged_on,
    )
    db.add(vessel)
    await db.flush()
    return vessel


class TestDeriveNeedProgress:
    def test_partial_delivery_is_in_progress(self):
        assert derive_need_progress(1000, 400) == (40.0, "in_progress")

    def test_over_delivery_is_clamped(self):
        assert derive_need_progress(1000, 1500) == (100.0, "fulfilled")

    def test_exact_delivery_is_fulfilled(self):
        assert derive_need_progress(1000, 1000) == (100.0, "fulfilled")

    def test_nothing_delivered_is_active(self):
        assert derive_need_progress(1000, 0) == (0.0, "active")

    def test_zero_requirement_is_zero_percent(self):
        assert derive_need_progress(0, 50) == (0.0, "active")


@pytest.mark.asyncio
class TestUpdateNeedProgress:
    async def test_clamps_at_100_and_fulfills(self, test_db, seeded_db):
        need = await update_need_progress(test_db, seeded_db["need"].need_id, 1500)
        assert need.actual_quantity_received == 1500
        assert need.progress_percentage == 100.0
        assert need.status == "fulfilled"

    async def test_is_idempotent(self, test_db, seeded_db):
        need_id = seeded_db["need"].need_id
        first = await update_need_progress(test_db, need_id, 250)
        snapshot = (first.actual_quantity_received, first.progress_percentage, first.status)

        second = await update_need_progress(test_db, need_id, 250)
        assert (second.actual_quantity_received, second.progress_percentage, second.status) == snapshot
        assert snapshot == (250, 25.0, "in_progress")

    async def test_overwrites_cancelled_status(self, test_db, seeded_db):
        need_id = seeded_db["need"].need_id
        await update_need_status(test_db, need_id, "cancelled")

        need = await update_need_progress(test_db, need_id, 200)
        assert need.status == "in_progress"

    async def test_unknown_need(self, test_db):
        with pytest.raises(NotFoundError, match="Need 9999 not found"):
            await update_need_progress(test_db, 9999, 10)

    @pytest.mark.parametrize("quantity", [-1, 1.5, "10"])
    async def test_invalid_quantity(self, test_db, seeded_db, quantity):
        with pytest.raises(DomainValidationError):
            await update_need_progress(test_db, seeded_db["need"].need_id, quantity)

    async def test_invalid_manual_status(self, test_db, seeded_db):
        with pytest.raises(DomainValidationError):
            await update_need_status(test_db, seeded_db["need"].need_id, "archived")


@pytest.mark.asyncio
class TestAggregator:
    async def test_discharged_vessel_rolls_up_into_need(self, test_db, seeded_db):
        summary = await update_needs_progress_from_vessels(test_db)

        need = await test_db.get(Need, seeded_db["need"].need_id)
        assert need.actual_quantity_received == 400
        assert need.progress_percentage == 40.0
        assert need.status == "in_progress"
        assert summary["needs_updated"] == 1
        assert summary["total_delivered"] == 400
        assert summary["status_counts"] == {"in_progress": 1}

    async def test_window_end_is_inclusive(self, test_db, seeded_db):
        contract_id = seeded_db["contract"].contract_id
        await _add_vessel(test_db, contract_id, 100, WINDOW_END)
        await _add_vessel(test_db, contract_id, 300, WINDOW_END + timedelta(days=1))
        await _add_vessel(test_db, contract_id, 50, WINDOW_START)
        await _add_vessel(test_db, contract_id, 70, WINDOW_START - timedelta(seconds=1))
        await test_db.commit()

        totals = await delivered_quantities_for_active_needs(test_db)
        assert totals == {seeded_db["need"].need_id: 400 + 100 + 50}

    async def test_only_discharged_vessels_under_approved_contracts_count(self, test_db, seeded_db):
        contract_id = seeded_db["contract"].contract_id
        await _add_vessel(test_db, contract_id, 200, datetime(2026, 1, 10), status="completed")
        await _add_vessel(test_db, contract_id, 200, datetime(2026, 1, 10), status="discharging")
        await _add_vessel(test_db, contract_id, None, datetime(2026, 1, 10))
        await _add_vessel(test_db, contract_id, 200, None)

        draft = Contract(request_id=seeded_db["request"].request_id, status="draft")
        test_db.add(draft)
        await test_db.flush()
        await _add_vessel(test_db, draft.contract_id, 300, datetime(2026, 1, 12))
        await test_db.commit()

        totals = await delivered_quantities_for_active_needs(test_db)
        assert totals == {seeded_db["need"].need_id: 400}

    async def test_need_without_deliveries_is_reset_to_zero(self, test_db, seeded_db):
        orphan = Need(
            title="Barley",
            category="raw_materials",
            required_quantity=300,
            unit_of_measure="tons",
            fulfillment_start_date=WINDOW_START,
            fulfillment_end_date=WINDOW_END,
        )
        test_db.add(orphan)
        await test_db.commit()

        summary = await update_needs_progress_from_vessels(test_db)

        refreshed = await test_db.get(Need, orphan.need_id)
        assert refreshed.actual_quantity_received == 0
        assert refreshed.progress_percentage == 0.0
        assert refreshed.status == "active"
        assert summary["needs_updated"] == 2
        assert summary["status_counts"] == {"in_progress": 1, "active": 1}

    async def test_non_active_needs_are_skipped(self, test_db, seeded_db):
        need_id = seeded_db["need"].need_id
        await update_need_status(test_db, need_id, "cancelled")
        await test_db.commit()

        summary = await update_needs_progress_from_vessels(test_db)

        need = await test_db.get(Need, need_id)
        assert summary["needs_updated"] == 0
        assert need.status == "cancelled"
        assert need.actual_quantity_received == 0

    async def test_request_under_other_need_does_not_leak(self, test_db, seeded_db):
        other = Need(
            title="Corn",
            category="raw_materials",
            required_quantity=800,
            unit_of_measure="tons",
            fulfillment_start_date=WINDOW_START,
            fulfillment_end_date=WINDOW_END,
        )
        test_db.add(other)
        await test_db.flush()
        request = TradeRequest(
            need_id=other.need_id,
            title="Corn import",
            quantity=800,
            unit_of_measure="tons",
            price_per_ton=180.0,
            cargo_type="corn",
        )
        test_db.add(request)
        await test_db.flush()
        contract = Contract(request_id=request.request_id, status="approved")
        test_db.add(contract)
        await test_db.flush()
        await _add_vessel(test_db, contract.contract_id, 200, datetime(2026, 1, 20))
        await test_db.commit()

        totals = await delivered_quantities_for_active_needs(test_db)
        assert totals == {seeded_db["need"].need_id: 400, other.need_id: 200}

    async def test_out_of_window_discharge_is_not_rolled_into_stored_need(self, test_db, seeded_db):
        need_id = seeded_db["need"].need_id
        await _add_vessel(test_db, seeded_db["contract"].contract_id, 700, datetime(2026, 2, 5))
        await test_db.commit()

        summary = await update_needs_progress_from_vessels(test_db)

        need = await test_db.get(Need, need_id)
        await test_db.refresh(need)
        assert need.actual_quantity_received == 400
        assert need.progress_percentage == 40.0
        assert need.status == "in_progress"
        assert summary["total_delivered"] == 400
