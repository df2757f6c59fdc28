"""
Tests for the quantity ledger — LC allocations and vessel discharge progress.
"""

import pytest
from sqlalchemy import func, select
from structlog.testing import capture_logs

from db.models import LetterOfCredit, Vessel, VesselLetterOfCredit
from trade.errors import DomainValidationError, NotFoundError
from trade.ledger import (
    discharge_progress,
    get_allocated_quantity,
    get_lc_position,
    get_remaining_quantity,
    list_vessel_allocations,
    record_allocation,
    remove_allocation,
    set_lc_quantity,
)


async def _make_lc(db, quantity: int) -> LetterOfCredit:
    lc = LetterOfCredit(lc_number=f"LC-{quantity}", currency="USD", quantity=quantity)
    db.add(lc)
    await db.flush()
    return lc


async def _make_vessel(db, name: str = "MV Test") -> Vessel:
    vessel = Vessel(vessel_name=name, quantity=500)
    db.add(vessel)
    await db.flush()
    return vessel


class TestRemainingQuantity:
    def test_remaining_is_face_minus_allocated(self):
        assert get_remaining_quantity(500, 450) == 50

    def test_remaining_goes_negative_when_over_allocated(self):
        assert get_remaining_quantity(100, 130) == -30

    def test_missing_face_quantity_counts_as_zero(self):
        assert get_remaining_quantity(None, 20) == -20


@pytest.mark.asyncio
class TestAllocations:
    async def test_lc_without_allocations_has_zero_allocated(self, test_db):
        lc = await _make_lc(test_db, 500)
        assert await get_allocated_quantity(test_db, lc.lc_id) == 0

    async def test_allocated_is_sum_of_allocations(self, test_db):
        lc = await _make_lc(test_db, 500)
        first = await _make_vessel(test_db, "MV One")
        second = await _make_vessel(test_db, "MV Two")

        await record_allocation(test_db, first.vessel_id, lc.lc_id, 200)
        await record_allocation(test_db, second.vessel_id, lc.lc_id, 250)

        allocated = await get_allocated_quantity(test_db, lc.lc_id)
        assert allocated == 450
        assert get_remaining_quantity(lc.quantity, allocated) == 50

    async def test_allow_policy_accepts_over_allocation(self, test_db):
        lc = await _make_lc(test_db, 100)
        vessel = await _make_vessel(test_db)

        await record_allocation(test_db, vessel.vessel_id, lc.lc_id, 130, policy="allow")

        position = await get_lc_position(test_db, lc)
        assert position.allocated_quantity == 130
        assert position.remaining_quantity == -30
        assert position.over_allocated is True
        assert position.utilization_percent == 130.0

    async def test_warn_policy_logs_over_allocation(self, test_db):
        lc = await _make_lc(test_db, 100)
        vessel = await _make_vessel(test_db)

        with capture_logs() as logs:
            await record_allocation(test_db, vessel.vessel_id, lc.lc_id, 130, policy="warn")

        events = [entry["event"] for entry in logs]
        assert "ledger.over_allocated" in events
        assert "ledger.allocation_recorded" in events
        assert await get_allocated_quantity(test_db, lc.lc_id) == 130

    async def test_warn_policy_is_silent_within_face_quantity(self, test_db):
        lc = await _make_lc(test_db, 100)
        vessel = await _make_vessel(test_db)

        with capture_logs() as logs:
            await record_allocation(test_db, vessel.vessel_id, lc.lc_id, 100, policy="warn")

        assert "ledger.over_allocated" not in [entry["event"] for entry in logs]

    async def test_reject_policy_refuses_over_allocation(self, test_db):
        lc = await _make_lc(test_db, 100)
        vessel = await _make_vessel(test_db)
        await record_allocation(test_db, vessel.vessel_id, lc.lc_id, 60, policy="reject")

        with pytest.raises(DomainValidationError, match="exceeds remaining quantity 40"):
            await record_allocation(test_db, vessel.vessel_id, lc.lc_id, 50, policy="reject")

        assert await get_allocated_quantity(test_db, lc.lc_id) == 60

    @pytest.mark.parametrize("quantity", [0, -5, 2.5, True])
    async def test_non_positive_or_non_integer_quantity_rejected(self, test_db, quantity):
        lc = await _make_lc(test_db, 100)
        vessel = await _make_vessel(test_db)

        with pytest.raises(DomainValidationError):
            await record_allocation(test_db, vessel.vessel_id, lc.lc_id, quantity)

        count = await test_db.scalar(select(func.count(VesselLetterOfCredit.allocation_id)))
        assert count == 0

    async def test_unknown_vessel_rejected(self, test_db):
        lc = await _make_lc(test_db, 100)
        with pytest.raises(DomainValidationError, match="Vessel 9999"):
            await record_allocation(test_db, 9999, lc.lc_id, 10)

    async def test_unknown_lc_rejected(self, test_db):
        vessel = await _make_vessel(test_db)
        with pytest.raises(DomainValidationError, match="Letter of credit 9999"):
            await record_allocation(test_db, vessel.vessel_id, 9999, 10)

    async def test_remove_returns_lc_and_reduces_allocated(self, test_db):
        lc = await _make_lc(test_db, 500)
        vessel = await _make_vessel(test_db)
        kept = await record_allocation(test_db, vessel.vessel_id, lc.lc_id, 200)
        removed = await record_allocation(test_db, vessel.vessel_id, lc.lc_id, 250)

        assert await remove_allocation(test_db, removed.allocation_id) == lc.lc_id

        assert await get_allocated_quantity(test_db, lc.lc_id) == 200
        remaining = await list_vessel_allocations(test_db, vessel.vessel_id)
        assert [a.allocation_id for a in remaining] == [kept.allocation_id]

    async def test_remove_twice_raises_not_found(self, test_db):
        lc = await _make_lc(test_db, 500)
        vessel = await _make_vessel(test_db)
        allocation = await record_allocation(test_db, vessel.vessel_id, lc.lc_id, 200)
        allocation_id = allocation.allocation_id

        await remove_allocation(test_db, allocation_id)
        with pytest.raises(NotFoundError):
            await remove_allocation(test_db, allocation_id)


@pytest.mark.asyncio
class TestFaceQuantityChanges:
    async def test_raising_face_quantity_frees_remaining(self, test_db):
        lc = await _make_lc(test_db, 100)
        vessel = await _make_vessel(test_db)
        await record_allocation(test_db, vessel.vessel_id, lc.lc_id, 130)

        await set_lc_quantity(test_db, lc, 200, policy="reject")

        position = await get_lc_position(test_db, lc)
        assert position.remaining_quantity == 70
        assert position.over_allocated is False

    async def test_reject_policy_keeps_face_quantity(self, test_db):
        lc = await _make_lc(test_db, 500)
        vessel = await _make_vessel(test_db)
        await record_allocation(test_db, vessel.vessel_id, lc.lc_id, 300)

        with pytest.raises(DomainValidationError, match="cannot drop to 299"):
            await set_lc_quantity(test_db, lc, 299, policy="reject")
        assert lc.quantity == 500

        await set_lc_quantity(test_db, lc, 300, policy="reject")
        assert (await get_lc_position(test_db, lc)).remaining_quantity == 0

    async def test_warn_policy_logs_and_applies(self, test_db):
        lc = await _make_lc(test_db, 500)
        vessel = await _make_vessel(test_db)
        await record_allocation(test_db, vessel.vessel_id, lc.lc_id, 300)

        with capture_logs() as logs:
            await set_lc_quantity(test_db, lc, 250, policy="warn")

        events = [entry["event"] for entry in logs]
        assert events == ["ledger.over_allocated", "ledger.lc_quantity_changed"]
        assert (await get_lc_position(test_db, lc)).remaining_quantity == -50

    async def test_allow_policy_applies_silently(self, test_db):
        lc = await _make_lc(test_db, 500)
        vessel = await _make_vessel(test_db)
        await record_allocation(test_db, vessel.vessel_id, lc.lc_id, 300)

        with capture_logs() as logs:
            await set_lc_quantity(test_db, lc, 100, policy="allow")

        assert "ledger.over_allocated" not in [entry["event"] for entry in logs]
        assert (await get_lc_position(test_db, lc)).remaining_quantity == -200

    @pytest.mark.parametrize("quantity", [-1, 2.5, True])
    async def test_invalid_face_quantity(self, test_db, quantity):
        lc = await _make_lc(test_db, 500)
        with pytest.raises(DomainValidationError):
            await set_lc_quantity(test_db, lc, quantity)


class TestDischargeProgress:
    def test_shortfall(self):
        progress = discharge_progress(planned=500, discharged=450)
        assert progress.percent == 90.0
        assert progress.variance == -50
        assert progress.variance_percent == -10.0
        assert progress.classification == "shortfall"

    def test_excess_is_clamped_to_100_percent(self):
        progress = discharge_progress(planned=500, discharged=520)
        assert progress.percent == 100.0
        assert progress.variance == 20
        assert progress.classification == "excess"

    def test_exact(self):
        progress = discharge_progress(planned=500, discharged=500)
        assert progress.percent == 100.0
        assert progress.classification == "exact"

    def test_zero_planned_does_not_divide(self):
        progress = discharge_progress(planned=0, discharged=10)
        assert progress.percent == 0.0
        assert progress.variance_percent == 0.0

    def test_missing_discharge_counts_as_zero(self):
        progress = discharge_progress(planned=300, discharged=None)
        assert progress.discharged == 0
        assert progress.percent == 0.0
        assert progress.variance == -300
