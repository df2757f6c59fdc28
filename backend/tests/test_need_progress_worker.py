import asyncio
from datetime import datetime
from types import SimpleNamespace

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from db.session import Base
from workers.need_progress import refresh_need_progress


def test_refresh_need_progress_rolls_up_discharged_vessels(tmp_path, monkeypatch):
    from db.models import Contract, Need, TradeRequest, Vessel

    db_path = tmp_path / "need_progress.db"
    db_url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_async_engine(db_url, echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _seed() -> int:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with session_factory() as db:
            need = Need(
                title="Cement clinker",
                category="raw_materials",
                required_quantity=2000,
                unit_of_measure="tons",
                fulfillment_start_date=datetime(2026, 5, 1),
                fulfillment_end_date=datetime(2026, 6, 30),
            )
            db.add(need)
            await db.flush()
            request = TradeRequest(
                need_id=need.need_id,
                title="Clinker import",
                quantity=2000,
                unit_of_measure="tons",
                price_per_ton=60.0,
                cargo_type="clinker",
            )
            db.add(request)
            await db.flush()
            contract = Contract(request_id=request.request_id, status="approved")
            db.add(contract)
            await db.flush()
            db.add_all(
                [
                    Vessel(
                        contract_id=contract.contract_id,
                        vessel_name="MV Alpha",
                        quantity=1000,
                        status="discharged",
                        actual_quantity=1000,
                        discharge_end_date=datetime(2026, 5, 20),
                    ),
                    Vessel(
                        contract_id=contract.contract_id,
                        vessel_name="MV Beta",
                        quantity=1000,
                        status="discharged",
                        actual_quantity=500,
                        discharge_end_date=datetime(2026, 6, 30),
                    ),
                ]
            )
            await db.commit()
            need_id = need.need_id
        await engine.dispose()
        return need_id

    need_id = asyncio.run(_seed())

    monkeypatch.setattr("core.config.get_settings", lambda: SimpleNamespace(database_url=db_url))

    result = refresh_need_progress.run()
    assert result["status"] == "success"
    assert result["needs_updated"] == 1
    assert result["total_delivered"] == 1500
    assert result["status_counts"] == {"in_progress": 1}

    async def _load() -> Need:
        async with session_factory() as db:
            need = await db.get(Need, need_id)
        await engine.dispose()
        return need

    need = asyncio.run(_load())
    assert need.actual_quantity_received == 1500
    assert need.progress_percentage == 75.0
    assert need.status == "in_progress"

