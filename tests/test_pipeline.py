"""Tests for the LangGraph basket pipeline and computation sessions."""

import asyncio

import pytest

from budget_basket.models import (
    ComputationRequest,
    ComputationSessionState,
)
from budget_basket.orchestrator.sessions import (
    BasketComputer,
    SessionManager,
    SessionUnavailable,
    SupersededComputation,
)
from budget_basket.protocols.catalog import InMemoryCatalog
from conftest import GatedComputer


class CountingCatalog(InMemoryCatalog):
    def __init__(self, products):
        super().__init__(products)
        self.fetch_calls = 0

    async def fetch(self, term):
        self.fetch_calls += 1
        return await super().fetch(term)


class GatedCatalog(InMemoryCatalog):
    """In-memory catalog whose fetches wait for a gate."""

    def __init__(self, products, gate):
        super().__init__(products)
        self.gate = gate

    async def fetch(self, term):
        await self.gate.wait()
        return await super().fetch(term)


class FailingComputer:
    async def run(self, request, candidate_pool=None, skipped_items=None):
        raise RuntimeError("catalog down")


def _product_ids(nodes):
    return [node.product.product_id for node in nodes]


@pytest.fixture
def computer(settings, milk_bread_pool):
    return BasketComputer(settings, InMemoryCatalog(milk_bread_pool))


class TestBasketComputer:
    async def test_full_computation(self, computer):
        result, pool = await computer.run(
            ComputationRequest(budget=500, desired_items=["milk", "bread"])
        )

        assert [p.product_id for p in result.selection] == [1, 3, 2, 4]
        assert result.selection_cost == 180
        assert len(result.graph.stages) == 2
        assert len(result.graph.edges) == 4
        assert _product_ids(result.optimal_path) == [1, 3]
        assert result.optimal_cost == 70
        assert result.in_range_path is None
        assert len(pool) == 4

    async def test_price_window(self, computer):
        result, _ = await computer.run(
            ComputationRequest(
                budget=500, desired_items=["milk", "bread"], min_price=85, max_price=100
            )
        )
        assert _product_ids(result.in_range_path) == [1, 4]
        assert result.in_range_cost == 90

    async def test_window_capped_by_budget(self, computer):
        result, _ = await computer.run(
            ComputationRequest(budget=80, desired_items=["milk", "bread"], min_price=75)
        )
        assert result.in_range_path is None
        assert result.in_range_cost is None

    async def test_unmatched_item_skipped(self, computer):
        result, _ = await computer.run(
            ComputationRequest(budget=500, desired_items=["milk", "caviar"])
        )
        assert result.skipped_items == ["caviar"]
        assert result.optimal_path == []
        assert result.optimal_cost == 0

    async def test_given_pool_skips_fetch(self, settings, milk_bread_pool):
        catalog = CountingCatalog(milk_bread_pool)
        computer = BasketComputer(settings, catalog)

        result, _ = await computer.run(
            ComputationRequest(budget=500, desired_items=["milk", "bread"]),
            candidate_pool=milk_bread_pool[:2],
        )

        assert catalog.fetch_calls == 0
        assert [p.product_id for p in result.selection] == [1, 2]

    async def test_response_serialises_edge_aliases(self, computer):
        result, _ = await computer.run(
            ComputationRequest(budget=500, desired_items=["milk", "bread"])
        )
        edge = result.model_dump(by_alias=True)["graph"]["edges"][0]
        assert set(edge) == {"from", "to", "weight"}


class TestSessionManager:
    async def test_create_session(self, computer):
        manager = SessionManager(computer)
        session = await manager.create_session(
            ComputationRequest(budget=500, desired_items=["milk", "bread"])
        )

        assert session.state == ComputationSessionState.READY
        assert session.generation == 1
        assert len(session.candidate_pool) == 4
        assert session.result.optimal_cost == 70
        assert manager.get_session(session.id) is session
        assert manager.list_sessions() == [session]

    async def test_range_recompute_reuses_pool(self, settings, milk_bread_pool):
        catalog = CountingCatalog(milk_bread_pool)
        manager = SessionManager(BasketComputer(settings, catalog))
        session = await manager.create_session(
            ComputationRequest(budget=500, desired_items=["milk", "bread"])
        )
        calls_after_create = catalog.fetch_calls

        result = await manager.recompute_range(session.id, 85, 100)

        assert catalog.fetch_calls == calls_after_create
        assert result.in_range_cost == 90
        assert session.result is result
        assert session.request.min_price == 85
        assert session.generation == 2

    async def test_unknown_session(self, computer):
        manager = SessionManager(computer)
        with pytest.raises(KeyError):
            await manager.recompute_range("missing", 0, 10)

    async def test_failed_computation(self):
        manager = SessionManager(FailingComputer())
        session = await manager.create_session(ComputationRequest(budget=100))

        assert session.state == ComputationSessionState.FAILED
        assert "catalog down" in session.error
        assert session.result is None

    async def test_last_write_wins(self):
        computer = GatedComputer()
        manager = SessionManager(computer)
        session = await manager.create_session(
            ComputationRequest(budget=100, desired_items=["milk"])
        )

        gate = asyncio.Event()
        computer.gates.append(gate)
        older = asyncio.create_task(manager.recompute_range(session.id, 0, 50))
        await asyncio.sleep(0)

        newer = await manager.recompute_range(session.id, 0, 80)
        gate.set()

        with pytest.raises(SupersededComputation) as excinfo:
            await older

        assert excinfo.value.generation == 2
        assert excinfo.value.latest == 3
        assert newer.in_range_cost == 80
        assert session.result.in_range_cost == 80
        assert session.request.max_price == 80

    async def test_update_session(self, computer):
        manager = SessionManager(computer)
        session = await manager.create_session(ComputationRequest(budget=50))
        updated = manager.update_session(session.id, error="stale", unknown="ignored")

        assert updated.error == "stale"
        assert manager.update_session("missing", error="x") is None

    async def test_range_change_waits_for_first_fetch(self, settings, milk_bread_pool):
        gate = asyncio.Event()
        manager = SessionManager(BasketComputer(settings, GatedCatalog(milk_bread_pool, gate)))
        creating = asyncio.create_task(
            manager.create_session(ComputationRequest(budget=500, desired_items=["milk", "bread"]))
        )
        await asyncio.sleep(0)

        [session] = manager.list_sessions()
        assert session.state == ComputationSessionState.FETCHING
        assert session.candidate_pool is None

        ranging = asyncio.create_task(manager.recompute_range(session.id, 85, 100))
        await asyncio.sleep(0)
        gate.set()
        await creating
        result = await ranging

        assert result.optimal_cost == 70
        assert result.in_range_cost == 90
        assert len(result.graph.nodes) == 4
        assert session.result is result
        assert session.generation == 2
        assert session.state == ComputationSessionState.READY

    async def test_range_change_after_failed_fetch(self):
        manager = SessionManager(FailingComputer())
        session = await manager.create_session(ComputationRequest(budget=100))

        with pytest.raises(SessionUnavailable, match="catalog down"):
            await manager.recompute_range(session.id, 0, 50)
        assert session.generation == 1
