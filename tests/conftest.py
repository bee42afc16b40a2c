"""Shared test fixtures for Budget Basket."""

import pytest
from httpx import ASGITransport, AsyncClient

from budget_basket.config import Settings
from budget_basket.main import build_app
from budget_basket.models import ComputationResponse, GraphEdge, GraphNode, Product, StageGraph


def make_product(product_id, name, price, weight=1.0, category="", brand="", stock=10):
    return Product(
        product_id=product_id,
        name=name,
        category=category,
        brand=brand,
        price=price,
        stock_quantity=stock,
        weight=weight,
    )


def make_graph(*stage_prices):
    """Build a fully connected staged graph from per-stage price lists."""
    stages = []
    nodes = []
    next_id = 1
    for stage_index, prices in enumerate(stage_prices):
        stage = []
        for position, price in enumerate(prices):
            node = GraphNode(
                id=f"{stage_index}_{position}",
                stage=stage_index,
                index=position,
                product=make_product(next_id, f"item {next_id}", price),
            )
            next_id += 1
            stage.append(node)
            nodes.append(node)
        stages.append(stage)

    edges = [
        GraphEdge(from_id=src.id, to_id=dst.id, weight=dst.product.price)
        for current, following in zip(stages, stages[1:])
        for src in current
        for dst in following
    ]
    return StageGraph(nodes=nodes, edges=edges, stages=stages)


class GatedComputer:
    """Stand-in computer whose runs can be held until released.

    Each run pops the next event from *gates*, if any, and waits for it.
    """

    def __init__(self):
        self.gates = []

    async def run(self, request, candidate_pool=None, skipped_items=None):
        if self.gates:
            await self.gates.pop(0).wait()
        return ComputationResponse(in_range_cost=request.max_price), candidate_pool or []


@pytest.fixture
def milk_bread_pool():
    """Candidates from the budget=500 milk/bread worked example."""
    return [
        make_product(1, "Toned Milk", 40, weight=1, category="Milk"),
        make_product(2, "Full Cream Milk", 60, weight=1, category="Milk"),
        make_product(3, "White Bread", 30, weight=0.7, category="Bread"),
        make_product(4, "Brown Bread", 50, weight=0.8, category="Bread"),
    ]


@pytest.fixture
def settings(tmp_path):
    """Create test settings backed by a temporary SQLite file."""
    return Settings(
        environment="testing",
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        catalog_backend="memory",
    )


@pytest.fixture
def app(settings):
    """Create FastAPI app for testing (bundled in-memory catalog)."""
    return build_app(settings)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
