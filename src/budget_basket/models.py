"""Pydantic models for the Budget Basket service.

Covers catalog products, the staged candidate graph, path results, cart
selections, recommendations, computation requests/responses and computation
sessions.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Catalog products
# ---------------------------------------------------------------------------


class Product(BaseModel):
    """A single catalog product. Immutable once fetched."""

    model_config = ConfigDict(frozen=True)

    product_id: int
    name: str
    category: str = ""
    brand: str = ""
    price: float = Field(ge=0)
    stock_quantity: int = 0
    weight: float = Field(default=0.0, ge=0)


class ComplementaryItem(BaseModel):
    """A recommended product with a 0-1 confidence score."""

    product_id: int
    name: str
    category: str = ""
    brand: str = ""
    price: float
    weight: float = 0.0
    confidence: float = 0.0

    @classmethod
    def from_product(cls, product: Product, confidence: float) -> ComplementaryItem:
        return cls(
            product_id=product.product_id,
            name=product.name,
            category=product.category,
            brand=product.brand,
            price=product.price,
            weight=product.weight,
            confidence=round(confidence, 4),
        )


# ---------------------------------------------------------------------------
# Staged candidate graph
# ---------------------------------------------------------------------------


class GraphNode(BaseModel):
    """One candidate product positioned at a stage of the graph."""

    id: str
    stage: int
    index: int
    product: Product


class GraphEdge(BaseModel):
    """Directed edge between consecutive stages, weighted by destination price."""

    from_id: str = Field(serialization_alias="from")
    to_id: str = Field(serialization_alias="to")
    weight: float


class StageGraph(BaseModel):
    """Stage-partitioned DAG built from the desired items."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    stages: list[list[GraphNode]] = Field(default_factory=list)


class PathResult(BaseModel):
    """A complete path through the graph and its total cost."""

    path: list[GraphNode] = Field(default_factory=list)
    cost: float = 0.0


# ---------------------------------------------------------------------------
# Cart selection
# ---------------------------------------------------------------------------


class CartItem(BaseModel):
    """A single line of a finalized selection."""

    product_id: int
    name: str = ""
    category: str = ""
    price: float
    quantity: int = 1


class CartSelection(BaseModel):
    """A finalized selection, built from a bundle or a graph path."""

    items: list[CartItem] = Field(default_factory=list)

    @property
    def total_cost(self) -> float:
        return round(sum(i.price * i.quantity for i in self.items), 2)

    @classmethod
    def from_products(cls, products: list[Product]) -> CartSelection:
        return cls(
            items=[
                CartItem(
                    product_id=p.product_id,
                    name=p.name,
                    category=p.category,
                    price=p.price,
                )
                for p in products
            ]
        )

    @classmethod
    def from_path(cls, path: list[GraphNode]) -> CartSelection:
        return cls.from_products([node.product for node in path])


# ---------------------------------------------------------------------------
# Computation request / response
# ---------------------------------------------------------------------------


class ComputationRequest(BaseModel):
    """Inputs of a full selection + graph + path computation."""

    budget: float
    desired_items: list[str] = Field(default_factory=list)
    min_price: float | None = None
    max_price: float | None = None

    @property
    def range_active(self) -> bool:
        return self.min_price is not None or self.max_price is not None

    def price_window(self) -> tuple[float, float]:
        """Return the inclusive window, with the upper bound capped at the budget."""
        low = self.min_price if self.min_price is not None else 0.0
        high = self.max_price if self.max_price is not None else self.budget
        return low, min(high, self.budget)


class ComputationResponse(BaseModel):
    """Everything the shopper sees after a computation."""

    selection: list[Product] = Field(default_factory=list)
    selection_cost: float = 0.0
    graph: StageGraph = Field(default_factory=StageGraph)
    optimal_path: list[GraphNode] = Field(default_factory=list)
    optimal_cost: float = 0.0
    in_range_path: list[GraphNode] | None = None
    in_range_cost: float | None = None
    skipped_items: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Computation sessions
# ---------------------------------------------------------------------------


class ComputationSessionState(str, enum.Enum):
    """Lifecycle states of a computation session."""

    FETCHING = "fetching"
    READY = "ready"
    FAILED = "failed"


class ComputationSession(BaseModel):
    """A shopper's working session: the fetched pool and the latest result."""

    id: str
    request: ComputationRequest
    state: ComputationSessionState = ComputationSessionState.FETCHING
    # None until the first catalog fetch has completed
    candidate_pool: list[Product] | None = None
    result: ComputationResponse | None = None
    generation: int = 0
    error: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state.value,
            "generation": self.generation,
            "candidates": len(self.candidate_pool or []),
            "request": self.request.model_dump(),
            "result": self.result.model_dump(by_alias=True) if self.result else None,
            "error": self.error,
        }
