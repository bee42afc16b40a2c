"""LangGraph StateGraph for the basket computation.

Nodes
-----
fetch            -- Concurrent catalog fetch per desired item (skipped when
                    the candidate pool is already known)
select           -- Greedy budget-fitting bundle selection
build_graph      -- Staged candidate graph
find_path        -- Exact minimum-cost path
find_range_path  -- Cheapest path inside the shopper's price window

Edges (with conditional routing)
------
fetch -> select -> build_graph -> find_path
find_path -> find_range_path (if a price range is active) | END
find_range_path -> END
"""

from __future__ import annotations

import structlog
from langgraph.graph import END, StateGraph

from budget_basket.config import Settings
from budget_basket.engine.graph_builder import GraphBuilder
from budget_basket.engine.path_finder import PathFinder
from budget_basket.engine.range_finder import RangeConstrainedPathFinder
from budget_basket.engine.selection import SelectionEngine
from budget_basket.engine.weights import WeightNormalizer
from budget_basket.models import ComputationResponse, PathResult, StageGraph
from budget_basket.orchestrator.fetcher import CandidateFetcher
from budget_basket.orchestrator.state import BasketGraphState
from budget_basket.protocols.catalog import CatalogAdapter

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Node factories
# ---------------------------------------------------------------------------


def _make_fetch_node(fetcher: CandidateFetcher):
    """Create the *fetch* node function."""

    async def fetch_node(state: BasketGraphState) -> BasketGraphState:
        request = state["request"]
        if state.get("candidate_pool") is not None:
            return state

        by_item = await fetcher.fetch_all(request.desired_items)
        return {
            **state,
            "candidate_pool": CandidateFetcher.merge(by_item),
            "skipped_items": [item for item, found in by_item.items() if not found],
        }

    return fetch_node


def _make_select_node(engine: SelectionEngine):
    """Create the *select* node function."""

    async def select_node(state: BasketGraphState) -> BasketGraphState:
        request = state["request"]
        selection = engine.select(
            state.get("candidate_pool") or [],
            request.budget,
            request.desired_items,
        )
        return {**state, "selection": selection}

    return select_node


def _make_build_graph_node(builder: GraphBuilder):
    """Create the *build_graph* node function."""

    async def build_graph_node(state: BasketGraphState) -> BasketGraphState:
        request = state["request"]
        graph = builder.build(request.desired_items, state.get("candidate_pool") or [])
        return {**state, "graph": graph}

    return build_graph_node


def _make_find_path_node(finder: PathFinder):
    """Create the *find_path* node function."""

    async def find_path_node(state: BasketGraphState) -> BasketGraphState:
        return {**state, "optimal": finder.min_cost_path(state["graph"])}

    return find_path_node


def _make_find_range_path_node(finder: RangeConstrainedPathFinder):
    """Create the *find_range_path* node function."""

    async def find_range_path_node(state: BasketGraphState) -> BasketGraphState:
        low, high = state["request"].price_window()
        best = finder.best_path_in_range(state["graph"], low, high)
        return {**state, "in_range": best}

    return find_range_path_node


# ---------------------------------------------------------------------------
# Conditional edge routers
# ---------------------------------------------------------------------------


def _after_find_path(state: BasketGraphState) -> str:
    """Route to the range search only when a price window was requested."""
    if state["request"].range_active:
        return "find_range_path"
    return "end"


# ---------------------------------------------------------------------------
# Graph construction
# ---------------------------------------------------------------------------


def build_basket_graph(settings: Settings, catalog: CatalogAdapter) -> StateGraph:
    """Construct the LangGraph basket pipeline.

    Parameters
    ----------
    settings:
        Application settings.
    catalog:
        Catalog adapter used by the *fetch* node.

    Returns
    -------
    StateGraph
        An uncompiled graph.  Call ``.compile()`` before invoking.
    """
    normalizer = WeightNormalizer(default_unit_weight=settings.default_unit_weight)

    graph = StateGraph(BasketGraphState)

    graph.add_node("fetch", _make_fetch_node(CandidateFetcher(catalog)))
    graph.add_node("select", _make_select_node(SelectionEngine(normalizer)))
    graph.add_node("build_graph", _make_build_graph_node(GraphBuilder()))
    graph.add_node("find_path", _make_find_path_node(PathFinder()))
    graph.add_node(
        "find_range_path",
        _make_find_range_path_node(
            RangeConstrainedPathFinder(settings.range_enumeration_warn_threshold)
        ),
    )

    graph.set_entry_point("fetch")

    graph.add_edge("fetch", "select")
    graph.add_edge("select", "build_graph")
    graph.add_edge("build_graph", "find_path")

    graph.add_conditional_edges(
        "find_path",
        _after_find_path,
        {"find_range_path": "find_range_path", "end": END},
    )
    graph.add_edge("find_range_path", END)

    return graph


def compile_basket_graph(settings: Settings, catalog: CatalogAdapter):
    """Build and compile the basket pipeline into a runnable."""
    return build_basket_graph(settings, catalog).compile()


def to_response(state: BasketGraphState) -> ComputationResponse:
    """Project the final pipeline state onto the API response."""
    selection = state.get("selection", [])
    optimal = state.get("optimal") or PathResult()
    in_range = state.get("in_range")

    return ComputationResponse(
        selection=selection,
        selection_cost=round(sum(p.price for p in selection), 2),
        graph=state.get("graph") or StageGraph(),
        optimal_path=optimal.path,
        optimal_cost=optimal.cost,
        in_range_path=in_range.path if in_range else None,
        in_range_cost=in_range.cost if in_range else None,
        skipped_items=state.get("skipped_items", []),
    )
