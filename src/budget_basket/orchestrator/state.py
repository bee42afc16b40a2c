"""LangGraph state schema for the basket computation pipeline.

The ``BasketGraphState`` TypedDict describes every piece of data that flows
through the pipeline.  Nodes read from and write to this shared state.
"""

from __future__ import annotations

from typing import TypedDict

from budget_basket.models import ComputationRequest, PathResult, Product, StageGraph


class BasketGraphState(TypedDict, total=False):
    """Typed dictionary describing the full state flowing through the pipeline."""

    # --- Input ----------------------------------------------------------------
    request: ComputationRequest

    # --- Candidates -----------------------------------------------------------
    # Pre-populated on range recomputation, which skips the catalog fetch.
    candidate_pool: list[Product] | None
    skipped_items: list[str]

    # --- Bundle selection -----------------------------------------------------
    selection: list[Product]

    # --- Graph and paths ------------------------------------------------------
    graph: StageGraph
    optimal: PathResult
    in_range: PathResult | None
