"""Range-constrained path search.

Enumerates every complete path through the staged graph and keeps the
cheapest one whose total lies inside a price window.  The enumeration is
exact and grows with the product of the per-stage branching factors, so it
is only suitable for a handful of stages with modest candidate counts.
"""

from __future__ import annotations

import structlog

from budget_basket.engine.path_finder import GraphIndex
from budget_basket.models import GraphNode, PathResult, StageGraph

logger = structlog.get_logger(__name__)

_DEFAULT_WARN_THRESHOLD = 50_000


class RangeConstrainedPathFinder:
    """Finds the minimum-cost complete path within ``[min_total, max_total]``."""

    def __init__(self, warn_threshold: int = _DEFAULT_WARN_THRESHOLD) -> None:
        self._warn_threshold = warn_threshold

    def enumerate_paths(self, graph: StageGraph) -> list[PathResult]:
        """Expand every complete path, in stage-0 node order then edge order."""
        if not graph.stages:
            return []

        index = GraphIndex(graph)
        paths = [PathResult(path=[node], cost=node.product.price) for node in graph.stages[0]]

        for _ in range(1, len(graph.stages)):
            expanded: list[PathResult] = []
            for partial in paths:
                tail = partial.path[-1]
                for edge in index.edges_from(tail.id):
                    nxt: GraphNode | None = index.nodes.get(edge.to_id)
                    if nxt is None:
                        continue
                    expanded.append(
                        PathResult(
                            path=[*partial.path, nxt],
                            cost=partial.cost + nxt.product.price,
                        )
                    )
            paths = expanded

        if len(paths) > self._warn_threshold:
            logger.warning(
                "range_enumeration_large",
                paths=len(paths),
                stages=len(graph.stages),
                threshold=self._warn_threshold,
            )
        return paths

    def best_path_in_range(
        self,
        graph: StageGraph,
        min_total: float,
        max_total: float,
    ) -> PathResult | None:
        """Return the cheapest path whose cost is within the inclusive window.

        Ties go to the first path in enumeration order.  ``None`` when no
        complete path qualifies, including inverted windows and graphs with
        an empty stage.
        """
        best: PathResult | None = None
        enumerated = 0

        for candidate in self.enumerate_paths(graph):
            enumerated += 1
            if not (min_total <= candidate.cost <= max_total):
                continue
            if best is None or candidate.cost < best.cost:
                best = candidate

        logger.info(
            "range_path_search_complete",
            enumerated=enumerated,
            min_total=min_total,
            max_total=max_total,
            found=best is not None,
            cost=round(best.cost, 2) if best else None,
        )
        return best
