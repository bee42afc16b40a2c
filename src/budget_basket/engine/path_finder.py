"""Minimum-cost path search over a staged candidate graph.

Forward dynamic programming over the stage partition: because every edge
goes from stage *i* to stage *i+1*, relaxing the stages in order visits
each edge exactly once, giving ``O(stages * max_nodes_per_stage**2)``.
"""

from __future__ import annotations

import math
from collections import defaultdict

import structlog

from budget_basket.models import GraphEdge, GraphNode, PathResult, StageGraph

logger = structlog.get_logger(__name__)


class GraphIndex:
    """Precomputed lookups for a :class:`StageGraph`."""

    def __init__(self, graph: StageGraph) -> None:
        self.nodes: dict[str, GraphNode] = {node.id: node for node in graph.nodes}
        self.outgoing: dict[str, list[GraphEdge]] = defaultdict(list)
        for edge in graph.edges:
            self.outgoing[edge.from_id].append(edge)

    def edges_from(self, node_id: str) -> list[GraphEdge]:
        return self.outgoing.get(node_id, [])


class PathFinder:
    """Exact minimum-cost path with one node per stage."""

    def min_cost_path(self, graph: StageGraph) -> PathResult:
        """Return the cheapest complete path and its cost.

        An empty path with cost ``0`` is returned when the graph has no
        stages, a stage is empty, or no last-stage node is reachable.
        """
        stages = graph.stages
        if not stages or any(not stage for stage in stages):
            logger.info("min_cost_path_unavailable", stages=len(stages))
            return PathResult()

        index = GraphIndex(graph)
        dist: dict[str, float] = {node.id: math.inf for node in graph.nodes}
        pred: dict[str, str | None] = {node.id: None for node in graph.nodes}

        for node in stages[0]:
            dist[node.id] = node.product.price

        for stage in stages[:-1]:
            for src in stage:
                for edge in index.edges_from(src.id):
                    candidate = dist[src.id] + edge.weight
                    if candidate < dist.get(edge.to_id, math.inf):
                        dist[edge.to_id] = candidate
                        pred[edge.to_id] = src.id

        last: GraphNode | None = None
        best = math.inf
        for node in stages[-1]:
            if dist[node.id] < best:
                best = dist[node.id]
                last = node

        if last is None:
            logger.info("min_cost_path_unreachable", stages=len(stages))
            return PathResult()

        path: list[GraphNode] = [last]
        current = pred[last.id]
        while current is not None:
            path.append(index.nodes[current])
            current = pred[current]
        path.reverse()

        logger.info("min_cost_path_found", length=len(path), cost=round(best, 2))
        return PathResult(path=path, cost=best)
