"""Staged candidate graph construction."""

from __future__ import annotations

import structlog

from budget_basket.engine.selection import matches_item
from budget_basket.models import GraphEdge, GraphNode, Product, StageGraph

logger = structlog.get_logger(__name__)


class GraphBuilder:
    """Builds a stage-partitioned DAG with one stage per desired item."""

    def build(
        self,
        desired_items: list[str],
        candidate_pool: list[Product],
    ) -> StageGraph:
        """Create stages, nodes and complete bipartite edges.

        Every product whose name contains the item text becomes a node of
        that item's stage; stock and budget are not filtered here.  Node ids
        are ``"{stage}_{index}"``.  Each node of stage *i* is connected to
        each node of stage *i+1*, weighted by the destination price, so an
        empty stage leaves its neighbours unconnected.
        """
        stages: list[list[GraphNode]] = []
        nodes: list[GraphNode] = []

        for stage_index, item in enumerate(desired_items):
            matching = [p for p in candidate_pool if matches_item(p, item)]
            stage_nodes = [
                GraphNode(
                    id=f"{stage_index}_{position}",
                    stage=stage_index,
                    index=position,
                    product=product,
                )
                for position, product in enumerate(matching)
            ]
            if not stage_nodes:
                logger.debug("graph_stage_empty", stage=stage_index, item=item)
            nodes.extend(stage_nodes)
            stages.append(stage_nodes)

        edges: list[GraphEdge] = []
        for current, following in zip(stages, stages[1:]):
            for src in current:
                for dst in following:
                    edges.append(
                        GraphEdge(from_id=src.id, to_id=dst.id, weight=dst.product.price)
                    )

        logger.info(
            "graph_built",
            stages=len(stages),
            nodes=len(nodes),
            edges=len(edges),
            empty_stages=sum(1 for s in stages if not s),
        )
        return StageGraph(nodes=nodes, edges=edges, stages=stages)
