"""Complementary-item recommendations.

Three signals, strongest first:

- weight similarity: candidates whose weight is closest to the average
  weight of the current selection;
- purchase history: products that past shopping lists bought together with
  the selection ("frequently bought together");
- category fallback: same-category items at a fixed confidence when there is
  nothing better to go on.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from budget_basket.models import ComplementaryItem, Product

logger = structlog.get_logger(__name__)

MAX_RECOMMENDATIONS = 5


class RecommendationSource(Protocol):
    """Read-only candidate source for recommendations."""

    async def query(
        self,
        category: str | None,
        exclude_ids: list[int],
    ) -> list[Product]: ...

    async def get_products(self, product_ids: list[int]) -> list[Product]: ...


class PurchaseHistory(Protocol):
    """Co-purchase statistics from persisted shopping lists."""

    def co_purchased(
        self,
        product_ids: list[int],
        min_confidence: float = 0.1,
        limit: int = 5,
    ) -> list[tuple[int, float]]: ...


class RecommendationEngine:
    """Recommends items that complement a finalized selection."""

    def __init__(
        self,
        source: RecommendationSource,
        history: PurchaseHistory | None = None,
        limit: int = MAX_RECOMMENDATIONS,
        related_limit: int = 3,
        related_confidence: float = 0.5,
        co_purchase_min_confidence: float = 0.1,
    ) -> None:
        self._source = source
        self._history = history
        self._limit = min(limit, MAX_RECOMMENDATIONS)
        self._related_limit = related_limit
        self._related_confidence = related_confidence
        self._co_purchase_min_confidence = co_purchase_min_confidence

    # ------------------------------------------------------------------
    # Weight similarity
    # ------------------------------------------------------------------

    async def recommend(
        self,
        selected_products: list[Product],
        category: str | None,
        exclude_ids: list[int],
    ) -> list[ComplementaryItem]:
        """Return up to five items closest in weight to the selection.

        Returns an empty list, without querying the source, when nothing is
        selected.
        """
        if not selected_products:
            return []

        candidates = await self._source.query(category, exclude_ids)
        items = self.rank_by_weight(selected_products, candidates, exclude_ids)

        logger.info(
            "weight_recommendations",
            category=category,
            candidates=len(candidates),
            returned=len(items),
        )
        return items

    def rank_by_weight(
        self,
        selected_products: list[Product],
        candidates: list[Product],
        exclude_ids: list[int],
    ) -> list[ComplementaryItem]:
        """Pure ranking step of :meth:`recommend`."""
        if not selected_products:
            return []

        avg_weight = sum(p.weight for p in selected_products) / len(selected_products)
        scale = max(1.0, avg_weight)
        excluded = set(exclude_ids)

        eligible = [c for c in candidates if c.product_id not in excluded]
        eligible.sort(key=lambda c: abs(c.weight - avg_weight))

        items: list[ComplementaryItem] = []
        for candidate in eligible[: self._limit]:
            difference = abs(candidate.weight - avg_weight) / scale
            confidence = min(1.0, max(0.0, 1.0 - difference))
            items.append(ComplementaryItem.from_product(candidate, confidence))
        return items

    # ------------------------------------------------------------------
    # Category fallback
    # ------------------------------------------------------------------

    async def related_items(
        self,
        category: str | None,
        exclude_ids: list[int],
    ) -> list[ComplementaryItem]:
        """Same-category items at a fixed default confidence."""
        if not category:
            return []

        excluded = set(exclude_ids)
        candidates = [
            c
            for c in await self._source.query(category, exclude_ids)
            if c.product_id not in excluded
        ]
        return [
            ComplementaryItem.from_product(c, self._related_confidence)
            for c in candidates[: self._related_limit]
        ]

    async def recommend_with_fallback(
        self,
        selected_products: list[Product],
        category: str | None,
        exclude_ids: list[int],
    ) -> list[ComplementaryItem]:
        """Weight-similarity recommendations, or the category fallback if empty."""
        items = await self.recommend(selected_products, category, exclude_ids)
        if items:
            return items
        logger.info("recommendations_fallback", category=category)
        return await self.related_items(category, exclude_ids)

    # ------------------------------------------------------------------
    # Purchase history
    # ------------------------------------------------------------------

    async def frequently_bought_together(
        self,
        product_ids: list[int],
    ) -> list[ComplementaryItem]:
        """Items co-purchased with *product_ids* in past shopping lists."""
        if not product_ids or self._history is None:
            return []

        scored = await asyncio.to_thread(
            self._history.co_purchased,
            product_ids,
            min_confidence=self._co_purchase_min_confidence,
            limit=self._limit,
        )
        excluded = set(product_ids)
        scored = [(pid, conf) for pid, conf in scored if pid not in excluded]
        if not scored:
            return []

        products = {p.product_id: p for p in await self._source.get_products([pid for pid, _ in scored])}
        items = [
            ComplementaryItem.from_product(products[pid], confidence)
            for pid, confidence in scored
            if pid in products
        ]
        logger.info("co_purchase_recommendations", requested=len(product_ids), returned=len(items))
        return items
