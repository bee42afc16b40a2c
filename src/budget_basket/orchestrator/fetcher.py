"""Concurrent candidate fetching.

Fans out one catalog fetch per desired item, waits for all of them, and
merges the results into a single de-duplicated candidate pool.
"""

from __future__ import annotations

import asyncio

import structlog

from budget_basket.models import Product
from budget_basket.protocols.catalog import CatalogAdapter

logger = structlog.get_logger(__name__)


class CandidateFetcher:
    """Fetches candidate products for every desired item in parallel."""

    def __init__(self, catalog: CatalogAdapter) -> None:
        self._catalog = catalog

    async def fetch_all(self, desired_items: list[str]) -> dict[str, list[Product]]:
        """Fetch candidates for each desired item.

        A failing fetch is logged and treated as an empty result so the rest
        of the computation can proceed.

        Returns
        -------
        dict[str, list[Product]]
            Mapping of desired item -> candidates, in request order.
        """
        items = list(dict.fromkeys(desired_items))
        results = await asyncio.gather(
            *(self._catalog.fetch(item) for item in items),
            return_exceptions=True,
        )

        by_item: dict[str, list[Product]] = {}
        for item, result in zip(items, results):
            if isinstance(result, Exception):
                logger.warning("candidate_fetch_failed", item=item, error=str(result))
                by_item[item] = []
                continue
            logger.debug("candidate_fetch_complete", item=item, results=len(result))
            by_item[item] = result

        logger.info(
            "candidates_fetched",
            items=len(items),
            total_products=sum(len(v) for v in by_item.values()),
            empty_items=[i for i, v in by_item.items() if not v],
        )
        return by_item

    @staticmethod
    def merge(by_item: dict[str, list[Product]]) -> list[Product]:
        """Flatten per-item results, keeping the first occurrence of each product."""
        seen: set[int] = set()
        pool: list[Product] = []
        for products in by_item.values():
            for product in products:
                if product.product_id not in seen:
                    seen.add(product.product_id)
                    pool.append(product)
        return pool
