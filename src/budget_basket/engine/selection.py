"""Budget-fitting bundle selection.

A greedy value-density heuristic: it fills the budget with one best-value
product per desired item, then spends what is left on the best remaining
value.  It is not an optimal 0/1 knapsack and its result depends on the
order of the desired items.
"""

from __future__ import annotations

import structlog

from budget_basket.engine.weights import WeightNormalizer
from budget_basket.models import Product

logger = structlog.get_logger(__name__)


def matches_item(product: Product, item: str) -> bool:
    """Case-insensitive name containment used to assign products to items."""
    return item.lower() in product.name.lower()


class SelectionEngine:
    """Selects a bundle of products that fits a budget."""

    def __init__(self, normalizer: WeightNormalizer | None = None) -> None:
        self._normalizer = normalizer or WeightNormalizer()

    def select(
        self,
        candidate_pool: list[Product],
        budget: float,
        desired_items: list[str],
    ) -> list[Product]:
        """Pick products for *desired_items* without exceeding *budget*.

        Algorithm
        ---------
        1. For each desired item, in order, rank the products whose name
           contains the item text by ``price / normalized_weight`` and take
           the best one if it still fits the remaining budget.  A chosen
           product is removed from the working pool.
        2. Fill pass: rank everything left in the pool the same way and add
           every product that still fits.

        The caller's ``candidate_pool`` is never modified.

        Returns
        -------
        list[Product]
            Products in the order they were chosen.
        """
        if budget <= 0 or not candidate_pool:
            return []

        pool = list(candidate_pool)
        selected: list[Product] = []
        remaining = budget

        for item in desired_items:
            matching = [p for p in pool if matches_item(p, item)]
            if not matching:
                logger.debug("selection_item_unmatched", item=item)
                continue

            best = self._rank(matching)[0]
            if best.price <= remaining:
                selected.append(best)
                remaining -= best.price
                pool = [p for p in pool if p.product_id != best.product_id]
            else:
                logger.debug(
                    "selection_item_over_budget",
                    item=item,
                    price=best.price,
                    remaining=round(remaining, 2),
                )

        core_count = len(selected)

        # Fill pass
        for product in self._rank(pool):
            if remaining <= 0:
                break
            if product.price <= remaining:
                selected.append(product)
                remaining -= product.price

        logger.info(
            "selection_complete",
            desired=len(desired_items),
            core_items=core_count,
            fill_items=len(selected) - core_count,
            spent=round(budget - remaining, 2),
            budget=budget,
        )
        return selected

    def _rank(self, products: list[Product]) -> list[Product]:
        """Stable sort by ascending price per normalised weight."""
        return sorted(products, key=self._normalizer.value_ratio)
