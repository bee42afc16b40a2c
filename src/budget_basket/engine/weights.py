"""Category-aware weight normalisation.

Products from different categories carry raw weights on different scales (a
litre of milk versus a bar of chocolate).  The normaliser scales each raw
weight by a per-category unit weight so that ``price / normalized_weight``
is comparable across a candidate pool.
"""

from __future__ import annotations

from dataclasses import dataclass

from budget_basket.models import Product

DEFAULT_UNIT_WEIGHT = 0.5


@dataclass(frozen=True)
class WeightRule:
    """Maps a category keyword to its unit weight."""

    keyword: str
    unit_weight: float


# Evaluated top to bottom; the first matching rule wins.
DEFAULT_RULES: tuple[WeightRule, ...] = (
    # Dairy
    WeightRule("milk", 1.0),
    WeightRule("almond milk", 1.0),
    WeightRule("soy milk", 1.0),
    WeightRule("cheese", 0.5),
    WeightRule("vegan cheese", 0.5),
    WeightRule("butter", 0.25),
    WeightRule("margarine", 0.25),
    # Bakery
    WeightRule("bread", 0.7),
    WeightRule("multigrain bread", 0.8),
    WeightRule("white bread", 0.7),
    WeightRule("whole wheat bread", 0.8),
    # Beverages
    WeightRule("coffee", 0.25),
    WeightRule("decaf coffee", 0.25),
    WeightRule("tea", 0.1),
    WeightRule("green tea", 0.1),
    # Snacks
    WeightRule("potato chips", 0.2),
    WeightRule("baked chips", 0.2),
    WeightRule("chocolate", 0.1),
    WeightRule("dark chocolate", 0.1),
)


class WeightNormalizer:
    """Computes category-adjusted comparable weights for products."""

    def __init__(
        self,
        rules: tuple[WeightRule, ...] = DEFAULT_RULES,
        default_unit_weight: float = DEFAULT_UNIT_WEIGHT,
    ) -> None:
        self._rules = rules
        self._default_unit_weight = default_unit_weight

    def unit_weight(self, product: Product) -> float:
        """Return the unit weight of the first rule matching *product*.

        Exact category matches are tried first, then keyword containment in
        the category or the product name, then the default.
        """
        category = product.category.lower()
        name = product.name.lower()

        for rule in self._rules:
            if category == rule.keyword:
                return rule.unit_weight

        for rule in self._rules:
            if rule.keyword in category or rule.keyword in name:
                return rule.unit_weight

        return self._default_unit_weight

    def normalize(self, product: Product) -> float:
        """Return ``unit_weight * product.weight``; always positive.

        Weightless products normalise to ``1.0`` so that ranking by
        ``price / normalized_weight`` falls back to raw price.
        """
        if product.weight <= 0:
            return 1.0
        normalized = self.unit_weight(product) * product.weight
        return normalized if normalized > 0 else 1.0

    def value_ratio(self, product: Product) -> float:
        """Price per normalised weight unit; lower is better value."""
        return product.price / self.normalize(product)
