"""Catalog adapter interface and the bundled in-memory catalog.

The engine only ever sees resolved product lists; whichever adapter backs
the service is chosen by ``Settings.catalog_backend``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

import structlog

from budget_basket.models import Product

logger = structlog.get_logger(__name__)

_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_CATALOG_FILE = _DATA_DIR / "catalog.json"


class CatalogAdapter(Protocol):
    """Narrow interface onto the product catalog."""

    async def fetch(self, term: str) -> list[Product]: ...

    async def search(self, term: str, limit: int = 20) -> list[Product]: ...

    async def query(self, category: str | None, exclude_ids: list[int]) -> list[Product]: ...

    async def get_products(self, product_ids: list[int]) -> list[Product]: ...

    async def alternatives(self, product_id: int, limit: int = 5) -> list[Product]: ...

    async def close(self) -> None: ...


def parse_product(raw: dict[str, Any]) -> Product:
    """Build a :class:`Product` from a catalog record.

    Accepts both ``weight`` and the legacy ``weights`` key, and prices
    serialised as strings.
    """
    weight = raw.get("weight", raw.get("weights", 0.0))
    return Product(
        product_id=int(raw.get("product_id", raw.get("id", 0))),
        name=raw.get("name", ""),
        category=raw.get("category", "") or "",
        brand=raw.get("brand", "") or "",
        price=float(raw.get("price", 0) or 0),
        stock_quantity=int(raw.get("stock_quantity", raw.get("stock", 0)) or 0),
        weight=float(weight or 0),
    )


class InMemoryCatalog:
    """Catalog served from a list of products held in memory."""

    def __init__(self, products: list[Product]) -> None:
        self._products = list(products)
        self._by_id = {p.product_id: p for p in self._products}

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> InMemoryCatalog:
        """Load a JSON catalog (a list of product records)."""
        catalog_path = Path(path) if path else DEFAULT_CATALOG_FILE
        if not catalog_path.exists():
            raise FileNotFoundError(f"Catalog file not found: {catalog_path}")

        with open(catalog_path, encoding="utf-8") as f:
            records = json.load(f)

        products = [parse_product(r) for r in records]
        logger.info("catalog_loaded", path=str(catalog_path), products=len(products))
        return cls(products)

    @property
    def products(self) -> list[Product]:
        return list(self._products)

    async def fetch(self, term: str) -> list[Product]:
        """Candidates for a desired item.

        Resolves the category of the first product whose name contains
        *term*, then returns that category's products whose name contains
        *term*, cheapest first.
        """
        needle = term.strip().lower()
        if not needle:
            return []

        named = [p for p in self._products if needle in p.name.lower()]
        if not named:
            return []

        category = named[0].category
        matches = [p for p in named if p.category == category]
        return sorted(matches, key=lambda p: p.price)

    async def search(self, term: str, limit: int = 20) -> list[Product]:
        needle = term.strip().lower()
        if not needle:
            return []
        hits = [
            p
            for p in self._products
            if needle in p.name.lower() or needle in p.category.lower()
        ]
        return hits[:limit]

    async def query(self, category: str | None, exclude_ids: list[int]) -> list[Product]:
        excluded = set(exclude_ids)
        return [
            p
            for p in self._products
            if p.product_id not in excluded
            and (category is None or p.category.lower() == category.lower())
        ]

    async def get_products(self, product_ids: list[int]) -> list[Product]:
        return [self._by_id[pid] for pid in product_ids if pid in self._by_id]

    async def alternatives(self, product_id: int, limit: int = 5) -> list[Product]:
        """Same-category substitutes for a product, cheapest first."""
        product = self._by_id.get(product_id)
        if product is None:
            return []
        substitutes = [
            p
            for p in self._products
            if p.category == product.category and p.product_id != product_id
        ]
        return sorted(substitutes, key=lambda p: p.price)[:limit]

    async def close(self) -> None:
        return None
