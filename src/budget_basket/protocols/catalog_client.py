"""HTTP client for a remote catalog service.

Implements the :class:`~budget_basket.protocols.catalog.CatalogAdapter`
interface over REST.  The underlying ``httpx.AsyncClient`` is created by the
caller and handed in, so its lifetime follows the application's.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from budget_basket.models import Product
from budget_basket.protocols.catalog import parse_product

logger = structlog.get_logger(__name__)

_MAX_RETRIES = 2


class CatalogClientError(Exception):
    """Raised when a catalog request fails after retries."""


class HttpCatalogClient:
    """Async catalog adapter backed by an injected ``httpx.AsyncClient``."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_retries: int = _MAX_RETRIES,
    ) -> None:
        self._client = client
        self._max_retries = max_retries

    @classmethod
    def connect(
        cls,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = _MAX_RETRIES,
    ) -> HttpCatalogClient:
        """Open a pooled HTTP client for *base_url*."""
        client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )
        return cls(client, max_retries=max_retries)

    async def close(self) -> None:
        """Shut down the underlying HTTP client."""
        if not self._client.is_closed:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Request helper with retry
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Execute an HTTP request with retries and error mapping."""
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.request(method, path, params=params)
                response.raise_for_status()
                return response.json()
            except httpx.TimeoutException as exc:
                last_error = exc
                logger.warning("catalog_request_timeout", path=path, attempt=attempt + 1)
            except httpx.HTTPStatusError as exc:
                # Don't retry 4xx errors
                if 400 <= exc.response.status_code < 500:
                    raise CatalogClientError(
                        f"Catalog request failed ({exc.response.status_code}): {exc.response.text}"
                    ) from exc
                last_error = exc
                logger.warning(
                    "catalog_request_http_error",
                    path=path,
                    status=exc.response.status_code,
                    attempt=attempt + 1,
                )
            except httpx.RequestError as exc:
                last_error = exc
                logger.warning(
                    "catalog_request_error",
                    path=path,
                    error=str(exc),
                    attempt=attempt + 1,
                )

        raise CatalogClientError(
            f"Catalog request to {path} failed after {self._max_retries + 1} attempts: {last_error}"
        )

    async def _products(self, path: str, params: dict[str, Any] | None = None) -> list[Product]:
        data = await self._request("GET", path, params=params)
        records = data.get("products", []) if isinstance(data, dict) else data
        return [parse_product(r) for r in records]

    # ------------------------------------------------------------------
    # Catalog operations
    # ------------------------------------------------------------------

    async def fetch(self, term: str) -> list[Product]:
        """Candidates for one desired item."""
        return await self._products("/api/v1/products/match", {"term": term})

    async def search(self, term: str, limit: int = 20) -> list[Product]:
        return await self._products("/api/v1/products", {"q": term, "limit": limit})

    async def query(self, category: str | None, exclude_ids: list[int]) -> list[Product]:
        params: dict[str, Any] = {}
        if category:
            params["category"] = category
        if exclude_ids:
            params["exclude"] = ",".join(str(i) for i in exclude_ids)
        return await self._products("/api/v1/products", params)

    async def get_products(self, product_ids: list[int]) -> list[Product]:
        if not product_ids:
            return []
        return await self._products(
            "/api/v1/products", {"ids": ",".join(str(i) for i in product_ids)}
        )

    async def alternatives(self, product_id: int, limit: int = 5) -> list[Product]:
        return await self._products(
            f"/api/v1/products/{product_id}/alternatives", {"limit": limit}
        )
