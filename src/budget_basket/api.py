"""FastAPI application for the Budget Basket service.

Exposes REST endpoints for:
- One-shot basket computations (selection, graph, optimal and in-range paths)
- Computation sessions with price-range recomputation
- Catalog search and product alternatives
- Complementary-item recommendations
- Saving finalized selections
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Literal

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from common import ErrorResponse, HealthResponse

from budget_basket.config import Settings
from budget_basket.engine.recommendation import RecommendationEngine
from budget_basket.models import (
    CartItem,
    CartSelection,
    ComputationRequest,
    ComputationResponse,
)
from budget_basket.orchestrator.sessions import (
    BasketComputer,
    SessionManager,
    SessionUnavailable,
    SupersededComputation,
)
from budget_basket.persistence.database import DatabaseManager
from budget_basket.persistence.store import SelectionStore
from budget_basket.protocols.catalog import CatalogAdapter, InMemoryCatalog
from budget_basket.protocols.catalog_client import HttpCatalogClient

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class RangeRequest(BaseModel):
    """New price window for an existing session."""

    min_price: float | None = None
    max_price: float | None = None


class RecommendRequest(BaseModel):
    """Weight-similarity recommendation request."""

    product_ids: list[int]
    category: str | None = None
    exclude_ids: list[int] = Field(default_factory=list)


class ComplementaryRequest(BaseModel):
    """Purchase-history recommendation request."""

    product_ids: list[int]


class SaveSelectionRequest(BaseModel):
    """A finalized selection to persist.

    Either list the *items* directly or name a computation *session* and
    which of its baskets to save.
    """

    user_id: int
    items: list[CartItem] = Field(default_factory=list)
    session_id: str | None = None
    basket: Literal["optimal", "in_range", "selection"] = "optimal"
    total_cost: float | None = None
    budget: float | None = None
    desired_items: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Application state container
# ---------------------------------------------------------------------------


def build_catalog(settings: Settings) -> CatalogAdapter:
    """Create the catalog adapter selected by ``settings.catalog_backend``."""
    if settings.catalog_backend == "memory":
        return InMemoryCatalog.from_file(settings.catalog_file)
    if settings.catalog_backend == "http":
        return HttpCatalogClient.connect(
            settings.catalog_url,
            timeout=settings.catalog_timeout,
            max_retries=settings.catalog_max_retries,
        )
    raise ValueError(f"Unknown catalog backend: {settings.catalog_backend!r}")


def session_basket(result: ComputationResponse, basket: str) -> CartSelection:
    """Materialize one of a computation's baskets as cart lines."""
    if basket == "selection":
        return CartSelection.from_products(result.selection)
    if basket == "in_range":
        return CartSelection.from_path(result.in_range_path or [])
    return CartSelection.from_path(result.optimal_path)


class AppState:
    """Shared application state and the resources it owns."""

    def __init__(
        self,
        settings: Settings,
        catalog: CatalogAdapter | None = None,
        database: DatabaseManager | None = None,
    ) -> None:
        self.settings = settings
        self.catalog = catalog or build_catalog(settings)
        self.database = database or DatabaseManager(settings.database_url)
        self.database.init_db()

        self.store = SelectionStore(self.database)
        self.computer = BasketComputer(settings, self.catalog)
        self.session_manager = SessionManager(self.computer)
        self.recommender = RecommendationEngine(
            self.catalog,
            history=self.store,
            limit=settings.max_recommendations,
            related_limit=settings.related_items_limit,
            related_confidence=settings.related_items_confidence,
            co_purchase_min_confidence=settings.co_purchase_min_confidence,
        )

    async def close(self) -> None:
        """Release the catalog connection and the database pool."""
        await self.catalog.close()
        self.database.close()


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    await app.state.app_state.close()
    logger.info("application_shutdown")


def create_app(settings: Settings | None = None, state: AppState | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()

    app = FastAPI(
        title="Budget Basket",
        description=(
            "Fills a grocery budget with one product per desired item, finds the "
            "cheapest complete basket and the cheapest basket inside a price window."
        ),
        version=settings.service_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=_lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Shared state
    state = state or AppState(settings)
    app.state.app_state = state
    app.state.settings = settings

    # -------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        healthy = await asyncio.to_thread(state.database.health_check)
        return HealthResponse(
            status="healthy" if healthy else "degraded",
            service=settings.service_name,
            version=settings.service_version,
            database="ok" if healthy else "unavailable",
        )

    # -------------------------------------------------------------------
    # Computation endpoints
    # -------------------------------------------------------------------

    @app.post("/api/v1/compute", tags=["computation"])
    async def compute(req: ComputationRequest) -> dict[str, Any]:
        """Run selection, graph construction and path search in one call."""
        logger.info(
            "compute_requested",
            budget=req.budget,
            items=req.desired_items,
            min_price=req.min_price,
            max_price=req.max_price,
        )
        result, _ = await state.computer.run(req)
        return result.model_dump(by_alias=True)

    @app.post("/api/v1/sessions", tags=["computation"])
    async def create_session(req: ComputationRequest) -> dict[str, Any]:
        """Fetch candidates once and compute; later range changes reuse them."""
        session = await state.session_manager.create_session(req)
        return session.summary()

    @app.get("/api/v1/sessions/{session_id}", tags=["computation"])
    async def get_session(session_id: str) -> dict[str, Any]:
        """Latest surfaced result of a session."""
        session = state.session_manager.get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return session.summary()

    @app.post("/api/v1/sessions/{session_id}/range", tags=["computation"])
    async def change_range(session_id: str, req: RangeRequest) -> dict[str, Any]:
        """Recompute a session for a new price window."""
        try:
            result = await state.session_manager.recompute_range(
                session_id, req.min_price, req.max_price
            )
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        except (SupersededComputation, SessionUnavailable) as exc:
            raise HTTPException(status_code=409, detail=str(exc))

        session = state.session_manager.get_session(session_id)
        return {
            "session_id": session_id,
            "generation": session.generation if session else None,
            "result": result.model_dump(by_alias=True),
        }

    # -------------------------------------------------------------------
    # Catalog endpoints
    # -------------------------------------------------------------------

    @app.get("/api/v1/products/search", tags=["catalog"])
    async def search_products(q: str = "", limit: int = 20) -> dict[str, Any]:
        """Free-text product search."""
        products = await state.catalog.search(q, limit=limit) if q.strip() else []
        return {
            "query": q,
            "products": [p.model_dump() for p in products],
            "total": len(products),
        }

    @app.get("/api/v1/products/{product_id}/alternatives", tags=["catalog"])
    async def product_alternatives(product_id: int, limit: int | None = None) -> dict[str, Any]:
        """Same-category substitutes for a product."""
        products = await state.catalog.alternatives(
            product_id, limit=limit or settings.alternatives_limit
        )
        return {
            "product_id": product_id,
            "alternatives": [p.model_dump() for p in products],
            "total": len(products),
        }

    # -------------------------------------------------------------------
    # Recommendation endpoints
    # -------------------------------------------------------------------

    @app.post("/api/v1/recommendations", tags=["recommendations"])
    async def recommend(req: RecommendRequest) -> dict[str, Any]:
        """Items closest in weight to the selection, with a category fallback."""
        selected = await state.catalog.get_products(req.product_ids)
        exclude = list(dict.fromkeys([*req.product_ids, *req.exclude_ids]))
        items = await state.recommender.recommend_with_fallback(selected, req.category, exclude)
        return {"items": [i.model_dump() for i in items], "total": len(items)}

    @app.post("/api/v1/recommendations/complementary", tags=["recommendations"])
    async def complementary(req: ComplementaryRequest) -> dict[str, Any]:
        """Items frequently bought together with the selection."""
        items = await state.recommender.frequently_bought_together(req.product_ids)
        return {"items": [i.model_dump() for i in items], "total": len(items)}

    # -------------------------------------------------------------------
    # Selection endpoints
    # -------------------------------------------------------------------

    @app.post("/api/v1/selections", tags=["selections"])
    async def save_selection(req: SaveSelectionRequest) -> dict[str, Any]:
        """Persist a finalized selection."""
        selection = CartSelection(items=req.items)
        budget, desired_items = req.budget, req.desired_items

        if not req.items and req.session_id:
            session = state.session_manager.get_session(req.session_id)
            if session is None:
                raise HTTPException(status_code=404, detail=f"Session {req.session_id} not found")
            if session.result is None:
                raise HTTPException(status_code=409, detail="Session has no result yet.")
            selection = session_basket(session.result, req.basket)
            budget = budget if budget is not None else session.request.budget
            desired_items = desired_items or session.request.desired_items

        if not selection.items:
            raise HTTPException(status_code=400, detail="Selection has no items.")

        total = req.total_cost
        if total is None:
            total = selection.total_cost

        if desired_items and budget is not None:
            await asyncio.to_thread(
                state.store.save_budget_items, req.user_id, budget, desired_items
            )

        list_id = await asyncio.to_thread(
            state.store.save_selection, req.user_id, selection.items, total
        )
        if list_id is None:
            raise HTTPException(status_code=502, detail="Failed to save selection.")

        return {"list_id": list_id, "items": len(selection.items), "total_cost": total}

    @app.get("/api/v1/users/{user_id}/budget-items", tags=["selections"])
    async def budget_items(user_id: int) -> dict[str, Any]:
        """Desired items the user last budgeted for."""
        items = await asyncio.to_thread(state.store.budget_items, user_id)
        return {"user_id": user_id, "items": items}

    # -------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_exception", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal server error",
                detail=str(exc),
                status_code=500,
            ).model_dump(),
        )

    return app
