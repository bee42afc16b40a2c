"""Computation runner and in-memory session store.

A session keeps the candidate pool fetched for a shopper's desired items so
that price-range changes can recompute from it without going back to the
catalog.  Range changes may overlap; each recomputation takes the next
generation number of its session and its result is surfaced only if no
newer one has started (last write wins).
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any

import structlog

from budget_basket.config import Settings
from budget_basket.models import (
    ComputationRequest,
    ComputationResponse,
    ComputationSession,
    ComputationSessionState,
    Product,
)
from budget_basket.orchestrator.graph import compile_basket_graph, to_response
from budget_basket.orchestrator.state import BasketGraphState
from budget_basket.protocols.catalog import CatalogAdapter

logger = structlog.get_logger(__name__)


class SupersededComputation(Exception):
    """Raised when a newer recomputation has started for the same session."""

    def __init__(self, session_id: str, generation: int, latest: int) -> None:
        super().__init__(
            f"Computation {generation} of session {session_id} was superseded by {latest}."
        )
        self.session_id = session_id
        self.generation = generation
        self.latest = latest


class SessionUnavailable(Exception):
    """Raised when a session has no candidate pool to recompute from."""

    def __init__(self, session_id: str, reason: str) -> None:
        super().__init__(f"Session {session_id} cannot be recomputed: {reason}")
        self.session_id = session_id
        self.reason = reason


class BasketComputer:
    """Runs the compiled basket pipeline."""

    def __init__(self, settings: Settings, catalog: CatalogAdapter) -> None:
        self._compiled = compile_basket_graph(settings, catalog)

    async def run(
        self,
        request: ComputationRequest,
        candidate_pool: list[Product] | None = None,
        skipped_items: list[str] | None = None,
    ) -> tuple[ComputationResponse, list[Product]]:
        """Execute the pipeline and return the response and the candidate pool.

        Passing *candidate_pool* skips the catalog fetch.
        """
        initial: BasketGraphState = {
            "request": request,
            "candidate_pool": candidate_pool,
            "skipped_items": skipped_items or [],
            "selection": [],
            "in_range": None,
        }
        final = await self._compiled.ainvoke(initial)
        return to_response(final), final.get("candidate_pool") or []


class SessionManager:
    """In-memory computation session store."""

    def __init__(self, computer: BasketComputer) -> None:
        self._computer = computer
        self._sessions: dict[str, ComputationSession] = {}
        # Set once a session's first fetch has finished, successfully or not
        self._fetched: dict[str, asyncio.Event] = {}

    def get_session(self, session_id: str) -> ComputationSession | None:
        """Retrieve a session by ID."""
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[ComputationSession]:
        """Return all sessions."""
        return list(self._sessions.values())

    def update_session(self, session_id: str, **kwargs: Any) -> ComputationSession | None:
        """Update session fields."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        for key, value in kwargs.items():
            if hasattr(session, key):
                setattr(session, key, value)
        session.updated_at = datetime.now(tz=timezone.utc)
        return session

    async def create_session(self, request: ComputationRequest) -> ComputationSession:
        """Create a session, fetch its candidates and run the first computation."""
        session = ComputationSession(
            id=str(uuid.uuid4()),
            request=request,
            created_at=datetime.now(tz=timezone.utc),
            updated_at=datetime.now(tz=timezone.utc),
        )
        fetched = asyncio.Event()
        self._sessions[session.id] = session
        self._fetched[session.id] = fetched
        generation = self._begin(session)

        try:
            result, pool = await self._computer.run(request)
            self.update_session(session.id, candidate_pool=pool)
        except Exception as exc:
            logger.exception("session_computation_failed", session_id=session.id)
            self.update_session(
                session.id,
                state=ComputationSessionState.FAILED,
                error=f"Computation failed: {exc}",
            )
            return session
        finally:
            fetched.set()

        if self._apply(session, generation, request, result):
            logger.info(
                "session_created",
                session_id=session.id,
                candidates=len(pool),
                optimal_cost=result.optimal_cost,
            )
        return session

    async def recompute_range(
        self,
        session_id: str,
        min_price: float | None,
        max_price: float | None,
    ) -> ComputationResponse:
        """Recompute a session for a new price window from its cached pool.

        A call made while the session's first fetch is still running waits
        for that fetch, so it always starts from the fetched pool.

        Raises
        ------
        KeyError
            If the session does not exist.
        SessionUnavailable
            If the first computation failed and there is no pool.
        SupersededComputation
            If a newer recomputation started while this one was running.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(session_id)

        await self._fetched[session_id].wait()
        if session.candidate_pool is None:
            raise SessionUnavailable(session_id, session.error or "no candidate pool")

        request = session.request.model_copy(
            update={"min_price": min_price, "max_price": max_price}
        )
        generation = self._begin(session)

        result, _ = await self._computer.run(
            request,
            candidate_pool=session.candidate_pool,
            skipped_items=session.result.skipped_items if session.result else [],
        )

        if not self._apply(session, generation, request, result):
            raise SupersededComputation(session_id, generation, session.generation)
        return result

    # ------------------------------------------------------------------
    # Generation bookkeeping
    # ------------------------------------------------------------------

    @staticmethod
    def _begin(session: ComputationSession) -> int:
        session.generation += 1
        return session.generation

    def _apply(
        self,
        session: ComputationSession,
        generation: int,
        request: ComputationRequest,
        result: ComputationResponse,
    ) -> bool:
        """Surface *result* if *generation* is still the newest; else drop it."""
        if generation != session.generation:
            logger.info(
                "computation_superseded",
                session_id=session.id,
                generation=generation,
                latest=session.generation,
            )
            return False

        self.update_session(
            session.id,
            request=request,
            result=result,
            state=ComputationSessionState.READY,
            error=None,
        )
        return True
