"""Entry point for the Budget Basket service.

Configures logging, opens the catalog and database resources, builds the
FastAPI application and starts the uvicorn server.
"""

from __future__ import annotations

import structlog
import uvicorn
from fastapi import FastAPI

from common import setup_logging

from budget_basket.api import AppState, create_app
from budget_basket.config import Settings, get_settings

logger = structlog.get_logger(__name__)


def build_app(settings: Settings | None = None) -> FastAPI:
    """Construct the fully-configured application.

    The catalog adapter and the database pool are opened here and released
    when the application shuts down.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level, json_logs=settings.json_logs)

    state = AppState(settings)
    app = create_app(settings, state)

    logger.info(
        "application_ready",
        service=settings.service_name,
        version=settings.service_version,
        catalog_backend=settings.catalog_backend,
        environment=settings.environment,
    )
    return app


def main() -> None:
    """Launch the Budget Basket server."""
    settings = get_settings()
    app = build_app(settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
