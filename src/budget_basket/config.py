"""Configuration management for the Budget Basket service."""

from __future__ import annotations

from common.config import Settings as BaseSettings


class Settings(BaseSettings):
    """Budget Basket configuration.

    Inherits logging and database settings from ``common.config.Settings``
    and adds catalog, engine and recommendation options.
    """

    # Service identity
    service_name: str = "budget-basket"
    service_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8030

    # Catalog collaborator
    catalog_backend: str = "memory"  # "memory" or "http"
    catalog_url: str = "http://localhost:8040"
    catalog_file: str | None = None
    catalog_timeout: float = 10.0
    catalog_max_retries: int = 2

    # Engine
    default_unit_weight: float = 0.5
    range_enumeration_warn_threshold: int = 50_000

    # Recommendations
    max_recommendations: int = 5
    related_items_limit: int = 3
    related_items_confidence: float = 0.5
    co_purchase_min_confidence: float = 0.1
    alternatives_limit: int = 5


def get_settings() -> Settings:
    """Return a settings instance populated from the environment."""
    return Settings()
