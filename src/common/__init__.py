"""Common shared utilities for the Budget Basket service."""

from common.config import Settings
from common.logging import setup_logging
from common.models import HealthResponse, ErrorResponse

__all__ = ["Settings", "setup_logging", "HealthResponse", "ErrorResponse"]
