"""API middleware package."""

from src.opsdeck.api.middleware.logging import LoggingMiddleware
from src.opsdeck.api.middleware.organization import OrganizationAuthMiddleware

__all__ = ["LoggingMiddleware", "OrganizationAuthMiddleware"]
