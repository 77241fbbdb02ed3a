"""Organization context propagation via Python contextvars.

Organizations are the tenancy boundary: almost every row belongs to one.
The OrganizationContext is set by middleware at the start of each request
and is readable anywhere in the call stack via get_current_organization().
Database sessions, LLM metadata and log lines all scope themselves with it.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass


@dataclass(frozen=True)
class OrganizationContext:
    """Immutable organization context for the current request."""

    organization_id: str
    slug: str
    schema_name: str  # e.g., "org_acme_co"


_organization_context: contextvars.ContextVar[OrganizationContext] = contextvars.ContextVar(
    "organization_context"
)


def get_current_organization() -> OrganizationContext:
    """Get the organization context for the current request.

    Raises RuntimeError if no context has been set (i.e., the call is not
    within an organization-scoped request or background job).
    """
    try:
        return _organization_context.get()
    except LookupError:
        raise RuntimeError("No organization context set -- request is not organization-scoped")


def set_organization_context(ctx: OrganizationContext) -> contextvars.Token[OrganizationContext]:
    """Set the organization context. Returns a token for reset."""
    return _organization_context.set(ctx)


def reset_organization_context(token: contextvars.Token[OrganizationContext]) -> None:
    _organization_context.reset(token)


def schema_name_for(slug: str) -> str:
    """Postgres schema holding an organization's tables: acme-co -> org_acme_co."""
    return f"org_{slug.replace('-', '_')}"


# ── Paths that skip organization resolution ─────────────────────────────────

SKIP_ORGANIZATION_PATHS = (
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/metrics",
    "/api/v1/organizations",
)
