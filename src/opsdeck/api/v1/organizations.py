"""Organization provisioning endpoints.

These skip organization middleware (no X-Organization-ID needed) since they
create and list organizations.
"""

from __future__ import annotations

from fastapi import APIRouter, status

from src.opsdeck.schemas.organization import OrganizationCreate, OrganizationResponse
from src.opsdeck.services.provisioning import list_organizations, provision_organization

router = APIRouter(prefix="/api/v1/organizations", tags=["organizations"])


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(body: OrganizationCreate):
    """Provision a new organization with an isolated schema and RLS policies."""
    result = await provision_organization(slug=body.slug, name=body.name)
    return OrganizationResponse(**result)


@router.get("", response_model=list[OrganizationResponse])
async def get_organizations():
    return [OrganizationResponse(**org) for org in await list_organizations()]
