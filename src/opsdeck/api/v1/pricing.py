"""Pricing functions -- price surgeon and pricing enforcer.

The price surgeon is a single endpoint with an ``action`` discriminator,
matching how the frontend invokes it. Each action carries its own
permission; changing a list price needs ``update_price``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.opsdeck.api.deps import (
    get_current_user,
    get_organization,
    get_price_surgeon,
    get_pricing_enforcer,
    require_permission,
)
from src.opsdeck.core.organization import OrganizationContext
from src.opsdeck.governance.roles import can_perform_action
from src.opsdeck.models.organization import User
from src.opsdeck.pricing.schemas import EnforcerRequest, EnforcerResult, ProductCreate
from src.opsdeck.pricing.service import MissingCompetitorUrl, ProductNotFound

router = APIRouter(prefix="/api/v1/functions", tags=["functions"])

ACTION_PERMISSIONS: dict[str, str] = {
    "add_product": "scan_pricing",
    "scan_competitor_price": "scan_pricing",
    "scan_all": "scan_pricing",
    "get_products": "view_data",
    "update_my_price": "update_price",
    "get_price_history": "view_data",
}


class PriceSurgeonRequest(BaseModel):
    action: str
    product_id: str | None = None
    product: ProductCreate | None = None
    new_price: float | None = Field(default=None, ge=0)


def _require(value, name: str):
    if value is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{name} is required")
    return value


@router.post("/price-surgeon")
async def price_surgeon(
    body: PriceSurgeonRequest,
    user: User = Depends(get_current_user),
    organization: OrganizationContext = Depends(get_organization),
    service=Depends(get_price_surgeon),
):
    permission = ACTION_PERMISSIONS.get(body.action)
    if permission is None:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid action"})
    if not can_perform_action(user.role, permission):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role '{user.role}' is not permitted to {permission}",
        )

    org_id = organization.organization_id
    try:
        if body.action == "add_product":
            product = await service.add_product(org_id, _require(body.product, "product"))
            return {"success": True, "product": product.model_dump(mode="json")}

        if body.action == "scan_competitor_price":
            result = await service.scan_product(org_id, _require(body.product_id, "product_id"))
            return result.model_dump(mode="json")

        if body.action == "scan_all":
            results = await service.scan_all(org_id)
            return {"success": True, "scanned": len(results), "results": results}

        if body.action == "get_products":
            products = await service.list_products(org_id)
            return {"success": True, "products": [p.model_dump(mode="json") for p in products]}

        if body.action == "update_my_price":
            product = await service.update_my_price(
                org_id,
                _require(body.product_id, "product_id"),
                _require(body.new_price, "new_price"),
            )
            return {"success": True, "product": product.model_dump(mode="json")}

        history = await service.price_history(org_id)
        alerts = await service.recent_alerts(org_id)
        return {
            "success": True,
            "history": [h.model_dump(mode="json") for h in history],
            "alerts": [a.model_dump(mode="json") for a in alerts],
        }
    except ProductNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MissingCompetitorUrl as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/pricing-enforcer", response_model=EnforcerResult)
async def pricing_enforcer(
    body: EnforcerRequest,
    user: User = Depends(require_permission("scan_pricing")),
    organization: OrganizationContext = Depends(get_organization),
    enforcer=Depends(get_pricing_enforcer),
):
    """Audit the supplied revenue and leads against the discount policy."""
    return await enforcer.run(organization.organization_id, body)
