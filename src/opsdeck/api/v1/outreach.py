"""Sniper outreach function -- one endpoint with a ``mode`` discriminator."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.opsdeck.api.deps import get_organization, get_sniper_outreach, require_permission
from src.opsdeck.core.organization import OrganizationContext
from src.opsdeck.models.organization import User
from src.opsdeck.outreach.schemas import PromptVariantCreate, SignalInput
from src.opsdeck.outreach.service import InvalidSignalState, NoPendingSignals, SignalNotFound

router = APIRouter(prefix="/api/v1/functions", tags=["functions"])

MODES = ("scan", "draft", "batch", "record_outcome", "add_variant", "list_variants")


class SniperOutreachRequest(BaseModel):
    mode: str
    signals: list[SignalInput] = Field(default_factory=list)
    signal_id: str | None = None
    business_context: str | None = None
    replied: bool | None = None
    variant: PromptVariantCreate | None = None


@router.post("/sniper-outreach")
async def sniper_outreach(
    body: SniperOutreachRequest,
    user: User = Depends(require_permission("draft_outreach")),
    organization: OrganizationContext = Depends(get_organization),
    service=Depends(get_sniper_outreach),
):
    if body.mode not in MODES:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid mode"})

    org_id = organization.organization_id
    try:
        if body.mode == "scan":
            stored = await service.scan(org_id, body.signals)
            return {
                "success": True,
                "signals_found": len(stored),
                "signals": [s.model_dump(mode="json") for s in stored],
            }

        if body.mode == "draft":
            try:
                result = await service.draft(org_id, body.signal_id, body.business_context)
            except NoPendingSignals as e:
                return {"success": False, "error": str(e)}
            return result.model_dump(mode="json")

        if body.mode == "batch":
            results = await service.batch(org_id, body.business_context)
            return {"success": True, "processed": len(results), "results": results}

        if body.mode == "record_outcome":
            if body.signal_id is None or body.replied is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="signal_id and replied are required",
                )
            signal = await service.record_outcome(org_id, body.signal_id, body.replied)
            return {"success": True, "signal": signal.model_dump(mode="json")}

        if body.mode == "add_variant":
            if body.variant is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="variant is required")
            variant = await service.add_variant(org_id, body.variant)
            return {"success": True, "variant": variant.model_dump(mode="json")}

        variants = await service.list_variants(org_id)
        return {"success": True, "variants": [v.model_dump(mode="json") for v in variants]}
    except SignalNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidSignalState as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
