"""LLM completion endpoint.

Authenticated, organization-scoped access to completions through the
LiteLLM Router. With ``json_mode`` the reply is requested as a JSON object
and also returned parsed.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from src.opsdeck.api.deps import get_current_user, get_llm
from src.opsdeck.models.organization import User
from src.opsdeck.schemas.llm import LLMCompletionRequest, LLMCompletionResponse
from src.opsdeck.services.llm import parse_json_object

router = APIRouter(prefix="/api/v1/llm", tags=["llm"])


@router.post("/completion", response_model=LLMCompletionResponse)
async def completion(
    body: LLMCompletionRequest,
    current_user: User = Depends(get_current_user),
    llm=Depends(get_llm),
):
    messages = [{"role": m.role, "content": m.content} for m in body.messages]

    try:
        result = await llm.completion(
            messages=messages,
            model=body.model,
            max_tokens=body.max_tokens,
            temperature=body.temperature,
            response_format={"type": "json_object"} if body.json_mode else None,
        )
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    response = LLMCompletionResponse(**result)
    if body.json_mode:
        response.parsed = parse_json_object(response.content)
    return response
