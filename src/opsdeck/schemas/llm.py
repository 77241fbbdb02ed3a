"""Request/response schemas for the LLM gateway endpoint."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class LLMMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class LLMCompletionRequest(BaseModel):
    messages: list[LLMMessage] = Field(..., min_length=1)
    model: Literal["reasoning", "fast"] = "reasoning"
    max_tokens: int = Field(default=4096, ge=1, le=16384)
    temperature: float = Field(default=0.7, ge=0, le=2)
    json_mode: bool = Field(default=False, description="Request and parse a JSON object reply")


class LLMCompletionResponse(BaseModel):
    content: str
    model: str
    usage: dict = Field(default_factory=dict)
    organization_id: str = ""
    parsed: dict | None = None
