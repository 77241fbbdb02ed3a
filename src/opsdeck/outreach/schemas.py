"""Outreach schemas -- news signals, prompt variants, and drafts."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class SignalType(str, Enum):
    FUNDING = "funding"
    HIRING = "hiring"
    PRODUCT_LAUNCH = "product_launch"
    LEADERSHIP_CHANGE = "leadership_change"
    GENERAL = "general"


class OutreachStatus(str, Enum):
    PENDING = "pending"
    DRAFTED = "drafted"
    REPLIED = "replied"
    NO_REPLY = "no_reply"


class SignalInput(BaseModel):
    """A news signal as submitted by the caller for scanning.

    Missing ``company_name`` and ``signal_type`` are derived from the
    source URL and headline when the signal is scanned.
    """

    headline: str = Field(..., min_length=1)
    company_name: str | None = Field(default=None, min_length=1)
    signal_type: SignalType | None = None
    summary: str | None = None
    source_url: str | None = None
    relevance_score: float | None = Field(default=None, ge=0, le=1)


class SignalRead(BaseModel):
    id: str
    organization_id: str
    company_name: str
    signal_type: SignalType
    headline: str
    summary: str | None = None
    source_url: str | None = None
    relevance_score: float | None = None
    outreach_status: OutreachStatus = OutreachStatus.PENDING
    draft_email: str | None = None
    variant_id: str | None = None
    processed_at: datetime | None = None
    created_at: datetime | None = None


class PromptVariant(BaseModel):
    id: str
    variant_tag: str
    prompt_text: str
    uses: int = 0
    successes: int = 0
    is_active: bool = True


class PromptVariantCreate(BaseModel):
    variant_tag: str = Field(..., min_length=1, max_length=100)
    prompt_text: str = Field(..., min_length=1)


class OutreachDraft(BaseModel):
    """Email draft returned by the model."""

    subject_line: str = ""
    email_body: str = ""
    follow_up_timing: str | None = None
    relevance_score: float | None = None
    personalization_hooks: list[str] = Field(default_factory=list)

    @field_validator("relevance_score", mode="before")
    @classmethod
    def _clamp_relevance(cls, v):
        if v is None:
            return None
        try:
            return min(max(float(v), 0.0), 1.0)
        except (TypeError, ValueError):
            return None

    def as_email(self) -> str:
        return f"Subject: {self.subject_line}\n\n{self.email_body}"


class DraftResult(BaseModel):
    success: bool = True
    signal_id: str
    company_name: str
    variant_id: str | None = None
    variant_tag: str | None = None
    explored: bool = False
    draft: OutreachDraft
