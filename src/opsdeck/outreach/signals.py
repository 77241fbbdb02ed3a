"""Classify news signals and pull company names out of them."""

from __future__ import annotations

import re
from urllib.parse import urlparse

from src.opsdeck.outreach.schemas import SignalType

# Checked in order; the first family that matches wins.
_SIGNAL_PATTERNS: list[tuple[SignalType, re.Pattern]] = [
    (SignalType.FUNDING, re.compile(r"raises|funding|series [a-d]|seed|investment|million|investor")),
    (SignalType.HIRING, re.compile(r"hiring|hires|job|talent|recruits|employees|team")),
    (SignalType.PRODUCT_LAUNCH, re.compile(r"launch|unveil|release|new product|platform|announces")),
    (SignalType.LEADERSHIP_CHANGE, re.compile(r"ceo|cro|cto|cfo|executive|appoints|joins|leadership")),
]

_TITLE_COMPANY = re.compile(
    r"^([A-Z][a-zA-Z\s]+?)\s+(?:Raises|Launches|Appoints|Hires|Opens|Closes)"
)

UNKNOWN_COMPANY = "Unknown Company"


def detect_signal_type(title: str, text: str | None = None) -> SignalType:
    content = f"{title} {text or ''}".lower()
    for signal_type, pattern in _SIGNAL_PATTERNS:
        if pattern.search(content):
            return signal_type
    return SignalType.GENERAL


def extract_company_name(url: str | None, title: str) -> str:
    """Company from the URL's first host label, falling back to the headline."""
    host = urlparse(url).hostname if url else None
    if host:
        if host.startswith("www."):
            host = host[4:]
        label = host.split(".")[0]
        if len(label) > 2:
            return label[0].upper() + label[1:]

    match = _TITLE_COMPANY.match(title or "")
    return match.group(1).strip() if match else UNKNOWN_COMPANY
