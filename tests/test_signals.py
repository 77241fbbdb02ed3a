"""News signal classification and company name extraction tests."""

from __future__ import annotations

import pytest

from src.opsdeck.outreach.schemas import SignalType
from src.opsdeck.outreach.signals import UNKNOWN_COMPANY, detect_signal_type, extract_company_name


class TestDetectSignalType:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Acme raises $20M Series B", SignalType.FUNDING),
            ("Acme is hiring 50 engineers", SignalType.HIRING),
            ("Acme launches new analytics platform", SignalType.PRODUCT_LAUNCH),
            ("Acme appoints new CEO", SignalType.LEADERSHIP_CHANGE),
            ("Quarterly results published", SignalType.GENERAL),
        ],
    )
    def test_title_only(self, title, expected):
        assert detect_signal_type(title) == expected

    def test_summary_is_considered(self):
        assert detect_signal_type("Big news at Acme", "The round was led by a new investor") == SignalType.FUNDING

    def test_first_matching_family_wins(self):
        assert detect_signal_type("Acme raises seed round to grow its team") == SignalType.FUNDING

    def test_case_insensitive(self):
        assert detect_signal_type("ACME HIRES VP OF SALES") == SignalType.HIRING


class TestExtractCompanyName:
    def test_from_url_host(self):
        assert extract_company_name("https://www.stripe.com/newsroom/x", "anything") == "Stripe"

    def test_short_host_label_falls_back_to_title(self):
        assert extract_company_name("https://ab.io/post", "Acme Corp Raises $10M") == "Acme Corp"

    def test_from_title_without_url(self):
        assert extract_company_name(None, "Globex Launches Widget") == "Globex"

    def test_unknown(self):
        assert extract_company_name(None, "no company at the start") == UNKNOWN_COMPANY
