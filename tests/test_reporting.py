from __future__ import annotations

from dataclasses import replace

from autoqs.models import Ledger
from autoqs.reporting import make_summary_text


def test_summary_lists_split_and_top_drivers(ledger):
    text = make_summary_text(ledger, top_n=2)
    assert "Grand total: £953.00." in text
    assert "Material £580.00 (60.9%)" in text
    assert "Top cost drivers:" in text
    drivers = text.split("Top cost drivers:")[1]
    assert "2.2" in drivers and "2.1" in drivers
    assert "1.2" not in drivers


def test_summary_for_insufficient_info(ledger):
    flagged = replace(ledger, is_insufficient_info=True, missing_info_reason="No plans supplied")
    assert "No plans supplied" in make_summary_text(flagged)


def test_summary_for_empty_ledger(summary):
    text = make_summary_text(Ledger(project_summary=summary))
    assert "(no priced items)" in text
    assert "Grand total: £0.00." in text
